"""
Pytest configuration and fixtures for charforge tests.
"""

import sys
from pathlib import Path
import pytest

# Add src directory to Python path to allow importing charforge
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from charforge.config import CharforgeConfig


# Configure anyio to only use asyncio (not trio)
@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fast_config():
    """Config with no retry backoff so retry tests run instantly."""
    return CharforgeConfig(retry_delay=0.0, max_retries=3)
