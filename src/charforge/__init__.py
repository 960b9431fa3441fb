"""
charforge - rules resolution and proficiency aggregation for 5e character building.
"""

from .aggregator import ProficiencyAggregator, ProficiencyGrant
from .catalog import SourceCatalog
from .character import Character
from .config import CharforgeConfig, load_config
from .loader import DataLoaderError, RawDataLoader
from .references import ReferenceResolver, UnresolvedReference

try:
    from importlib.metadata import version as _get_version
    __version__ = _get_version("charforge")
except Exception:
    __version__ = "0.1.0"  # Fallback if metadata unavailable

__all__ = [
    "Character",
    "CharforgeConfig",
    "DataLoaderError",
    "ProficiencyAggregator",
    "ProficiencyGrant",
    "RawDataLoader",
    "ReferenceResolver",
    "SourceCatalog",
    "UnresolvedReference",
    "load_config",
]
