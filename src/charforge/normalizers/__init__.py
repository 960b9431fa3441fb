"""
Entity normalizers for raw 5etools records.
"""

from .background import BackgroundNormalizer, build_fluff_index
from .classes import ClassNormalizer
from .generic import GenericNormalizer
from .markup import convert_markup, make_id, render_description, render_entries
from .proficiency import extract_proficiency_set, parse_proficiency_text
from .race import RaceNormalizer
from .strategies import LegacySchema, ModernSchema, SchemaStrategy, classify_source, strategy_for

__all__ = [
    "BackgroundNormalizer",
    "ClassNormalizer",
    "GenericNormalizer",
    "LegacySchema",
    "ModernSchema",
    "RaceNormalizer",
    "SchemaStrategy",
    "build_fluff_index",
    "classify_source",
    "convert_markup",
    "extract_proficiency_set",
    "make_id",
    "parse_proficiency_text",
    "render_description",
    "render_entries",
    "strategy_for",
]
