"""
app/mappers package marker.
"""

from app.mappers.field_mapper import (
    CANONICAL_FIELDS,
    DEFAULT_COLUMN_ALIASES,
    IDENTITY_FIELDS,
    FieldMapper,
    MappingResolution,
)

__all__ = [
    "CANONICAL_FIELDS",
    "DEFAULT_COLUMN_ALIASES",
    "IDENTITY_FIELDS",
    "FieldMapper",
    "MappingResolution",
]
