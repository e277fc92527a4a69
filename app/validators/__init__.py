"""
app/validators package marker.
"""

from app.validators.mapping_validator import FieldMappingError, MappingErrorDetail, MappingValidator
from app.validators.narrative_grounding import NarrativeGroundingError, NarrativeGroundingValidator

__all__ = [
    "FieldMappingError",
    "MappingErrorDetail",
    "MappingValidator",
    "NarrativeGroundingError",
    "NarrativeGroundingValidator",
]
