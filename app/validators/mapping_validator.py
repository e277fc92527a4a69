"""
app/validators/mapping_validator.py

Validation for field mapping resolution.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from app.errors import InputError

INVALID_MAPPING_FIELD = "invalid_mapping_field"
MAPPING_SOURCE_NOT_FOUND = "mapping_source_not_found"
IDENTITY_FIELD_UNMAPPED = "identity_field_unmapped"
EMPTY_HEADERS = "empty_headers"


@dataclass(frozen=True)
class MappingErrorDetail:
    """
    Structured mapping error detail.
    """

    code: str
    message: str
    canonical_field: str | None = None
    source_column: str | None = None
    context: dict[str, Any] | None = None


class FieldMappingError(InputError):
    """
    Raised when a field mapping cannot be resolved safely.
    """

    def __init__(self, *, message: str, errors: Sequence[MappingErrorDetail]) -> None:
        super().__init__(message)
        self.message = message
        self.errors = tuple(errors)

    @property
    def codes(self) -> list[str]:
        return [error.code for error in self.errors]

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "errors": [
                {
                    "code": error.code,
                    "message": error.message,
                    "canonical_field": error.canonical_field,
                    "source_column": error.source_column,
                    "context": error.context,
                }
                for error in self.errors
            ],
        }


class MappingValidator:
    """
    Validates resolved canonical-to-source mappings.

    A mapping is usable when every key is a canonical field, every value is
    one of the source headers, and at least one identity field is mapped.
    """

    def __init__(
        self,
        *,
        identity_fields: Sequence[str],
        canonical_fields: Sequence[str],
    ) -> None:
        self._identity_fields = tuple(identity_fields)
        self._canonical_set = set(canonical_fields)

    def validate(
        self,
        *,
        mapping: dict[str, str],
        source_headers: Sequence[str],
        pre_errors: Sequence[MappingErrorDetail] | None = None,
    ) -> None:
        """
        Validate mapping and raise structured errors if invalid.
        """

        errors: list[MappingErrorDetail] = list(pre_errors or [])
        headers_set = set(source_headers)

        for canonical_field, source_column in mapping.items():
            if canonical_field not in self._canonical_set:
                errors.append(
                    MappingErrorDetail(
                        code=INVALID_MAPPING_FIELD,
                        message="Unknown canonical field in mapping.",
                        canonical_field=canonical_field,
                        source_column=source_column,
                    )
                )
            if source_column not in headers_set:
                errors.append(
                    MappingErrorDetail(
                        code=MAPPING_SOURCE_NOT_FOUND,
                        message="Mapped source column does not exist in row headers.",
                        canonical_field=canonical_field,
                        source_column=source_column,
                    )
                )

        if not any(field in mapping for field in self._identity_fields):
            errors.append(
                MappingErrorDetail(
                    code=IDENTITY_FIELD_UNMAPPED,
                    message="Neither publisher name nor publisher id is mapped.",
                    context={
                        "identity_fields": list(self._identity_fields),
                        "source_headers": list(source_headers),
                    },
                )
            )

        if errors:
            codes = ", ".join(sorted({error.code for error in errors}))
            raise FieldMappingError(
                message=f"Field mapping validation failed: {codes}.",
                errors=errors,
            )
