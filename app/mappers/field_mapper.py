"""
app/mappers/field_mapper.py

Resolves raw row columns into canonical publisher fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from app.validators.mapping_validator import (
    EMPTY_HEADERS,
    INVALID_MAPPING_FIELD,
    MAPPING_SOURCE_NOT_FOUND,
    FieldMappingError,
    MappingErrorDetail,
    MappingValidator,
)

IDENTITY_FIELDS: tuple[str, ...] = ("publisher_id", "publisher_name")

NUMERIC_FIELDS: tuple[str, ...] = (
    "total_revenue",
    "total_commission",
    "orders",
    "approved_revenue",
    "pending_revenue",
    "declined_revenue",
)

CANONICAL_FIELDS: tuple[str, ...] = (
    *IDENTITY_FIELDS,
    *NUMERIC_FIELDS,
    "publisher_type",
)

DEFAULT_COLUMN_ALIASES: dict[str, tuple[str, ...]] = {
    "publisher_id": ("publisher_id", "publisherid", "pub_id", "id"),
    "publisher_name": ("publisher_name", "publishername", "name", "publisher"),
    "total_revenue": ("total_revenue", "revenue", "gmv", "total_gmv", "sales"),
    "total_commission": ("total_commission", "commission", "payout"),
    "orders": ("orders", "num_orders", "transactions", "conversions"),
    "approved_revenue": ("approved_revenue", "approved", "approved_sales"),
    "pending_revenue": ("pending_revenue", "pending"),
    "declined_revenue": ("declined_revenue", "declined", "reversed_revenue"),
    "publisher_type": ("publisher_type", "type", "category", "publisher_category"),
}

STRATEGY_EXPLICIT = "explicit"
STRATEGY_ALIAS = "alias"


def normalize_header(header: str) -> str:
    """
    Normalize a column name for case-insensitive matching.
    """

    return header.strip().lower()


def collect_headers(rows: Iterable[Mapping[str, Any]]) -> tuple[str, ...]:
    """
    Union of row keys in order of first appearance.
    """

    seen: dict[str, None] = {}
    for row in rows:
        for key in row:
            if isinstance(key, str) and key.strip():
                seen.setdefault(key, None)
    return tuple(seen)


@dataclass(frozen=True)
class MappingResolution:
    """
    Final resolved mapping metadata.
    """

    canonical_to_source: dict[str, str]
    source_headers: tuple[str, ...]
    match_strategies: dict[str, str]

    @property
    def explicit(self) -> bool:
        return STRATEGY_EXPLICIT in self.match_strategies.values()


class FieldMapper:
    """
    Resolves source columns into canonical field mappings.

    An explicit ``source column -> canonical field`` mapping is used as
    given.  When it is absent, or when it maps no identity field, the gaps
    are filled by matching headers against the alias table.
    """

    def __init__(
        self,
        *,
        aliases: Mapping[str, Sequence[str]] | None = None,
        validator: MappingValidator | None = None,
    ) -> None:
        self._aliases: dict[str, tuple[str, ...]] = {
            canonical: tuple(values)
            for canonical, values in (aliases or DEFAULT_COLUMN_ALIASES).items()
        }
        self._validator = validator or MappingValidator(
            identity_fields=IDENTITY_FIELDS,
            canonical_fields=CANONICAL_FIELDS,
        )

    def resolve_mapping(
        self,
        headers: Sequence[str],
        *,
        explicit_mapping: Mapping[str, str] | None = None,
    ) -> MappingResolution:
        """
        Resolve the canonical-to-source mapping for *headers*.

        Parameters
        ----------
        headers:
            Source column names present in the rows.
        explicit_mapping:
            Optional ``source column -> canonical field`` mapping.

        Raises
        ------
        FieldMappingError
            If headers are empty, the explicit mapping is invalid, or no
            identity field could be mapped.
        """

        source_headers = tuple(header for header in headers if header and header.strip())
        if not source_headers:
            raise FieldMappingError(
                message="Row headers are empty; cannot resolve field mapping.",
                errors=[
                    MappingErrorDetail(
                        code=EMPTY_HEADERS,
                        message="No source columns were provided.",
                    )
                ],
            )

        header_lookup: dict[str, str] = {}
        for header in source_headers:
            header_lookup.setdefault(normalize_header(header), header)

        resolved: dict[str, str] = {}
        strategies: dict[str, str] = {}
        mapping_errors: list[MappingErrorDetail] = []

        for source_column, canonical_field in (explicit_mapping or {}).items():
            target = canonical_field.strip()
            if not target or not source_column.strip():
                continue
            if target not in CANONICAL_FIELDS:
                mapping_errors.append(
                    MappingErrorDetail(
                        code=INVALID_MAPPING_FIELD,
                        message="Mapping targets an unknown canonical field.",
                        canonical_field=target,
                        source_column=source_column,
                    )
                )
                continue
            if target in resolved:
                mapping_errors.append(
                    MappingErrorDetail(
                        code=INVALID_MAPPING_FIELD,
                        message="Canonical field is mapped from more than one source column.",
                        canonical_field=target,
                        source_column=source_column,
                        context={"already_mapped_from": resolved[target]},
                    )
                )
                continue

            matched_source = source_column if source_column in source_headers else header_lookup.get(
                normalize_header(source_column)
            )
            if matched_source is None:
                mapping_errors.append(
                    MappingErrorDetail(
                        code=MAPPING_SOURCE_NOT_FOUND,
                        message="Mapping points to a source column not present in row headers.",
                        canonical_field=target,
                        source_column=source_column,
                        context={"source_headers": list(source_headers)},
                    )
                )
                continue

            resolved[target] = matched_source
            strategies[target] = STRATEGY_EXPLICIT

        if not any(field in resolved for field in IDENTITY_FIELDS):
            self._fill_from_aliases(
                resolved=resolved,
                strategies=strategies,
                header_lookup=header_lookup,
            )

        self._validator.validate(
            mapping=resolved,
            source_headers=source_headers,
            pre_errors=mapping_errors,
        )

        return MappingResolution(
            canonical_to_source=resolved,
            source_headers=source_headers,
            match_strategies=strategies,
        )

    def map_row(
        self,
        *,
        raw_row: Mapping[str, Any],
        mapping: MappingResolution,
    ) -> dict[str, Any]:
        """
        Map one source row into canonical raw field values.
        """

        return {
            canonical_field: raw_row.get(source_column)
            for canonical_field, source_column in mapping.canonical_to_source.items()
        }

    def _fill_from_aliases(
        self,
        *,
        resolved: dict[str, str],
        strategies: dict[str, str],
        header_lookup: Mapping[str, str],
    ) -> None:
        used_headers = set(resolved.values())
        for canonical_field in CANONICAL_FIELDS:
            if canonical_field in resolved:
                continue
            match = self._find_alias_match(
                canonical_field=canonical_field,
                header_lookup=header_lookup,
                used_headers=used_headers,
            )
            if match is not None:
                resolved[canonical_field] = match
                strategies[canonical_field] = STRATEGY_ALIAS
                used_headers.add(match)

    def _find_alias_match(
        self,
        *,
        canonical_field: str,
        header_lookup: Mapping[str, str],
        used_headers: set[str],
    ) -> str | None:
        for alias in self._aliases.get(canonical_field, ()):
            match = header_lookup.get(normalize_header(alias))
            if match is not None and match not in used_headers:
                return match
        return None
