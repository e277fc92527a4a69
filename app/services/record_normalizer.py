"""
app/services/record_normalizer.py

Cleans raw ingestion rows into canonical publisher records.

Numeric fields drop currency symbols, thousands separators, percent signs
and whitespace before parsing; anything unparsable or non-finite becomes 0.
Rows without a publisher name or id are dropped.  Records are deduplicated
on ``publisher_id`` (or the name lowercased with whitespace collapsed to
``_``); a later row replaces the earlier one entirely but keeps the
earlier one's position.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Mapping, Sequence

from analytics.records import PublisherRecord
from app.config import get_normalizer_settings
from app.errors import NoResolvableRecordsError
from app.mappers.field_mapper import NUMERIC_FIELDS, FieldMapper, MappingResolution, collect_headers

logger = logging.getLogger(__name__)

_NUMERIC_NOISE = re.compile(r"[$€£¥,%\s]")
_WHITESPACE_RUN = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def parse_numeric(value: Any) -> float:
    """
    Coerce a raw cell to a finite float, defaulting to 0.0.
    """

    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        cleaned = _NUMERIC_NOISE.sub("", str(value))
        if not cleaned:
            return 0.0
        try:
            number = float(cleaned)
        except ValueError:
            return 0.0
    return number if math.isfinite(number) else 0.0


def clean_text(value: Any) -> str | None:
    """
    Strip a raw identity/text cell; empty values become None.
    """

    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def dedupe_key(publisher_id: str | None, publisher_name: str | None) -> str | None:
    """
    Identity used to collapse repeated rows for the same publisher.
    """

    if publisher_id:
        return publisher_id
    if publisher_name:
        return _WHITESPACE_RUN.sub("_", publisher_name.lower())
    return None


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NormalizationSummary:
    rows_received: int
    rows_dropped: int
    duplicates_replaced: int
    negative_values_clamped: int
    mapping: dict[str, str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "rows_received": self.rows_received,
            "rows_dropped": self.rows_dropped,
            "duplicates_replaced": self.duplicates_replaced,
            "negative_values_clamped": self.negative_values_clamped,
            "mapping": dict(self.mapping),
        }


@dataclass(frozen=True)
class NormalizationResult:
    records: tuple[PublisherRecord, ...]
    summary: NormalizationSummary


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class RecordNormalizer:
    """
    Maps, cleans, and deduplicates raw rows into publisher records.
    """

    def __init__(
        self,
        *,
        clamp_negative: bool = True,
        mapper: FieldMapper | None = None,
    ) -> None:
        self._clamp_negative = clamp_negative
        self._mapper = mapper or FieldMapper()

    def resolve_mapping(
        self,
        rows: Sequence[Mapping[str, Any]],
        *,
        explicit_mapping: Mapping[str, str] | None = None,
    ) -> MappingResolution:
        """
        Resolve the field mapping for *rows* without normalizing them.

        Raises FieldMappingError when no usable mapping exists.
        """

        return self._mapper.resolve_mapping(
            collect_headers(rows),
            explicit_mapping=explicit_mapping,
        )

    def normalize(
        self,
        rows: Sequence[Mapping[str, Any]],
        *,
        explicit_mapping: Mapping[str, str] | None = None,
    ) -> NormalizationResult:
        """
        Normalize *rows* into canonical publisher records.

        Parameters
        ----------
        rows:
            Raw rows, each a mapping of source column to raw value.
        explicit_mapping:
            Optional ``source column -> canonical field`` mapping; inferred
            from the alias table when omitted.

        Returns
        -------
        NormalizationResult
            Records in first-seen order plus a cleaning summary.

        Raises
        ------
        FieldMappingError
            If no usable mapping can be resolved.
        NoResolvableRecordsError
            If no row carries a publisher name or id.
        """

        resolution = self.resolve_mapping(rows, explicit_mapping=explicit_mapping)

        by_key: dict[str, dict[str, Any]] = {}
        dropped = 0
        replaced = 0
        clamped = 0

        for raw_row in rows:
            fields = self._mapper.map_row(raw_row=raw_row, mapping=resolution)
            publisher_id = clean_text(fields.get("publisher_id"))
            publisher_name = clean_text(fields.get("publisher_name"))
            key = dedupe_key(publisher_id, publisher_name)
            if key is None:
                dropped += 1
                continue

            values: dict[str, Any] = {
                "publisher_id": publisher_id,
                "publisher_name": publisher_name,
                "publisher_type": clean_text(fields.get("publisher_type")) or "",
            }
            for field_name in NUMERIC_FIELDS:
                number = parse_numeric(fields.get(field_name))
                if number < 0 and self._clamp_negative:
                    number = 0.0
                    clamped += 1
                values[field_name] = number

            if key in by_key:
                replaced += 1
            # dict assignment keeps the first-seen insertion position
            by_key[key] = values

        summary = NormalizationSummary(
            rows_received=len(rows),
            rows_dropped=dropped,
            duplicates_replaced=replaced,
            negative_values_clamped=clamped,
            mapping=dict(resolution.canonical_to_source),
        )
        if not by_key:
            raise NoResolvableRecordsError(rows_received=len(rows), rows_dropped=dropped)

        records = tuple(
            PublisherRecord(dedupe_key=key, position=position, **values)
            for position, (key, values) in enumerate(by_key.items())
        )
        self._log_summary(summary, resolution, record_count=len(records))
        return NormalizationResult(records=records, summary=summary)

    @staticmethod
    def _log_summary(
        summary: NormalizationSummary,
        resolution: MappingResolution,
        *,
        record_count: int,
    ) -> None:
        logger.info(
            "Normalized %d rows into %d records (dropped=%d replaced=%d clamped=%d mapping=%s)",
            summary.rows_received,
            record_count,
            summary.rows_dropped,
            summary.duplicates_replaced,
            summary.negative_values_clamped,
            "explicit" if resolution.explicit else "inferred",
        )
        if summary.negative_values_clamped:
            logger.warning(
                "Clamped %d negative numeric values to 0.",
                summary.negative_values_clamped,
            )


@lru_cache(maxsize=1)
def get_record_normalizer() -> RecordNormalizer:
    """
    Return a cached normalizer configured from environment settings.
    """

    settings = get_normalizer_settings()
    return RecordNormalizer(clamp_negative=settings.clamp_negative)
