"""
tests/test_record_normalizer.py

Pytest unit tests for RecordNormalizer and its coercion helpers.

Coverage
--------
- Numeric coercion of currency, separators, percent and junk values
- Identity cleaning and dedupe keys
- Latest-wins dedupe that keeps the first-seen position
- Dropped rows and the all-dropped failure
- Negative clamping on and off
"""

from __future__ import annotations

import math

import pytest

from app.errors import NoResolvableRecordsError
from app.services.record_normalizer import (
    RecordNormalizer,
    clean_text,
    dedupe_key,
    parse_numeric,
)
from app.validators.mapping_validator import FieldMappingError
from tests.factories import SAMPLE_ROWS


@pytest.fixture()
def normalizer() -> RecordNormalizer:
    return RecordNormalizer()


class TestParseNumeric:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("$1,234.50", 1234.5),
            ("12%", 12.0),
            (" € 3 000 ", 3000.0),
            ("£7", 7.0),
            (42, 42.0),
            (2.5, 2.5),
            ("-15", -15.0),
        ],
    )
    def test_parses_formatted_values(self, raw: object, expected: float) -> None:
        assert parse_numeric(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", [None, "", "n/a", "abc", True, math.nan, math.inf, "inf"])
    def test_unparsable_or_non_finite_values_become_zero(self, raw: object) -> None:
        assert parse_numeric(raw) == 0.0


class TestIdentity:
    def test_clean_text_strips_and_blanks_to_none(self) -> None:
        assert clean_text("  Alpha ") == "Alpha"
        assert clean_text("   ") is None
        assert clean_text(None) is None

    def test_clean_text_renders_integral_floats_without_decimals(self) -> None:
        assert clean_text(1234.0) == "1234"

    def test_dedupe_key_prefers_publisher_id(self) -> None:
        assert dedupe_key("P-1", "Alpha Media") == "P-1"

    def test_dedupe_key_falls_back_to_collapsed_lowercase_name(self) -> None:
        assert dedupe_key(None, "Alpha   Media") == "alpha_media"

    def test_dedupe_key_without_identity_is_none(self) -> None:
        assert dedupe_key(None, None) is None


class TestNormalize:
    def test_maps_and_cleans_rows(self, normalizer: RecordNormalizer) -> None:
        result = normalizer.normalize(SAMPLE_ROWS)

        assert [record.publisher_name for record in result.records] == [
            "Alpha Media",
            "Beta Loyalty",
            "Gamma Deals",
        ]
        alpha = result.records[0]
        assert alpha.total_revenue == 100.0
        assert alpha.approved_revenue == 80.0
        assert alpha.publisher_type == "Content"
        assert alpha.dedupe_key == "alpha_media"
        assert [record.position for record in result.records] == [0, 1, 2]
        assert result.summary.rows_received == 3
        assert result.summary.mapping["publisher_name"] == "Publisher"

    def test_latest_row_wins_but_keeps_first_position(self, normalizer: RecordNormalizer) -> None:
        rows = [
            {"publisher_id": "P1", "revenue": "10"},
            {"publisher_id": "P2", "revenue": "20"},
            {"publisher_id": "P1", "revenue": "30"},
        ]

        result = normalizer.normalize(rows)

        assert [record.dedupe_key for record in result.records] == ["P1", "P2"]
        assert result.records[0].total_revenue == 30.0
        assert result.records[0].position == 0
        assert result.summary.duplicates_replaced == 1

    def test_names_differing_only_in_case_and_spacing_are_merged(self, normalizer: RecordNormalizer) -> None:
        rows = [
            {"name": "Acme  Media", "revenue": "5"},
            {"name": "acme media", "revenue": "7"},
        ]

        result = normalizer.normalize(rows)

        assert len(result.records) == 1
        assert result.records[0].publisher_name == "acme media"
        assert result.records[0].total_revenue == 7.0

    def test_rows_without_identity_are_dropped(self, normalizer: RecordNormalizer) -> None:
        rows = [
            {"name": "Alpha", "revenue": "5"},
            {"name": "  ", "revenue": "9"},
            {"revenue": "3"},
        ]

        result = normalizer.normalize(rows)

        assert len(result.records) == 1
        assert result.summary.rows_dropped == 2

    def test_all_rows_dropped_raises(self, normalizer: RecordNormalizer) -> None:
        with pytest.raises(NoResolvableRecordsError) as exc_info:
            normalizer.normalize([{"name": "", "revenue": "5"}, {"name": None, "revenue": "1"}])

        assert exc_info.value.rows_received == 2
        assert exc_info.value.rows_dropped == 2

    def test_unmappable_rows_raise_mapping_error(self, normalizer: RecordNormalizer) -> None:
        with pytest.raises(FieldMappingError):
            normalizer.normalize([{"revenue": "5"}])

    def test_negative_values_are_clamped_by_default(self, normalizer: RecordNormalizer) -> None:
        result = normalizer.normalize([{"name": "Alpha", "revenue": "-20", "commission": "-1"}])

        assert result.records[0].total_revenue == 0.0
        assert result.records[0].total_commission == 0.0
        assert result.summary.negative_values_clamped == 2

    def test_negative_values_kept_when_clamping_disabled(self) -> None:
        result = RecordNormalizer(clamp_negative=False).normalize([{"name": "Alpha", "revenue": "-20"}])

        assert result.records[0].total_revenue == -20.0
        assert result.summary.negative_values_clamped == 0

    def test_missing_numeric_columns_default_to_zero(self, normalizer: RecordNormalizer) -> None:
        result = normalizer.normalize([{"name": "Alpha"}])

        record = result.records[0]
        assert record.total_revenue == 0.0
        assert record.orders == 0.0
        assert record.publisher_type == ""

    def test_explicit_mapping_is_recorded_in_summary(self, normalizer: RecordNormalizer) -> None:
        result = normalizer.normalize(
            [{"Partner": "Alpha", "Sales": "10"}],
            explicit_mapping={"Partner": "publisher_name", "Sales": "total_revenue"},
        )

        assert result.summary.to_dict()["mapping"] == {
            "publisher_name": "Partner",
            "total_revenue": "Sales",
        }
