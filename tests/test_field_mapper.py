from __future__ import annotations

import unittest

from app.mappers.field_mapper import FieldMapper, collect_headers
from app.validators.mapping_validator import FieldMappingError, MappingErrorDetail, MappingValidator


class TestFieldMapper(unittest.TestCase):
    def setUp(self) -> None:
        self.mapper = FieldMapper()

    def test_infers_columns_from_aliases(self) -> None:
        headers = ["Publisher", "GMV", "Commission", "Orders", "Type", "Notes"]

        resolution = self.mapper.resolve_mapping(headers)

        self.assertEqual(resolution.canonical_to_source["publisher_name"], "Publisher")
        self.assertEqual(resolution.canonical_to_source["total_revenue"], "GMV")
        self.assertEqual(resolution.canonical_to_source["total_commission"], "Commission")
        self.assertEqual(resolution.canonical_to_source["publisher_type"], "Type")
        self.assertNotIn("publisher_id", resolution.canonical_to_source)
        self.assertEqual(resolution.match_strategies["publisher_name"], "alias")
        self.assertFalse(resolution.explicit)

    def test_explicit_mapping_is_used_as_given(self) -> None:
        headers = ["Partner", "Sales", "Type"]

        resolution = self.mapper.resolve_mapping(
            headers,
            explicit_mapping={"Partner": "publisher_name", "Sales": "total_revenue"},
        )

        self.assertEqual(
            resolution.canonical_to_source,
            {"publisher_name": "Partner", "total_revenue": "Sales"},
        )
        self.assertEqual(resolution.match_strategies["publisher_name"], "explicit")
        self.assertTrue(resolution.explicit)

    def test_explicit_mapping_without_identity_is_completed_from_aliases(self) -> None:
        headers = ["name", "Sales", "revenue"]

        resolution = self.mapper.resolve_mapping(headers, explicit_mapping={"Sales": "total_revenue"})

        self.assertEqual(resolution.canonical_to_source["publisher_name"], "name")
        self.assertEqual(resolution.canonical_to_source["total_revenue"], "Sales")

    def test_explicit_source_matches_case_insensitively(self) -> None:
        resolution = self.mapper.resolve_mapping(
            ["Partner Name"],
            explicit_mapping={"partner name": "publisher_name"},
        )

        self.assertEqual(resolution.canonical_to_source["publisher_name"], "Partner Name")

    def test_unknown_canonical_target_raises_structured_error(self) -> None:
        with self.assertRaises(FieldMappingError) as ctx:
            self.mapper.resolve_mapping(
                ["Publisher", "Score"],
                explicit_mapping={"Publisher": "publisher_name", "Score": "quality_score"},
            )

        self.assertIn("invalid_mapping_field", ctx.exception.codes)

    def test_duplicate_canonical_target_raises_structured_error(self) -> None:
        with self.assertRaises(FieldMappingError) as ctx:
            self.mapper.resolve_mapping(
                ["A", "B"],
                explicit_mapping={"A": "publisher_name", "B": "publisher_name"},
            )

        self.assertIn("invalid_mapping_field", ctx.exception.codes)

    def test_missing_source_column_raises_structured_error(self) -> None:
        with self.assertRaises(FieldMappingError) as ctx:
            self.mapper.resolve_mapping(
                ["Publisher"],
                explicit_mapping={"Publisher": "publisher_name", "Missing": "total_revenue"},
            )

        self.assertIn("mapping_source_not_found", ctx.exception.codes)

    def test_unmapped_identity_raises_structured_error(self) -> None:
        with self.assertRaises(FieldMappingError) as ctx:
            self.mapper.resolve_mapping(["Revenue", "Orders"])

        self.assertEqual(ctx.exception.codes, ["identity_field_unmapped"])
        payload = ctx.exception.to_dict()
        self.assertEqual(payload["errors"][0]["code"], "identity_field_unmapped")

    def test_empty_headers_raise_structured_error(self) -> None:
        with self.assertRaises(FieldMappingError) as ctx:
            self.mapper.resolve_mapping([" ", ""])

        self.assertEqual(ctx.exception.codes, ["empty_headers"])

    def test_map_row_projects_canonical_fields(self) -> None:
        resolution = self.mapper.resolve_mapping(["Publisher", "GMV"])

        mapped = self.mapper.map_row(
            raw_row={"Publisher": "Alpha", "GMV": "12", "Extra": "x"},
            mapping=resolution,
        )

        self.assertEqual(mapped, {"publisher_name": "Alpha", "total_revenue": "12"})

    def test_collect_headers_keeps_first_appearance_order(self) -> None:
        rows = [{"b": 1, "a": 2}, {"a": 3, "c": 4}]

        self.assertEqual(collect_headers(rows), ("b", "a", "c"))


class TestMappingValidator(unittest.TestCase):
    def setUp(self) -> None:
        self.validator = MappingValidator(
            identity_fields=("publisher_id", "publisher_name"),
            canonical_fields=("publisher_id", "publisher_name", "total_revenue"),
        )

    def test_accepts_mapping_with_one_identity_field(self) -> None:
        self.validator.validate(
            mapping={"publisher_id": "id", "total_revenue": "gmv"},
            source_headers=("id", "gmv"),
        )

    def test_collects_every_error_including_pre_errors(self) -> None:
        with self.assertRaises(FieldMappingError) as ctx:
            self.validator.validate(
                mapping={"total_revenue": "missing_column"},
                source_headers=("gmv",),
                pre_errors=[
                    MappingErrorDetail(
                        code="invalid_mapping_field",
                        message="unknown target",
                        canonical_field="quality_score",
                        source_column="score",
                    )
                ],
            )

        codes = ctx.exception.codes
        self.assertIn("invalid_mapping_field", codes)
        self.assertIn("mapping_source_not_found", codes)
        self.assertIn("identity_field_unmapped", codes)


if __name__ == "__main__":
    unittest.main()
