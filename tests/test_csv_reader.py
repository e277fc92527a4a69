from __future__ import annotations

import io

import pytest

from app.services.csv_reader import CSVFormatError, read_csv_rows


class TestReadCSVRows:
    def test_reads_rows_keyed_by_header(self) -> None:
        raw = io.BytesIO("Publisher,Revenue\nAlpha,\"1,200\"\nBeta,5\n".encode("utf-8"))

        rows = read_csv_rows(raw)

        assert rows == [
            {"Publisher": "Alpha", "Revenue": "1,200"},
            {"Publisher": "Beta", "Revenue": "5"},
        ]

    def test_byte_order_mark_is_stripped(self) -> None:
        raw = io.BytesIO("\ufeffPublisher,Revenue\nAlpha,1\n".encode("utf-8"))

        assert list(read_csv_rows(raw)[0]) == ["Publisher", "Revenue"]

    def test_short_rows_are_padded_with_empty_cells(self) -> None:
        raw = io.BytesIO(b"Publisher,Revenue\nAlpha\n")

        assert read_csv_rows(raw) == [{"Publisher": "Alpha", "Revenue": ""}]

    def test_missing_header_raises(self) -> None:
        with pytest.raises(CSVFormatError):
            read_csv_rows(io.BytesIO(b""))

    def test_row_limit_is_enforced(self) -> None:
        raw = io.BytesIO(b"Publisher\nA\nB\nC\n")

        with pytest.raises(CSVFormatError):
            read_csv_rows(raw, max_rows=2)

    def test_undecodable_bytes_raise(self) -> None:
        raw = io.BytesIO(b"Publisher\n\xff\xfe\xfa\n")

        with pytest.raises(CSVFormatError):
            read_csv_rows(raw, encoding="utf-8")
