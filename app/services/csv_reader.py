"""
app/services/csv_reader.py

Reads an uploaded CSV file into raw rows for the record normalizer.
"""

from __future__ import annotations

import csv
import io
import logging
from typing import BinaryIO

from app.config import get_csv_upload_settings
from app.errors import InputError

logger = logging.getLogger(__name__)


class CSVFormatError(InputError):
    """
    Raised when an uploaded CSV cannot be decoded or parsed.
    """


def read_csv_rows(
    raw_file: BinaryIO,
    *,
    encoding: str | None = None,
    max_rows: int | None = None,
) -> list[dict[str, str]]:
    """
    Parse *raw_file* into ``header -> cell`` rows.

    Parameters
    ----------
    raw_file:
        Binary file object positioned at the start of the CSV.
    encoding:
        Text encoding; defaults to ``CSV_UPLOAD_ENCODING``.
    max_rows:
        Maximum data rows accepted; defaults to ``CSV_UPLOAD_MAX_ROWS``.

    Raises
    ------
    CSVFormatError
        If the header row is missing, the file is not decodable, the CSV is
        malformed, or it exceeds the row limit.
    """

    settings = get_csv_upload_settings()
    limit = max_rows if max_rows is not None else settings.max_rows
    text_stream: io.TextIOWrapper | None = None
    rows: list[dict[str, str]] = []

    try:
        text_stream = io.TextIOWrapper(raw_file, encoding=encoding or settings.encoding, newline="")
        reader = csv.DictReader(text_stream)
        headers = [header for header in (reader.fieldnames or []) if header and header.strip()]
        if not headers:
            raise CSVFormatError("CSV header row is missing.")

        for raw_row in reader:
            if len(rows) >= limit:
                raise CSVFormatError(f"CSV exceeds the maximum of {limit} data rows.")
            # DictReader files overflow cells under the None key
            rows.append(
                {
                    key: value if value is not None else ""
                    for key, value in raw_row.items()
                    if key is not None
                }
            )
    except UnicodeDecodeError as exc:
        raise CSVFormatError(f"CSV must be {encoding or settings.encoding} encoded.") from exc
    except csv.Error as exc:
        raise CSVFormatError(f"Invalid CSV format: {exc}") from exc
    finally:
        if text_stream is not None:
            try:
                text_stream.detach()
            except ValueError:
                pass

    logger.info("Parsed %d CSV rows with %d columns", len(rows), len(headers))
    return rows
