"""
Structured logging helpers for pipeline lifecycle events.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    *,
    dataset_id: uuid.UUID | str | None = None,
    version_id: uuid.UUID | str | None = None,
    **fields: Any,
) -> None:
    """
    Emit one pipeline lifecycle event as a compact JSON line.

    The line starts with ``event`` followed by ``dataset_id`` and
    ``version_id`` when given, so events of one dataset can be grepped
    together.  Remaining fields keep their call order; values that are not
    JSON types (UUIDs, datetimes) are rendered with ``str``.
    """

    if not logger.isEnabledFor(level):
        return

    payload: dict[str, Any] = {"event": event}
    if dataset_id is not None:
        payload["dataset_id"] = str(dataset_id)
    if version_id is not None:
        payload["version_id"] = str(version_id)
    payload.update(fields)
    logger.log(level, json.dumps(payload, default=str, separators=(",", ":")))
