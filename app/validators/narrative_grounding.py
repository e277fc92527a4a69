"""
app/validators/narrative_grounding.py

Rejects narrative drafts containing numbers that cannot be traced back to
persisted metric values or evidence cells.

A number in the text is grounded when some known value ``v`` renders to it
directly, as a percentage (``v * 100``), or in thousands (``v / 1000``),
within half a unit of the number's last printed decimal place.  Digits
glued to letters (``Top10``, ``Q3``) are labels, not figures, and are
ignored.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

from app.errors import IntegrationError

_NUMBER_TOKEN = re.compile(r"(?<![A-Za-z0-9_.])-?\d(?:[\d,]*\d)?(?:\.\d+)?(?!\d)")
_SCALES: tuple[float, ...] = (1.0, 100.0, 0.001)
_FLOAT_SLACK = 1e-9


@dataclass(frozen=True)
class NumberToken:
    text: str
    value: float
    decimals: int

    @property
    def tolerance(self) -> float:
        return 0.5 * 10 ** (-self.decimals) + _FLOAT_SLACK


class NarrativeGroundingError(IntegrationError):
    """
    Raised when a draft cites numbers absent from the snapshot.
    """

    def __init__(self, *, section_id: int, ungrounded: Sequence[str]) -> None:
        super().__init__(
            f"Section {section_id} cites numbers not present in metrics or evidence: "
            + ", ".join(ungrounded)
        )
        self.section_id = section_id
        self.ungrounded = tuple(ungrounded)


def extract_numbers(text: str) -> list[NumberToken]:
    """
    Every standalone numeric figure in *text*, thousands separators removed.
    """

    tokens = []
    for match in _NUMBER_TOKEN.finditer(text):
        raw = match.group(0)
        cleaned = raw.replace(",", "")
        decimals = len(cleaned.split(".", 1)[1]) if "." in cleaned else 0
        tokens.append(NumberToken(text=raw, value=float(cleaned), decimals=decimals))
    return tokens


def collect_known_values(
    metrics: Mapping[str, float],
    evidence_rows: Iterable[Sequence[Mapping[str, Any]]],
) -> list[float]:
    """
    Numeric values a narrative is allowed to cite.
    """

    values = [float(value) for value in metrics.values()]
    for rows in evidence_rows:
        for row in rows:
            for cell in row.values():
                values.extend(_cell_numbers(cell))
    return [value for value in values if math.isfinite(value)]


def _cell_numbers(cell: Any) -> list[float]:
    if isinstance(cell, bool) or cell is None:
        return []
    if isinstance(cell, (int, float)):
        return [float(cell)]
    if isinstance(cell, str):
        return [token.value for token in extract_numbers(cell)]
    if isinstance(cell, (list, tuple)):
        return [number for item in cell for number in _cell_numbers(item)]
    return []


class NarrativeGroundingValidator:
    """
    Checks draft text against a fixed set of known values.
    """

    def __init__(self, known_values: Iterable[float]) -> None:
        self._candidates = sorted(
            {value * scale for value in known_values for scale in _SCALES}
        )

    def ungrounded(self, text: str) -> list[str]:
        return [token.text for token in extract_numbers(text) if not self._is_grounded(token)]

    def validate(self, *, section_id: int, text: str) -> None:
        """
        Raise :class:`NarrativeGroundingError` if *text* cites unknown numbers.
        """

        missing = self.ungrounded(text)
        if missing:
            raise NarrativeGroundingError(section_id=section_id, ungrounded=missing)

    def _is_grounded(self, token: NumberToken) -> bool:
        tolerance = token.tolerance
        return any(abs(token.value - candidate) <= tolerance for candidate in self._candidates)
