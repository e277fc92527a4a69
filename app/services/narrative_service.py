"""
app/services/narrative_service.py

Narrative seam: turns a sealed snapshot into per-section conclusions.

The writer is pluggable (:class:`NarrativeWriter`); every draft it returns
is checked by :class:`NarrativeGroundingValidator` before it is stored, so
prose can only cite numbers that exist in the snapshot.  Failures here are
:class:`IntegrationError` and never touch metric or evidence rows.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Mapping, Protocol, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from analytics.contracts import FIXED_METRIC_KEYS, MetricKey
from app.errors import IntegrationError, describe_error
from app.logging_utils import log_event
from app.validators.narrative_grounding import NarrativeGroundingValidator, collect_known_values
from db.repositories.dataset_run_repository import DatasetRunRepository
from db.repositories.section_repository import SectionRepository
from db.repositories.snapshot_repository import SnapshotRepository

logger = logging.getLogger(__name__)

SECTION_TITLES: dict[int, str] = {
    0: "Executive Summary - KPI Cockpit",
    1: "Activation Funnel",
    2: "Revenue Concentration Analysis",
    3: "Mix Health - Publisher Type Distribution",
    4: "Efficiency Quadrant",
    5: "Approval & Transaction Quality",
    6: "Tier Management",
    7: "Action Plan Recommendations",
    8: "Timeline & Roadmap",
    9: "Data Quality Assessment",
    10: "Appendix - Methodology",
}


@dataclass(frozen=True)
class SectionDraft:
    section_id: int
    title: str
    conclusion: str


class NarrativeWriter(Protocol):
    def write_section(self, section_id: int, facts: Mapping[str, float]) -> SectionDraft:
        ...


@dataclass(frozen=True)
class NarrativeRunResult:
    accepted: list[int] = field(default_factory=list)
    rejected: list[int] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Template writer
# ---------------------------------------------------------------------------


def _pct(value: float) -> str:
    return f"{value * 100:.1f}%"


def _money(value: float) -> str:
    return f"${value:,.0f}"


def _count(value: float) -> str:
    return f"{value:.0f}"


class TemplateNarrativeWriter:
    """
    Deterministic conclusions rendered from metric values only.
    """

    def write_section(self, section_id: int, facts: Mapping[str, float]) -> SectionDraft:
        if section_id not in SECTION_TITLES:
            raise IntegrationError(f"Unknown narrative section {section_id}.")
        render = getattr(self, f"_section_{section_id}")
        return SectionDraft(
            section_id=section_id,
            title=SECTION_TITLES[section_id],
            conclusion=render(facts),
        )

    @staticmethod
    def _fact(facts: Mapping[str, float], key: MetricKey) -> float:
        return float(facts.get(key.value, 0.0))

    def _section_0(self, facts: Mapping[str, float]) -> str:
        return (
            f"{_count(self._fact(facts, MetricKey.TOTAL_PUBLISHERS))} publishers generated "
            f"{_money(self._fact(facts, MetricKey.TOTAL_GMV))} GMV. "
            f"Active ratio is {_pct(self._fact(facts, MetricKey.ACTIVE_RATIO))}, "
            f"the Top10 hold {_pct(self._fact(facts, MetricKey.TOP10_SHARE))} of GMV "
            f"and the approval rate is {_pct(self._fact(facts, MetricKey.APPROVAL_RATE))}."
        )

    def _section_1(self, facts: Mapping[str, float]) -> str:
        return (
            f"{_count(self._fact(facts, MetricKey.ACTIVE_PUBLISHERS))} of "
            f"{_count(self._fact(facts, MetricKey.TOTAL_PUBLISHERS))} publishers are active "
            f"({_pct(self._fact(facts, MetricKey.ACTIVE_RATIO))}), averaging "
            f"{_money(self._fact(facts, MetricKey.GMV_PER_ACTIVE))} GMV per active publisher."
        )

    def _section_2(self, facts: Mapping[str, float]) -> str:
        return (
            f"The largest publisher holds {_pct(self._fact(facts, MetricKey.TOP1_SHARE))} of GMV; "
            f"Top3 hold {_pct(self._fact(facts, MetricKey.TOP3_SHARE))} and "
            f"Top10 hold {_pct(self._fact(facts, MetricKey.TOP10_SHARE))}. "
            f"{_count(self._fact(facts, MetricKey.PUBLISHERS_TO_50PCT))} publishers "
            "account for half of all GMV."
        )

    def _section_3(self, facts: Mapping[str, float]) -> str:
        shares = _bucket_shares(facts)
        if not shares:
            return "No active publisher types were found, so the structural mix is empty."
        parts = ", ".join(f"{bucket} {_pct(share)}" for bucket, share in shares)
        return f"GMV share by publisher type: {parts}."

    def _section_4(self, facts: Mapping[str, float]) -> str:
        return (
            "Efficiency is assessed per active publisher by CPA, AOV and ROI; "
            f"the average active publisher contributes "
            f"{_money(self._fact(facts, MetricKey.GMV_PER_ACTIVE))} GMV."
        )

    def _section_5(self, facts: Mapping[str, float]) -> str:
        return (
            f"Approval rate is {_pct(self._fact(facts, MetricKey.APPROVAL_RATE))}: "
            f"{_money(self._fact(facts, MetricKey.TOTAL_APPROVED_GMV))} approved, "
            f"{_money(self._fact(facts, MetricKey.TOTAL_PENDING_GMV))} pending and "
            f"{_money(self._fact(facts, MetricKey.TOTAL_DECLINED_GMV))} declined "
            f"out of {_money(self._fact(facts, MetricKey.TOTAL_GMV))} GMV."
        )

    def _section_6(self, facts: Mapping[str, float]) -> str:
        return (
            "Tier 1 groups the leading publishers by revenue rank; together with the rest of "
            f"the Top10 they carry {_pct(self._fact(facts, MetricKey.TOP10_SHARE))} of GMV. "
            "Publishers without revenue sit in Tier 4."
        )

    def _section_7(self, facts: Mapping[str, float]) -> str:
        actions = []
        if self._fact(facts, MetricKey.ACTIVE_RATIO) < 0.4:
            actions.append(
                f"lift activation (active ratio {_pct(self._fact(facts, MetricKey.ACTIVE_RATIO))})"
            )
        if self._fact(facts, MetricKey.TOP10_SHARE) > 0.5:
            actions.append(
                f"reduce concentration (Top10 {_pct(self._fact(facts, MetricKey.TOP10_SHARE))})"
            )
        if self._fact(facts, MetricKey.APPROVAL_RATE) < 0.85:
            actions.append(
                f"tighten approval governance (approval {_pct(self._fact(facts, MetricKey.APPROVAL_RATE))})"
            )
        if not actions:
            return "No metric crosses a risk threshold; focus on structure optimization."
        return "Priority actions: " + "; ".join(actions) + "."

    def _section_8(self, facts: Mapping[str, float]) -> str:
        return (
            "The roadmap starts with activation, follows with deconcentration and approval "
            "governance, and closes with a quarterly structure review."
        )

    def _section_9(self, facts: Mapping[str, float]) -> str:
        return (
            f"The analysis covers {_count(self._fact(facts, MetricKey.TOTAL_PUBLISHERS))} "
            "deduplicated publisher records; rows without a publisher name or id were excluded."
        )

    def _section_10(self, facts: Mapping[str, float]) -> str:
        return (
            "Shares divide by total GMV and ratios return zero when their denominator is zero. "
            "Rankings order publishers by revenue and break ties by ingestion order."
        )


def _bucket_shares(facts: Mapping[str, float]) -> list[tuple[str, float]]:
    return [
        (key[: -len("_share")], float(value))
        for key, value in facts.items()
        if key.endswith("_share") and key not in FIXED_METRIC_KEYS
    ]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class NarrativeService:
    """
    Writes, validates, and stores narrative sections for a sealed version.
    """

    def __init__(
        self,
        *,
        writer: NarrativeWriter | None = None,
        section_ids: Sequence[int] | None = None,
    ) -> None:
        self._writer = writer or TemplateNarrativeWriter()
        self._section_ids = tuple(section_ids if section_ids is not None else SECTION_TITLES)

    def generate(
        self,
        *,
        db: Session,
        dataset_id: uuid.UUID,
        version_id: uuid.UUID,
    ) -> NarrativeRunResult:
        """
        Generate every configured section for *version_id*.

        Each accepted section is committed on its own and its id appended
        to the run's ``sections_ready``.  Any writer failure and every
        grounding rejection is logged and skips only that section.

        Raises
        ------
        IntegrationError
            If the snapshot cannot be read.
        """
        snapshots = SnapshotRepository(db)
        try:
            metrics = {row.metric_key: row.value_num for row in snapshots.list_metrics(version_id)}
            evidence = [table.data_json for table in snapshots.list_evidence(version_id)]
        except SQLAlchemyError as exc:
            db.rollback()
            raise IntegrationError(f"Cannot read snapshot {version_id}: {exc}") from exc

        validator = NarrativeGroundingValidator(collect_known_values(metrics, evidence))
        result = NarrativeRunResult()

        for section_id in self._section_ids:
            try:
                draft = self._write(section_id, metrics)
                validator.validate(section_id=section_id, text=draft.conclusion)
            except IntegrationError as exc:
                result.rejected.append(section_id)
                log_event(
                    logger,
                    logging.WARNING,
                    "narrative_section_rejected",
                    dataset_id=dataset_id,
                    version_id=version_id,
                    section_id=section_id,
                    error=str(exc),
                )
                continue

            if self._store(db, dataset_id=dataset_id, version_id=version_id, draft=draft, facts=metrics):
                result.accepted.append(section_id)
            else:
                result.rejected.append(section_id)

        log_event(
            logger,
            logging.INFO,
            "narrative_completed",
            dataset_id=dataset_id,
            version_id=version_id,
            accepted=result.accepted,
            rejected=result.rejected,
        )
        return result

    def _write(self, section_id: int, facts: Mapping[str, float]) -> SectionDraft:
        try:
            return self._writer.write_section(section_id, facts)
        except IntegrationError:
            raise
        except Exception as exc:
            # the writer is a black box; anything it raises rejects this section only
            raise IntegrationError(
                f"Narrative writer failed on section {section_id}: {describe_error(exc)}"
            ) from exc

    def _store(
        self,
        db: Session,
        *,
        dataset_id: uuid.UUID,
        version_id: uuid.UUID,
        draft: SectionDraft,
        facts: Mapping[str, float],
    ) -> bool:
        try:
            SectionRepository(db).save_section(
                version_id=version_id,
                dataset_id=dataset_id,
                section_id=draft.section_id,
                title=draft.title,
                conclusion=draft.conclusion,
                facts=dict(facts),
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning(
                "Storing narrative section %s failed dataset_id=%s: %s",
                draft.section_id,
                dataset_id,
                exc,
            )
            return False

        # sections_ready is denormalized; a failed append only logs
        try:
            DatasetRunRepository(db).append_section_ready(
                dataset_id=dataset_id,
                section_id=draft.section_id,
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning(
                "Appending section %s to sections_ready failed dataset_id=%s: %s",
                draft.section_id,
                dataset_id,
                exc,
            )
        return True


@lru_cache(maxsize=1)
def get_narrative_service() -> NarrativeService:
    return NarrativeService()
