"""
app/errors.py

Pipeline error taxonomy.

InputError        - nothing usable came out of the supplied rows; fatal.
ComputationError  - an aggregation produced a non-finite value; the run ends in ``error``.
PersistenceError  - a snapshot write failed; the run ends in ``error``.
IntegrationError  - a downstream collaborator (narrative) failed; isolated.
"""

from __future__ import annotations

ERROR_MESSAGE_MAX_LENGTH = 2000


class PipelineError(RuntimeError):
    """
    Base class for all pipeline failures.
    """


class InputError(PipelineError):
    """
    Raised when the supplied rows cannot produce any publisher record.
    """


class NoResolvableRecordsError(InputError):
    """
    Raised when every row was dropped during normalization.
    """

    def __init__(self, *, rows_received: int, rows_dropped: int) -> None:
        super().__init__(
            f"No resolvable publisher records: {rows_dropped} of {rows_received} rows "
            "lack a publisher name or id."
        )
        self.rows_received = rows_received
        self.rows_dropped = rows_dropped


class ComputationError(PipelineError):
    """
    Raised if an aggregation produces an invalid number.
    """


class PersistenceError(PipelineError):
    """
    Raised when the snapshot writer cannot persist a recompute pass.
    """


class IntegrationError(PipelineError):
    """
    Raised by downstream collaborators; never fails a run.
    """


class InvalidRunTransitionError(PipelineError):
    """
    Raised when a dataset run is moved to a status it cannot reach.
    """

    def __init__(self, *, dataset_id: object, current: str, target: str) -> None:
        super().__init__(
            f"Dataset run {dataset_id} cannot move from '{current}' to '{target}'."
        )
        self.dataset_id = dataset_id
        self.current = current
        self.target = target


def describe_error(exc: BaseException) -> str:
    """
    Format an exception as ``<Type>: <message>`` for the run's error_message.
    """

    message = f"{type(exc).__name__}: {exc}"
    return message[:ERROR_MESSAGE_MAX_LENGTH]
