"""Custom exceptions for the transcript indexing pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from storysense.ingestion.commit import CommitStep


class MalformedInputError(ValueError):
    """Raised when the trigger or its inputs cannot be used for a run.

    Covers unparsable object keys, missing job metadata, a missing media
    reference and ASR output without items or speaker segments. The run
    stops immediately; redelivering the same event will fail the same way.
    """


class SinkWriteError(RuntimeError):
    """Raised when a store, index or embedding call fails mid-commit.

    Attributes:
        step: The commit step that failed.
        completed: Steps that finished before the failure, in order.
    """

    def __init__(
        self,
        message: str,
        step: CommitStep,
        completed: list[CommitStep] | None = None,
    ) -> None:
        super().__init__(message)
        self.step = step
        self.completed = list(completed or [])
