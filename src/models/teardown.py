"""Teardown report models.

The saga collects per-step errors instead of aborting, so the report is the
only place a caller learns what was left behind.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.utils.errors import PartialCleanupError


class StepError(BaseModel):
    """One failure recorded by a teardown step."""

    model_config = ConfigDict(frozen=True)

    step: str = Field(description='Saga step name, e.g. "participants" or "vectors".')
    message: str
    target: str | None = Field(default=None, description="File path or record id, when per-item.")

    def __str__(self) -> str:
        if self.target:
            return f"{self.step}: {self.target}: {self.message}"
        return f"{self.step}: {self.message}"


class TeardownReport(BaseModel):
    """Counts of removed items and the errors encountered along the way."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    participants: int = 0
    documents: int = 0
    assets: int = 0
    stories: int = 0
    snaps: int = 0
    storage_files: int = 0
    vectors_deleted: bool = False
    event_deleted: bool = False
    errors: list[StepError] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise :class:`PartialCleanupError` if any step recorded an error."""
        if self.errors:
            raise PartialCleanupError(self)


class SweepSummary(BaseModel):
    """Outcome of one scheduled sweep cycle."""

    model_config = ConfigDict(frozen=True)

    cutoff: datetime = Field(description="Events ending at or before this instant were swept.")
    events_swept: int = 0
    events_partial: int = Field(default=0, description="Torn down, but with step errors.")
    events_failed: list[str] = Field(
        default_factory=list, description="Event ids left in place for the next cycle."
    )
    orphans_removed: int = 0
