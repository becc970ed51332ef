"""Result models returned by service operations.

Single-entity operations raise :class:`~tasksync.domain.errors.TaskSyncError`
subclasses on failure; batch operations collect :class:`FileError` entries
and keep going.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class UpdateOutcome(BaseModel):
    """Result of reconciling one entity document."""

    model_config = {"frozen": True}

    path: str
    has_changes: bool
    change_count: int = 0
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    reordered: bool = False


class FileError(BaseModel):
    """Structured per-file failure within a batch operation."""

    model_config = {"frozen": True}

    path: str
    code: str
    message: str


class RefreshReport(BaseModel):
    """Totals of a batch reconcile run."""

    model_config = {"frozen": True}

    files_scanned: int = 0
    files_updated: int = 0
    properties_updated: int = 0
    files_skipped: int = 0
    errors: list[FileError] = Field(default_factory=list)
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not self.errors and not self.cancelled
