"""Status definitions and the Status/Done correction rules.

``Status`` (enumerated, configurable) and ``Done`` (boolean) describe the
same fact twice. :func:`compute_correction` decides which one an edit made
authoritative and returns the minimal delta restoring consistency.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

STATUS_FIELD = "Status"
DONE_FIELD = "Done"
SYNC_FIELDS: tuple[str, ...] = (STATUS_FIELD, DONE_FIELD)

FALLBACK_DONE_STATUS = "Done"
FALLBACK_OPEN_STATUS = "Backlog"


class StatusDefinition(BaseModel):
    """One configured status value."""

    model_config = {"frozen": True}

    name: str
    is_done: bool = False
    is_in_progress: bool = False


DEFAULT_STATUSES: tuple[StatusDefinition, ...] = (
    StatusDefinition(name="Backlog"),
    StatusDefinition(name="Ready"),
    StatusDefinition(name="In Progress", is_in_progress=True),
    StatusDefinition(name="Review"),
    StatusDefinition(name="Done", is_done=True),
    StatusDefinition(name="Cancelled"),
)


@dataclass(frozen=True)
class StatusSnapshot:
    """The last observed ``(Status, Done)`` pair of a document."""

    status: Any = None
    done: Any = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> StatusSnapshot:
        return cls(status=record.get(STATUS_FIELD), done=record.get(DONE_FIELD))

    def apply(self, correction: Mapping[str, Any]) -> StatusSnapshot:
        return StatusSnapshot(
            status=correction.get(STATUS_FIELD, self.status),
            done=correction.get(DONE_FIELD, self.done),
        )


def find_status(name: Any, statuses: Sequence[StatusDefinition]) -> StatusDefinition | None:
    if not isinstance(name, str):
        return None
    for definition in statuses:
        if definition.name == name:
            return definition
    return None


def first_status(statuses: Sequence[StatusDefinition], *, done: bool) -> str:
    """First configured status with the given done-ness, else the fallback name."""
    for definition in statuses:
        if definition.is_done == done:
            return definition.name
    return FALLBACK_DONE_STATUS if done else FALLBACK_OPEN_STATUS


def default_status(statuses: Sequence[StatusDefinition]) -> str:
    return first_status(statuses, done=False)


def is_in_progress(name: Any, statuses: Sequence[StatusDefinition]) -> bool:
    definition = find_status(name, statuses)
    return definition is not None and definition.is_in_progress


def compute_correction(
    previous: StatusSnapshot | None,
    current: StatusSnapshot,
    statuses: Sequence[StatusDefinition],
) -> dict[str, Any]:
    """Return the field updates that make Status and Done agree again.

    The field that changed since *previous* is authoritative; with no previous
    snapshot, Status is. Unknown status names and a missing Status field never
    produce a correction. An empty dict means nothing to write.
    """
    status_changed = previous is None or previous.status != current.status
    done_changed = previous is not None and previous.done != current.done
    definition = find_status(current.status, statuses)

    if definition is None:
        return {}

    if status_changed and current.done != definition.is_done:
        return {DONE_FIELD: definition.is_done}

    if done_changed and isinstance(current.done, bool):
        if current.done and not definition.is_done:
            return {STATUS_FIELD: first_status(statuses, done=True)}
        if not current.done and definition.is_done:
            return {STATUS_FIELD: first_status(statuses, done=False)}

    return {}
