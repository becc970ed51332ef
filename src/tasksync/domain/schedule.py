"""Daily schedule: a derived, read-only view over tasks."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date

from pydantic import BaseModel, Field

from tasksync.domain.entities import Task
from tasksync.domain.status import DEFAULT_STATUSES, StatusDefinition, is_in_progress


class DailySchedule(BaseModel):
    model_config = {"frozen": True}

    day: date
    scheduled: list[Task] = Field(default_factory=list)
    in_progress: list[Task] = Field(default_factory=list)
    overdue: list[Task] = Field(default_factory=list)
    completed: list[Task] = Field(default_factory=list)


def _sort_key(task: Task) -> tuple[str, str]:
    return (task.priority or "~", task.title.lower())


def build_daily_schedule(
    tasks: Iterable[Task],
    day: date,
    statuses: Sequence[StatusDefinition] = DEFAULT_STATUSES,
) -> DailySchedule:
    """Bucket tasks for *day*.

    A task may appear in more than one bucket, e.g. an in-progress task
    whose due date has passed is both in progress and overdue.
    """
    scheduled: list[Task] = []
    in_progress: list[Task] = []
    overdue: list[Task] = []
    completed: list[Task] = []

    for task in tasks:
        if task.done:
            if task.do_date == day:
                completed.append(task)
            continue
        if task.do_date == day:
            scheduled.append(task)
        if is_in_progress(task.status, statuses):
            in_progress.append(task)
        if task.due_date is not None and task.due_date < day:
            overdue.append(task)

    return DailySchedule(
        day=day,
        scheduled=sorted(scheduled, key=_sort_key),
        in_progress=sorted(in_progress, key=_sort_key),
        overdue=sorted(overdue, key=lambda task: (task.due_date, task.title.lower())),
        completed=sorted(completed, key=_sort_key),
    )
