"""ScheduleService — the daily schedule view over task documents."""

from __future__ import annotations

from datetime import date

from tasksync.domain.entities import Task
from tasksync.domain.properties import EntityKind
from tasksync.domain.schedule import DailySchedule, build_daily_schedule
from tasksync.services.base import BaseService
from tasksync.services.entities import EntityService


class ScheduleService(BaseService):
    """Read-only: never writes to the vault."""

    def for_day(self, day: date | None = None) -> DailySchedule:
        tasks = [
            entity
            for entity in EntityService(self._context).list_entities(EntityKind.TASK)
            if isinstance(entity, Task)
        ]
        return build_daily_schedule(tasks, day or date.today(), self._context.statuses)
