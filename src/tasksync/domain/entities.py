"""Typed entity projections built from header records.

Projections are read models: reference tokens are reduced to display names,
dates are parsed leniently, and every header field the schema does not know
is kept verbatim in ``extra``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import date, datetime
from pathlib import PurePosixPath
from typing import Any

from pydantic import BaseModel, Field

from tasksync.domain.properties import EntityKind, EntitySchema, ValueType
from tasksync.domain.references import strip_reference_value


class BaseEntity(BaseModel):
    """Fields shared by every entity kind."""

    model_config = {"frozen": True}

    path: str
    type: str
    tags: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class Task(BaseEntity):
    title: str
    category: str | None = None
    priority: str | None = None
    areas: list[str] = Field(default_factory=list)
    project: str | None = None
    done: bool = False
    status: str | None = None
    parent_task: str | None = None
    do_date: date | None = None
    due_date: date | None = None
    reminders: list[str] = Field(default_factory=list)


class Project(BaseEntity):
    name: str
    areas: list[str] = Field(default_factory=list)


class Area(BaseEntity):
    name: str


Entity = Task | Project | Area

ENTITY_MODELS: dict[EntityKind, type[BaseEntity]] = {
    EntityKind.TASK: Task,
    EntityKind.PROJECT: Project,
    EntityKind.AREA: Area,
}

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def field_name(key: str) -> str:
    """Map a registry key to its projection attribute (``parentTask`` -> ``parent_task``)."""
    return _CAMEL_RE.sub("_", key).lower()


# ---------------------------------------------------------------------------
# Value coercion
# ---------------------------------------------------------------------------


def parse_date(value: Any) -> date | None:
    """Parse a header date leniently; anything unparseable yields ``None``."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def _as_list(value: Any) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return [str(value)]


def _as_text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _coerce(value_type: ValueType, value: Any) -> Any:
    if value_type is ValueType.ARRAY:
        return _as_list(value)
    if value_type is ValueType.DATE:
        return parse_date(value)
    if value_type is ValueType.BOOLEAN:
        return value is True
    return _as_text(value)


def entity_from_record(
    schema: EntitySchema,
    record: Mapping[str, Any],
    *,
    path: str,
    created_at: datetime | None = None,
    updated_at: datetime | None = None,
) -> BaseEntity:
    """Project a header record onto the kind's typed entity model.

    The caller is responsible for the kind guard; this function trusts
    *schema* to match the record.
    """
    values: dict[str, Any] = {
        "path": path,
        "created_at": created_at,
        "updated_at": updated_at,
    }
    for prop in schema.properties:
        raw = record.get(prop.name)
        if prop.is_reference:
            raw = strip_reference_value(raw)
        values[field_name(prop.key)] = _coerce(prop.value_type, raw)

    values["type"] = schema.kind.value
    title_attr = "title" if schema.kind is EntityKind.TASK else "name"
    if not values.get(title_attr):
        values[title_attr] = PurePosixPath(path).stem

    values["extra"] = {key: value for key, value in record.items() if key not in schema}
    return ENTITY_MODELS[schema.kind](**values)
