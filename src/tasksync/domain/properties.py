"""Property registry and canonical per-kind schemas.

Single source of truth for every header field the engine manages. Each
entity kind's schema is an ordered selection from :data:`PROPERTY_REGISTRY`;
that order is the canonical order written to documents.

Properties flagged ``is_reference`` hold ``[[folder/Name|Name]]`` tokens in
headers but plain names in entity projections. Properties with
``persisted=False`` come from the filesystem and never appear in a header.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Sequence
from enum import StrEnum
from typing import Any

from pydantic import BaseModel


class EntityKind(StrEnum):
    """Entity kinds recognised through the ``Type`` header field."""

    TASK = "Task"
    PROJECT = "Project"
    AREA = "Area"


class ValueType(StrEnum):
    """Value types a header field may hold."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    DATE = "date"


class PropertyDefinition(BaseModel):
    """A single header field definition.

    ``default`` is only meaningful when ``has_default`` is True; a ``None``
    default (e.g. Priority) is a real, declared default.
    """

    model_config = {"frozen": True}

    key: str
    name: str
    value_type: ValueType
    default: Any = None
    has_default: bool = False
    is_reference: bool = False
    persisted: bool = True

    def default_value(self) -> Any:
        """A fresh copy of the declared default."""
        return copy.deepcopy(self.default)

    def empty_value(self) -> Any:
        """The explicit empty value used when no default is declared."""
        if self.value_type is ValueType.ARRAY:
            return []
        if self.value_type is ValueType.BOOLEAN:
            return False
        return None


def _prop(key: str, name: str, value_type: ValueType, **options: Any) -> PropertyDefinition:
    if "default" in options:
        options["has_default"] = True
    return PropertyDefinition(key=key, name=name, value_type=value_type, **options)


PROPERTY_REGISTRY: dict[str, PropertyDefinition] = {
    "TITLE": _prop("title", "Title", ValueType.STRING),
    "NAME": _prop("name", "Name", ValueType.STRING),
    "TYPE": _prop("type", "Type", ValueType.STRING, default="Task"),
    "CATEGORY": _prop("category", "Category", ValueType.STRING),
    "PRIORITY": _prop("priority", "Priority", ValueType.STRING, default=None),
    "AREAS": _prop("areas", "Areas", ValueType.ARRAY, default=[], is_reference=True),
    "PROJECT": _prop("project", "Project", ValueType.STRING, is_reference=True),
    "PROJECTS": _prop("projects", "Projects", ValueType.ARRAY, default=[], is_reference=True),
    "DONE": _prop("done", "Done", ValueType.BOOLEAN, default=False),
    "STATUS": _prop("status", "Status", ValueType.STRING, default="Backlog"),
    "PARENT_TASK": _prop("parentTask", "Parent task", ValueType.STRING, is_reference=True),
    "DO_DATE": _prop("doDate", "Do Date", ValueType.DATE),
    "DUE_DATE": _prop("dueDate", "Due Date", ValueType.DATE),
    "TAGS": _prop("tags", "tags", ValueType.ARRAY, default=[]),
    "REMINDERS": _prop("reminders", "Reminders", ValueType.ARRAY, default=[]),
    "CREATED_AT": _prop("createdAt", "Created At", ValueType.DATE, persisted=False),
    "UPDATED_AT": _prop("updatedAt", "Updated At", ValueType.DATE, persisted=False),
}

# --- Property sets (registry keys, canonical order) ---

TASK_PROPERTIES: tuple[str, ...] = (
    "TITLE",
    "TYPE",
    "CATEGORY",
    "PRIORITY",
    "AREAS",
    "PROJECT",
    "DONE",
    "STATUS",
    "PARENT_TASK",
    "DO_DATE",
    "DUE_DATE",
    "TAGS",
    "REMINDERS",
)

PROJECT_PROPERTIES: tuple[str, ...] = ("NAME", "TYPE", "AREAS", "TAGS")

AREA_PROPERTIES: tuple[str, ...] = ("NAME", "TYPE", "TAGS")

DEFAULT_PROPERTY_SETS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.TASK: TASK_PROPERTIES,
    EntityKind.PROJECT: PROJECT_PROPERTIES,
    EntityKind.AREA: AREA_PROPERTIES,
}

TITLE_FIELDS: dict[EntityKind, str] = {
    EntityKind.TASK: "Title",
    EntityKind.PROJECT: "Name",
    EntityKind.AREA: "Name",
}

# Fields owned by other tools; reconciliation never removes them.
ALWAYS_PRESERVED: frozenset[str] = frozenset(
    {"tags", "aliases", "cssclass", "cssclasses", "publish"}
)


class EntitySchema(BaseModel):
    """Ordered, persisted property definitions for one entity kind."""

    model_config = {"frozen": True}

    kind: EntityKind
    properties: tuple[PropertyDefinition, ...]

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(prop.name for prop in self.properties)

    @property
    def title_field(self) -> str:
        return TITLE_FIELDS[self.kind]

    @property
    def reference_fields(self) -> tuple[str, ...]:
        return tuple(prop.name for prop in self.properties if prop.is_reference)

    def get(self, name: str) -> PropertyDefinition | None:
        for prop in self.properties:
            if prop.name == name:
                return prop
        return None

    def __contains__(self, name: object) -> bool:
        return any(prop.name == name for prop in self.properties)


def is_valid_property_order(order: Sequence[str], required: Iterable[str]) -> bool:
    """True when *order* is a permutation of *required* (no missing, no extra keys)."""
    required_set = set(required)
    return len(order) == len(required_set) and set(order) == required_set


def build_schema(
    kind: EntityKind,
    *,
    property_order: Sequence[str] | None = None,
    default_status: str | None = None,
) -> EntitySchema:
    """Build the canonical schema for *kind*.

    *property_order* (registry keys) replaces the default order for tasks
    only when it is a permutation of the default set; otherwise the default
    order is used. The ``Type`` default always equals the kind, and the
    ``Status`` default can be overridden by the configured statuses.
    """
    keys = DEFAULT_PROPERTY_SETS[kind]
    if (
        kind is EntityKind.TASK
        and property_order is not None
        and is_valid_property_order(property_order, keys)
    ):
        keys = tuple(property_order)

    properties: list[PropertyDefinition] = []
    for key in keys:
        prop = PROPERTY_REGISTRY[key]
        if not prop.persisted:
            continue
        if key == "TYPE":
            prop = prop.model_copy(update={"default": kind.value, "has_default": True})
        elif key == "STATUS" and default_status is not None:
            prop = prop.model_copy(update={"default": default_status, "has_default": True})
        properties.append(prop)

    return EntitySchema(kind=kind, properties=tuple(properties))
