"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, tasksync.toml only contains
overrides. An empty vault needs no configuration file at all.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from tasksync.domain.properties import TASK_PROPERTIES
from tasksync.domain.reconcile import MissingDefaultPolicy
from tasksync.domain.status import DEFAULT_STATUSES, StatusDefinition

# --- tasksync.toml sections ---


class FoldersConfig(BaseModel):
    """[folders] section (vault-relative)."""

    model_config = {"frozen": True}

    tasks: str = "Tasks"
    projects: str = "Projects"
    areas: str = "Areas"
    templates: str = "Templates"
    bases: str = "Bases"


class TemplatesConfig(BaseModel):
    """[templates] section: template documents inside the templates folder."""

    model_config = {"frozen": True}

    task: str = "Task.md"
    project: str = "Project.md"
    area: str = "Area.md"


class ReconcileConfig(BaseModel):
    """[reconcile] section."""

    model_config = {"frozen": True}

    task_property_order: list[str] = Field(default_factory=lambda: list(TASK_PROPERTIES))
    missing_default_policy: MissingDefaultPolicy = MissingDefaultPolicy.EMPTY
    preserve_keys: list[str] = Field(default_factory=list)


class SyncConfig(BaseModel):
    """[sync] section."""

    model_config = {"frozen": True}

    enabled: bool = True
    dispatch: Literal["thread", "sync"] = "thread"
    max_workers: int = Field(default=4, ge=1)
    settle_window_seconds: float = Field(default=2.0, gt=0)
    store_timeout_seconds: float = Field(default=5.0, gt=0)
    prime_on_start: bool = True


class LoggingConfig(BaseModel):
    """[logging] section.

    ``configure`` is off by default so an embedding application keeps control
    of its own handlers; ``open_context`` installs tasksync's output only when
    it is set.
    """

    model_config = {"frozen": True}

    configure: bool = False
    verbose: bool = False
    json_output: bool = False


def default_statuses() -> list[StatusDefinition]:
    return list(DEFAULT_STATUSES)
