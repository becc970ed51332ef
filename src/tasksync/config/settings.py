"""Unified settings — init kwargs, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs   — explicit overrides from the embedding application
  2. Env vars      — ``TASKSYNC_*`` prefix, ``__`` for nested sections
  3. TOML file     — ``tasksync.toml`` discovered via walk-up
  4. Code defaults — baked into the section models

Uses Pydantic Settings v2 with a custom :class:`TomlSettingsSource` that
reuses the ``find_config`` walk-up discovery from
:mod:`tasksync.config.discovery`.
"""

from __future__ import annotations

import threading
import tomllib
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from tasksync.config.discovery import find_config
from tasksync.config.models import (
    FoldersConfig,
    LoggingConfig,
    ReconcileConfig,
    SyncConfig,
    TemplatesConfig,
    default_statuses,
)
from tasksync.domain.errors import ConfigError
from tasksync.domain.properties import EntityKind
from tasksync.domain.status import StatusDefinition


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from a ``tasksync.toml`` file discovered via walk-up."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            raw = toml_path.read_text(encoding="utf-8")
            try:
                self._data = tomllib.loads(raw)
            except tomllib.TOMLDecodeError as exc:
                msg = f"Invalid TOML in {toml_path}: {exc}"
                raise ConfigError(msg, path=str(toml_path)) from exc

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Return ``(value, field_name, value_is_complex)``."""
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        """Return the full TOML data dict for Pydantic to merge."""
        return self._data


# Thread-local storage for TOML path during construction.
_tls = threading.local()


class TaskSyncSettings(BaseSettings):
    """Unified settings for one vault.

    Attributes:
        vault_root: Resolved vault directory (parent of ``tasksync.toml``,
            or CWD if no config found).
        config_path: The TOML file the settings were loaded from, if any.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "TASKSYNC_",
        "env_nested_delimiter": "__",
    }

    # --- Resolved path (not in TOML, derived from config location) ---
    vault_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    # --- TOML sections ---
    folders: FoldersConfig = Field(default_factory=FoldersConfig)
    templates: TemplatesConfig = Field(default_factory=TemplatesConfig)
    statuses: list[StatusDefinition] = Field(default_factory=default_statuses)
    reconcile: ReconcileConfig = Field(default_factory=ReconcileConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert TOML source between env vars and defaults."""
        toml_path = getattr(_tls, "toml_path", None)
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, toml_path),
        )

    @classmethod
    def load(
        cls,
        *,
        config_path: str | Path | None = None,
        vault_root: Path | None = None,
        **overrides: Any,
    ) -> TaskSyncSettings:
        """Construct settings for a vault.

        Discovers ``tasksync.toml`` via walk-up (or explicit *config_path*),
        resolves *vault_root* from the config file's parent directory, and
        merges *overrides* as highest-priority values.

        Raises:
            ConfigError: The TOML file is invalid or a value fails validation.
        """
        toml_path: Path | None = None
        if config_path:
            p = Path(config_path)
            if not p.is_file():
                msg = f"Config file not found: {p}"
                raise ConfigError(msg, path=str(p))
            toml_path = p
        else:
            toml_path = find_config(vault_root)

        resolved_root = vault_root
        if resolved_root is None:
            resolved_root = toml_path.parent if toml_path else Path.cwd()

        _tls.toml_path = toml_path
        try:
            return cls(
                vault_root=resolved_root,
                config_path=toml_path,
                **overrides,
            )
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration: {exc}") from exc
        finally:
            _tls.toml_path = None

    # --- Derived lookups ---

    def folder_for(self, kind: EntityKind) -> str:
        return {
            EntityKind.TASK: self.folders.tasks,
            EntityKind.PROJECT: self.folders.projects,
            EntityKind.AREA: self.folders.areas,
        }[kind]

    def template_for(self, kind: EntityKind) -> str:
        return {
            EntityKind.TASK: self.templates.task,
            EntityKind.PROJECT: self.templates.project,
            EntityKind.AREA: self.templates.area,
        }[kind]
