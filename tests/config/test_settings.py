"""Tests for TaskSyncSettings — defaults, TOML source, env overrides."""

from __future__ import annotations

from pathlib import Path

import pytest

from tasksync.config.discovery import find_config
from tasksync.config.settings import TaskSyncSettings
from tasksync.domain.errors import ConfigError
from tasksync.domain.properties import EntityKind
from tasksync.domain.reconcile import MissingDefaultPolicy


class TestDefaults:
    def test_all_defaults(self, tmp_path: Path) -> None:
        settings = TaskSyncSettings.load(vault_root=tmp_path)
        assert settings.vault_root == tmp_path
        assert settings.config_path is None
        assert settings.folders.tasks == "Tasks"
        assert settings.templates.project == "Project.md"
        assert [s.name for s in settings.statuses][:2] == ["Backlog", "Ready"]
        assert settings.reconcile.missing_default_policy is MissingDefaultPolicy.EMPTY
        assert settings.sync.enabled is True
        assert settings.sync.dispatch == "thread"
        assert settings.sync.max_workers == 4
        assert settings.logging.verbose is False

    def test_frozen(self, tmp_path: Path) -> None:
        settings = TaskSyncSettings.load(vault_root=tmp_path)
        with pytest.raises(Exception):
            settings.vault_root = Path("/elsewhere")  # type: ignore[misc]

    def test_derived_lookups(self, tmp_path: Path) -> None:
        settings = TaskSyncSettings.load(vault_root=tmp_path)
        assert settings.folder_for(EntityKind.AREA) == "Areas"
        assert settings.template_for(EntityKind.TASK) == "Task.md"


class TestTomlSource:
    def test_sparse_override(self, tmp_path: Path) -> None:
        (tmp_path / "tasksync.toml").write_text(
            '[folders]\ntasks = "Todo"\n\n[sync]\nsettle_window_seconds = 0.5\n'
        )
        settings = TaskSyncSettings.load(vault_root=tmp_path)
        assert settings.folders.tasks == "Todo"
        assert settings.folders.projects == "Projects"
        assert settings.sync.settle_window_seconds == 0.5
        assert settings.sync.max_workers == 4
        assert settings.config_path == (tmp_path / "tasksync.toml").resolve()

    def test_statuses_table_array(self, tmp_path: Path) -> None:
        (tmp_path / "tasksync.toml").write_text(
            '[[statuses]]\nname = "Open"\n\n'
            '[[statuses]]\nname = "Doing"\nis_in_progress = true\n\n'
            '[[statuses]]\nname = "Closed"\nis_done = true\n'
        )
        settings = TaskSyncSettings.load(vault_root=tmp_path)
        assert [s.name for s in settings.statuses] == ["Open", "Doing", "Closed"]
        assert settings.statuses[2].is_done is True

    def test_vault_root_from_config_location(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / "tasksync.toml").write_text("")
        nested = tmp_path / "Tasks" / "deep"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)
        settings = TaskSyncSettings.load()
        assert settings.vault_root == tmp_path.resolve()

    def test_invalid_toml(self, tmp_path: Path) -> None:
        (tmp_path / "tasksync.toml").write_text("[folders\ntasks = ")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            TaskSyncSettings.load(vault_root=tmp_path)

    def test_invalid_value(self, tmp_path: Path) -> None:
        (tmp_path / "tasksync.toml").write_text('[sync]\ndispatch = "carrier-pigeon"\n')
        with pytest.raises(ConfigError, match="Invalid configuration"):
            TaskSyncSettings.load(vault_root=tmp_path)

    def test_explicit_missing_config(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            TaskSyncSettings.load(config_path=tmp_path / "nope.toml")


class TestPriority:
    def test_env_beats_toml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "tasksync.toml").write_text("[sync]\nmax_workers = 2\n")
        monkeypatch.setenv("TASKSYNC_SYNC__MAX_WORKERS", "7")
        settings = TaskSyncSettings.load(vault_root=tmp_path)
        assert settings.sync.max_workers == 7

    def test_overrides_beat_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TASKSYNC_SYNC__MAX_WORKERS", "7")
        settings = TaskSyncSettings.load(vault_root=tmp_path, sync={"max_workers": 1})
        assert settings.sync.max_workers == 1


class TestDiscovery:
    def test_walks_up(self, tmp_path: Path) -> None:
        (tmp_path / "tasksync.toml").write_text("")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config(nested) == (tmp_path / "tasksync.toml").resolve()

    def test_env_var_wins(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        explicit = tmp_path / "custom.toml"
        explicit.write_text("")
        monkeypatch.setenv("TASKSYNC_CONFIG", str(explicit))
        assert find_config(tmp_path) == explicit

    def test_env_var_missing_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TASKSYNC_CONFIG", str(tmp_path / "gone.toml"))
        assert find_config(tmp_path) is None
