"""Tests for body templates and vault template documents."""

from __future__ import annotations

from pathlib import Path

from tasksync.infrastructure.templates import (
    expand_tasks_placeholder,
    read_template_body,
    render_default_body,
)


class TestDefaultBodies:
    def test_task_with_description(self) -> None:
        assert render_default_body("task", description="Do it") == "Do it\n"

    def test_task_without_description(self) -> None:
        assert render_default_body("task") == ""

    def test_project_has_tasks_placeholder(self) -> None:
        body = render_default_body("Project", description="Scope")
        assert "## Notes\n\nScope\n" in body
        assert "{{tasks}}" in body

    def test_vault_override(self, tmp_path: Path) -> None:
        override = tmp_path / ".tasksync" / "templates" / "body"
        override.mkdir(parents=True)
        (override / "area.md.j2").write_text("Area: {{ description }}")
        assert render_default_body("area", description="home", vault_root=tmp_path) == "Area: home"


class TestVaultTemplates:
    def test_body_only(self, tmp_path: Path) -> None:
        path = tmp_path / "Task.md"
        path.write_text("---\nTitle:\n---\n\n## Checklist\n")
        assert read_template_body(path) == "## Checklist\n"

    def test_missing_or_blank(self, tmp_path: Path) -> None:
        assert read_template_body(tmp_path / "none.md") is None
        blank = tmp_path / "blank.md"
        blank.write_text("---\nTitle:\n---\n\n")
        assert read_template_body(blank) is None


class TestTasksPlaceholder:
    def test_expanded(self) -> None:
        body = expand_tasks_placeholder("## Tasks\n{{tasks}}\n", bases_folder="Bases", name="Alpha")
        assert body == "## Tasks\n![[Bases/Alpha.base]]\n"

    def test_no_placeholder(self) -> None:
        assert expand_tasks_placeholder("text", bases_folder="Bases", name="Alpha") == "text"
