"""Body templates: packaged Jinja2 defaults with per-vault overrides."""

from __future__ import annotations

from pathlib import Path

from jinja2 import BaseLoader, ChoiceLoader, Environment, FileSystemLoader, PackageLoader

from tasksync.domain.records import split_header

TASKS_PLACEHOLDER = "{{tasks}}"


def build_template_environment(group: str, *, vault_root: Path | None = None) -> Environment:
    """Build a Jinja2 environment with user overrides before packaged defaults.

    User overrides are loaded from ``.tasksync/templates/`` inside the vault,
    either namespaced (``.tasksync/templates/body/``) or flat.
    """

    loaders: list[BaseLoader] = []
    if vault_root is not None:
        template_root = vault_root / ".tasksync" / "templates"
        loaders.append(FileSystemLoader([str(template_root / group), str(template_root)]))

    loaders.append(PackageLoader("tasksync", f"templates/{group}"))
    return Environment(loader=ChoiceLoader(loaders), keep_trailing_newline=True)


def render_default_body(
    kind: str, *, description: str = "", vault_root: Path | None = None
) -> str:
    """Render the packaged default body for an entity kind (``task.md.j2`` etc.)."""
    env = build_template_environment("body", vault_root=vault_root)
    template = env.get_template(f"{kind.lower()}.md.j2")
    return template.render(description=description)


def read_template_body(path: Path) -> str | None:
    """Body of a vault template document, header ignored.

    Returns ``None`` when the template does not exist or its body is blank.
    """
    if not path.is_file():
        return None
    _, body = split_header(path.read_text(encoding="utf-8"))
    body = body.lstrip("\n")
    return body if body.strip() else None


def expand_tasks_placeholder(body: str, *, bases_folder: str, name: str) -> str:
    """Replace ``{{tasks}}`` with an embed of the entity's generated task view."""
    if TASKS_PLACEHOLDER not in body:
        return body
    folder = bases_folder.strip().strip("/")
    target = f"{folder}/{name}.base" if folder else f"{name}.base"
    return body.replace(TASKS_PLACEHOLDER, f"![[{target}]]")
