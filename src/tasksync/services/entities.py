"""Entity managers — create, reconcile, load and edit entity documents.

One generic :class:`EntityManager` serves every kind. What differs per kind
(schema, folder, title field, reference target folders, templates) is data
in an :class:`EntityKindSpec`. :class:`EntityService` is the facade that
routes an :class:`EntityKind` to its manager.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from tasksync.domain.entities import BaseEntity, entity_from_record, field_name, parse_date
from tasksync.domain.errors import EntityNotFound, MissingDefault, ParseError, WrongKind
from tasksync.domain.filenames import sanitize_file_name
from tasksync.domain.properties import (
    EntityKind,
    EntitySchema,
    PropertyDefinition,
    ValueType,
)
from tasksync.domain.reconcile import (
    MissingDefaultPolicy,
    ReconcileResult,
    is_wrong_kind,
    reconcile,
)
from tasksync.domain.records import render_record
from tasksync.domain.references import normalize_reference_value
from tasksync.domain.status import (
    DONE_FIELD,
    STATUS_FIELD,
    StatusSnapshot,
    compute_correction,
)
from tasksync.infrastructure.filesystem import document_path
from tasksync.infrastructure.templates import (
    expand_tasks_placeholder,
    read_template_body,
    render_default_body,
)
from tasksync.services.base import BaseService
from tasksync.services.result import UpdateOutcome

if TYPE_CHECKING:
    from tasksync.services.context import SyncContext

logger = logging.getLogger(__name__)

# Keys in creation data that feed the body instead of the header.
DESCRIPTION_KEY = "description"


# ---------------------------------------------------------------------------
# Kind specs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EntityKindSpec:
    """Everything that distinguishes one entity kind from another."""

    kind: EntityKind
    schema: EntitySchema
    folder: str
    title_field: str
    template_name: str
    body_template: str
    reference_folders: Mapping[str, str] = field(default_factory=dict)


def build_kind_specs(context: SyncContext) -> dict[EntityKind, EntityKindSpec]:
    """Derive one spec per kind from the context's settings and schemas."""
    folders = context.settings.folders
    targets = {
        "Project": folders.projects,
        "Projects": folders.projects,
        "Areas": folders.areas,
        "Parent task": folders.tasks,
    }
    specs: dict[EntityKind, EntityKindSpec] = {}
    for kind in EntityKind:
        schema = context.schema_for(kind)
        specs[kind] = EntityKindSpec(
            kind=kind,
            schema=schema,
            folder=context.folder_for(kind),
            title_field=schema.title_field,
            template_name=context.settings.template_for(kind),
            body_template=kind.value.lower(),
            reference_folders={
                name: targets[name] for name in schema.reference_fields if name in targets
            },
        )
    return specs


# ---------------------------------------------------------------------------
# Value formatting
# ---------------------------------------------------------------------------


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def _format_date(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date) or value is None:
        return value
    parsed = parse_date(value)
    return parsed if parsed is not None else value


def _format_boolean(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return bool(value)


class EntityManager(BaseService):
    """Create, reconcile, load and edit documents of one entity kind."""

    def __init__(self, context: SyncContext, spec: EntityKindSpec) -> None:
        super().__init__(context)
        self._spec = spec
        self._aliases: dict[str, str] = {}
        for prop in spec.schema.properties:
            for alias in (prop.name, prop.key, field_name(prop.key)):
                self._aliases.setdefault(alias, prop.name)

    @property
    def spec(self) -> EntityKindSpec:
        return self._spec

    @property
    def kind(self) -> EntityKind:
        return self._spec.kind

    @property
    def schema(self) -> EntitySchema:
        return self._spec.schema

    @property
    def _policy(self) -> MissingDefaultPolicy:
        return self._context.settings.reconcile.missing_default_policy

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, data: Mapping[str, Any], *, content: str | None = None) -> str:
        """Create a new entity document and return its vault-relative path.

        Raises:
            ValueError: The title/name field is missing or blank.
            AlreadyExists: A document with the sanitized name already exists.
            MissingDefault: The RAISE policy is active and a field has no value.
        """
        values, description, extras = self._split_input(data)
        title = values.get(self._spec.title_field)
        if not isinstance(title, str) or not title.strip():
            msg = f"{self._spec.title_field} is required to create a {self.kind.value}"
            raise ValueError(msg)
        values[self._spec.title_field] = title.strip()

        file_name = sanitize_file_name(title.strip())
        path = document_path(self._spec.folder, file_name)

        record = self._build_record(values, extras)
        body = self._build_body(file_name, description, content)
        self._context.store.create(path, render_record(record, self.schema.names, body))

        logger.info("Created %s %s", self.kind.value, path)
        self._dispatch_event(
            "entity_created",
            {"kind": self.kind.value, "path": path, "title": title.strip()},
        )
        return path

    def _split_input(self, data: Mapping[str, Any]) -> tuple[dict[str, Any], str, dict[str, Any]]:
        values: dict[str, Any] = {}
        extras: dict[str, Any] = {}
        description = ""
        for key, value in data.items():
            if key == DESCRIPTION_KEY:
                description = "" if value is None else str(value)
                continue
            canonical = self._aliases.get(key)
            if canonical is None:
                extras[key] = value
            else:
                values[canonical] = value
        return values, description, extras

    def _build_record(self, values: Mapping[str, Any], extras: Mapping[str, Any]) -> dict[str, Any]:
        record: dict[str, Any] = {}
        for prop in self.schema.properties:
            if prop.name in values:
                record[prop.name] = self.format_value(prop, values[prop.name])
            elif prop.has_default:
                record[prop.name] = prop.default_value()
            elif self._policy is MissingDefaultPolicy.RAISE:
                raise MissingDefault(prop.name)
            else:
                record[prop.name] = prop.empty_value()
        record["Type"] = self.kind.value
        if self.kind is EntityKind.TASK:
            done_given = DONE_FIELD in values and STATUS_FIELD not in values
            self._derive_status_pair(record, done_given=done_given)
        for key, value in extras.items():
            record.setdefault(key, value)
        return record

    def _derive_status_pair(self, record: dict[str, Any], *, done_given: bool) -> None:
        current = StatusSnapshot.from_record(record)
        # An explicit Done with a defaulted Status makes Done authoritative.
        previous = StatusSnapshot(current.status, not current.done) if done_given else None
        record.update(compute_correction(previous, current, self._context.statuses))

    def _build_body(self, file_name: str, description: str, content: str | None) -> str:
        settings = self._context.settings
        if content is not None:
            body = content
        else:
            folder = settings.folders.templates.strip().strip("/")
            name = self._spec.template_name
            template_path = self._context.store.resolve(f"{folder}/{name}" if folder else name)
            body = read_template_body(template_path)
            if body is None:
                body = render_default_body(
                    self._spec.body_template,
                    description=description,
                    vault_root=settings.vault_root,
                )
        return expand_tasks_placeholder(body, bases_folder=settings.folders.bases, name=file_name)

    def format_value(self, prop: PropertyDefinition, value: Any) -> Any:
        """Normalize a caller-supplied value for the header."""
        if prop.is_reference:
            folder = self._spec.reference_folders.get(prop.name)
            if prop.value_type is ValueType.ARRAY:
                return normalize_reference_value(_as_list(value), folder)
            return normalize_reference_value(value, folder)
        if prop.value_type is ValueType.ARRAY:
            return _as_list(value)
        if prop.value_type is ValueType.DATE:
            return _format_date(value)
        if prop.value_type is ValueType.BOOLEAN:
            return _format_boolean(value)
        return value

    # ------------------------------------------------------------------
    # Reconcile
    # ------------------------------------------------------------------

    def update_properties(self, path: str) -> UpdateOutcome:
        """Migrate the header of *path* to the current schema.

        The body is never touched. Runs under the path's lock.

        Raises:
            ParseError: The header block is malformed.
            WrongKind: The document declares a different ``Type``.
            MissingDefault: The RAISE policy is active and a field has no default.
        """
        captured: list[ReconcileResult] = []
        preserve = self._context.settings.reconcile.preserve_keys

        def _apply(record: dict[str, Any]) -> dict[str, Any] | None:
            result = reconcile(record, self.schema, preserve, policy=self._policy)
            captured.append(result)
            if result.wrong_kind:
                raise WrongKind(self.kind.value, record.get("Type"), path=path)
            return result.record if result.changed else None

        with self._context.locks.hold(path):
            try:
                token = self._context.store.transform_header(path, _apply, order=self.schema.names)
            except MissingDefault as exc:
                raise MissingDefault(exc.field, path=path) from exc

        result = captured[-1]
        if token is None:
            return UpdateOutcome(path=path, has_changes=False)

        logger.info("Reconciled %s (%d changes)", path, result.change_count)
        self._dispatch_event(
            "entity_reconciled",
            {"kind": self.kind.value, "path": path, "change_count": result.change_count},
        )
        return UpdateOutcome(
            path=path,
            has_changes=True,
            change_count=result.change_count,
            added=list(result.added),
            removed=list(result.removed),
            reordered=result.reordered,
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load(self, path: str, header: Mapping[str, Any] | None = None) -> BaseEntity | None:
        """Project *path* onto the kind's entity model.

        Uses *header* when given, otherwise the store's indexed header.
        Returns ``None`` when the document's ``Type`` is not this kind.
        """
        if header is None:
            header = self._context.store.read_header(path, timeout=self._context.timeout)
        if header.get("Type") != self.kind.value:
            return None

        created_at = updated_at = None
        try:
            stat = self._context.store.stat(path)
            created_at, updated_at = stat.created_at, stat.updated_at
        except EntityNotFound:
            logger.debug("No file behind header snapshot for %s", path)

        for prop in self.schema.properties:
            raw = header.get(prop.name)
            if prop.value_type is ValueType.DATE and raw not in (None, "") and parse_date(raw) is None:
                logger.warning("Ignoring invalid %s %r in %s", prop.name, raw, path)

        return entity_from_record(
            self.schema, header, path=path, created_at=created_at, updated_at=updated_at
        )

    def list_paths(self) -> list[str]:
        return self._context.store.list_documents(self._spec.folder)

    def list_entities(self) -> list[BaseEntity]:
        """Load every document of this kind in its folder; broken headers are skipped."""
        entities: list[BaseEntity] = []
        for path in self.list_paths():
            try:
                entity = self.load(path)
            except (ParseError, EntityNotFound) as exc:
                logger.warning("Skipping %s: %s", path, exc)
                continue
            if entity is not None:
                entities.append(entity)
        return entities

    # ------------------------------------------------------------------
    # Edit
    # ------------------------------------------------------------------

    def set_property(self, path: str, name: str, value: Any) -> bool:
        """Set one header field in place. Returns True when the file changed.

        Raises:
            WrongKind: The document declares a different ``Type``.
        """
        canonical = self._aliases.get(name, name)
        prop = self.schema.get(canonical)
        formatted = self.format_value(prop, value) if prop is not None else value

        def _apply(record: dict[str, Any]) -> dict[str, Any] | None:
            if is_wrong_kind(record, self.schema):
                raise WrongKind(self.kind.value, record.get("Type"), path=path)
            if canonical in record and record[canonical] == formatted:
                return None
            record[canonical] = formatted
            return record

        with self._context.locks.hold(path):
            token = self._context.store.transform_header(path, _apply)
        return token is not None


class EntityService(BaseService):
    """Facade routing each entity kind to its manager."""

    def __init__(self, context: SyncContext) -> None:
        super().__init__(context)
        self._managers = {
            kind: EntityManager(context, spec) for kind, spec in build_kind_specs(context).items()
        }

    def manager(self, kind: EntityKind | str) -> EntityManager:
        return self._managers[EntityKind(kind)]

    def create_entity(
        self, kind: EntityKind | str, data: Mapping[str, Any], *, content: str | None = None
    ) -> str:
        return self.manager(kind).create(data, content=content)

    def update_entity_properties(self, kind: EntityKind | str, path: str) -> UpdateOutcome:
        return self.manager(kind).update_properties(path)

    def load_entity(
        self,
        kind: EntityKind | str,
        path: str,
        header: Mapping[str, Any] | None = None,
    ) -> BaseEntity | None:
        return self.manager(kind).load(path, header)

    def list_entities(self, kind: EntityKind | str) -> list[BaseEntity]:
        return self.manager(kind).list_entities()

    def set_property(self, kind: EntityKind | str, path: str, name: str, value: Any) -> bool:
        return self.manager(kind).set_property(path, name, value)

    def change_task_status(self, path: str, value: bool | str) -> bool:
        """Mark a task done/undone (bool) or move it to a named status (str).

        The paired field is derived in the same write, so the synchronizer
        sees a consistent header and has nothing to correct. Returns True when
        the file changed.
        """
        manager = self.manager(EntityKind.TASK)
        name = DONE_FIELD if isinstance(value, bool) else STATUS_FIELD
        statuses = self._context.statuses

        def _apply(record: dict[str, Any]) -> dict[str, Any] | None:
            if is_wrong_kind(record, manager.schema):
                raise WrongKind(EntityKind.TASK.value, record.get("Type"), path=path)
            previous = StatusSnapshot.from_record(record)
            record[name] = value
            current = StatusSnapshot.from_record(record)
            record.update(compute_correction(previous, current, statuses))
            return None if StatusSnapshot.from_record(record) == previous else record

        with self._context.locks.hold(path):
            token = self._context.store.transform_header(path, _apply)
        return token is not None
