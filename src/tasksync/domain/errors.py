"""Error taxonomy for record reconciliation and entity operations.

Single-entity operations raise these directly. Batch operations catch them
per file and report ``code`` + message instead of aborting.
"""

from __future__ import annotations


class TaskSyncError(Exception):
    """Base class for all tasksync errors."""

    code = "TASKSYNC_ERROR"

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path


class ParseError(TaskSyncError):
    """The document header block is malformed."""

    code = "PARSE_ERROR"


class WrongKind(TaskSyncError):
    """The record's ``Type`` does not match the schema being applied."""

    code = "WRONG_KIND"

    def __init__(self, expected: str, actual: object, *, path: str | None = None) -> None:
        super().__init__(f"Expected Type {expected!r}, found {actual!r}", path=path)
        self.expected = expected
        self.actual = actual


class MissingDefault(TaskSyncError):
    """A schema field is absent and declares no default (RAISE policy)."""

    code = "MISSING_DEFAULT"

    def __init__(self, field: str, *, path: str | None = None) -> None:
        super().__init__(f"Field {field!r} is missing and has no default", path=path)
        self.field = field


class AlreadyExists(TaskSyncError):
    """An entity file already exists at the target path."""

    code = "ALREADY_EXISTS"


class EntityNotFound(TaskSyncError):
    """No document exists at the given path."""

    code = "NOT_FOUND"


class StoreTimeout(TaskSyncError):
    """The header index did not reach the requested commit token in time."""

    code = "STORE_TIMEOUT"


class ConfigError(TaskSyncError):
    """Configuration could not be loaded or is invalid."""

    code = "CONFIG_ERROR"
