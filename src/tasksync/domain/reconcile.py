"""Schema reconciliation: migrate an existing header record toward its schema.

Pure functions only. Reconciliation is conservative: fields owned by other
tools (``ALWAYS_PRESERVED`` plus configured keys) are never removed, and a
record whose ``Type`` names a different kind is left untouched.

Change counting:

- one per added schema field
- one per removed non-schema field
- exactly one when the schema fields present are out of canonical order
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from tasksync.domain.errors import MissingDefault
from tasksync.domain.properties import ALWAYS_PRESERVED, EntitySchema


class MissingDefaultPolicy(StrEnum):
    """What to insert for an absent schema field that declares no default."""

    EMPTY = "empty"
    RAISE = "raise"


@dataclass(frozen=True)
class ReconcileResult:
    record: dict[str, Any]
    changed: bool
    change_count: int
    wrong_kind: bool = False
    added: tuple[str, ...] = field(default_factory=tuple)
    removed: tuple[str, ...] = field(default_factory=tuple)
    reordered: bool = False


def _declared_type(record: Mapping[str, Any]) -> Any:
    value = record.get("Type")
    return None if value in (None, "") else value


def is_wrong_kind(record: Mapping[str, Any], schema: EntitySchema) -> bool:
    """True when the record declares a ``Type`` other than the schema's kind."""
    declared = _declared_type(record)
    return declared is not None and declared != schema.kind.value


def reconcile(
    existing: Mapping[str, Any],
    schema: EntitySchema,
    preserve_keys: Iterable[str] = (),
    *,
    policy: MissingDefaultPolicy = MissingDefaultPolicy.EMPTY,
) -> ReconcileResult:
    """Compute the reconciled record and the number of changes it implies.

    The input mapping is never mutated. Running ``reconcile`` on its own
    output yields ``changed=False``.

    Raises:
        MissingDefault: *policy* is ``RAISE`` and an absent field has no default.
    """
    if is_wrong_kind(existing, schema):
        return ReconcileResult(record=dict(existing), changed=False, change_count=0, wrong_kind=True)

    missing = [prop for prop in schema.properties if prop.name not in existing]
    if policy is MissingDefaultPolicy.RAISE:
        for prop in missing:
            if not prop.has_default:
                raise MissingDefault(prop.name)

    preserved = ALWAYS_PRESERVED | set(preserve_keys)
    removed = tuple(
        key for key in existing if key not in schema and key not in preserved
    )

    present = [key for key in existing if key in schema]
    canonical = [name for name in schema.names if name in existing]
    reordered = present != canonical

    merged: dict[str, Any] = {}
    for prop in schema.properties:
        if prop.name in existing:
            merged[prop.name] = existing[prop.name]
        elif prop.has_default:
            merged[prop.name] = prop.default_value()
        else:
            merged[prop.name] = prop.empty_value()
    removed_set = set(removed)
    for key, value in existing.items():
        if key not in merged and key not in removed_set:
            merged[key] = value

    change_count = len(missing) + len(removed) + (1 if reordered else 0)
    return ReconcileResult(
        record=merged,
        changed=change_count > 0,
        change_count=change_count,
        added=tuple(prop.name for prop in missing),
        removed=removed,
        reordered=reordered,
    )
