"""Tests for schema reconciliation — additions, removals, ordering, kind guard."""

from __future__ import annotations

from typing import Any

import pytest
from hypothesis import given
from hypothesis import strategies as st

from tasksync.domain.errors import MissingDefault
from tasksync.domain.properties import (
    ALWAYS_PRESERVED,
    PROPERTY_REGISTRY,
    EntityKind,
    EntitySchema,
    build_schema,
)
from tasksync.domain.reconcile import MissingDefaultPolicy, is_wrong_kind, reconcile


@pytest.fixture
def small_schema() -> EntitySchema:
    """Title, Status (default Backlog), Priority (default None)."""
    return EntitySchema(
        kind=EntityKind.TASK,
        properties=(
            PROPERTY_REGISTRY["TITLE"],
            PROPERTY_REGISTRY["STATUS"],
            PROPERTY_REGISTRY["PRIORITY"],
        ),
    )


class TestAdditions:
    def test_missing_fields_get_defaults(self, small_schema: EntitySchema) -> None:
        result = reconcile({"Title": "X"}, small_schema)
        assert result.record == {"Title": "X", "Status": "Backlog", "Priority": None}
        assert result.changed is True
        assert result.change_count == 2
        assert result.added == ("Status", "Priority")

    def test_input_not_mutated(self, small_schema: EntitySchema) -> None:
        existing = {"Title": "X"}
        reconcile(existing, small_schema)
        assert existing == {"Title": "X"}

    def test_full_task_schema_from_empty_record(self) -> None:
        schema = build_schema(EntityKind.TASK)
        result = reconcile({}, schema)
        assert result.change_count == len(schema.properties)
        assert result.record["Type"] == "Task"
        assert result.record["Status"] == "Backlog"
        assert result.record["Done"] is False
        assert result.record["Areas"] == []
        assert result.record["Title"] is None

    def test_defaults_are_fresh_copies(self) -> None:
        schema = build_schema(EntityKind.TASK)
        first = reconcile({}, schema).record
        second = reconcile({}, schema).record
        first["Areas"].append("[[Areas/Home|Home]]")
        assert second["Areas"] == []


class TestIdempotence:
    def test_second_pass_is_noop(self, small_schema: EntitySchema) -> None:
        first = reconcile({"Title": "X", "stale": 1}, small_schema)
        second = reconcile(first.record, small_schema)
        assert second.changed is False
        assert second.change_count == 0
        assert second.record == first.record

    def test_conforming_record_unchanged(self) -> None:
        schema = build_schema(EntityKind.AREA)
        result = reconcile({"Name": "Home", "Type": "Area", "tags": []}, schema)
        assert result.changed is False


class TestRemovals:
    def test_unknown_field_removed(self, small_schema: EntitySchema) -> None:
        existing = {"Title": "X", "Status": "Ready", "Priority": None, "Legacy": "old"}
        result = reconcile(existing, small_schema)
        assert "Legacy" not in result.record
        assert result.removed == ("Legacy",)
        assert result.change_count == 1

    def test_always_preserved_fields_kept(self, small_schema: EntitySchema) -> None:
        existing = {
            "Title": "X",
            "Status": "Ready",
            "Priority": None,
            "aliases": ["x"],
            "cssclasses": ["wide"],
        }
        result = reconcile(existing, small_schema)
        assert result.changed is False
        assert result.record["aliases"] == ["x"]

    def test_configured_preserve_keys(self, small_schema: EntitySchema) -> None:
        existing = {"Title": "X", "Status": "Ready", "Priority": None, "Estimate": 3}
        result = reconcile(existing, small_schema, preserve_keys=["Estimate"])
        assert result.changed is False
        assert result.record["Estimate"] == 3

    def test_preserved_fields_follow_schema_fields(self, small_schema: EntitySchema) -> None:
        existing = {"publish": True, "Title": "X"}
        result = reconcile(existing, small_schema)
        assert list(result.record) == ["Title", "Status", "Priority", "publish"]


class TestOrdering:
    def test_reorder_counts_once(self, small_schema: EntitySchema) -> None:
        existing = {"Priority": "High", "Status": "Ready", "Title": "X"}
        result = reconcile(existing, small_schema)
        assert result.reordered is True
        assert result.change_count == 1
        assert list(result.record) == ["Title", "Status", "Priority"]
        assert result.record["Priority"] == "High"

    def test_addition_alone_is_not_a_reorder(self, small_schema: EntitySchema) -> None:
        result = reconcile({"Title": "X", "Priority": None}, small_schema)
        assert result.reordered is False
        assert result.change_count == 1


class TestKindGuard:
    def test_wrong_kind_left_untouched(self) -> None:
        schema = build_schema(EntityKind.TASK)
        existing = {"Name": "Alpha", "Type": "Project"}
        result = reconcile(existing, schema)
        assert result.wrong_kind is True
        assert result.changed is False
        assert result.record == existing

    @pytest.mark.parametrize("declared", [None, ""])
    def test_unset_type_is_not_wrong_kind(self, declared: str | None) -> None:
        schema = build_schema(EntityKind.TASK)
        assert is_wrong_kind({"Type": declared}, schema) is False
        assert is_wrong_kind({}, schema) is False


class TestMissingDefaultPolicy:
    def test_empty_policy_inserts_empty_value(self) -> None:
        schema = build_schema(EntityKind.TASK)
        result = reconcile({"Title": "X", "Type": "Task"}, schema)
        assert result.record["Category"] is None
        assert result.record["Do Date"] is None

    def test_raise_policy(self) -> None:
        schema = build_schema(EntityKind.TASK)
        with pytest.raises(MissingDefault) as exc_info:
            reconcile({"Title": "X", "Type": "Task"}, schema, policy=MissingDefaultPolicy.RAISE)
        assert exc_info.value.field == "Category"
        assert exc_info.value.code == "MISSING_DEFAULT"

    def test_raise_policy_allows_declared_none_default(self, small_schema: EntitySchema) -> None:
        result = reconcile(
            {"Title": "X", "Status": "Ready"}, small_schema, policy=MissingDefaultPolicy.RAISE
        )
        assert result.record["Priority"] is None


# ---------------------------------------------------------------------------
# Invariants over generated records
# ---------------------------------------------------------------------------

SCHEMAS = {kind: build_schema(kind) for kind in EntityKind}
EXTRA_KEYS = ["Legacy", "Estimate", "notes", "status", "Due"]
VALUES = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(),
    st.text(max_size=20),
    st.lists(st.text(max_size=10), max_size=3),
)


@st.composite
def records(draw: st.DrawFn, kind: EntityKind) -> dict[str, Any]:
    """Header records mixing schema, preserved, stale and random keys in any order."""
    schema = SCHEMAS[kind]
    keys = st.one_of(
        st.sampled_from([name for name in schema.names if name != "Type"]),
        st.sampled_from(sorted(ALWAYS_PRESERVED)),
        st.sampled_from(EXTRA_KEYS),
        st.text(min_size=1, max_size=12).filter(lambda key: key != "Type"),
    )
    record = draw(st.dictionaries(keys, VALUES, max_size=12))
    declared = draw(st.sampled_from([None, "", kind.value, "Project", "Area", "Task"]))
    if declared is not None:
        record["Type"] = declared
    order = draw(st.permutations(list(record)))
    return {key: record[key] for key in order}


@st.composite
def kinds_and_records(draw: st.DrawFn) -> tuple[EntityKind, dict[str, Any]]:
    kind = draw(st.sampled_from(list(EntityKind)))
    return kind, draw(records(kind))


PRESERVE_KEYS = st.lists(st.sampled_from(EXTRA_KEYS), max_size=3)


class TestInvariants:
    @given(case=kinds_and_records(), preserve=PRESERVE_KEYS)
    def test_reconcile_is_idempotent(
        self, case: tuple[EntityKind, dict[str, Any]], preserve: list[str]
    ) -> None:
        kind, record = case
        first = reconcile(record, SCHEMAS[kind], preserve)
        second = reconcile(first.record, SCHEMAS[kind], preserve)
        assert second.changed is False
        assert second.change_count == 0
        assert second.record == first.record
        assert list(second.record) == list(first.record)

    @given(case=kinds_and_records(), preserve=PRESERVE_KEYS)
    def test_preserved_keys_never_removed(
        self, case: tuple[EntityKind, dict[str, Any]], preserve: list[str]
    ) -> None:
        kind, record = case
        result = reconcile(record, SCHEMAS[kind], preserve)
        for key in ALWAYS_PRESERVED | set(preserve):
            if key in record:
                assert result.record[key] == record[key]
                assert key not in result.removed

    @given(case=kinds_and_records())
    def test_change_count_matches_changes(self, case: tuple[EntityKind, dict[str, Any]]) -> None:
        kind, record = case
        result = reconcile(record, SCHEMAS[kind])
        expected = len(result.added) + len(result.removed) + (1 if result.reordered else 0)
        assert result.change_count == expected
        assert result.changed is (expected > 0)
