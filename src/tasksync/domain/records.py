"""Record codec: header block parsing and rendering.

A document starts with a ``---`` line, followed by ``key: value`` lines and a
closing ``---`` line. Everything after the closing delimiter is the body and
is carried through byte-for-byte.

Rendering is deliberately flat instead of a full YAML dump so that the
written header stays stable and diff-friendly:

- ``None`` renders as an empty value (``Priority:``)
- booleans render as ``true`` / ``false``
- lists render as a flow sequence of double-quoted items (``["a", "b"]``)
- strings stay plain unless plain YAML would read them back differently
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError
from ruamel.yaml.scalarbool import ScalarBoolean

from tasksync.domain.errors import ParseError

# ---------------------------------------------------------------------------
# YAML parser
# ---------------------------------------------------------------------------

_DELIMITER = "---"

# Characters that start a YAML construct when they lead a plain scalar.
_INDICATORS = frozenset("[]{}!&*>|%@`'\",#?:-~")


def _new_yaml() -> YAML:
    """Create a fresh round-trip YAML parser.

    ruamel.yaml's YAML object is stateful; a failed load can leave a shared
    instance unusable, so every call gets its own.
    """
    y = YAML()
    y.preserve_quotes = False
    return y


def _plain(value: Any) -> Any:
    """Convert ruamel round-trip containers and scalars into builtin types."""
    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_plain(item) for item in value]
    if isinstance(value, (bool, ScalarBoolean)):
        return bool(value)
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        return float(value)
    if isinstance(value, datetime):
        return datetime(
            value.year,
            value.month,
            value.day,
            value.hour,
            value.minute,
            value.second,
            value.microsecond,
            tzinfo=value.tzinfo,
        )
    if isinstance(value, date):
        return date(value.year, value.month, value.day)
    if isinstance(value, str):
        return str(value)
    return value


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def split_header(text: str) -> tuple[str | None, str]:
    """Split raw document text into ``(header_block, body)``.

    Returns ``(None, text)`` when the document has no header or the header
    is never closed. The body is the exact remainder after the closing
    delimiter line.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != _DELIMITER:
        return None, text

    for index in range(1, len(lines)):
        if lines[index].strip() == _DELIMITER:
            return "".join(lines[1:index]), "".join(lines[index + 1 :])
    return None, text


def parse_record(text: str) -> tuple[dict[str, Any], str]:
    """Parse a document into its header record and body.

    Raises:
        ParseError: The header block is malformed YAML or not a mapping.
    """
    header, body = split_header(text)
    if header is None:
        return {}, body

    try:
        loaded = _new_yaml().load(header.replace("\r\n", "\n"))
    except YAMLError as exc:
        raise ParseError(f"Malformed header block: {exc}") from exc

    if loaded is None:
        return {}, body
    if not isinstance(loaded, Mapping):
        raise ParseError(
            f"Header block must be a key/value mapping, got {type(loaded).__name__}"
        )
    return _plain(loaded), body


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _needs_quotes(text: str) -> bool:
    if not text or text != text.strip():
        return True
    if any(ch in text for ch in "\n\r\t"):
        return True
    if text[0] in _INDICATORS or ": " in text or " #" in text or text.endswith(":"):
        return True
    try:
        return _new_yaml().load(f"v: {text}") != {"v": text}
    except YAMLError:
        return True


def _render_item(item: Any) -> str:
    if isinstance(item, str):
        return _quote(item)
    if isinstance(item, (date, datetime)):
        return _quote(item.isoformat())
    return json.dumps(item, ensure_ascii=False, default=str)


def render_value(value: Any) -> str:
    """Render one header value as it appears after ``key:``."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_render_item(item) for item in value) + "]"
    if isinstance(value, Mapping):
        return json.dumps(dict(value), ensure_ascii=False, default=str)
    text = str(value)
    return _quote(text) if _needs_quotes(text) else text


def order_record(record: Mapping[str, Any], order: Iterable[str]) -> dict[str, Any]:
    """Return *record* with *order* keys first, remaining keys after in existing order.

    Unlike a sparse frontmatter dump, ``None`` values are kept: a field that
    is present with an empty value stays present.
    """
    ordered: dict[str, Any] = {}
    for key in order:
        if key in record:
            ordered[key] = record[key]
    for key, value in record.items():
        if key not in ordered:
            ordered[key] = value
    return ordered


def render_record(record: Mapping[str, Any], order: Sequence[str], body: str) -> str:
    """Render a record and body into full document text."""
    lines = [_DELIMITER]
    for key, value in order_record(record, order).items():
        name = _quote(key) if _needs_quotes(key) else key
        rendered = render_value(value)
        lines.append(f"{name}: {rendered}" if rendered else f"{name}:")
    lines.append(_DELIMITER)
    return "\n".join(lines) + "\n" + body


def header_fingerprint(record: Mapping[str, Any], keys: Iterable[str]) -> str:
    """Stable digest of the listed fields (missing fields count as absent)."""
    payload = [[key, key in record, record.get(key)] for key in keys]
    encoded = json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()
