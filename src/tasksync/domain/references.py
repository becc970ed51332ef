"""Cross-reference tokens between entities.

Headers store references as wiki links, ``[[Projects/Alpha|Alpha]]``; entity
projections use the plain display name, ``Alpha``. Both directions are
idempotent.
"""

from __future__ import annotations

import re
from typing import Any

_WIKILINK_RE = re.compile(r"^\[\[([^\[\]]+)\]\]$")
_RESERVED_RE = re.compile(r"[\[\]|]")


def is_reference(value: Any) -> bool:
    """True when *value* is an already-wrapped ``[[...]]`` token."""
    return isinstance(value, str) and _WIKILINK_RE.match(value.strip()) is not None


def to_reference(name: str, folder: str | None = None) -> str:
    """Wrap a plain name as ``[[folder/name|name]]``.

    Without a folder the token is ``[[name]]`` (or ``[[name|name]]`` when the
    name itself contains a path separator, so the display part survives).
    Empty names and already-wrapped tokens are returned unchanged.

    Raises:
        ValueError: The name contains ``[``, ``]`` or ``|``, which the token
            syntax cannot carry.
    """
    text = name.strip()
    if not text:
        return name
    if is_reference(text):
        return text
    if _RESERVED_RE.search(text):
        raise ValueError(f"Reference name {text!r} cannot contain '[', ']' or '|'")

    target = folder.strip().strip("/") if folder else ""
    if target:
        return f"[[{target}/{text}|{text}]]"
    if "/" in text:
        return f"[[{text}|{text}]]"
    return f"[[{text}]]"


def from_reference(token: str) -> str:
    """Extract the display name from a reference token.

    ``[[a/b|Name]]`` and ``a/b|Name`` yield ``Name``; ``[[a/b/Name]]`` yields
    the last path segment. Plain names pass through.
    """
    text = token.strip()
    match = _WIKILINK_RE.match(text)
    if match is None:
        if "|" in text:
            return text.split("|", 1)[1].strip()
        return text

    inner = match.group(1)
    if "|" in inner:
        return inner.split("|", 1)[1].strip()
    return inner.rsplit("/", 1)[-1].strip()


def reference_path(token: str) -> str:
    """Extract the link target (the part before ``|``) from a reference token."""
    text = token.strip()
    match = _WIKILINK_RE.match(text)
    inner = match.group(1) if match else text
    return inner.split("|", 1)[0].strip()


# ---------------------------------------------------------------------------
# Field-level helpers (scalar or list values)
# ---------------------------------------------------------------------------


def normalize_reference_value(value: Any, folder: str | None) -> Any:
    """Wrap every name in a scalar or list reference value.

    Empty strings and ``None`` items are dropped from lists.
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return [
            to_reference(str(item), folder)
            for item in value
            if item is not None and str(item).strip()
        ]
    if isinstance(value, str):
        return to_reference(value, folder) if value.strip() else None
    return value


def strip_reference_value(value: Any) -> Any:
    """Inverse of :func:`normalize_reference_value` for display purposes."""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return [from_reference(str(item)) for item in value if item is not None]
    if isinstance(value, str):
        return from_reference(value)
    return value
