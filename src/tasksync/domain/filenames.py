"""File-name sanitization for entity documents."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

# Characters rejected by common filesystems and by wiki-link syntax.
INVALID_CHARACTERS_RE = re.compile(r'[*"\\/<>:|?#]')

DEFAULT_MAX_LENGTH = 255
DEFAULT_FALLBACK = "untitled"


@dataclass(frozen=True)
class SanitizationOptions:
    replacement: str = "-"
    collapse_replacements: bool = True
    trim_whitespace: bool = True
    max_length: int = DEFAULT_MAX_LENGTH
    fallback: str = DEFAULT_FALLBACK


@dataclass(frozen=True)
class FileNameValidation:
    is_valid: bool
    invalid_characters: list[str] = field(default_factory=list)


def _strip_replacement(text: str, replacement: str) -> str:
    if not replacement:
        return text
    pattern = re.escape(replacement)
    return re.sub(rf"^(?:{pattern})+|(?:{pattern})+$", "", text)


def sanitize_file_name(name: str, options: SanitizationOptions | None = None) -> str:
    """Turn an entity title into a safe file name (without extension).

    >>> sanitize_file_name("My/Task:Name?")
    'My-Task-Name'
    """
    opts = options or SanitizationOptions()
    replacement = opts.replacement

    sanitized = INVALID_CHARACTERS_RE.sub(lambda _match: replacement, name)
    if opts.collapse_replacements and replacement:
        pattern = re.escape(replacement)
        sanitized = re.sub(rf"(?:{pattern}){{2,}}", lambda _match: replacement, sanitized)
    if opts.trim_whitespace:
        sanitized = sanitized.strip()
    sanitized = _strip_replacement(sanitized, replacement)

    if not sanitized:
        return opts.fallback

    if opts.max_length > 0 and len(sanitized) > opts.max_length:
        sanitized = sanitized[: opts.max_length]
        if opts.trim_whitespace:
            sanitized = sanitized.rstrip()
        sanitized = _strip_replacement(sanitized, replacement)
        if not sanitized:
            return opts.fallback

    return sanitized


def validate_file_name(name: str) -> FileNameValidation:
    """Report the invalid characters in *name*, in order of first appearance."""
    found: list[str] = []
    for char in INVALID_CHARACTERS_RE.findall(name):
        if char not in found:
            found.append(char)
    return FileNameValidation(is_valid=bool(name.strip()) and not found, invalid_characters=found)
