"""
Parsing of ingress-nginx annotation values.

None of these helpers raise: callers get a parsed value plus a flag telling
whether the raw text was understood, and fall back to a documented default
with a comment in the generated artifact when it was not.
"""

import re
from typing import Mapping

REGEX_PATH_CHARS = frozenset("()|[]{}")

_FALSE_VALUES = frozenset({"false", "0", "no", "off"})
_TRUE_VALUES = frozenset({"true", "1", "yes", "on"})

_SIZE_UNITS = {"": 1, "k": 1024, "m": 1024**2, "g": 1024**3}
_SIZE_RE = re.compile(r"^\s*(\d+)\s*([kKmMgG]?)\s*$")
_DURATION_RE = re.compile(r"^\s*(\d+)\s*(ms|s|m|h)?\s*$")


def is_true(annotations: Mapping[str, str], key: str) -> bool:
    """Whether an annotation is set to the literal string ``"true"``."""
    return annotations.get(key, "").strip().lower() == "true"


def regex_enabled(annotations: Mapping[str, str]) -> bool:
    """
    Whether ``use-regex`` turns on regular-expression paths.

    Presence alone enables it, whatever the value.
    """
    return "use-regex" in annotations


def has_regex_chars(path: str) -> bool:
    """
    Whether a path contains characters only valid in regex path matches.

    Example:
        >>> has_regex_chars("/api/(v1|v2)")
        True
        >>> has_regex_chars("/api/v1")
        False
    """
    return any(ch in REGEX_PATH_CHARS for ch in path)


def split_list(value: str) -> list[str]:
    """Split a comma-separated annotation value, dropping blanks."""
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_int(value: str, default: int) -> tuple[int, bool]:
    """
    Parse a non-negative integer.

    Returns:
        (value, True) on success, (default, False) otherwise
    """
    text = value.strip()
    if text.isdigit():
        return int(text), True
    return default, False


def parse_bool(value: str, default: bool) -> tuple[bool, bool]:
    """Parse true/false style values; returns (value, ok)."""
    text = value.strip().lower()
    if text in _TRUE_VALUES:
        return True, True
    if text in _FALSE_VALUES:
        return False, True
    return default, False


def parse_size(value: str) -> tuple[int, bool]:
    """
    Parse an nginx size (``8m``, ``512k``, ``1g``, ``100``) to bytes.

    Returns:
        (bytes, True) on success, (0, False) otherwise

    Example:
        >>> parse_size("8m")
        (8388608, True)
    """
    match = _SIZE_RE.match(value)
    if not match:
        return 0, False
    number, unit = match.groups()
    return int(number) * _SIZE_UNITS[unit.lower()], True


def parse_duration(value: str) -> tuple[str, bool]:
    """
    Parse an nginx timeout into a Go-style duration string.

    Bare numbers are seconds, as ingress-nginx reads them.

    Example:
        >>> parse_duration("60")
        ('60s', True)
        >>> parse_duration("500ms")
        ('500ms', True)
    """
    match = _DURATION_RE.match(value)
    if not match:
        return "", False
    number, unit = match.groups()
    return f"{int(number)}{unit or 's'}", True


def parse_custom_headers(value: str) -> tuple[dict[str, str], bool]:
    """
    Read inline ``Name: value`` pairs from a custom-headers annotation.

    ingress-nginx expects a ConfigMap reference here; inline pairs separated by
    newlines or ``;`` are accepted as a convenience. A bare ConfigMap reference
    yields no headers and ok=False.
    """
    headers = {}
    for item in re.split(r"[\n;]", value):
        if ":" not in item:
            continue
        name, _, header_value = item.partition(":")
        if name.strip():
            headers[name.strip()] = header_value.strip()
    return headers, bool(headers)
