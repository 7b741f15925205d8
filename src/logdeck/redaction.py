"""Helpers for redacting secrets and stripping terminal control sequences from log text."""

from __future__ import annotations

import re
from typing import Any

REDACTED = "[REDACTED]"

_SENSITIVE_KEY_RE = re.compile(
    r"(authorization|token|secret|password|passwd|private[_-]?key|bearer|api[_-]?key)",
    re.IGNORECASE,
)
_PRIVATE_KEY_BLOCK_RE = re.compile(
    r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----",
    re.DOTALL,
)
_AUTH_TOKEN_INLINE_RE = re.compile(
    r"(?i)\b(bearer)\s+[A-Za-z0-9\-._~+/]+=*",
)
_KEY_VALUE_SECRET_RE = re.compile(
    r"""(?ix)
    \b
    (
      authorization|
      token|
      secret|
      password|
      passwd|
      private[_-]?key|
      api[_-]?key
    )
    \s*[:=]\s*
    ([^\s,;]+)
    """
)
# CSI / OSC escape sequences, then any remaining C0/C1 control characters.
_ANSI_ESCAPE_RE = re.compile(
    r"""
    \x1b\[[0-?]*[ -/]*[@-~]
    |\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)
    |\x1b[@-Z\\-_]
    """,
    re.VERBOSE,
)
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")


def sanitize_text(text: str) -> str:
    """Redact sensitive content embedded in plain text."""
    sanitized = _PRIVATE_KEY_BLOCK_RE.sub(REDACTED, text)
    sanitized = _AUTH_TOKEN_INLINE_RE.sub(r"\1 " + REDACTED, sanitized)
    sanitized = _KEY_VALUE_SECRET_RE.sub(lambda m: f"{m.group(1)}={REDACTED}", sanitized)
    return sanitized


def strip_control(text: str) -> str:
    """Remove escape sequences and control characters so text cannot drive the terminal.

    Tabs become single spaces and newlines collapse to `` ⏎ `` so a record always
    occupies exactly one display row.
    """
    cleaned = _ANSI_ESCAPE_RE.sub("", text)
    cleaned = cleaned.replace("\t", " ").replace("\r\n", "\n").replace("\r", "\n")
    cleaned = cleaned.replace("\n", " ⏎ ")
    return _CONTROL_CHARS_RE.sub("", cleaned)


def sanitize_display_text(text: str) -> str:
    """Strip control characters, then redact secrets, for on-screen display."""
    return sanitize_text(strip_control(text))


def sanitize_for_logging(value: Any) -> Any:
    """Recursively redact sensitive values in nested structures."""
    if isinstance(value, dict):
        sanitized: dict[Any, Any] = {}
        for key, child in value.items():
            key_text = str(key)
            if _SENSITIVE_KEY_RE.search(key_text):
                sanitized[key] = REDACTED
            else:
                sanitized[key] = sanitize_for_logging(child)
        return sanitized
    if isinstance(value, list):
        return [sanitize_for_logging(item) for item in value]
    if isinstance(value, tuple):
        return tuple(sanitize_for_logging(item) for item in value)
    if isinstance(value, str):
        return sanitize_text(value)
    return value
