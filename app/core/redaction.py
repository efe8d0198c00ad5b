"""
PII and secret redaction.

Value-based scrubbing for model output (emails, phone numbers) and
key-based masking for configuration dumps written to the startup log.
"""
from __future__ import annotations

import re
from typing import Any

# ── Key-based redaction (case-insensitive substring match) ───────────
_SENSITIVE_KEY_SUBSTRINGS = frozenset({
    "password", "passwd", "secret", "token", "apikey", "api_key",
    "authorization", "bearer", "cookie", "private", "credential",
})

# ── Value-based patterns ────────────────────────────────────────────
EMAIL_PATTERN = re.compile(
    r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+"
)
_PHONE_PATTERN = re.compile(
    # International (+CC ...) or grouped local numbers; bare digit runs are not phones
    r"(?<!\w)(?:"
    r"\+\d{1,3}[\s.-]?(?:\(\d{2,4}\)|\d{2,4})[\s.-]?\d{3,4}[\s.-]?\d{3,4}"
    r"|(?:\(\d{2,4}\)[\s.-]?|\d{2,4}[\s.-])\d{3,4}[\s.-]\d{3,4}"
    r")(?!\w)"
)


def scrub_pii(value: str) -> str:
    """Replace email addresses and phone numbers with placeholders."""
    value = EMAIL_PATTERN.sub("[REDACTED_EMAIL]", value)
    value = _PHONE_PATTERN.sub("[REDACTED_PHONE]", value)
    return value


def _is_sensitive_key(key: str) -> bool:
    lower = key.lower()
    return any(s in lower for s in _SENSITIVE_KEY_SUBSTRINGS)


def _redact_sensitive_value(value: str) -> str:
    """Partially redact a sensitive value: first 4 + **** + last 4 chars."""
    if len(value) <= 8:
        return "[REDACTED]"
    return value[:4] + "****" + value[-4:]


def redact_config(config: dict) -> dict:
    """Recursively mask values whose key names look sensitive."""
    return _redact_dict(config)


def _redact_dict(obj: Any, parent_key: str = "") -> Any:
    if isinstance(obj, dict):
        return {k: _redact_dict(v, k) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_redact_dict(item, parent_key) for item in obj]
    if isinstance(obj, str) and _is_sensitive_key(parent_key):
        return _redact_sensitive_value(obj)
    return obj
