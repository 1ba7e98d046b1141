"""Credential redaction for log records and error summaries"""

from __future__ import annotations

import re
from typing import Any, Optional

REDACTED = "***REDACTED***"

_SENSITIVE_KEYS = (
    "authorization",
    "token",
    "secret",
    "password",
    "api_key",
    "apikey",
    "session",
    "cookie",
    "credential",
)

_PAYLOAD_KEYS = ("body", "content", "markdown", "raw_text", "payload")

_SECRET_PATTERNS = (
    re.compile(r"(bearer)\s+[A-Za-z0-9._\-]+", re.IGNORECASE),
    re.compile(r"((?:access_token|token|api_key|apikey|secret|password|client_secret)\s*[=:]\s*)[^\s&,;\"']+", re.IGNORECASE),
    re.compile(r"\b(?:ghp|gho|ghu|ghs|ghr|github_pat)_[A-Za-z0-9_]+\b"),
)


def _is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SENSITIVE_KEYS)


def _is_payload_key(key: str) -> bool:
    return key.lower() in _PAYLOAD_KEYS


def _mask_text(text: str) -> str:
    masked = _SECRET_PATTERNS[0].sub(lambda match: f"{match.group(1)} {REDACTED}", text)
    masked = _SECRET_PATTERNS[1].sub(lambda match: f"{match.group(1)}{REDACTED}", masked)
    masked = _SECRET_PATTERNS[2].sub(REDACTED, masked)
    return masked


def sanitize_for_log(value: Any, key: Optional[str] = None) -> Any:
    """
    Recursively strip credentials and large payloads from a loggable value

    Args:
        value: String, mapping, sequence or scalar to sanitize
        key: Name the value was stored under, if any

    Returns:
        Value with the same shape and secrets masked
    """
    if key is not None and _is_sensitive_key(key) and value is not None:
        return REDACTED

    if isinstance(value, dict):
        return {item_key: sanitize_for_log(item_value, key=str(item_key)) for item_key, item_value in value.items()}

    if isinstance(value, (list, tuple, set)):
        return [sanitize_for_log(item) for item in value]

    if isinstance(value, str):
        if key is not None and _is_payload_key(key):
            return f"<redacted payload: {len(value)} chars>"
        return _mask_text(value)

    return value


def sanitize_log_extra(**fields: Any) -> dict[str, Any]:
    """Build a sanitized `extra=` mapping for structured log calls."""
    return {name: sanitize_for_log(value, key=name) for name, value in fields.items()}
