"""Sensitive-field masking for token endpoint payloads.

``redact_sensitive_fields`` replaces values whose keys match known sensitive
markers. Token responses and request bodies go through it before they are
logged or embedded in exception messages.
"""

from __future__ import annotations

import json

_MAX_REDACT_DEPTH = 20

# Substring match, case-insensitive.
SENSITIVE_KEY_MARKERS: list[str] = [
    "password",
    "secret",
    "token",
    "assertion",
    "device_code",
    "credential",
    "authorization",
]


def redact_sensitive_fields(
    value: object,
    *,
    mask: str = "***",
    depth: int = 0,
    max_depth: int = _MAX_REDACT_DEPTH,
) -> object:
    """Recursively replace sensitive values in dicts/lists.

    When ``max_depth`` is exceeded the entire sub-tree is replaced with *mask*.
    """
    if depth >= max_depth:
        return mask
    if isinstance(value, dict):
        redacted: dict[str, object] = {}
        for key, val in value.items():
            if any(marker in str(key).lower() for marker in SENSITIVE_KEY_MARKERS):
                redacted[key] = mask
            else:
                redacted[key] = redact_sensitive_fields(
                    val, mask=mask, depth=depth + 1, max_depth=max_depth,
                )
        return redacted
    if isinstance(value, list):
        return [
            redact_sensitive_fields(
                item, mask=mask, depth=depth + 1, max_depth=max_depth,
            )
            for item in value
        ]
    return value


def redact_body(body: str) -> str:
    """Mask a raw response body; non-JSON bodies are returned unchanged."""
    try:
        parsed = json.loads(body)
    except (TypeError, ValueError):
        return body
    return json.dumps(redact_sensitive_fields(parsed))
