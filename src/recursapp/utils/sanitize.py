"""Error message sanitization to prevent credential leakage."""

from __future__ import annotations

import os
import re

_MAX_ERROR_LENGTH = 300


def sanitize_error(message: str) -> str:
    """Redact provider keys and home paths from an error message."""
    if not message:
        return message

    sanitized = message
    # Gemini puts the key in the query string, and httpx echoes URLs in errors
    sanitized = re.sub(r"([?&]key=)[^&\s'\"]+", r"\1[REDACTED]", sanitized)
    sanitized = re.sub(r"sk-or-v1-[a-zA-Z0-9]+", "[REDACTED_KEY]", sanitized)
    sanitized = re.sub(r"sk-[a-zA-Z0-9_-]{20,}", "[REDACTED_KEY]", sanitized)
    sanitized = re.sub(r"gsk_[a-zA-Z0-9]{20,}", "[REDACTED_KEY]", sanitized)
    sanitized = re.sub(r"AIza[0-9A-Za-z_-]{30,}", "[REDACTED_KEY]", sanitized)
    sanitized = re.sub(r"Bearer\s+\S+", "Bearer [REDACTED]", sanitized)
    sanitized = re.sub(r"Authorization:\s*\S+", "Authorization: [REDACTED]", sanitized)

    home = os.environ.get("USERPROFILE") or os.environ.get("HOME") or ""
    if home and home != "/":
        sanitized = sanitized.replace(home, "[USER_HOME]")

    if len(sanitized) > _MAX_ERROR_LENGTH:
        sanitized = sanitized[:_MAX_ERROR_LENGTH] + "..."
    return sanitized
