"""Redaction of credentials from error messages recorded on spans."""

from __future__ import annotations

import re

_SENSITIVE_KEY_PATTERN = re.compile(
    r"(password|secret_key|access_key|token|api_key|authorization|credential|bearer)"
    r"\s*[=:]\s*\S+",
    re.IGNORECASE,
)
_URL_CREDENTIAL_PATTERN = re.compile(
    r"://[^@/\s]+:[^@/\s]+@",
)


def sanitize_error_message(msg: str, max_length: int = 500) -> str:
    """Sanitize an error message by redacting credentials and truncating.

    Kubernetes API errors and webhook failures can echo request headers or
    kubeconfig URLs back to us, so both URL credentials
    (``://user:pass@host``) and ``key=value`` pairs for sensitive keys are
    redacted before the message is attached to a span.

    Args:
        msg: Raw error message to sanitize.
        max_length: Maximum length of returned message.

    Returns:
        Sanitized and truncated error message.

    Example:
        >>> sanitize_error_message("Failed: token=abc123 at host")
        'Failed: token=<REDACTED> at host'
    """
    sanitized = _URL_CREDENTIAL_PATTERN.sub("://<REDACTED>@", msg)
    sanitized = _SENSITIVE_KEY_PATTERN.sub(
        lambda m: m.group(0).split("=", 1)[0].split(":", 1)[0] + "=<REDACTED>"
        if "=" in m.group(0)
        else m.group(0).split(":", 1)[0] + ": <REDACTED>",
        sanitized,
    )
    return sanitized[:max_length]


__all__ = ["sanitize_error_message"]
