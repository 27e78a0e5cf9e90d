"""
Security utility for sanitizing sensitive data in logs and stored errors
Prevents provider keys and signatures from being exposed
"""

from typing import Any, Dict
import re

# Patterns to detect and redact sensitive data
SENSITIVE_PATTERNS = [
    (re.compile(r'(sk-[a-zA-Z0-9_\-]{20,})'), 'sk-***REDACTED***'),  # OpenAI keys
    (re.compile(r'(Bearer\s+[a-zA-Z0-9_\-\.]+)'), 'Bearer ***REDACTED***'),  # Bearer tokens
    (re.compile(r'\b[a-f0-9]{64}\b'), '***SIGNATURE***'),  # Hex HMAC-SHA256
]


def sanitize_string(text: str) -> str:
    """
    Remove sensitive patterns from string

    Args:
        text: String that may contain sensitive data

    Returns:
        Sanitized string with patterns redacted
    """
    if not isinstance(text, str):
        return text

    sanitized = text
    for pattern, replacement in SENSITIVE_PATTERNS:
        sanitized = pattern.sub(replacement, sanitized)

    return sanitized


def sanitize_dict(data: Dict[str, Any], sensitive_keys: set = None) -> Dict[str, Any]:
    """
    Recursively sanitize dictionary by redacting sensitive keys

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Keys to redact (defaults to common sensitive keys)

    Returns:
        Sanitized dictionary
    """
    if not isinstance(data, dict):
        return data

    if sensitive_keys is None:
        sensitive_keys = {"api_key", "apikey", "secret", "hmac", "hmac_secret", "token", "authorization"}

    sanitized = {}
    for key, value in data.items():
        if key.lower() in sensitive_keys:
            sanitized[key] = "***REDACTED***"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, str):
            sanitized[key] = sanitize_string(value)
        else:
            sanitized[key] = value

    return sanitized


def preview(text: str, limit: int = 80) -> str:
    """Truncated, sanitized single-line preview of user text for logs"""
    if not text:
        return ""
    flat = " ".join(str(text).split())
    flat = sanitize_string(flat)
    return flat if len(flat) <= limit else flat[:limit] + "..."
