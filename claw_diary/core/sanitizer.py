"""
Redaction of secrets from hook payloads.

Everything the collector persists from a tool call (arguments, result
previews) passes through ``sanitize`` first.
"""

import re
from typing import Any, Dict, List, Pattern

REDACTED = "[REDACTED]"

# Applied in order, each on the previous pattern's output.
SENSITIVE_PATTERNS: List[Pattern[str]] = [
    re.compile(
        r"-----BEGIN[A-Z ]*PRIVATE KEY-----[\s\S]*?-----END(?:[A-Z ]*PRIVATE KEY-----)?"
    ),
    re.compile(r"sk-[A-Za-z0-9_\-]{20,}"),
    re.compile(r"gh[pousr]_[A-Za-z0-9]{36,}"),
    re.compile(r"xox[abprs]-[\w\-]+"),
    re.compile(r"\bAKIA[0-9A-Z]{16}\b"),
    re.compile(r"bearer\s+[\w\-.~+/]+=*", re.IGNORECASE),
    re.compile(r"(?:api[_-]?key|apikey)\s*[:=]\s*[\"']?[\w\-./]+[\"']?", re.IGNORECASE),
    re.compile(r"(?:secret|token|password|passwd|pwd)\s*[:=]\s*[\"']?[\w\-./]+[\"']?", re.IGNORECASE),
    re.compile(r"(?:authorization)\s*[:=]\s*[\"']?[\w\-./]+[\"']?", re.IGNORECASE),
    re.compile(
        r"(?:aws_access_key_id|aws_secret_access_key)\s*[:=]\s*[\"']?[\w\-./+]+[\"']?",
        re.IGNORECASE,
    ),
]

SENSITIVE_KEYS = frozenset({
    "API_KEY", "SECRET", "TOKEN", "PASSWORD", "PASSWD", "PWD",
    "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "PRIVATE_KEY",
    "DATABASE_URL", "DB_PASSWORD", "OPENAI_API_KEY", "ANTHROPIC_API_KEY",
    "GITHUB_TOKEN", "SLACK_TOKEN", "STRIPE_KEY",
})

SENSITIVE_KEY_FRAGMENTS = ("SECRET", "PASSWORD", "TOKEN", "KEY")


def is_sensitive_key(key: str) -> bool:
    upper_key = key.upper()
    if upper_key in SENSITIVE_KEYS:
        return True
    return any(fragment in upper_key for fragment in SENSITIVE_KEY_FRAGMENTS)


def sanitize_text(text: str) -> str:
    """Replace every secret-looking substring of ``text`` with the marker."""
    for pattern in SENSITIVE_PATTERNS:
        text = pattern.sub(REDACTED, text)
    return text


def sanitize(value: Any) -> Any:
    """Return a copy of ``value`` with secrets redacted.

    Walks dicts, lists and tuples recursively. Values under a sensitive key
    are replaced wholesale without being inspected. Other scalars are
    returned unchanged. The input is never mutated.
    """
    if isinstance(value, str):
        return sanitize_text(value)
    if isinstance(value, dict):
        return _sanitize_mapping(value)
    if isinstance(value, (list, tuple)):
        return [sanitize(item) for item in value]
    return value


def _sanitize_mapping(mapping: Dict[Any, Any]) -> Dict[Any, Any]:
    result = {}
    for key, val in mapping.items():
        if is_sensitive_key(str(key)):
            result[key] = REDACTED
        else:
            result[key] = sanitize(val)
    return result
