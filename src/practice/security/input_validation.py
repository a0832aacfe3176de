"""Input sanitization and request size limits.

Sanitizers strip characters used for query-operator injection
(``$``, ``{``, ``}``) and validate formats. All of them raise
ValidationError with a user-facing message.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable
from urllib.parse import urlsplit

# =============================================================================
# CONSTANTS
# =============================================================================

KB = 1024

# Maximum sizes in bytes (UTF-8)
REQUEST_SIZE_LIMITS: dict[str, int] = {
    "DEFAULT": 1024 * KB,
    "CODE_SNIPPET": 100 * KB,
    "NOTES": 10 * KB,
    "FILENAME": 200,
    "TITLE": 500,
    "URL": 2000,
}
CODE_LANGUAGE_LIMIT = 50

MAX_STRING_ARRAY_ITEMS = 50

_OBJECT_ID_RE = re.compile(r"^[a-fA-F0-9]{24}$")
_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_USERNAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
_OPERATOR_CHARS_RE = re.compile(r"[${}]")
_USERNAME_STRIP_RE = re.compile(r"[<>${}'\"\\]")
_SPECIAL_CHAR_RE = re.compile(r"[!@#$%^&*(),.?\":{}|<>_\-+=\[\]\\/`~;']")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")


class ValidationError(Exception):
    """Input failed validation."""

    pass


@dataclass
class SizeViolation:
    """A field larger than its limit."""

    field: str
    message: str
    max_size: int | None = None
    actual_size: int | None = None


# =============================================================================
# SANITIZERS
# =============================================================================


def is_valid_object_id(value: Any) -> bool:
    """True for 24-character hex identifiers."""
    return isinstance(value, str) and bool(_OBJECT_ID_RE.match(value))


def sanitize_object_id(value: Any, field_name: str = "ID") -> str:
    if not is_valid_object_id(value):
        raise ValidationError(f"Invalid {field_name} format")
    return value


def sanitize_email(email: Any) -> str:
    if not isinstance(email, str):
        raise ValidationError("Email must be a string")
    sanitized = _OPERATOR_CHARS_RE.sub("", email).strip()
    if not _EMAIL_RE.match(sanitized):
        raise ValidationError("Invalid email format")
    return sanitized.lower()


def sanitize_username(username: Any) -> str:
    if not isinstance(username, str):
        raise ValidationError("Username must be a string")
    sanitized = _USERNAME_STRIP_RE.sub("", username).strip()
    if not _USERNAME_RE.match(sanitized):
        raise ValidationError(
            "Username can only contain letters, numbers, underscores, and hyphens"
        )
    if not 3 <= len(sanitized) <= 30:
        raise ValidationError("Username must be between 3 and 30 characters")
    return sanitized


def validate_password(password: Any) -> None:
    """Enforce password strength: 8-128 chars, mixed case, digit, symbol."""
    if not isinstance(password, str):
        raise ValidationError("Password must be a string")
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters long")
    if len(password) > 128:
        raise ValidationError("Password must not exceed 128 characters")
    if not re.search(r"[A-Z]", password):
        raise ValidationError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        raise ValidationError("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", password):
        raise ValidationError("Password must contain at least one number")
    if not _SPECIAL_CHAR_RE.search(password):
        raise ValidationError(
            'Password must contain at least one special character (!@#$%^&*(),.?":{}|<>)'
        )


def sanitize_string(value: Any, field_name: str = "Input") -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    return _OPERATOR_CHARS_RE.sub("", value).strip()


def sanitize_url(url: Any) -> str:
    """Accept only absolute http(s) URLs."""
    if not isinstance(url, str):
        raise ValidationError("URL must be a string")
    sanitized = url.strip()
    try:
        parts = urlsplit(sanitized)
    except ValueError:
        raise ValidationError("Invalid URL format") from None
    if not parts.scheme or not parts.netloc:
        raise ValidationError("Invalid URL format")
    if parts.scheme.lower() not in ("http", "https"):
        raise ValidationError("URL must use HTTP or HTTPS protocol")
    return sanitized


def sanitize_query_param(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("Query parameter must be a string")
    return _OPERATOR_CHARS_RE.sub("", value).strip()


def sanitize_integer(
    value: Any,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    """Parse a leading integer ("12abc" -> 12) and check bounds."""
    if isinstance(value, bool):
        raise ValidationError("Value must be a valid number")
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        if value != value:  # NaN
            raise ValidationError("Value must be a valid number")
        number = int(value)
    elif isinstance(value, str):
        match = _LEADING_INT_RE.match(value)
        if not match:
            raise ValidationError("Value must be a valid number")
        number = int(match.group(1))
    else:
        raise ValidationError("Value must be a valid number")

    if minimum is not None and number < minimum:
        raise ValidationError(f"Value must be at least {minimum}")
    if maximum is not None and number > maximum:
        raise ValidationError(f"Value must not exceed {maximum}")
    return number


def sanitize_string_array(value: Any, field_name: str = "Array") -> list[str]:
    """Keep string items only, sanitized, at most MAX_STRING_ARRAY_ITEMS."""
    if not isinstance(value, (list, tuple)):
        return []
    return [
        sanitize_string(item, field_name) for item in value if isinstance(item, str)
    ][:MAX_STRING_ARRAY_ITEMS]


# =============================================================================
# SIZE LIMITS
# =============================================================================


def validate_string_size(
    value: str | None,
    field_name: str,
    max_size: int,
) -> SizeViolation | None:
    """Check the UTF-8 size of a field."""
    if not value:
        return None
    actual_size = len(value.encode("utf-8"))
    if actual_size > max_size:
        return SizeViolation(
            field=field_name,
            message=f"{field_name} exceeds maximum size",
            max_size=max_size,
            actual_size=actual_size,
        )
    return None


def validate_fields(
    fields: Iterable[tuple[str | None, str, int]],
) -> list[SizeViolation]:
    """Check (value, name, max_size) triples."""
    violations = []
    for value, name, max_size in fields:
        violation = validate_string_size(value, name, max_size)
        if violation:
            violations.append(violation)
    return violations


def validate_problem_data(data: dict[str, Any]) -> list[SizeViolation]:
    """Size checks for the free-text fields of a problem."""
    return validate_fields(
        [
            (data.get("title"), "title", REQUEST_SIZE_LIMITS["TITLE"]),
            (data.get("url"), "url", REQUEST_SIZE_LIMITS["URL"]),
            (data.get("notes"), "notes", REQUEST_SIZE_LIMITS["NOTES"]),
            (data.get("code_snippet"), "code_snippet", REQUEST_SIZE_LIMITS["CODE_SNIPPET"]),
            (data.get("code_language"), "code_language", CODE_LANGUAGE_LIMIT),
            (data.get("code_filename"), "code_filename", REQUEST_SIZE_LIMITS["FILENAME"]),
        ]
    )


def format_validation_errors(violations: list[SizeViolation]) -> str:
    """Human-readable summary, e.g. ``notes: 12.0KB exceeds limit of 10.0KB``."""
    parts = []
    for v in violations:
        if v.max_size and v.actual_size:
            max_kb = v.max_size / KB
            actual_kb = v.actual_size / KB
            parts.append(f"{v.field}: {actual_kb:.1f}KB exceeds limit of {max_kb:.1f}KB")
        else:
            parts.append(f"{v.field}: {v.message}")
    return "; ".join(parts)
