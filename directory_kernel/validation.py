"""
Directory Kernel — Input Validation

Synchronous checks on user-supplied registration and company data.
Every check raises ValidationError; nothing here touches state.
"""

from __future__ import annotations

import re
from typing import List, Optional

from .constants import EMAIL_PATTERN, LINKEDIN_MARKER

_EMAIL_RE = re.compile(EMAIL_PATTERN)


class ValidationError(ValueError):
    """Raised when user input is malformed. Carries a user-facing message."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(message)


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def is_valid_linkedin(url: str) -> bool:
    return LINKEDIN_MARKER in url


def validate_registration(email: str, name: str, linkedin: str) -> None:
    """Reject a registration form before any lookup happens."""
    if not email or not name or not linkedin:
        raise ValidationError("form", "Please fill all fields")
    if not is_valid_email(email):
        raise ValidationError("email", "Please enter a valid email address")
    if not is_valid_linkedin(linkedin):
        raise ValidationError(
            "linkedin",
            "Please enter a valid LinkedIn profile URL "
            "(e.g., linkedin.com/in/yourprofile)",
        )


def validate_college_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("college_name", "Please enter college name")
    return cleaned


def validate_company_name(name: str) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("company_name", "Please enter company name")
    return cleaned


def parse_job_roles(raw: Optional[object]) -> Optional[List[str]]:
    """
    Accept either a comma-separated string or a list of strings.
    Blank entries are dropped; nothing left means no roles at all.
    """
    if raw is None:
        return None
    if isinstance(raw, str):
        parts = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        parts = [p for p in raw if isinstance(p, str)]
    else:
        raise ValidationError("job_roles", "Job roles must be text")
    roles = [p.strip() for p in parts if p.strip()]
    return roles or None


def validate_total_selections(value: Optional[int]) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(
            "total_selections", "Total selections must be a non-negative number"
        )
    return value
