"""
Directory Kernel — Invariant Checks v1.0

Hard-fail validation. Every check raises InvariantViolationError on failure.

Only the colleges a transition touched are checked: documents adopted from
the store are taken as they are and never rejected here.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .domain_key import to_key
from .domain_types import College, DirectoryState


class InvariantViolationError(Exception):
    """Raised when a directory invariant is violated."""

    def __init__(self, rule: str, detail: str) -> None:
        self.rule = rule
        self.detail = detail
        super().__init__(f"[INVARIANT:{rule}] {detail}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_invariants(
    state: DirectoryState, college_keys: Optional[Iterable[str]] = None,
) -> None:
    """
    Run every check against the named colleges (all colleges when
    *college_keys* is None). Raises on the first failure.
    """
    keys = list(state.colleges) if college_keys is None else list(college_keys)
    for key in keys:
        college = state.colleges.get(key)
        if college is None:
            continue
        _check_key_matches_domain(key, college)
        _check_unique_emails(key, college)
        _check_unique_company_names(key, college)


# ---------------------------------------------------------------------------
# Individual checks (private)
# ---------------------------------------------------------------------------

def _check_key_matches_domain(key: str, college: College) -> None:
    """INV-1: A college lives under the key derived from its own domain."""
    if to_key(college.domain) != key:
        raise InvariantViolationError(
            "key_matches_domain",
            f"College {college.name!r} with domain {college.domain!r} "
            f"stored under key {key!r}"
        )


def _check_unique_emails(key: str, college: College) -> None:
    """INV-2: Email addresses are unique within a college."""
    seen = set()
    for student in college.students:
        if student.email in seen:
            raise InvariantViolationError(
                "unique_email",
                f"Email {student.email!r} registered twice in {key!r}"
            )
        seen.add(student.email)


def _check_unique_company_names(key: str, college: College) -> None:
    """INV-3: Company names are unique within a college, ignoring case."""
    seen = set()
    for company in college.companies:
        folded = company.name.lower()
        if folded in seen:
            raise InvariantViolationError(
                "unique_company_name",
                f"Company {company.name!r} listed twice in {key!r}"
            )
        seen.add(folded)
