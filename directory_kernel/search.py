"""Case-insensitive substring search over colleges and company visits."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

from .domain_types import College, CompanyVisit, DirectoryState

SEARCH_MODES = ("college", "company")


@dataclass
class CompanySearchResult:
    """Companies of one college whose names matched the query."""

    college_key: str
    college: College
    companies: List[CompanyVisit] = field(default_factory=list)


def search_colleges(state: DirectoryState, query: str) -> List[Tuple[str, College]]:
    needle = (query or "").strip().lower()
    if not needle:
        return []
    return [
        (key, college)
        for key, college in state.colleges.items()
        if needle in college.name.lower()
    ]


def search_companies(state: DirectoryState, query: str) -> List[CompanySearchResult]:
    """Group matching companies by college; colleges without a match are left out."""
    needle = (query or "").strip().lower()
    if not needle:
        return []
    results = []
    for key, college in state.colleges.items():
        matches = [c for c in college.companies if needle in c.name.lower()]
        if matches:
            results.append(CompanySearchResult(key, college, matches))
    return results


def search(state: DirectoryState, query: str, mode: str = "college"):
    if mode == "college":
        return search_colleges(state, query)
    if mode == "company":
        return search_companies(state, query)
    raise ValueError(f"Unknown search mode: {mode!r} (expected one of {SEARCH_MODES})")
