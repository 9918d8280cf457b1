"""
Directory Kernel — Aggregate Statistics

Counts are computed straight from the wire document so that backup,
monitor and sync tooling never depend on the full decoder.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from .wire import as_list


@dataclass(frozen=True)
class DirectoryStats:
    colleges: int = 0
    students: int = 0
    companies: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "colleges": self.colleges,
            "students": self.students,
            "companies": self.companies,
        }

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "DirectoryStats":
        data = data or {}
        return cls(
            colleges=int(data.get("colleges", 0) or 0),
            students=int(data.get("students", 0) or 0),
            companies=int(data.get("companies", 0) or 0),
        )


def compute_stats(document: Optional[Mapping[str, Any]]) -> DirectoryStats:
    """Sum per-college list lengths. None or {} counts as empty."""
    if not document:
        return DirectoryStats()
    students = 0
    companies = 0
    for college in document.values():
        if not isinstance(college, Mapping):
            continue
        students += len(as_list(college.get("students")))
        companies += len(as_list(college.get("companies")))
    return DirectoryStats(colleges=len(document), students=students, companies=companies)
