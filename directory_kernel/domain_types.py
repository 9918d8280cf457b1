"""
Directory Kernel — Core Domain Types v1.0

Pure data plus read-only lookups. No transition logic.

────────────────────────────────────────────────
DOMAIN GLOSSARY
────────────────────────────────────────────────

College:
    An organization identified by an email domain. Owns its students,
    its company visits and the selection relation between them.

Domain key:
    Store-safe rewriting of a dotted domain (dots replaced with
    underscores). Colleges are keyed by it.

Company visit:
    A company that visited a college, with optional metadata.

Selection:
    The fact that a student was selected by a company visit. Stored once
    per college as a (student_id, company_id) pair; the per-company
    ``selectedStudents`` list and the per-student ``selections`` list are
    views derived from it.

Detached selection:
    A student-side selection naming a company the college does not list.
    Kept verbatim so that load-then-save never drops data.

────────────────────────────────────────────────
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

SelectionKey = Tuple[Any, Any]  # (student_id, company_id)


@dataclass
class CompanySelection:
    """Student-facing view of one selection, matched by company name only."""

    company_name: str
    selected_at: str = ""


@dataclass
class Student:
    """A registered student. Owned by exactly one college."""

    id: Any
    name: str
    email: str
    linkedin: str
    college_domain: str
    registered_at: str = ""
    detached_selections: List[CompanySelection] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CompanyVisit:
    """A company that visited a college."""

    id: Any
    name: str
    added_by: Any = None
    added_at: str = ""
    visit_date: Optional[str] = None
    job_roles: Optional[List[str]] = None
    total_selections: Optional[int] = None  # manually entered, never reconciled
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class College:
    """A college and everything it owns."""

    name: str
    domain: str
    created_at: str = ""
    students: List[Student] = field(default_factory=list)
    companies: List[CompanyVisit] = field(default_factory=list)
    # (student_id, company_id) -> selected_at, insertion ordered
    selections: Dict[SelectionKey, str] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    # -- Lookups ------------------------------------------------------------

    def find_student(self, student_id: Any) -> Optional[Student]:
        for student in self.students:
            if student.id == student_id:
                return student
        return None

    def find_student_by_email(self, email: str) -> Optional[Student]:
        for student in self.students:
            if student.email == email:
                return student
        return None

    def find_company(self, name: str) -> Optional[CompanyVisit]:
        """Exact-name lookup, as used by selection toggling."""
        for company in self.companies:
            if company.name == name:
                return company
        return None

    def find_company_casefold(self, name: str) -> Optional[CompanyVisit]:
        """Case-insensitive lookup, as used by duplicate detection."""
        wanted = name.lower()
        for company in self.companies:
            if company.name.lower() == wanted:
                return company
        return None

    # -- Derived selection views -------------------------------------------

    def is_selected(self, student_id: Any, company_id: Any) -> bool:
        return (student_id, company_id) in self.selections

    def selected_student_ids(self, company_id: Any) -> List[Any]:
        return [sid for (sid, cid) in self.selections if cid == company_id]

    def selections_for(self, student_id: Any) -> List[CompanySelection]:
        """Student view: linked selections in relation order, then detached ones."""
        names = {c.id: c.name for c in self.companies}
        result: List[CompanySelection] = []
        for (sid, cid), selected_at in self.selections.items():
            if sid == student_id and cid in names:
                result.append(CompanySelection(names[cid], selected_at))
        student = self.find_student(student_id)
        if student is not None:
            result.extend(
                CompanySelection(s.company_name, s.selected_at)
                for s in student.detached_selections
            )
        return result


@dataclass(frozen=True)
class TransitionResult:
    """
    Structured, immutable outcome of a directory transition.

    ``noop`` marks transitions that were accepted but changed nothing
    (idempotent login, toggle on an unknown company).
    """

    event_type: str = ""
    success: bool = True
    college_key: str = ""
    student_id: Any = None
    company_id: Any = None
    selected: Optional[bool] = None
    noop: bool = False
    reason: str = ""


@dataclass
class DirectoryState:
    """Complete directory snapshot: every college by domain key."""

    colleges: Dict[str, College] = field(default_factory=dict)

    def copy(self) -> "DirectoryState":
        """Deep-copy the entire state for immutable transitions."""
        return copy.deepcopy(self)

    def is_empty(self) -> bool:
        return not self.colleges

    def find_student(self, student_id: Any) -> Optional[Tuple[str, Student]]:
        """Locate a student in any college. Returns (college_key, student)."""
        for key, college in self.colleges.items():
            student = college.find_student(student_id)
            if student is not None:
                return key, student
        return None
