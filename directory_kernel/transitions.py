"""
Directory Kernel — Centralized Transition Logic v1.0

ALL directory mutation logic lives here.
Every handler works on a private deep copy; the input state is never
touched, so a caller swapping in the returned state replaces the whole
directory in one step.
"""

from __future__ import annotations

from typing import Tuple

from .domain_types import College, CompanyVisit, DirectoryState, Student, TransitionResult
from .events import BaseEvent


class UnknownCollegeError(KeyError):
    """Raised when an event names a college key that does not exist."""

    def __init__(self, college_key: str) -> None:
        self.college_key = college_key
        super().__init__(f"College {college_key!r} does not exist")


class UnknownStudentError(KeyError):
    """Raised when an actor is not a student of the addressed college."""

    def __init__(self, student_id: object, college_key: str = "") -> None:
        self.student_id = student_id
        self.college_key = college_key
        where = f" in college {college_key!r}" if college_key else ""
        super().__init__(f"Student {student_id!r} does not exist{where}")


class DuplicateCompanyError(ValueError):
    """Raised when a company name is already listed (case-insensitive)."""

    def __init__(self, college_key: str, name: str) -> None:
        self.college_key = college_key
        self.name = name
        super().__init__("Company already added to this college")


class DuplicateCollegeError(ValueError):
    """Raised when creating a college under a key that is already taken."""

    def __init__(self, college_key: str) -> None:
        self.college_key = college_key
        super().__init__(f"College {college_key!r} already exists")


# ---------------------------------------------------------------------------
# Public dispatcher
# ---------------------------------------------------------------------------

def apply_event(
    state: DirectoryState, event: BaseEvent,
) -> Tuple[DirectoryState, TransitionResult]:
    """
    Apply *event* to *state* and return ``(new_state, result)``.
    The original state is never mutated — a deep copy is made first.
    """
    new_state = state.copy()

    etype = event.event_type

    if etype == "register_student":
        result = _apply_register_student(new_state, event)
    elif etype == "create_college":
        result = _apply_create_college(new_state, event)
    elif etype == "add_company_visit":
        result = _apply_add_company_visit(new_state, event)
    elif etype == "toggle_selection":
        result = _apply_toggle_selection(new_state, event)
    else:
        raise ValueError(f"Unknown event type: {etype}")

    return new_state, result


# ---------------------------------------------------------------------------
# Individual transition handlers (private)
# ---------------------------------------------------------------------------

def _college(state: DirectoryState, key: str) -> College:
    college = state.colleges.get(key)
    if college is None:
        raise UnknownCollegeError(key)
    return college


def _apply_register_student(state: DirectoryState, event: BaseEvent) -> TransitionResult:
    p = event.payload
    key = p["college_key"]
    college = _college(state, key)

    existing = college.find_student_by_email(p["email"])
    if existing is not None:
        return TransitionResult(
            event_type="register_student",
            college_key=key,
            student_id=existing.id,
            noop=True,
            reason="already registered",
        )

    student = Student(
        id=p["student_id"],
        name=p["name"],
        email=p["email"],
        linkedin=p["linkedin"],
        college_domain=p["domain"],
        registered_at=event.timestamp,
    )
    college.students.append(student)
    return TransitionResult(
        event_type="register_student", college_key=key, student_id=student.id,
    )


def _apply_create_college(state: DirectoryState, event: BaseEvent) -> TransitionResult:
    p = event.payload
    key = p["college_key"]
    if key in state.colleges:
        raise DuplicateCollegeError(key)

    student = Student(
        id=p["student_id"],
        name=p["name"],
        email=p["email"],
        linkedin=p["linkedin"],
        college_domain=p["domain"],
        registered_at=event.timestamp,
    )
    state.colleges[key] = College(
        name=p["college_name"],
        domain=p["domain"],
        created_at=event.timestamp,
        students=[student],
        companies=[],
    )
    return TransitionResult(
        event_type="create_college", college_key=key, student_id=student.id,
    )


def _link_detached_selections(college: College, company: CompanyVisit) -> None:
    """Student-side selections naming the new company join the relation, as on decode."""
    for student in college.students:
        kept = []
        for selection in student.detached_selections:
            if selection.company_name == company.name:
                college.selections.setdefault((student.id, company.id), selection.selected_at)
            else:
                kept.append(selection)
        student.detached_selections = kept


def _apply_add_company_visit(state: DirectoryState, event: BaseEvent) -> TransitionResult:
    """
    Company and optional self-selection land in the same new state, so no
    observer can see one without the other.
    """
    p = event.payload
    key = p["college_key"]
    college = _college(state, key)
    actor_id = p["actor_id"]
    if college.find_student(actor_id) is None:
        raise UnknownStudentError(actor_id, key)

    name = p["name"]
    if college.find_company_casefold(name) is not None:
        raise DuplicateCompanyError(key, name)

    company = CompanyVisit(
        id=p["company_id"],
        name=name,
        added_by=actor_id,
        added_at=event.timestamp,
        visit_date=p.get("visit_date") or None,
        job_roles=list(p["job_roles"]) if p.get("job_roles") else None,
        total_selections=p.get("total_selections"),
    )
    college.companies.append(company)
    _link_detached_selections(college, company)

    selected = bool(p.get("self_selected", False))
    if selected:
        college.selections.setdefault((actor_id, company.id), event.timestamp)

    return TransitionResult(
        event_type="add_company_visit",
        college_key=key,
        student_id=actor_id,
        company_id=company.id,
        selected=selected,
    )


def _apply_toggle_selection(state: DirectoryState, event: BaseEvent) -> TransitionResult:
    p = event.payload
    key = p["college_key"]
    college = _college(state, key)
    actor_id = p["actor_id"]
    if college.find_student(actor_id) is None:
        raise UnknownStudentError(actor_id, key)

    company = college.find_company(p["company_name"])
    if company is None:
        return TransitionResult(
            event_type="toggle_selection",
            college_key=key,
            student_id=actor_id,
            noop=True,
            reason=f"company {p['company_name']!r} not listed",
        )

    pair = (actor_id, company.id)
    if pair in college.selections:
        del college.selections[pair]
        selected = False
    else:
        college.selections[pair] = event.timestamp
        selected = True

    return TransitionResult(
        event_type="toggle_selection",
        college_key=key,
        student_id=actor_id,
        company_id=company.id,
        selected=selected,
    )
