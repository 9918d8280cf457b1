"""
Directory Kernel — Wire Codec v1.0

Converts between the JSON document kept in the remote store (and in
backup files) and the in-memory DirectoryState.

Wire rules (compatible with every document the store already holds):
  - Top level: {domain_key: College}.
  - camelCase field names; optional company fields omitted when unset.
  - Arrays may come back from the store as {"0": ..., "1": ...} maps;
    both shapes decode.
  - Unknown fields are carried through untouched in ``extra``.

Selections are decoded into one relation per college:
  1. every student-side selection whose companyName names a company of
     the college becomes a (student_id, company_id) pair;
  2. every selectedStudents entry not already paired is added with the
     company's addedAt as its timestamp;
  3. student-side selections naming no company stay detached.
Encoding derives both views back from the relation.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from .domain_types import (
    College,
    CompanySelection,
    CompanyVisit,
    DirectoryState,
    Student,
)


class DecodeError(ValueError):
    """Raised when a stored document cannot be read as a directory."""


_COLLEGE_FIELDS = frozenset({"name", "domain", "students", "companies", "createdAt"})
_STUDENT_FIELDS = frozenset({
    "id", "name", "email", "linkedin", "collegeDomain", "selections", "registeredAt",
})
_COMPANY_FIELDS = frozenset({
    "id", "name", "visitDate", "jobRoles", "addedBy", "selectedStudents",
    "totalSelections", "addedAt",
})


# ══════════════════════════════════════════════════════════════
# Helpers
# ══════════════════════════════════════════════════════════════

def as_list(value: Any) -> List[Any]:
    """Normalise a stored array: None, list, or an index-keyed mapping."""
    if value is None:
        return []
    if isinstance(value, list):
        return [v for v in value if v is not None]
    if isinstance(value, Mapping):
        def _index(k: Any) -> int:
            try:
                return int(k)
            except (TypeError, ValueError):
                return 0
        return [value[k] for k in sorted(value, key=_index) if value[k] is not None]
    raise DecodeError(f"Expected an array, got {type(value).__name__}")


def _extra(data: Mapping[str, Any], known: frozenset) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if k not in known}


# ══════════════════════════════════════════════════════════════
# Decoder
# ══════════════════════════════════════════════════════════════

def decode_directory(document: Optional[Mapping[str, Any]]) -> DirectoryState:
    """Decode a whole store document. None or {} gives an empty directory."""
    if not document:
        return DirectoryState()
    if not isinstance(document, Mapping):
        raise DecodeError(
            f"Directory document must be an object, got {type(document).__name__}"
        )
    colleges: Dict[str, College] = {}
    for key, raw in document.items():
        if not isinstance(raw, Mapping):
            raise DecodeError(f"College {key!r} is not an object")
        colleges[key] = decode_college(raw)
    return DirectoryState(colleges=colleges)


def decode_college(data: Mapping[str, Any]) -> College:
    domain = data.get("domain", "") or ""
    college = College(
        name=data.get("name", "") or "",
        domain=domain,
        created_at=data.get("createdAt", "") or "",
        extra=_extra(data, _COLLEGE_FIELDS),
    )

    raw_students = [s for s in as_list(data.get("students")) if isinstance(s, Mapping)]
    raw_companies = [c for c in as_list(data.get("companies")) if isinstance(c, Mapping)]

    for raw in raw_companies:
        college.companies.append(_decode_company(raw))
    company_by_name = {}
    for company in college.companies:
        company_by_name.setdefault(company.name, company)

    for raw in raw_students:
        student = decode_student(raw, domain)
        college.students.append(student)
        for sel in as_list(raw.get("selections")):
            if not isinstance(sel, Mapping):
                continue
            name = sel.get("companyName", "") or ""
            selected_at = sel.get("selectedAt", "") or ""
            company = company_by_name.get(name)
            if company is None:
                student.detached_selections.append(CompanySelection(name, selected_at))
            else:
                college.selections.setdefault((student.id, company.id), selected_at)

    for raw, company in zip(raw_companies, college.companies):
        for sid in as_list(raw.get("selectedStudents")):
            college.selections.setdefault((sid, company.id), company.added_at)

    return college


def decode_student(data: Mapping[str, Any], college_domain: str) -> Student:
    return Student(
        id=data.get("id"),
        name=data.get("name", "") or "",
        email=data.get("email", "") or "",
        linkedin=data.get("linkedin", "") or "",
        college_domain=data.get("collegeDomain") or college_domain,
        registered_at=data.get("registeredAt", "") or "",
        extra=_extra(data, _STUDENT_FIELDS),
    )


def _decode_company(data: Mapping[str, Any]) -> CompanyVisit:
    job_roles = data.get("jobRoles")
    return CompanyVisit(
        id=data.get("id"),
        name=data.get("name", "") or "",
        added_by=data.get("addedBy"),
        added_at=data.get("addedAt", "") or "",
        visit_date=data.get("visitDate") or None,
        job_roles=[r for r in as_list(job_roles) if isinstance(r, str)] if job_roles is not None else None,
        total_selections=data.get("totalSelections"),
        extra=_extra(data, _COMPANY_FIELDS),
    )


# ══════════════════════════════════════════════════════════════
# Encoder
# ══════════════════════════════════════════════════════════════

def encode_directory(state: DirectoryState) -> Dict[str, Any]:
    """Encode a DirectoryState into the store document shape."""
    return {key: encode_college(college) for key, college in state.colleges.items()}


def encode_college(college: College) -> Dict[str, Any]:
    out: Dict[str, Any] = dict(college.extra)
    out.update({
        "name": college.name,
        "domain": college.domain,
        "students": [encode_student(college, s) for s in college.students],
        "companies": [_encode_company(college, c) for c in college.companies],
        "createdAt": college.created_at,
    })
    return out


def encode_student(college: College, student: Student) -> Dict[str, Any]:
    out: Dict[str, Any] = dict(student.extra)
    out.update({
        "id": student.id,
        "name": student.name,
        "email": student.email,
        "linkedin": student.linkedin,
        "collegeDomain": student.college_domain,
        "selections": [
            {"companyName": s.company_name, "selectedAt": s.selected_at}
            for s in college.selections_for(student.id)
        ],
        "registeredAt": student.registered_at,
    })
    return out


def _encode_company(college: College, company: CompanyVisit) -> Dict[str, Any]:
    out: Dict[str, Any] = dict(company.extra)
    out.update({
        "id": company.id,
        "name": company.name,
        "addedBy": company.added_by,
        "selectedStudents": college.selected_student_ids(company.id),
        "addedAt": company.added_at,
    })
    if company.visit_date:
        out["visitDate"] = company.visit_date
    if company.job_roles:
        out["jobRoles"] = list(company.job_roles)
    if company.total_selections is not None:
        out["totalSelections"] = company.total_selections
    return out
