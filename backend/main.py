# file: backend/main.py
"""
FastAPI Backend — College Directory API v1.

One DirectorySession per process. It holds the directory in memory,
follows the document store, and writes the whole directory back after
every accepted change.

The API serves a single operator: the current-user slot (GET /session)
belongs to the process, not to an HTTP client. Every caller sees and
replaces the same signed-in student, and the last sign-in wins.

Endpoints:
  POST   /register                                   — sign up or sign back in
  POST   /colleges                                   — create a college for a pending registration
  GET    /colleges                                   — all colleges with counts
  GET    /colleges/{college_key}                     — one college, wire form
  POST   /colleges/{college_key}/companies           — add a company visit
  POST   /colleges/{college_key}/companies/{name}/toggle — toggle own selection
  GET    /search?q=&mode=college|company             — substring search
  GET    /students/{student_id}                      — profile + selection details
  GET    /session, DELETE /session                   — current user slot
  GET    /stats                                      — counts + session metrics
"""
from __future__ import annotations

import logging
import os
import threading
from dataclasses import asdict
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv

env_path = os.path.join(os.path.dirname(__file__), ".env")
if os.path.exists(env_path):
    load_dotenv(env_path)

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from directory_kernel.invariants import InvariantViolationError
from directory_kernel.search import CompanySearchResult
from directory_kernel.transitions import (
    DuplicateCollegeError,
    DuplicateCompanyError,
    UnknownCollegeError,
    UnknownStudentError,
)
from directory_kernel.wire import encode_college, encode_student
from directory_runtime.config import load_config
from directory_runtime.document_store import open_document_store
from directory_runtime.logging_setup import configure_logging
from directory_runtime.observability import collect_metrics
from directory_runtime.session import DirectorySession
from directory_runtime.session_store import SessionStore

LOGGER = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

CONFIG = load_config()
configure_logging(CONFIG)

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="College Directory API",
    version="1.0.0",
    description="College directory: students, company visits and placement selections",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        CONFIG.frontend_url,
        "http://localhost:3000",
        "http://localhost:3001",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    email: str
    name: str
    linkedin: str


class CreateCollegeRequest(BaseModel):
    college_name: str
    email: str
    name: str
    linkedin: str


class AddCompanyRequest(BaseModel):
    actor_id: Any
    name: str
    visit_date: Optional[str] = None
    job_roles: Optional[Union[str, List[str]]] = None
    total_selections: Optional[int] = None
    self_selected: bool = False


class ToggleRequest(BaseModel):
    actor_id: Any


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

_session: Optional[DirectorySession] = None
_session_lock = threading.Lock()


def configure_session(session: Optional[DirectorySession]) -> None:
    """Install an already-loaded session (tests) or drop the current one."""
    global _session
    with _session_lock:
        if _session is not None and _session is not session:
            _session.close()
        _session = session


def _get_session() -> DirectorySession:
    global _session
    with _session_lock:
        if _session is None:
            if CONFIG.store == "supabase" and not CONFIG.database_url:
                raise HTTPException(
                    status_code=500,
                    detail="DATABASE_URL not configured",
                )
            session = DirectorySession(
                open_document_store(CONFIG),
                SessionStore(CONFIG.db_path),
                load_timeout=CONFIG.load_timeout,
            )
            session.load()
            LOGGER.info("Directory session ready (store=%s)", CONFIG.store)
            _session = session
        return _session


def _raise_http(exc: Exception) -> None:
    """Map directory errors onto HTTP status codes."""
    if isinstance(exc, (DuplicateCompanyError, DuplicateCollegeError)):
        raise HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, (UnknownCollegeError, UnknownStudentError)):
        raise HTTPException(status_code=404, detail=exc.args[0])
    if isinstance(exc, InvariantViolationError):
        raise HTTPException(status_code=422, detail=str(exc))
    raise HTTPException(status_code=400, detail=str(exc))


def _college_summary(key: str, college) -> Dict[str, Any]:
    return {
        "key": key,
        "name": college.name,
        "domain": college.domain,
        "students": len(college.students),
        "companies": len(college.companies),
    }


def _company_match(result: CompanySearchResult) -> Dict[str, Any]:
    return {
        "college": _college_summary(result.college_key, result.college),
        "companies": [
            {
                "id": c.id,
                "name": c.name,
                "visitDate": c.visit_date,
                "jobRoles": c.job_roles or [],
                "selectedCount": len(result.college.selected_student_ids(c.id)),
            }
            for c in result.companies
        ],
    }


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.post("/register")
def register(req: RegisterRequest):
    """
    Sign up with a college email. An email already registered signs that
    student back in. When no college exists for the domain yet, the
    response carries ``college_required`` and the pending registration;
    resubmit it to POST /colleges with a college name.
    """
    session = _get_session()
    try:
        outcome = session.register(req.email, req.name, req.linkedin)
    except (ValueError, KeyError, InvariantViolationError) as exc:
        _raise_http(exc)

    body: Dict[str, Any] = {"status": outcome.status, "college_key": outcome.college_key}
    if outcome.pending is not None:
        body["pending"] = asdict(outcome.pending)
    if outcome.student is not None:
        body["student"] = session.current_user_document()
    return body


@app.post("/colleges")
def create_college(req: CreateCollegeRequest):
    session = _get_session()
    try:
        outcome = session.register(req.email, req.name, req.linkedin)
        if outcome.status == "college_required":
            outcome = session.create_college(req.college_name, outcome.pending)
    except (ValueError, KeyError, InvariantViolationError) as exc:
        _raise_http(exc)
    return {
        "status": outcome.status,
        "college_key": outcome.college_key,
        "student": session.current_user_document(),
    }


@app.get("/colleges")
def list_colleges():
    state = _get_session().state
    return {
        "colleges": [_college_summary(key, college) for key, college in state.colleges.items()],
    }


@app.get("/colleges/{college_key}")
def get_college(college_key: str):
    college = _get_session().state.colleges.get(college_key)
    if college is None:
        raise HTTPException(status_code=404, detail=f"College {college_key!r} does not exist")
    return {"key": college_key, **encode_college(college)}


@app.post("/colleges/{college_key}/companies")
def add_company(college_key: str, req: AddCompanyRequest):
    session = _get_session()
    try:
        company = session.add_company_visit(
            college_key,
            req.actor_id,
            req.name,
            visit_date=req.visit_date,
            job_roles=req.job_roles,
            total_selections=req.total_selections,
            self_selected=req.self_selected,
        )
    except (ValueError, KeyError, InvariantViolationError) as exc:
        _raise_http(exc)
    college = session.state.colleges[college_key]
    return {
        "company": {
            "id": company.id,
            "name": company.name,
            "addedBy": company.added_by,
            "selectedStudents": college.selected_student_ids(company.id),
            "visitDate": company.visit_date,
            "jobRoles": company.job_roles or [],
            "totalSelections": company.total_selections,
        },
    }


@app.post("/colleges/{college_key}/companies/{company_name}/toggle")
def toggle_selection(college_key: str, company_name: str, req: ToggleRequest):
    session = _get_session()
    try:
        result = session.toggle_selection(college_key, req.actor_id, company_name)
    except (ValueError, KeyError, InvariantViolationError) as exc:
        _raise_http(exc)
    college = session.state.colleges[college_key]
    student = college.find_student(req.actor_id)
    return {
        "noop": result.noop,
        "reason": result.reason,
        "student": encode_student(college, student) if student else None,
    }


@app.get("/search")
def search(q: str = "", mode: str = "college"):
    try:
        results = _get_session().search(q, mode)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if mode == "company":
        return {"mode": mode, "results": [_company_match(r) for r in results]}
    return {"mode": mode, "results": [_college_summary(key, c) for key, c in results]}


@app.get("/students/{student_id}")
def get_student(student_id: int):
    session = _get_session()
    found = session.find_student(student_id)
    if found is None:
        raise HTTPException(status_code=404, detail=f"Student {student_id!r} does not exist")
    key, student = found
    college = session.state.colleges[key]
    return {
        "college": _college_summary(key, college),
        "student": encode_student(college, student),
        "selections": [asdict(d) for d in session.selection_details(student_id)],
    }


@app.get("/session")
def get_current_user():
    """The process-wide signed-in student; shared by every caller, last sign-in wins."""
    session = _get_session()
    return {
        "user": session.current_user_document(),
        "loaded": session.is_loaded,
        "load_error": session.load_error,
    }


@app.delete("/session")
def logout():
    _get_session().logout()
    return {"status": "logged_out"}


@app.get("/stats")
def stats():
    session = _get_session()
    return {
        "stats": session.stats().to_dict(),
        "metrics": asdict(collect_metrics(session)),
    }


@app.get("/health")
def health():
    return {"status": "ok", "version": "1.0.0"}
