# file: directory_runtime/session.py
"""
Directory Session — orchestrates engine + document store + local session.

The session is the only writer of the canonical directory. Local changes
go through DirectoryEngine.dispatch; store notifications replace the
whole state through DirectoryEngine.load_state.

Load:
  1. subscribe to the store; the first notification carries the
     current document
  2. wait at most ``load_timeout`` seconds for it, then carry on with
     the current (initially empty) state and the degraded flag set
  3. legacy dotted keys are rewritten; the first time this happens in a
     process the corrected mapping is written back in full

Persist, after every local change that is not a no-op, only when:
  - load has completed
  - no degraded flag (``load_error``) is set
  - the directory is non-empty
The whole directory is written; the last writer wins.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple

from directory_kernel.clock import epoch_millis, iso_timestamp, utcnow
from directory_kernel.constants import LOAD_TIMEOUT_SECONDS
from directory_kernel.domain_key import extract_domain, to_key
from directory_kernel.domain_types import CompanyVisit, DirectoryState, Student, TransitionResult
from directory_kernel.engine import DirectoryEngine
from directory_kernel.events import (
    AddCompanyVisitEvent,
    BaseEvent,
    CreateCollegeEvent,
    RegisterStudentEvent,
    ToggleSelectionEvent,
)
from directory_kernel.migration import migrate_legacy_keys
from directory_kernel.search import search as _search
from directory_kernel.stats import DirectoryStats, compute_stats
from directory_kernel.transitions import UnknownCollegeError, UnknownStudentError
from directory_kernel.validation import (
    ValidationError,
    parse_job_roles,
    validate_college_name,
    validate_company_name,
    validate_registration,
    validate_total_selections,
)
from directory_kernel.wire import (
    DecodeError,
    decode_directory,
    decode_student,
    encode_directory,
    encode_student,
)

from .document_store import DirectoryStoreError, DocumentStore
from .session_store import SessionStore

LOGGER = logging.getLogger(__name__)

MIGRATION_WRITE_FAILED = "Data migrated locally, but remote write failed."


@dataclass(frozen=True)
class PendingRegistration:
    """A validated registration waiting for its college to be created."""

    email: str
    name: str
    linkedin: str
    domain: str
    college_key: str


@dataclass(frozen=True)
class RegistrationOutcome:
    """
    status:
      registered        new student appended
      logged_in         email already registered; that student is returned
      college_created   new college whose only student is the registrant
      college_required  no college for the domain yet; see ``pending``
    """

    status: str
    college_key: str = ""
    student: Optional[Student] = None
    pending: Optional[PendingRegistration] = None


@dataclass(frozen=True)
class SelectionDetail:
    """One row of a student's profile: a selection plus its visit details."""

    company_name: str
    selected_at: str
    company_id: Any = None
    visit_date: Optional[str] = None
    job_roles: List[str] = field(default_factory=list)


class DirectorySession:
    """
    Process-side state manager. Guarded by a re-entrant lock because store
    notifications may arrive on the store's polling thread.
    """

    def __init__(
        self,
        store: DocumentStore,
        session_store: Optional[SessionStore] = None,
        *,
        load_timeout: float = LOAD_TIMEOUT_SECONDS,
        engine: Optional[DirectoryEngine] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._session_store = session_store
        self._load_timeout = load_timeout
        self._engine = engine or DirectoryEngine()
        self._clock = clock
        self._lock = threading.RLock()
        self._first_notification = threading.Event()
        self._load_complete = False
        self._load_error: Optional[str] = None
        self._migrated = False
        self._last_written: Optional[dict] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._current: Optional[Tuple[str, Any]] = None
        self._saved_user: Optional[dict] = None
        self._last_id = 0

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def state(self) -> DirectoryState:
        return self._engine.state

    @property
    def load_error(self) -> Optional[str]:
        return self._load_error

    @property
    def is_loaded(self) -> bool:
        return self._load_complete

    @property
    def current_user(self) -> Optional[Student]:
        with self._lock:
            if self._current is None:
                return None
            key, student_id = self._current
            college = self.state.colleges.get(key)
            if college is not None:
                student = college.find_student(student_id)
                if student is not None:
                    return student
            if self._saved_user is not None:
                return decode_student(self._saved_user, self._saved_user.get("collegeDomain", ""))
            return None

    def current_user_document(self) -> Optional[dict]:
        """Current student in wire form, with derived selections."""
        with self._lock:
            if self._current is None:
                return None
            key, student_id = self._current
            college = self.state.colleges.get(key)
            student = college.find_student(student_id) if college else None
            if student is None:
                return self._saved_user
            return encode_student(college, student)

    def document(self) -> dict:
        with self._lock:
            return encode_directory(self.state)

    def stats(self) -> DirectoryStats:
        return compute_stats(self.document())

    # ------------------------------------------------------------------
    # Load / store notifications
    # ------------------------------------------------------------------

    def load(self) -> bool:
        """
        Subscribe and wait for the first notification. Returns True when
        the directory arrived in time and without error.
        """
        self._restore_saved_user()
        threading.Thread(
            target=self._subscribe, name="directory-subscribe", daemon=True,
        ).start()
        if not self._first_notification.wait(self._load_timeout):
            with self._lock:
                if not self._first_notification.is_set():
                    self._load_error = (
                        f"Directory did not load within {self._load_timeout:g}s; "
                        "using local data only."
                    )
            LOGGER.warning("Load timed out after %.1fs; working offline", self._load_timeout)
        with self._lock:
            self._load_complete = True
            ok = self._load_error is None
        LOGGER.info(
            "Directory loaded: %d colleges%s",
            len(self.state.colleges),
            "" if ok else f" (degraded: {self._load_error})",
        )
        return ok

    def _subscribe(self) -> None:
        # Runs off the caller thread so load() is bounded by load_timeout.
        try:
            self._unsubscribe = self._store.subscribe(
                self._on_remote_change, self._on_remote_error,
            )
        except DirectoryStoreError as exc:
            self._on_remote_error(exc)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_remote_change(self, document: Optional[dict]) -> None:
        with self._lock:
            try:
                # Only the notification right after our own write can be its echo.
                echo, self._last_written = self._last_written, None
                if document is not None and document == echo:
                    self._load_error = None
                    return
                if not document:
                    self._engine.load_state(DirectoryState())
                    self._load_error = None
                    return

                migrated, rewritten = migrate_legacy_keys(document)
                if rewritten and not self._migrated:
                    self._migrated = True
                    LOGGER.info("Migrating %d legacy college keys: %s", len(rewritten), rewritten)
                    try:
                        self._write(migrated)
                    except DirectoryStoreError as exc:
                        LOGGER.error("Migration write-back failed: %s", exc)
                        self._adopt(migrated)
                        self._load_error = MIGRATION_WRITE_FAILED
                        return
                self._adopt(migrated)
                self._load_error = None
            except DecodeError as exc:
                LOGGER.error("Ignoring unreadable directory document: %s", exc)
                self._load_error = f"Directory data could not be read: {exc}"
            finally:
                self._first_notification.set()

    def _on_remote_error(self, exc: Exception) -> None:
        LOGGER.error("Directory store error: %s", exc)
        with self._lock:
            self._load_error = f"Store error: {exc}"
        self._first_notification.set()

    def _adopt(self, document: dict) -> None:
        self._engine.load_state(decode_directory(document))

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _write(self, document: dict) -> None:
        self._last_written = document
        try:
            self._store.write(document)
        except DirectoryStoreError:
            self._last_written = None
            raise

    def _persist(self) -> bool:
        if not self._load_complete or self._load_error is not None:
            LOGGER.debug("Persist skipped (loaded=%s, error=%r)", self._load_complete, self._load_error)
            return False
        if self.state.is_empty():
            return False
        try:
            self._write(encode_directory(self.state))
        except DirectoryStoreError as exc:
            LOGGER.error("Directory save failed: %s", exc)
            return False
        return True

    def _dispatch(self, event: BaseEvent) -> Tuple[DirectoryState, TransitionResult]:
        state, result = self._engine.dispatch(event)
        if not result.noop:
            self._persist()
        return state, result

    def _next_id(self) -> int:
        self._last_id = max(epoch_millis(self._clock()), self._last_id + 1)
        return self._last_id

    def _now(self) -> str:
        return iso_timestamp(self._clock())

    # ------------------------------------------------------------------
    # Current user slot
    # ------------------------------------------------------------------

    def _restore_saved_user(self) -> None:
        if self._session_store is None:
            return
        saved = self._session_store.get()
        if not isinstance(saved, dict) or not saved.get("collegeDomain"):
            return
        with self._lock:
            self._saved_user = saved
            self._current = (to_key(saved["collegeDomain"]), saved.get("id"))

    def _remember(self, college_key: str, student_id: Any) -> None:
        self._current = (college_key, student_id)
        self._saved_user = self.current_user_document()
        if self._session_store is not None and self._saved_user is not None:
            self._session_store.set(self._saved_user)

    def _refresh_current(self, college_key: str, student_id: Any) -> None:
        if self._current == (college_key, student_id):
            self._remember(college_key, student_id)

    def logout(self) -> None:
        with self._lock:
            self._current = None
            self._saved_user = None
            if self._session_store is not None:
                self._session_store.delete()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def register(self, email: str, name: str, linkedin: str) -> RegistrationOutcome:
        """Sign up (or sign back in) with a college email."""
        email, name, linkedin = (email or "").strip(), (name or "").strip(), (linkedin or "").strip()
        validate_registration(email, name, linkedin)
        domain = extract_domain(email)
        if domain is None:
            raise ValidationError("email", "Invalid email")
        key = to_key(domain)
        pending = PendingRegistration(email, name, linkedin, domain, key)

        with self._lock:
            if key not in self.state.colleges:
                return RegistrationOutcome("college_required", college_key=key, pending=pending)
            return self._register_pending(pending)

    def _register_pending(self, pending: PendingRegistration) -> RegistrationOutcome:
        state, result = self._dispatch(RegisterStudentEvent(
            timestamp=self._now(),
            payload={
                "college_key": pending.college_key,
                "student_id": self._next_id(),
                "name": pending.name,
                "email": pending.email,
                "linkedin": pending.linkedin,
                "domain": pending.domain,
            },
        ))
        self._remember(pending.college_key, result.student_id)
        student = state.colleges[pending.college_key].find_student(result.student_id)
        status = "logged_in" if result.noop else "registered"
        LOGGER.info("Student %s %s in %s", result.student_id, status, pending.college_key)
        return RegistrationOutcome(status, college_key=pending.college_key, student=student)

    def create_college(self, college_name: str, pending: PendingRegistration) -> RegistrationOutcome:
        """Create the college for a pending registration, registrant included."""
        name = validate_college_name(college_name)
        with self._lock:
            if pending.college_key in self.state.colleges:
                # Someone else created it meanwhile; join that one instead.
                return self._register_pending(pending)
            student_id = self._next_id()
            state, result = self._dispatch(CreateCollegeEvent(
                timestamp=self._now(),
                payload={
                    "college_key": pending.college_key,
                    "college_name": name,
                    "domain": pending.domain,
                    "student_id": student_id,
                    "name": pending.name,
                    "email": pending.email,
                    "linkedin": pending.linkedin,
                },
            ))
            self._remember(pending.college_key, student_id)
            LOGGER.info("College %s created by %s", pending.college_key, student_id)
            return RegistrationOutcome(
                "college_created",
                college_key=pending.college_key,
                student=state.colleges[pending.college_key].find_student(student_id),
            )

    def add_company_visit(
        self,
        college_key: str,
        actor_id: Any,
        name: str,
        visit_date: Optional[str] = None,
        job_roles: Optional[object] = None,
        total_selections: Optional[int] = None,
        self_selected: bool = False,
    ) -> CompanyVisit:
        name = validate_company_name(name)
        roles = parse_job_roles(job_roles)
        total = validate_total_selections(total_selections)
        with self._lock:
            company_id = self._next_id()
            state, _ = self._dispatch(AddCompanyVisitEvent(
                timestamp=self._now(),
                payload={
                    "college_key": college_key,
                    "company_id": company_id,
                    "actor_id": actor_id,
                    "name": name,
                    "visit_date": (visit_date or "").strip() or None,
                    "job_roles": roles,
                    "total_selections": total,
                    "self_selected": self_selected,
                },
            ))
            if self_selected:
                self._refresh_current(college_key, actor_id)
            return state.colleges[college_key].companies[-1]

    def toggle_selection(self, college_key: str, actor_id: Any, company_name: str) -> TransitionResult:
        with self._lock:
            _, result = self._dispatch(ToggleSelectionEvent(
                timestamp=self._now(),
                payload={
                    "college_key": college_key,
                    "actor_id": actor_id,
                    "company_name": company_name,
                },
            ))
            if not result.noop:
                self._refresh_current(college_key, actor_id)
            return result

    def search(self, query: str, mode: str = "college"):
        with self._lock:
            return _search(self.state, query, mode)

    def find_student(self, student_id: Any) -> Optional[Tuple[str, Student]]:
        with self._lock:
            return self.state.find_student(student_id)

    def selection_details(self, student_id: Any) -> List[SelectionDetail]:
        """Each selection of the student joined with its company's visit details."""
        with self._lock:
            found = self.state.find_student(student_id)
            if found is None:
                raise UnknownStudentError(student_id)
            key, _ = found
            college = self.state.colleges.get(key)
            if college is None:
                raise UnknownCollegeError(key)
            details = []
            for selection in college.selections_for(student_id):
                company = college.find_company(selection.company_name)
                details.append(SelectionDetail(
                    company_name=selection.company_name,
                    selected_at=selection.selected_at,
                    company_id=company.id if company else None,
                    visit_date=company.visit_date if company else None,
                    job_roles=list(company.job_roles or []) if company else [],
                ))
            return details
