# file: directory_runtime/sheets_sync.py
"""
Spreadsheet Sync — one-way projection of the directory into a spreadsheet.

Every sync rebuilds the Students, Colleges and Companies tables from
scratch, overwrites them together with the Audit Log header in one batch,
then appends one audit row. Nothing is diffed; the append is the only
write that does not replace.

The spreadsheet client is duck-typed (see backend.sheets_client):
  values_batch_update(spreadsheet_id, data)
  values_append(spreadsheet_id, range_, values)
  get_spreadsheet(spreadsheet_id)
  batch_update(spreadsheet_id, requests)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from google.auth.exceptions import GoogleAuthError
from requests import RequestException

from directory_kernel.clock import iso_timestamp, utcnow
from directory_kernel.wire import as_list

from .document_store import DocumentStore

LOGGER = logging.getLogger(__name__)

STUDENTS_SHEET = "Students"
COLLEGES_SHEET = "Colleges"
COMPANIES_SHEET = "Companies"
AUDIT_SHEET = "Audit Log"

STUDENT_HEADERS = [
    "Student ID", "Name", "Email", "LinkedIn", "College Domain",
    "College Name", "Registered At", "Selections", "Last Updated",
]
COLLEGE_HEADERS = [
    "College Domain", "College Name", "Total Students", "Total Companies",
    "Created At", "Last Updated",
]
COMPANY_HEADERS = [
    "Company ID", "Company Name", "College Domain", "Added By", "Visit Date",
    "Selections", "Job Roles", "Added At", "Last Updated",
]
AUDIT_HEADERS = [
    "Timestamp", "Sync Number", "Students Count", "Colleges Count",
    "Companies Count", "Event Type",
]

INITIAL_SYNC = "Initial Sync"
AUTO_SYNC = "Auto Sync"
MANUAL_SYNC = "Manual Sync"

# Header row colours (RGB 0..1) per sheet
HEADER_COLOURS = {
    STUDENTS_SHEET: {"red": 0.2, "green": 0.4, "blue": 0.8},
    COLLEGES_SHEET: {"red": 0.2, "green": 0.6, "blue": 0.4},
    COMPANIES_SHEET: {"red": 0.8, "green": 0.4, "blue": 0.2},
    AUDIT_SHEET: {"red": 0.6, "green": 0.2, "blue": 0.8},
}


@dataclass
class SheetTables:
    students: List[List[Any]] = field(default_factory=lambda: [list(STUDENT_HEADERS)])
    colleges: List[List[Any]] = field(default_factory=lambda: [list(COLLEGE_HEADERS)])
    companies: List[List[Any]] = field(default_factory=lambda: [list(COMPANY_HEADERS)])

    @property
    def student_count(self) -> int:
        return len(self.students) - 1

    @property
    def college_count(self) -> int:
        return len(self.colleges) - 1

    @property
    def company_count(self) -> int:
        return len(self.companies) - 1


@dataclass(frozen=True)
class SyncResult:
    sync_number: int
    event_type: str
    timestamp: str
    students: int
    colleges: int
    companies: int


def _cell(value: Any) -> Any:
    return "" if value is None else value


def build_sheet_tables(document: Optional[Mapping[str, Any]], timestamp: str) -> SheetTables:
    """Flatten a raw directory document into the three data tables."""
    tables = SheetTables()
    for college in (document or {}).values():
        if not isinstance(college, Mapping):
            continue
        domain = college.get("domain") or ""
        college_name = college.get("name") or ""
        students = [s for s in as_list(college.get("students")) if isinstance(s, Mapping)]
        companies = [c for c in as_list(college.get("companies")) if isinstance(c, Mapping)]

        tables.colleges.append([
            domain,
            college_name,
            len(students),
            len(companies),
            college.get("createdAt") or "",
            timestamp,
        ])
        for student in students:
            tables.students.append([
                _cell(student.get("id")),
                student.get("name") or "",
                student.get("email") or "",
                student.get("linkedin") or "",
                student.get("collegeDomain") or domain,
                college_name,
                student.get("registeredAt") or "",
                len(as_list(student.get("selections"))),
                timestamp,
            ])
        for company in companies:
            tables.companies.append([
                _cell(company.get("id")),
                company.get("name") or "",
                domain,
                _cell(company.get("addedBy")),
                company.get("visitDate") or "",
                company.get("totalSelections") or 0,
                ", ".join(str(r) for r in as_list(company.get("jobRoles"))),
                company.get("addedAt") or "",
                timestamp,
            ])
    return tables


def header_format_requests(sheet_ids: Dict[str, int]) -> List[dict]:
    """repeatCell requests colouring row 1 of every sheet that exists."""
    requests = []
    for title, colour in HEADER_COLOURS.items():
        sheet_id = sheet_ids.get(title)
        if sheet_id is None:
            continue
        requests.append({
            "repeatCell": {
                "range": {"sheetId": sheet_id, "startRowIndex": 0, "endRowIndex": 1},
                "cell": {
                    "userEnteredFormat": {
                        "backgroundColor": dict(colour),
                        "textFormat": {
                            "foregroundColor": {"red": 1, "green": 1, "blue": 1},
                            "bold": True,
                        },
                        "horizontalAlignment": "CENTER",
                    }
                },
                "fields": "userEnteredFormat",
            }
        })
    return requests


class SheetsSync:
    """Pushes directory snapshots to one spreadsheet. Counts syncs per process."""

    def __init__(
        self,
        client: Any,
        spreadsheet_id: str,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._client = client
        self._spreadsheet_id = spreadsheet_id
        self._clock = clock
        self._lock = threading.Lock()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self.sync_count = 0
        self.last_sync_at: Optional[datetime] = None

    @property
    def spreadsheet_url(self) -> str:
        return f"https://docs.google.com/spreadsheets/d/{self._spreadsheet_id}"

    def sync(self, document: Optional[Mapping[str, Any]], event_type: Optional[str] = None) -> SyncResult:
        """Rebuild and overwrite all tables, then append one audit row."""
        with self._lock:
            now = self._clock()
            timestamp = iso_timestamp(now)
            sync_number = self.sync_count + 1
            if event_type is None:
                event_type = INITIAL_SYNC if sync_number == 1 else AUTO_SYNC

            tables = build_sheet_tables(document, timestamp)
            self._client.values_batch_update(self._spreadsheet_id, [
                {"range": f"{STUDENTS_SHEET}!A1", "values": tables.students},
                {"range": f"{COLLEGES_SHEET}!A1", "values": tables.colleges},
                {"range": f"{COMPANIES_SHEET}!A1", "values": tables.companies},
                {"range": f"{AUDIT_SHEET}!A1:F1", "values": [list(AUDIT_HEADERS)]},
            ])
            self._client.values_append(self._spreadsheet_id, f"{AUDIT_SHEET}!A:F", [[
                timestamp,
                sync_number,
                tables.student_count,
                tables.college_count,
                tables.company_count,
                event_type,
            ]])

            self.sync_count = sync_number
            self.last_sync_at = now
            LOGGER.info(
                "Sync #%d (%s): %d students, %d colleges, %d companies",
                sync_number, event_type,
                tables.student_count, tables.college_count, tables.company_count,
                extra={"sync_number": sync_number},
            )
            return SyncResult(
                sync_number, event_type, timestamp,
                tables.student_count, tables.college_count, tables.company_count,
            )

    def sheet_ids(self) -> Dict[str, int]:
        """Sheet title → sheetId, from the spreadsheet metadata."""
        metadata = self._client.get_spreadsheet(self._spreadsheet_id)
        ids = {}
        for sheet in metadata.get("sheets", []):
            props = sheet.get("properties", {})
            if "title" in props and "sheetId" in props:
                ids[props["title"]] = props["sheetId"]
        return ids

    def format_headers(self) -> int:
        """Colour the header rows. Returns how many sheets were formatted."""
        requests = header_format_requests(self.sheet_ids())
        if requests:
            self._client.batch_update(self._spreadsheet_id, requests)
            LOGGER.info("Applied colour formatting to %d header rows", len(requests))
        return len(requests)

    def manual_sync(self, document: Optional[Mapping[str, Any]]) -> SyncResult:
        result = self.sync(document, event_type=MANUAL_SYNC)
        self.format_headers()
        return result

    # ------------------------------------------------------------------
    # Watch mode
    # ------------------------------------------------------------------

    def watch(self, store: DocumentStore) -> None:
        """Sync on every store notification until stop() is called."""
        self._unsubscribe = store.subscribe(self._on_change, self._on_error)
        LOGGER.info("Watching %r; syncing to %s", store.path, self.spreadsheet_url)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_change(self, document: Optional[dict]) -> None:
        try:
            self.sync(document)
        except (RequestException, GoogleAuthError):
            # A failed sync must not kill the watcher; the next change retries.
            LOGGER.exception("Sync error")

    def _on_error(self, exc: Exception) -> None:
        LOGGER.error("Store error while watching: %s", exc)
