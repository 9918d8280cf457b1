"""
Directory Kernel v1.0
Deterministic, in-memory, event-driven college directory kernel.
"""

from .domain_types import (
    College, CompanySelection, CompanyVisit, DirectoryState, Student,
    TransitionResult,
)
from .domain_key import to_key, is_legacy_key, extract_domain
from .events import (
    BaseEvent,
    RegisterStudentEvent,
    CreateCollegeEvent,
    AddCompanyVisitEvent,
    ToggleSelectionEvent,
)
from .engine import DirectoryEngine
from .transitions import (
    DuplicateCollegeError,
    DuplicateCompanyError,
    UnknownCollegeError,
    UnknownStudentError,
    apply_event,
)
from .invariants import InvariantViolationError, validate_invariants
from .validation import ValidationError, validate_registration
from .wire import DecodeError, decode_directory, encode_directory
from .search import CompanySearchResult, search
from .stats import DirectoryStats, compute_stats
from .migration import migrate_legacy_keys, repair_structure

__all__ = [
    "College",
    "CompanySelection",
    "CompanyVisit",
    "DirectoryState",
    "Student",
    "TransitionResult",
    "to_key",
    "is_legacy_key",
    "extract_domain",
    "BaseEvent",
    "RegisterStudentEvent",
    "CreateCollegeEvent",
    "AddCompanyVisitEvent",
    "ToggleSelectionEvent",
    "DirectoryEngine",
    "DuplicateCollegeError",
    "DuplicateCompanyError",
    "UnknownCollegeError",
    "UnknownStudentError",
    "apply_event",
    "InvariantViolationError",
    "validate_invariants",
    "ValidationError",
    "validate_registration",
    "DecodeError",
    "decode_directory",
    "encode_directory",
    "CompanySearchResult",
    "search",
    "DirectoryStats",
    "compute_stats",
    "migrate_legacy_keys",
    "repair_structure",
]
