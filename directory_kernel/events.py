"""
Directory Kernel — Event Definitions v1.0

Events are **pure data**. They carry intent and payload only.
They contain ZERO transition logic.

Identifiers and timestamps are assigned by the caller before dispatch so
that transitions stay deterministic.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict


@dataclass
class BaseEvent:
    """Base for all directory events — pure data container."""

    event_type: str = ""
    timestamp: str = ""
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def college_key(self) -> str:
        return self.payload.get("college_key", "")

    def to_dict(self) -> dict:
        return {
            "event_type": self.event_type,
            "timestamp": self.timestamp,
            "payload": dict(self.payload),
        }


@dataclass
class RegisterStudentEvent(BaseEvent):
    """Append a student to an existing college, or log an existing one in."""

    event_type: str = "register_student"
    # payload keys: college_key, student_id, name, email, linkedin, domain


@dataclass
class CreateCollegeEvent(BaseEvent):
    """Create a college whose only student is the registrant."""

    event_type: str = "create_college"
    # payload keys: college_key, college_name, domain, student_id, name,
    #               email, linkedin


@dataclass
class AddCompanyVisitEvent(BaseEvent):
    """Record a company visit, optionally selecting the actor at once."""

    event_type: str = "add_company_visit"
    # payload keys: college_key, company_id, actor_id, name, visit_date,
    #               job_roles, total_selections, self_selected


@dataclass
class ToggleSelectionEvent(BaseEvent):
    """Flip the actor's selection for a named company."""

    event_type: str = "toggle_selection"
    # payload keys: college_key, actor_id, company_name
