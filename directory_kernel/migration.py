"""
Directory Kernel — Legacy Data Migration

Two raw-document rewrites, both pure (the input is deep-copied):

  migrate_legacy_keys   colleges once stored under dotted domains are
                        moved to their underscore key
  repair_structure      colleges without a ``companies`` array and
                        students without a ``selections`` array get
                        empty ones
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Mapping, Tuple

from .domain_key import is_legacy_key, to_key


def migrate_legacy_keys(document: Mapping[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """
    Return ``(migrated, rewritten_keys)``. Keys are visited in document
    order; when a legacy key and a current key collide, the later one wins.
    """
    migrated: Dict[str, Any] = {}
    rewritten: List[str] = []
    for key, value in document.items():
        if is_legacy_key(key):
            rewritten.append(key)
            migrated[to_key(key)] = copy.deepcopy(value)
        else:
            migrated[key] = copy.deepcopy(value)
    return migrated, rewritten


def repair_structure(document: Mapping[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """Return ``(repaired, fixes)``; *fixes* is empty when nothing changed."""
    repaired = copy.deepcopy(dict(document))
    fixes: List[str] = []
    for college in repaired.values():
        if not isinstance(college, dict):
            continue
        if college.get("companies") is None:
            college["companies"] = []
            fixes.append(f"Added companies array to {college.get('name', '?')}")
        students = college.get("students")
        if isinstance(students, list):
            for student in students:
                if isinstance(student, dict) and student.get("selections") is None:
                    student["selections"] = []
                    fixes.append(
                        f"Added selections array to student: {student.get('name', '?')}"
                    )
    return repaired, fixes
