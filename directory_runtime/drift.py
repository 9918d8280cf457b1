# file: directory_runtime/drift.py
"""
Drift Comparator — pure function, no side effects.

Compares the aggregate counts of two directory documents and classifies
the change:

    data_loss   student drop > DATA_LOSS_STUDENT_THRESHOLD
                or college drop > DATA_LOSS_COLLEGE_THRESHOLD
    decreased   any other drop in students or colleges
    increased   more students or colleges, nothing dropped
    unchanged   otherwise (company-only changes land here)
"""

from __future__ import annotations

from dataclasses import dataclass

from directory_kernel.constants import (
    DATA_LOSS_COLLEGE_THRESHOLD,
    DATA_LOSS_STUDENT_THRESHOLD,
)
from directory_kernel.stats import DirectoryStats

DATA_LOSS = "data_loss"
DECREASED = "decreased"
INCREASED = "increased"
UNCHANGED = "unchanged"


@dataclass(frozen=True)
class DriftReport:
    before: DirectoryStats
    after: DirectoryStats
    classification: str

    @property
    def student_loss(self) -> int:
        return self.before.students - self.after.students

    @property
    def college_loss(self) -> int:
        return self.before.colleges - self.after.colleges

    @property
    def company_loss(self) -> int:
        return self.before.companies - self.after.companies

    def to_dict(self) -> dict:
        return {
            "classification": self.classification,
            "before": self.before.to_dict(),
            "after": self.after.to_dict(),
            "student_delta": -self.student_loss,
            "college_delta": -self.college_loss,
            "company_delta": -self.company_loss,
        }


def compare_stats(
    before: DirectoryStats,
    after: DirectoryStats,
    *,
    student_threshold: int = DATA_LOSS_STUDENT_THRESHOLD,
    college_threshold: int = DATA_LOSS_COLLEGE_THRESHOLD,
) -> DriftReport:
    student_loss = before.students - after.students
    college_loss = before.colleges - after.colleges

    if student_loss > student_threshold or college_loss > college_threshold:
        classification = DATA_LOSS
    elif student_loss > 0 or college_loss > 0:
        classification = DECREASED
    elif after.students > before.students or after.colleges > before.colleges:
        classification = INCREASED
    else:
        classification = UNCHANGED
    return DriftReport(before=before, after=after, classification=classification)
