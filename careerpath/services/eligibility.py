"""
Application eligibility rules.

Pure functions over already-loaded records: nothing here touches the session
or raises. Callers turn an ineligible result into the matching error.
"""

import enum
from dataclasses import dataclass
from typing import Iterable, Optional

from careerpath.db.models import (
    Course,
    GradeSnapshot,
    Job,
    Registration,
    RegistrationType,
    Student,
    TERMINAL_NEGATIVE_STATUSES,
)
from careerpath.utils.string_utils import normalize_label, normalize_labels

MAX_APPLICATIONS_PER_INSTITUTION = 2


class IneligibilityReason(enum.Enum):
    APPLICATION_LIMIT = "application_limit"
    ALREADY_APPLIED = "already_applied"
    GRADES_MISSING = "grades_missing"
    MISSING_SUBJECTS = "missing_subjects"
    MARKS_TOO_LOW = "marks_too_low"
    NO_MATCHING_SKILL = "no_matching_skill"


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    reason: str = ""
    reason_code: Optional[IneligibilityReason] = None

    @classmethod
    def ok(cls) -> "EligibilityResult":
        return cls(eligible=True)

    @classmethod
    def fail(cls, code: IneligibilityReason, reason: str) -> "EligibilityResult":
        return cls(eligible=False, reason=reason, reason_code=code)


def _format_marks(value: float) -> str:
    return f"{value:g}"


def count_active_at_institution(
    registrations: Iterable[Registration], institution_id: str
) -> int:
    """Course registrations at the institution that still hold an application slot."""
    return sum(
        1
        for r in registrations
        if r.type == RegistrationType.COURSE
        and r.institution_id == institution_id
        and r.status not in TERMINAL_NEGATIVE_STATUSES
    )


def can_apply_course(
    student: Student,
    course: Course,
    existing_registrations: Iterable[Registration],
    snapshot: Optional[GradeSnapshot] = None,
) -> EligibilityResult:
    """Whether ``student`` may apply for ``course``.

    Compares against the grades the student entered for the course's
    institution before applying there, never the live profile. ``snapshot``
    defaults to that per-institution snapshot.
    """
    registrations = list(existing_registrations)

    if (
        count_active_at_institution(registrations, course.institution_id)
        >= MAX_APPLICATIONS_PER_INSTITUTION
    ):
        return EligibilityResult.fail(
            IneligibilityReason.APPLICATION_LIMIT,
            f"Max {MAX_APPLICATIONS_PER_INSTITUTION} courses per institution reached.",
        )

    if any(r.course_id == course.id for r in registrations):
        return EligibilityResult.fail(
            IneligibilityReason.ALREADY_APPLIED, "Already applied."
        )

    if snapshot is None:
        snapshot = student.entered_grades_for(course.institution_id)
    if snapshot is None:
        return EligibilityResult.fail(
            IneligibilityReason.GRADES_MISSING, "Please enter your grades first."
        )

    entered_subjects = normalize_labels(snapshot.skills)
    missing = [
        subject
        for subject in course.required_subjects or []
        if normalize_label(subject) and normalize_label(subject) not in entered_subjects
    ]
    if missing:
        return EligibilityResult.fail(
            IneligibilityReason.MISSING_SUBJECTS,
            f"Missing skills: {', '.join(s.strip() for s in missing)}",
        )

    min_marks = course.min_marks or 0
    entered_marks = snapshot.marks or 0
    if entered_marks < min_marks:
        return EligibilityResult.fail(
            IneligibilityReason.MARKS_TOO_LOW,
            f"Marks too low: need {_format_marks(min_marks)}, have {_format_marks(entered_marks)}",
        )

    return EligibilityResult.ok()


def has_skill_overlap(student_skills: Iterable[str], job_skills: Iterable[str]) -> bool:
    return bool(normalize_labels(student_skills) & normalize_labels(job_skills))


def meets_job_profile(student: Student, job: Job) -> bool:
    """Live-profile criteria shared by job applications and job-match checks."""
    return has_skill_overlap(student.skills, job.skills) and (student.marks or 0) >= (
        job.marks or 0
    )


def can_apply_job(
    student: Student, job: Job, existing_registrations: Iterable[Registration]
) -> EligibilityResult:
    """Whether ``student`` may apply for ``job``, judged on the live profile."""
    if any(r.job_id == job.id for r in existing_registrations):
        return EligibilityResult.fail(
            IneligibilityReason.ALREADY_APPLIED, "Already applied for this job!"
        )

    if not has_skill_overlap(student.skills, job.skills):
        return EligibilityResult.fail(
            IneligibilityReason.NO_MATCHING_SKILL,
            "You do not have the required skills.",
        )

    if (student.marks or 0) < (job.marks or 0):
        return EligibilityResult.fail(
            IneligibilityReason.MARKS_TOO_LOW,
            "Your marks do not meet the minimum requirement.",
        )

    return EligibilityResult.ok()
