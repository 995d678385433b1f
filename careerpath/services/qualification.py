import enum
from dataclasses import dataclass

from careerpath.db.models import Job, Student
from careerpath.utils.string_utils import normalize_labels

MARKS_POINTS = 40
POINTS_PER_UNIT = 10
INTERVIEW_THRESHOLD = 80
QUALIFIED_THRESHOLD = 60


class QualificationTier(enum.Enum):
    NOT_QUALIFIED = "not_qualified"
    QUALIFIED = "qualified"
    INTERVIEW = "interview"


@dataclass(frozen=True)
class QualificationResult:
    score: int
    tier: QualificationTier

    @property
    def can_be_invited(self) -> bool:
        """Only the qualified tier triggers an interview invitation."""
        return self.tier == QualificationTier.QUALIFIED


def tier_for(score: int) -> QualificationTier:
    if score >= INTERVIEW_THRESHOLD:
        return QualificationTier.INTERVIEW
    if score >= QUALIFIED_THRESHOLD:
        return QualificationTier.QUALIFIED
    return QualificationTier.NOT_QUALIFIED


def score(student: Student, job: Job) -> QualificationResult:
    """Fit of a job applicant. Computed on every read and never stored, so
    profile or document changes show up in all pending applications at once."""
    total = MARKS_POINTS if (student.marks or 0) >= (job.marks or 0) else 0
    total += (
        min(student.experience_years or 0, job.min_experience_years or 0)
        * POINTS_PER_UNIT
    )
    total += len(student.documents or []) * POINTS_PER_UNIT
    total += (
        len(normalize_labels(student.skills) & normalize_labels(job.skills))
        * POINTS_PER_UNIT
    )
    return QualificationResult(score=int(total), tier=tier_for(int(total)))
