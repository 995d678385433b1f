from typing import Iterable, List, Optional, Sequence

from fastapi import Depends
from sqlalchemy.orm import Session

from careerpath.db.models import (
    GradeSnapshot,
    Institution,
    Registration,
    Student,
)
from careerpath.db.session import get_sync_session
from careerpath.db.store import EntityStore
from careerpath.services.lifecycle_service import LifecycleService
from careerpath.utils.errors import (
    BusinessLogicError,
    DuplicateRecordError,
)
from careerpath.utils.logging import get_logger
from careerpath.utils.string_utils import clean_labels

logger = get_logger()


class StudentService:
    """Service for the applicant's own profile, grades and registrations"""

    def __init__(self, db_session: Session):
        self.db = db_session
        self.store = EntityStore(db_session)
        self.lifecycle = LifecycleService(db_session)

    async def enter_grades(
        self,
        student_id: str,
        institution_id: str,
        marks: float,
        skills: Iterable[str],
    ) -> GradeSnapshot:
        """Record the grades used for every application at this institution.

        Written once per institution and frozen afterwards.
        """
        student = self.store.get(Student, student_id)
        institution = self.store.get(Institution, institution_id)

        existing = self.store.list(
            GradeSnapshot, limit=1, student_id=student.id, institution_id=institution.id
        )
        if existing:
            raise BusinessLogicError(
                "Grades were already submitted for this institution",
                "GRADES_ALREADY_SUBMITTED",
            )

        try:
            snapshot = self.store.create(
                GradeSnapshot,
                student_id=student.id,
                institution_id=institution.id,
                marks=marks,
                skills=clean_labels(skills),
            )
        except DuplicateRecordError:
            raise BusinessLogicError(
                "Grades were already submitted for this institution",
                "GRADES_ALREADY_SUBMITTED",
            )

        if not student.grades_submitted:
            self.store.update(student, grades_submitted=True)

        logger.info(f"Student {student.id} entered grades for institution {institution.id}")
        return snapshot

    async def update_profile(
        self,
        student_id: str,
        name: Optional[str] = None,
        marks: Optional[float] = None,
        skills: Optional[Iterable[str]] = None,
        experience_years: Optional[int] = None,
    ) -> Student:
        student = self.store.get(Student, student_id)
        changes = {}
        if name is not None:
            changes["name"] = name.strip()
        if marks is not None:
            changes["marks"] = marks
        if skills is not None:
            changes["skills"] = clean_labels(skills)
        if experience_years is not None:
            changes["experience_years"] = experience_years

        if not changes:
            return student

        student = self.store.update(student, **changes)
        logger.info(f"Student {student.id} updated profile fields: {sorted(changes)}")
        return student

    async def add_document(self, student_id: str, url: str) -> Student:
        student = self.store.get(Student, student_id)
        url = url.strip()
        documents: List[str] = list(student.documents or [])
        if url in documents:
            raise BusinessLogicError(
                "Document already uploaded", "DOCUMENT_ALREADY_EXISTS"
            )

        documents.append(url)
        return self.store.update(student, documents=documents)

    async def list_registrations(self, student_id: str) -> Sequence[Registration]:
        """All of the student's registrations, newest first, with the
        per-institution cap enforced before reading."""
        student = self.store.get(Student, student_id)
        institution_ids = {
            r.institution_id
            for r in self.store.list(Registration, student_id=student.id)
            if r.institution_id
        }
        for institution_id in sorted(institution_ids):
            await self.lifecycle.enforce_application_cap(student.id, institution_id)

        return self.store.list(
            Registration, order_by_created=True, descending=True, student_id=student.id
        )


def get_student_service(
    db_session: Session = Depends(get_sync_session),
) -> StudentService:
    """Dependency function to get StudentService instance"""
    return StudentService(db_session)
