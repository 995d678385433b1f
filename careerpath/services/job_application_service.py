from dataclasses import dataclass
from typing import List

from fastapi import Depends
from sqlalchemy.orm import Session

from careerpath.db.models import (
    ApprovalStatus,
    Company,
    Job,
    Notification,
    Registration,
    RegistrationStatus,
    RegistrationType,
    Student,
)
from careerpath.db.session import get_sync_session
from careerpath.db.store import EntityStore
from careerpath.services.eligibility import IneligibilityReason, can_apply_job
from careerpath.services.notifications.notification_emitter import (
    NotificationEmitter,
    is_job_open,
)
from careerpath.services.qualification import QualificationResult, score
from careerpath.utils.errors import (
    AuthorizationError,
    BusinessLogicError,
    DuplicateApplicationError,
    DuplicateRecordError,
    IneligibleError,
)
from careerpath.utils.logging import get_logger

logger = get_logger()


@dataclass
class JobApplicant:
    registration: Registration
    student: Student
    job: Job
    qualification: QualificationResult


class JobApplicationService:
    """Job applications stay pending; fit is scored on every read."""

    def __init__(self, db_session: Session):
        self.db = db_session
        self.store = EntityStore(db_session)
        self.emitter = NotificationEmitter(db_session)

    async def apply_to_job(self, student_id: str, job_id: str) -> Registration:
        student = self.store.get(Student, student_id)
        job = self.store.get(Job, job_id)
        company = self.store.get(Company, job.company_id)

        if company.status != ApprovalStatus.APPROVED or not is_job_open(job):
            raise IneligibleError(
                "This job is not accepting applications.", "job_not_open"
            )

        existing = self.store.list(
            Registration, student_id=student.id, type=RegistrationType.JOB
        )
        result = can_apply_job(student, job, existing)
        if not result.eligible:
            if result.reason_code == IneligibilityReason.ALREADY_APPLIED:
                raise DuplicateApplicationError(result.reason)
            raise IneligibleError(result.reason, result.reason_code.value)

        try:
            registration = self.store.create(
                Registration,
                student_id=student.id,
                type=RegistrationType.JOB,
                status=RegistrationStatus.PENDING,
                job_id=job.id,
                company_id=company.id,
            )
        except DuplicateRecordError:
            raise DuplicateApplicationError("Already applied for this job!")

        logger.info(f"Student {student.id} applied for job {job.id}")
        return registration

    async def list_job_applicants(self, company_id: str) -> List[JobApplicant]:
        """Applicants for all of the company's jobs, oldest first, each scored now."""
        self.store.get(Company, company_id)
        registrations = self.store.list(
            Registration,
            order_by_created=True,
            company_id=company_id,
            type=RegistrationType.JOB,
        )

        jobs = {}
        students = {}
        applicants: List[JobApplicant] = []
        for registration in registrations:
            if registration.job_id not in jobs:
                jobs[registration.job_id] = self.store.get(Job, registration.job_id)
            if registration.student_id not in students:
                students[registration.student_id] = self.store.get(
                    Student, registration.student_id
                )
            student = students[registration.student_id]
            job = jobs[registration.job_id]
            applicants.append(
                JobApplicant(
                    registration=registration,
                    student=student,
                    job=job,
                    qualification=score(student, job),
                )
            )
        return applicants

    async def invite_to_interview(
        self,
        company_id: str,
        registration_id: str,
        date: str,
        time: str,
        place: str,
    ) -> Notification:
        """Send an interview invitation; the registration itself is left untouched."""
        registration = self.store.get(Registration, registration_id)
        if registration.type != RegistrationType.JOB:
            raise BusinessLogicError(
                "Interview invitations are only for job applications",
                "NOT_A_JOB_REGISTRATION",
            )
        if registration.company_id != company_id:
            raise AuthorizationError(
                "Registration belongs to another company", "NOT_REGISTRATION_OWNER"
            )

        company = self.store.get(Company, company_id)
        job = self.store.get(Job, registration.job_id)
        student = self.store.get(Student, registration.student_id)

        qualification = score(student, job)
        if not qualification.can_be_invited:
            raise IneligibleError(
                f"Only qualified applicants can be invited; applicant is "
                f"{qualification.tier.value} (score {qualification.score}).",
                qualification.tier.value,
            )

        return await self.emitter.emit_interview_invitation(
            student.id, job, company, date=date, time=time, place=place
        )


def get_job_application_service(
    db_session: Session = Depends(get_sync_session),
) -> JobApplicationService:
    """Dependency function to get JobApplicationService instance"""
    return JobApplicationService(db_session)
