from typing import List, Optional, Sequence

from fastapi import Depends
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from careerpath.db.models import (
    ApprovalStatus,
    Company,
    Job,
    Notification,
    NotificationKind,
    Student,
)
from careerpath.db.session import get_sync_session
from careerpath.db.store import EntityStore
from careerpath.services.eligibility import meets_job_profile
from careerpath.utils.datetime_utils import naive_utc_now, utc_today
from careerpath.utils.errors import AuthorizationError, StoreWriteError
from careerpath.utils.logging import get_logger

logger = get_logger()

INTERVIEW_INVITATION_TEMPLATE = (
    "You have been invited for an interview for the position of {job_title} at "
    "{company_name}. The interview is scheduled for {date} at {time} at {place}. "
    "Please bring hard copies of your documents and transcripts."
)
JOB_MATCH_TEMPLATE = (
    "New job match: {job_title} at {company_name}{location}. "
    "Your profile meets the requirements for this position."
)


def is_job_open(job: Job) -> bool:
    if not job.is_open:
        return False
    return job.deadline is None or job.deadline >= utc_today()


class NotificationEmitter:
    """Creates notifications as side effects. Records are never edited apart
    from the read flag."""

    def __init__(self, db_session: Session):
        self.db = db_session
        self.store = EntityStore(db_session)

    async def emit_interview_invitation(
        self,
        student_id: str,
        job: Job,
        company: Company,
        date: str,
        time: str,
        place: str,
    ) -> Notification:
        message = INTERVIEW_INVITATION_TEMPLATE.format(
            job_title=job.title,
            company_name=company.name,
            date=date,
            time=time,
            place=place,
        )
        notification = self.store.create(
            Notification,
            student_id=student_id,
            type=NotificationKind.INTERVIEW_INVITATION,
            message=message,
            job_id=job.id,
            company_id=company.id,
        )
        logger.info(
            f"Interview invitation {notification.id} sent to student {student_id} for job {job.id}"
        )
        return notification

    async def run_job_match_check(self, student_id: str) -> List[Notification]:
        """Notify the student about every approved, open job they now qualify
        for and have not been told about before."""
        student = self.store.get(Student, student_id)
        approved_companies = {
            company.id: company
            for company in self.store.list(Company, status=ApprovalStatus.APPROVED)
        }
        if not approved_companies:
            return []

        jobs = self.store.list(
            Job,
            order_by_created=True,
            company_id=list(approved_companies),
            is_open=True,
        )
        already_notified = {
            n.job_id
            for n in self.store.list(
                Notification, student_id=student.id, type=NotificationKind.JOB_MATCH
            )
        }

        created: List[Notification] = []
        for job in jobs:
            if job.id in already_notified or not is_job_open(job):
                continue
            if not meets_job_profile(student, job):
                continue

            company = approved_companies[job.company_id]
            notification = self.store.create(
                Notification,
                student_id=student.id,
                type=NotificationKind.JOB_MATCH,
                message=JOB_MATCH_TEMPLATE.format(
                    job_title=job.title,
                    company_name=company.name,
                    location=f" ({job.location})" if job.location else "",
                ),
                job_id=job.id,
                company_id=company.id,
            )
            already_notified.add(job.id)
            created.append(notification)

        if created:
            logger.info(f"Created {len(created)} job match notification(s) for student {student.id}")
        else:
            logger.debug(f"No new job matches for student {student.id}")
        return created

    async def list_notifications(
        self, student_id: str, unread_only: bool = False, limit: Optional[int] = None
    ) -> Sequence[Notification]:
        filters = {"student_id": student_id}
        if unread_only:
            filters["read"] = False
        return self.store.list(
            Notification, order_by_created=True, descending=True, limit=limit, **filters
        )

    async def mark_read(self, student_id: str, notification_id: str) -> Notification:
        notification = self.store.get(Notification, notification_id)
        if notification.student_id != student_id:
            raise AuthorizationError(
                "Notification belongs to another student", "NOT_NOTIFICATION_OWNER"
            )
        if notification.read:
            return notification
        return self.store.update(notification, read=True)

    async def mark_all_read(self, student_id: str) -> int:
        try:
            result = self.db.execute(
                update(Notification)
                .where(Notification.student_id == student_id)
                .where(Notification.read == False)  # noqa: E712
                .values(read=True, updated_at=naive_utc_now())
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to mark notifications read for student {student_id}: {e}")
            raise StoreWriteError("Failed to mark notifications as read") from e

        logger.info(f"Marked {result.rowcount} notification(s) read for student {student_id}")
        return result.rowcount


def get_notification_emitter(
    db_session: Session = Depends(get_sync_session),
) -> NotificationEmitter:
    """Dependency function to get NotificationEmitter instance"""
    return NotificationEmitter(db_session)
