from datetime import timedelta

import pytest

from careerpath.db.models import (
    ApprovalStatus,
    Notification,
    NotificationKind,
    RegistrationStatus,
    RegistrationType,
)
from careerpath.db.store import EntityStore
from careerpath.services.job_application_service import JobApplicationService
from careerpath.services.qualification import QualificationTier
from careerpath.utils.datetime_utils import utc_today
from careerpath.utils.errors import (
    AuthorizationError,
    DuplicateApplicationError,
    IneligibleError,
)

pytestmark = pytest.mark.integration


class TestApplyToJob:
    @pytest.mark.asyncio
    async def test_creates_pending_job_registration(self, factory, student):
        job = factory.job(factory.company())

        registration = await JobApplicationService(factory.session).apply_to_job(
            student.id, job.id
        )

        assert registration.type == RegistrationType.JOB
        assert registration.status == RegistrationStatus.PENDING
        assert registration.company_id == job.company_id

    @pytest.mark.asyncio
    async def test_duplicate_job_application(self, factory, student):
        job = factory.job(factory.company())
        service = JobApplicationService(factory.session)
        await service.apply_to_job(student.id, job.id)

        with pytest.raises(DuplicateApplicationError):
            await service.apply_to_job(student.id, job.id)

    @pytest.mark.asyncio
    async def test_requires_skill_overlap(self, factory):
        student = factory.student(skills=["Welding"])
        job = factory.job(factory.company())

        with pytest.raises(IneligibleError) as exc_info:
            await JobApplicationService(factory.session).apply_to_job(student.id, job.id)
        assert exc_info.value.reason_code == "no_matching_skill"

    @pytest.mark.asyncio
    async def test_unapproved_company_or_closed_job_refuses(self, factory, student):
        suspended = factory.company(name="Closedco", status=ApprovalStatus.SUSPENDED)
        expired = factory.job(
            factory.company(name="Opencorp"), deadline=utc_today() - timedelta(days=1)
        )
        service = JobApplicationService(factory.session)

        with pytest.raises(IneligibleError):
            await service.apply_to_job(student.id, factory.job(suspended).id)
        with pytest.raises(IneligibleError):
            await service.apply_to_job(student.id, expired.id)


class TestJobApplicants:
    @pytest.mark.asyncio
    async def test_scores_are_computed_at_read_time(self, factory):
        company = factory.company()
        job = factory.job(company, marks=60, min_experience_years=2, skills=["JS", "Go"])
        student = factory.student(
            marks=70, experience_years=3, documents=["a", "b"], skills=["JS", "SQL"]
        )
        factory.job_registration(student, job)
        service = JobApplicationService(factory.session)

        [applicant] = await service.list_job_applicants(company.id)
        assert applicant.qualification.score == 90
        assert applicant.qualification.tier == QualificationTier.INTERVIEW

        EntityStore(factory.session).update(student, documents=[])
        [applicant] = await service.list_job_applicants(company.id)
        assert applicant.qualification.score == 70
        assert applicant.qualification.tier == QualificationTier.QUALIFIED


class TestInviteToInterview:
    @pytest.mark.asyncio
    async def test_invitation_message_and_status_unchanged(self, factory, student):
        company = factory.company(name="Econet")
        job = factory.job(company, title="Junior Developer")
        registration = factory.job_registration(student, job)

        notification = await JobApplicationService(factory.session).invite_to_interview(
            company.id, registration.id, date="2025-03-01", time="10:00", place="Maseru Office"
        )

        assert notification.type == NotificationKind.INTERVIEW_INVITATION
        assert notification.student_id == student.id
        assert notification.message == (
            "You have been invited for an interview for the position of Junior Developer "
            "at Econet. The interview is scheduled for 2025-03-01 at 10:00 at Maseru Office. "
            "Please bring hard copies of your documents and transcripts."
        )
        stored = EntityStore(factory.session).list(Notification, student_id=student.id)
        assert len(stored) == 1
        assert EntityStore(factory.session).get(
            type(registration), registration.id
        ).status == RegistrationStatus.PENDING

    @pytest.mark.asyncio
    async def test_not_qualified_applicant_cannot_be_invited(self, factory):
        company = factory.company()
        job = factory.job(company, marks=90)
        weak = factory.student(marks=50, experience_years=0, documents=[], skills=["JS"])
        registration = factory.job_registration(weak, job)

        with pytest.raises(IneligibleError) as exc_info:
            await JobApplicationService(factory.session).invite_to_interview(
                company.id, registration.id, date="d", time="t", place="p"
            )
        assert exc_info.value.reason_code == "not_qualified"

    @pytest.mark.asyncio
    async def test_interview_tier_is_not_an_invite_trigger(self, factory):
        company = factory.company()
        job = factory.job(company)
        strong = factory.student(documents=["cv.pdf", "transcript.pdf"])
        registration = factory.job_registration(strong, job)

        with pytest.raises(IneligibleError) as exc_info:
            await JobApplicationService(factory.session).invite_to_interview(
                company.id, registration.id, date="d", time="t", place="p"
            )
        assert exc_info.value.reason_code == "interview"
        assert EntityStore(factory.session).list(Notification, student_id=strong.id) == []

    @pytest.mark.asyncio
    async def test_other_company_cannot_invite(self, factory, student):
        job = factory.job(factory.company(name="Owner"))
        registration = factory.job_registration(student, job)
        intruder = factory.company(name="Intruder")

        with pytest.raises(AuthorizationError):
            await JobApplicationService(factory.session).invite_to_interview(
                intruder.id, registration.id, date="d", time="t", place="p"
            )
