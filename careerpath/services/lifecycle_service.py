from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from fastapi import Depends
from sqlalchemy.orm import Session

from careerpath.db.models import (
    ACTIVE_COURSE_STATUSES,
    TERMINAL_NEGATIVE_STATUSES,
    ApprovalStatus,
    Course,
    GradeSnapshot,
    Institution,
    Registration,
    RegistrationStatus,
    RegistrationType,
    Student,
    TransitionCause,
)
from careerpath.db.session import get_sync_session
from careerpath.db.store import EntityStore
from careerpath.services.eligibility import (
    MAX_APPLICATIONS_PER_INSTITUTION,
    EligibilityResult,
    IneligibilityReason,
    can_apply_course,
)
from careerpath.utils.datetime_utils import naive_utc_now
from careerpath.utils.errors import (
    AuthorizationError,
    BusinessLogicError,
    DuplicateApplicationError,
    DuplicateRecordError,
    IneligibleError,
    PublishedLockError,
    StoreWriteError,
)
from careerpath.utils.logging import get_logger

logger = get_logger()

# Re-read/compare-and-set rounds before giving up on a contended registration
MAX_TRANSITION_ATTEMPTS = 3


@dataclass
class CascadeReport:
    """Outcome of one exclusivity cascade run (institution or student initiated)."""

    anchor_registration_id: str
    removed: List[str] = field(default_factory=list)
    promoted: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


class LifecycleService:
    """Course registration state machine.

    Every multi-step operation is a loop of single-registration steps. Each
    step re-reads the registration, decides, and writes with a
    compare-and-set on the status it read; "already in the target state" is
    success. A failed step leaves every earlier step committed, so re-invoking
    the same operation resumes it.
    """

    def __init__(self, db_session: Session):
        self.db = db_session
        self.store = EntityStore(db_session)

    async def check_course_eligibility(
        self, student_id: str, course_id: str
    ) -> EligibilityResult:
        student = self.store.get(Student, student_id)
        course = self.store.get(Course, course_id)
        registrations = self._course_registrations_of(student.id)
        return can_apply_course(
            student, course, registrations, self._snapshot_for(student, course)
        )

    async def apply_to_course(self, student_id: str, course_id: str) -> Registration:
        """Create a pending course registration after the eligibility checks."""
        student = self.store.get(Student, student_id)
        course = self.store.get(Course, course_id)
        institution = self.store.get(Institution, course.institution_id)

        if institution.status != ApprovalStatus.APPROVED:
            raise IneligibleError(
                "This institution is not accepting applications.",
                "institution_not_approved",
            )

        registrations = self._course_registrations_of(student.id)
        result = can_apply_course(
            student, course, registrations, self._snapshot_for(student, course)
        )
        if not result.eligible:
            if result.reason_code == IneligibilityReason.ALREADY_APPLIED:
                raise DuplicateApplicationError(result.reason)
            raise IneligibleError(result.reason, result.reason_code.value)

        if institution.published and any(
            r.status == RegistrationStatus.ADMITTED for r in registrations
        ):
            raise PublishedLockError(
                "Admissions are published. Cannot apply for new courses."
            )

        try:
            registration = self.store.create(
                Registration,
                student_id=student.id,
                type=RegistrationType.COURSE,
                status=RegistrationStatus.PENDING,
                course_id=course.id,
                institution_id=institution.id,
            )
        except DuplicateRecordError:
            raise DuplicateApplicationError("Already applied.")

        logger.info(
            f"Student {student.id} applied for course {course.id} at institution {institution.id}"
        )

        # A concurrent application may have slipped past the limit check
        await self.enforce_application_cap(student.id, institution.id)
        return self.store.get(Registration, registration.id)

    async def set_status(
        self,
        registration_id: str,
        new_status: RegistrationStatus,
        actor_id: Optional[str] = None,
    ) -> Registration:
        """Institution staff decision on a course registration."""
        for attempt in range(MAX_TRANSITION_ATTEMPTS):
            registration = self.store.get(Registration, registration_id)
            if registration.type != RegistrationType.COURSE:
                raise BusinessLogicError(
                    "Job applications do not have status decisions",
                    "JOB_REGISTRATION_STATUS_IMMUTABLE",
                )

            institution = self.store.get(Institution, registration.institution_id)
            current = registration.status
            self._check_published_lock(institution, current, new_status)

            if current == new_status:
                logger.info(
                    f"Registration {registration.id} already {current.value}; resuming follow-up steps"
                )
                await self._after_transition(registration, actor_id)
                return self.store.get(Registration, registration.id)

            if current in TERMINAL_NEGATIVE_STATUSES:
                raise BusinessLogicError(
                    f"Registration is already {current.value}",
                    "INVALID_STATUS_TRANSITION",
                )

            if self.store.transition_status(
                registration.id,
                current,
                new_status,
                TransitionCause.STAFF_DECISION,
                actor_id=actor_id,
            ):
                logger.info(
                    f"Registration {registration.id}: {current.value} -> {new_status.value}"
                )
                registration = self.store.get(Registration, registration.id)
                await self._after_transition(registration, actor_id)
                return self.store.get(Registration, registration.id)

            logger.warning(
                f"Registration {registration.id} changed concurrently (attempt {attempt + 1}); re-reading"
            )

        raise StoreWriteError(
            f"Registration {registration_id} kept changing; retry the request",
            "CONCURRENT_MODIFICATION",
        )

    async def publish(
        self, institution_id: str, actor_id: Optional[str] = None
    ) -> Institution:
        """Finalize admissions. One-way; publishing again is a no-op."""
        institution = self.store.get(Institution, institution_id)
        if institution.published:
            logger.info(f"Institution {institution.id} already published")
            return institution

        institution = self.store.update(
            institution, published=True, published_at=naive_utc_now()
        )
        logger.info(f"Institution {institution.id} published admissions (by {actor_id})")
        return institution

    async def enforce_application_cap(
        self, student_id: str, institution_id: str
    ) -> Sequence[Registration]:
        """Reject every active registration past the cap, oldest kept first.

        Runs on reads so that writes racing past the eligibility check heal on
        the next evaluation.
        """
        registrations = self.store.list(
            Registration,
            order_by_created=True,
            student_id=student_id,
            institution_id=institution_id,
            type=RegistrationType.COURSE,
        )

        active_seen = 0
        healed = 0
        for registration in registrations:
            if registration.status not in ACTIVE_COURSE_STATUSES:
                continue
            active_seen += 1
            if active_seen <= MAX_APPLICATIONS_PER_INSTITUTION:
                continue

            previous = registration.status
            if self.store.transition_status(
                registration.id,
                previous,
                RegistrationStatus.REJECTED,
                TransitionCause.APPLICATION_CAP,
            ):
                healed += 1
            else:
                logger.debug(
                    f"Registration {registration.id} changed while enforcing cap; left for next read"
                )

        if not healed:
            return registrations

        logger.warning(
            f"Rejected {healed} registration(s) over the cap for student {student_id} at institution {institution_id}"
        )
        return self.store.list(
            Registration,
            order_by_created=True,
            student_id=student_id,
            institution_id=institution_id,
            type=RegistrationType.COURSE,
        )

    async def list_institution_applicants(
        self, institution_id: str
    ) -> Sequence[Registration]:
        self.store.get(Institution, institution_id)
        registrations = self.store.list(
            Registration,
            order_by_created=True,
            institution_id=institution_id,
            type=RegistrationType.COURSE,
        )

        active_per_student: Dict[str, int] = {}
        for registration in registrations:
            if registration.status in ACTIVE_COURSE_STATUSES:
                active_per_student[registration.student_id] = (
                    active_per_student.get(registration.student_id, 0) + 1
                )

        over_cap = [
            student_id
            for student_id, count in active_per_student.items()
            if count > MAX_APPLICATIONS_PER_INSTITUTION
        ]
        if not over_cap:
            return registrations

        for student_id in over_cap:
            await self.enforce_application_cap(student_id, institution_id)

        return self.store.list(
            Registration,
            order_by_created=True,
            institution_id=institution_id,
            type=RegistrationType.COURSE,
        )

    async def run_exclusivity_cascade(
        self, registration_id: str, actor_id: Optional[str] = None
    ) -> CascadeReport:
        """Remove the student's other course registrations after an admission
        and backfill each freed seat from its waitlist. Safe to re-run."""
        admitted = self.store.get(Registration, registration_id)
        if (
            admitted.type != RegistrationType.COURSE
            or admitted.status != RegistrationStatus.ADMITTED
        ):
            raise BusinessLogicError(
                "Only an admitted course registration triggers the exclusivity cascade",
                "REGISTRATION_NOT_ADMITTED",
            )
        return await self._run_cascade(
            admitted,
            TransitionCause.EXCLUSIVITY_CASCADE,
            actor_id=actor_id,
            keep_published_admissions=True,
        )

    async def choose_institution(
        self, student_id: str, registration_id: str
    ) -> CascadeReport:
        """Student keeps one admission and gives up every other course registration."""
        chosen = self.store.get(Registration, registration_id)
        if chosen.student_id != student_id:
            raise AuthorizationError(
                "Registration belongs to another student", "NOT_REGISTRATION_OWNER"
            )
        if (
            chosen.type != RegistrationType.COURSE
            or chosen.status != RegistrationStatus.ADMITTED
        ):
            raise BusinessLogicError(
                "You can only choose an institution that admitted you",
                "REGISTRATION_NOT_ADMITTED",
            )
        return await self._run_cascade(
            chosen,
            TransitionCause.STUDENT_CHOICE,
            actor_id=student_id,
            keep_published_admissions=False,
        )

    async def promote_waitlist(
        self,
        course_id: str,
        institution_id: str,
        source_registration_id: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> Optional[Registration]:
        """Move the earliest waiting registration of the scope to pending.

        With ``source_registration_id`` the promotion is tied to that freed
        seat; a seat that was already backfilled promotes nobody.
        """
        waiting = self.store.list(
            Registration,
            order_by_created=True,
            course_id=course_id,
            institution_id=institution_id,
            type=RegistrationType.COURSE,
            status=RegistrationStatus.WAITING,
        )
        for candidate in waiting:
            try:
                promoted = self.store.transition_status(
                    candidate.id,
                    RegistrationStatus.WAITING,
                    RegistrationStatus.PENDING,
                    TransitionCause.WAITLIST_PROMOTION,
                    source_registration_id=source_registration_id,
                    actor_id=actor_id,
                    promoted_for_registration_id=source_registration_id,
                )
            except DuplicateRecordError:
                logger.info(
                    f"Seat of registration {source_registration_id} was backfilled concurrently"
                )
                return None
            if promoted:
                logger.info(
                    f"Promoted registration {candidate.id} from the waitlist of course {course_id}"
                )
                return self.store.get(Registration, candidate.id)
            logger.debug(f"Registration {candidate.id} left the waitlist concurrently")

        logger.debug(f"No waiting registrations for course {course_id}")
        return None

    async def _after_transition(
        self, registration: Registration, actor_id: Optional[str]
    ) -> None:
        if registration.status == RegistrationStatus.ADMITTED:
            await self._run_cascade(
                registration,
                TransitionCause.EXCLUSIVITY_CASCADE,
                actor_id=actor_id,
                keep_published_admissions=True,
            )
        elif registration.status in TERMINAL_NEGATIVE_STATUSES:
            await self._promote_for_freed_seat(registration, actor_id)

    async def _promote_for_freed_seat(
        self, freed: Registration, actor_id: Optional[str] = None
    ) -> Optional[Registration]:
        """At most one promotion per freed registration, across retries."""
        already_promoted = self.store.list(
            Registration, limit=1, promoted_for_registration_id=freed.id
        )
        if already_promoted:
            logger.debug(f"Seat of registration {freed.id} was already backfilled")
            return None
        return await self.promote_waitlist(
            freed.course_id,
            freed.institution_id,
            source_registration_id=freed.id,
            actor_id=actor_id,
        )

    async def _run_cascade(
        self,
        anchor: Registration,
        cause: TransitionCause,
        actor_id: Optional[str],
        keep_published_admissions: bool,
    ) -> CascadeReport:
        report = CascadeReport(anchor_registration_id=anchor.id)
        siblings = self.store.list(
            Registration,
            order_by_created=True,
            exclude_ids=[anchor.id],
            student_id=anchor.student_id,
            type=RegistrationType.COURSE,
        )
        published: Dict[str, bool] = {}

        try:
            for sibling in siblings:
                await self._remove_sibling(
                    sibling,
                    anchor,
                    cause,
                    actor_id,
                    keep_published_admissions,
                    published,
                    report,
                )
        except StoreWriteError:
            logger.error(
                f"Cascade for registration {anchor.id} aborted after removing {len(report.removed)} "
                f"and promoting {len(report.promoted)}; re-run to resume"
            )
            raise

        logger.info(
            f"Cascade ({cause.value}) for registration {anchor.id}: removed={len(report.removed)} "
            f"promoted={len(report.promoted)} skipped={len(report.skipped)}"
        )
        return report

    async def _remove_sibling(
        self,
        sibling: Registration,
        anchor: Registration,
        cause: TransitionCause,
        actor_id: Optional[str],
        keep_published_admissions: bool,
        published: Dict[str, bool],
        report: CascadeReport,
    ) -> None:
        for _ in range(MAX_TRANSITION_ATTEMPTS):
            current = sibling.status

            if current == RegistrationStatus.REJECTED:
                report.skipped.append(sibling.id)
                return

            if current == RegistrationStatus.REMOVED:
                # Removed on an earlier, interrupted run: make sure its seat got backfilled
                promoted = await self._promote_for_freed_seat(sibling, actor_id)
                if promoted:
                    report.promoted.append(promoted.id)
                report.skipped.append(sibling.id)
                return

            if (
                keep_published_admissions
                and current == RegistrationStatus.ADMITTED
                and self._is_published(sibling.institution_id, published)
            ):
                logger.info(
                    f"Registration {sibling.id} is admitted at a published institution; left for the student's choice"
                )
                report.skipped.append(sibling.id)
                return

            if self.store.transition_status(
                sibling.id,
                current,
                RegistrationStatus.REMOVED,
                cause,
                source_registration_id=anchor.id,
                actor_id=actor_id,
            ):
                report.removed.append(sibling.id)
                logger.debug(
                    f"Removed registration {sibling.id} after admission {anchor.id}"
                )
                promoted = await self._promote_for_freed_seat(sibling, actor_id)
                if promoted:
                    report.promoted.append(promoted.id)
                return

            sibling = self.store.get(Registration, sibling.id)

        raise StoreWriteError(
            f"Registration {sibling.id} kept changing during the cascade; re-run to resume",
            "CONCURRENT_MODIFICATION",
        )

    def _is_published(self, institution_id: str, cache: Dict[str, bool]) -> bool:
        if institution_id not in cache:
            cache[institution_id] = self.store.get(Institution, institution_id).published
        return cache[institution_id]

    def _check_published_lock(
        self,
        institution: Institution,
        current: RegistrationStatus,
        new_status: RegistrationStatus,
    ) -> None:
        if not institution.published:
            return
        # After publishing, only confirming an admission is still possible
        if new_status == RegistrationStatus.ADMITTED and current in ACTIVE_COURSE_STATUSES:
            return
        raise PublishedLockError(
            "Admissions are published. Cannot change status from admitted."
            if current == RegistrationStatus.ADMITTED
            else "Admissions are published. Registration decisions are final."
        )

    def _course_registrations_of(self, student_id: str) -> Sequence[Registration]:
        return self.store.list(
            Registration,
            order_by_created=True,
            student_id=student_id,
            type=RegistrationType.COURSE,
        )

    def _snapshot_for(self, student: Student, course: Course) -> Optional[GradeSnapshot]:
        snapshots = self.store.list(
            GradeSnapshot,
            limit=1,
            student_id=student.id,
            institution_id=course.institution_id,
        )
        return snapshots[0] if snapshots else None


def get_lifecycle_service(
    db_session: Session = Depends(get_sync_session),
) -> LifecycleService:
    """Dependency function to get LifecycleService instance"""
    return LifecycleService(db_session)
