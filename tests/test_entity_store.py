import pytest
from sqlalchemy.exc import OperationalError

from careerpath.db.models import (
    Institution,
    Registration,
    RegistrationStatus,
    RegistrationTransition,
    RegistrationType,
    TransitionCause,
)
from careerpath.db.store import EntityStore
from careerpath.utils.errors import DuplicateRecordError, NotFoundError, StoreWriteError

pytestmark = pytest.mark.integration


class TestEntityStore:
    def test_get_missing_record_raises_not_found_with_code(self, db_session):
        store = EntityStore(db_session)
        with pytest.raises(NotFoundError) as exc_info:
            store.get(Institution, "00000000-0000-0000-0000-000000000000")
        assert exc_info.value.error_code == "INSTITUTION_NOT_FOUND"

    def test_find_returns_none_for_missing_id(self, db_session):
        assert EntityStore(db_session).find(Registration, None) is None

    def test_list_filters_and_orders_by_created_at(self, factory, student, course_a1):
        other = factory.course(course_a1.institution, name="C9")
        late = factory.course_registration(student, course_a1)
        early = factory.course_registration(
            student, other, created_at=late.created_at.replace(hour=1)
        )

        rows = EntityStore(factory.session).list(
            Registration, order_by_created=True, student_id=student.id
        )
        assert [r.id for r in rows] == [early.id, late.id]

        newest_first = EntityStore(factory.session).list(
            Registration, order_by_created=True, descending=True, student_id=student.id
        )
        assert newest_first[0].id == late.id

    def test_list_with_in_filter_and_exclusion(self, factory, student, course_a1):
        other = factory.course(course_a1.institution, name="C9")
        pending = factory.course_registration(student, course_a1)
        waiting = factory.course_registration(
            student, other, status=RegistrationStatus.WAITING
        )
        store = EntityStore(factory.session)

        rows = store.list(
            Registration,
            status=[RegistrationStatus.PENDING, RegistrationStatus.WAITING],
            exclude_ids=[pending.id],
        )
        assert [r.id for r in rows] == [waiting.id]

    def test_unique_violation_maps_to_duplicate_record(self, factory, student, course_a1):
        factory.course_registration(student, course_a1)
        store = EntityStore(factory.session)

        with pytest.raises(DuplicateRecordError):
            store.create(
                Registration,
                student_id=student.id,
                type=RegistrationType.COURSE,
                status=RegistrationStatus.PENDING,
                course_id=course_a1.id,
                institution_id=course_a1.institution_id,
            )

        # Session is usable after the rollback
        assert len(store.list(Registration, student_id=student.id)) == 1


class TestTransitionStatus:
    def test_moves_status_and_writes_audit_row(self, factory, student, course_a1):
        registration = factory.course_registration(student, course_a1)
        store = EntityStore(factory.session)

        assert store.transition_status(
            registration.id,
            RegistrationStatus.PENDING,
            RegistrationStatus.ADMITTED,
            TransitionCause.STAFF_DECISION,
            actor_id="staff-1",
        )

        assert store.get(Registration, registration.id).status == RegistrationStatus.ADMITTED
        [row] = store.list(RegistrationTransition, registration_id=registration.id)
        assert row.old_status == RegistrationStatus.PENDING
        assert row.new_status == RegistrationStatus.ADMITTED
        assert row.actor_id == "staff-1"

    def test_loses_when_another_writer_changed_status(self, factory, student, course_a1):
        registration = factory.course_registration(
            student, course_a1, status=RegistrationStatus.REJECTED
        )
        store = EntityStore(factory.session)

        assert not store.transition_status(
            registration.id,
            RegistrationStatus.PENDING,
            RegistrationStatus.ADMITTED,
            TransitionCause.STAFF_DECISION,
        )
        assert store.get(Registration, registration.id).status == RegistrationStatus.REJECTED
        assert store.list(RegistrationTransition, registration_id=registration.id) == []

    def test_write_failure_maps_to_store_write_error(
        self, factory, student, course_a1, monkeypatch
    ):
        registration = factory.course_registration(student, course_a1)
        store = EntityStore(factory.session)

        def failing_execute(*args, **kwargs):
            raise OperationalError("UPDATE registrations", {}, Exception("disk I/O error"))

        monkeypatch.setattr(factory.session, "execute", failing_execute)
        with pytest.raises(StoreWriteError):
            store.transition_status(
                registration.id,
                RegistrationStatus.PENDING,
                RegistrationStatus.REMOVED,
                TransitionCause.EXCLUSIVITY_CASCADE,
            )

    def test_one_promotion_per_freed_seat(self, factory, student, course_a1):
        freed = factory.course_registration(
            student, course_a1, status=RegistrationStatus.REJECTED
        )
        first, second = [
            factory.course_registration(factory.student(), course_a1, status=RegistrationStatus.WAITING)
            for _ in range(2)
        ]
        store = EntityStore(factory.session)

        def promote(registration):
            return store.transition_status(
                registration.id,
                RegistrationStatus.WAITING,
                RegistrationStatus.PENDING,
                TransitionCause.WAITLIST_PROMOTION,
                source_registration_id=freed.id,
                promoted_for_registration_id=freed.id,
            )

        assert promote(first)
        with pytest.raises(DuplicateRecordError):
            promote(second)

        # Neither the status nor the audit row of the refused promotion survive
        assert store.get(Registration, second.id).status == RegistrationStatus.WAITING
        assert store.list(RegistrationTransition, registration_id=second.id) == []
        assert store.get(Registration, first.id).promoted_for_registration_id == freed.id
