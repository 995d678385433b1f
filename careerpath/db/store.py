from typing import Any, Iterable, Optional, Sequence, Type, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from careerpath.db.models import (
    Base,
    Company,
    Course,
    Faculty,
    Institution,
    Job,
    Notification,
    Registration,
    RegistrationStatus,
    RegistrationTransition,
    Student,
    TransitionCause,
)
from careerpath.utils.datetime_utils import naive_utc_now
from careerpath.utils.errors import (
    DuplicateRecordError,
    NotFoundError,
    StoreWriteError,
)
from careerpath.utils.logging import get_logger

logger = get_logger()

ModelT = TypeVar("ModelT", bound=Base)

_NOT_FOUND_CODES = {
    Institution: "INSTITUTION_NOT_FOUND",
    Faculty: "FACULTY_NOT_FOUND",
    Course: "COURSE_NOT_FOUND",
    Company: "COMPANY_NOT_FOUND",
    Job: "JOB_NOT_FOUND",
    Student: "STUDENT_NOT_FOUND",
    Registration: "REGISTRATION_NOT_FOUND",
    Notification: "NOTIFICATION_NOT_FOUND",
}


class EntityStore:
    """Typed get/list/create/update access to the record collections.

    Every write is committed on its own. The only multi-row commit is a status
    transition together with its audit row. Callers compose multi-step
    operations out of these writes and must tolerate concurrent writers
    between steps.
    """

    def __init__(self, db_session: Session):
        self.db = db_session

    def find(self, model: Type[ModelT], entity_id: Optional[str]) -> Optional[ModelT]:
        if entity_id is None:
            return None
        return self.db.get(model, str(entity_id), populate_existing=True)

    def get(self, model: Type[ModelT], entity_id: Optional[str]) -> ModelT:
        entity = self.find(model, entity_id)
        if entity is None:
            error_code = _NOT_FOUND_CODES.get(model, "NOT_FOUND")
            raise NotFoundError(
                f"{model.__name__} {entity_id} not found", error_code=error_code
            )
        return entity

    def list(
        self,
        model: Type[ModelT],
        *,
        order_by_created: bool = False,
        descending: bool = False,
        limit: Optional[int] = None,
        exclude_ids: Iterable[str] = (),
        **filters: Any,
    ) -> Sequence[ModelT]:
        """Exact-match filters; a list/tuple/set value becomes an IN clause."""
        query = select(model)
        for field_name, value in filters.items():
            column = getattr(model, field_name)
            if isinstance(value, (list, tuple, set, frozenset)):
                query = query.where(column.in_(list(value)))
            else:
                query = query.where(column == value)

        excluded = [str(entity_id) for entity_id in exclude_ids]
        if excluded:
            query = query.where(model.id.not_in(excluded))

        if order_by_created:
            created = model.created_at.desc() if descending else model.created_at.asc()
            # id breaks ties between rows created in the same instant
            query = query.order_by(created, model.id)

        if limit is not None:
            query = query.limit(limit)

        result = self.db.execute(query.execution_options(populate_existing=True))
        return result.scalars().all()

    def create(self, model: Type[ModelT], **fields: Any) -> ModelT:
        entity = model(**fields)
        self.db.add(entity)
        self._commit(f"create {model.__name__}")
        self.db.refresh(entity)
        return entity

    def update(self, entity: ModelT, **fields: Any) -> ModelT:
        for field_name, value in fields.items():
            setattr(entity, field_name, value)
        self._commit(f"update {type(entity).__name__} {getattr(entity, 'id', '')}")
        self.db.refresh(entity)
        return entity

    def transition_status(
        self,
        registration_id: str,
        expected: RegistrationStatus,
        new_status: RegistrationStatus,
        cause: TransitionCause,
        source_registration_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        promoted_for_registration_id: Optional[str] = None,
    ) -> bool:
        """Move a registration from ``expected`` to ``new_status`` and write its
        audit row in the same commit.

        Returns False when another writer changed the status first; the caller
        re-reads and decides. ``promoted_for_registration_id`` is unique, so a
        second promotion for the same freed seat raises DuplicateRecordError
        and writes nothing.
        """
        values = {"status": new_status, "updated_at": naive_utc_now()}
        if promoted_for_registration_id is not None:
            values["promoted_for_registration_id"] = str(promoted_for_registration_id)

        action = f"move registration {registration_id} to {new_status.value}"
        try:
            result = self.db.execute(
                update(Registration)
                .where(Registration.id == str(registration_id))
                .where(Registration.status == expected)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                return False

            self.db.add(
                RegistrationTransition(
                    registration_id=str(registration_id),
                    old_status=expected,
                    new_status=new_status,
                    cause=cause,
                    source_registration_id=source_registration_id,
                    actor_id=actor_id,
                )
            )
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Constraint violation on {action}: {e.orig}")
            raise DuplicateRecordError(f"Constraint violation on {action}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Store write failed on {action}: {e}")
            raise StoreWriteError(f"Failed to {action}") from e
        return True

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"Constraint violation on {action}: {e.orig}")
            raise DuplicateRecordError(f"Constraint violation on {action}") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Store write failed on {action}: {e}")
            raise StoreWriteError(f"Failed to {action}") from e
