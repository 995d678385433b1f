import uuid
from datetime import datetime, timedelta
from typing import Generator, List, Optional
from unittest.mock import Mock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from careerpath.db.models import (
    ApprovalStatus,
    Base,
    Company,
    Course,
    Faculty,
    GradeSnapshot,
    Institution,
    Job,
    Registration,
    RegistrationStatus,
    RegistrationType,
    Student,
)


# Test database setup
TEST_DATABASE_URL = "sqlite:///:memory:"

# Fixed base time so FIFO ordering never depends on clock resolution
BASE_TIME = datetime(2025, 1, 6, 9, 0, 0)


@pytest.fixture
def test_engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(test_engine) -> Generator[Session, None, None]:
    """Create a database session for each test."""
    session_maker = sessionmaker(bind=test_engine, class_=Session, expire_on_commit=False)
    session = session_maker()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def mock_celery_task():
    """Mock Celery task for testing retry behavior."""
    mock_task = Mock()
    mock_task.request.retries = 0
    mock_task.max_retries = 3
    mock_task.retry = Mock(side_effect=Exception("Retry called"))
    return mock_task


class Factory:
    """Inserts records directly, bypassing the services under test."""

    def __init__(self, session: Session):
        self.session = session
        self._tick = 0

    def _save(self, entity):
        self.session.add(entity)
        self.session.commit()
        self.session.refresh(entity)
        return entity

    def next_time(self) -> datetime:
        self._tick += 1
        return BASE_TIME + timedelta(minutes=self._tick)

    def institution(
        self,
        name: str = "Limkokwing University",
        status: ApprovalStatus = ApprovalStatus.APPROVED,
        published: bool = False,
        owner_uid: Optional[str] = None,
    ) -> Institution:
        return self._save(
            Institution(
                name=name,
                email=f"{name.lower().replace(' ', '.')}@example.edu",
                owner_uid=owner_uid or f"inst-{uuid.uuid4().hex[:8]}",
                status=status,
                published=published,
                published_at=BASE_TIME if published else None,
            )
        )

    def course(
        self,
        institution: Institution,
        name: str = "BSc Computer Science",
        required_subjects: Optional[List[str]] = None,
        min_marks: float = 50,
    ) -> Course:
        faculty = self.session.query(Faculty).filter_by(
            institution_id=institution.id, name="Faculty of Science"
        ).one_or_none() or self._save(
            Faculty(institution_id=institution.id, name="Faculty of Science")
        )
        return self._save(
            Course(
                institution_id=institution.id,
                faculty_id=faculty.id,
                name=name,
                required_subjects=required_subjects if required_subjects is not None else ["Math"],
                min_marks=min_marks,
            )
        )

    def company(
        self,
        name: str = "Econet",
        status: ApprovalStatus = ApprovalStatus.APPROVED,
        owner_uid: Optional[str] = None,
    ) -> Company:
        return self._save(
            Company(
                name=name,
                email=f"hr@{name.lower()}.example.com",
                location="Maseru",
                owner_uid=owner_uid or f"comp-{uuid.uuid4().hex[:8]}",
                status=status,
            )
        )

    def job(
        self,
        company: Company,
        title: str = "Junior Developer",
        marks: float = 60,
        min_experience_years: int = 2,
        skills: Optional[List[str]] = None,
        is_open: bool = True,
        deadline=None,
    ) -> Job:
        return self._save(
            Job(
                company_id=company.id,
                title=title,
                location="Maseru",
                job_type="full-time",
                marks=marks,
                min_experience_years=min_experience_years,
                skills=skills if skills is not None else ["JS", "Go"],
                is_open=is_open,
                deadline=deadline,
            )
        )

    def student(
        self,
        student_id: Optional[str] = None,
        name: str = "Thabo Mokoena",
        marks: float = 70,
        experience_years: int = 3,
        skills: Optional[List[str]] = None,
        documents: Optional[List[str]] = None,
    ) -> Student:
        return self._save(
            Student(
                id=student_id or f"student-{uuid.uuid4().hex[:8]}",
                name=name,
                email=f"{name.split()[0].lower()}@example.com",
                marks=marks,
                experience_years=experience_years,
                skills=skills if skills is not None else ["JS", "SQL"],
                documents=documents if documents is not None else [],
            )
        )

    def grades(
        self,
        student: Student,
        institution: Institution,
        marks: float = 70,
        skills: Optional[List[str]] = None,
    ) -> GradeSnapshot:
        snapshot = self._save(
            GradeSnapshot(
                student_id=student.id,
                institution_id=institution.id,
                marks=marks,
                skills=skills if skills is not None else ["Math", "Physics"],
            )
        )
        self.session.refresh(student)
        return snapshot

    def course_registration(
        self,
        student: Student,
        course: Course,
        status: RegistrationStatus = RegistrationStatus.PENDING,
        created_at: Optional[datetime] = None,
    ) -> Registration:
        return self._save(
            Registration(
                student_id=student.id,
                type=RegistrationType.COURSE,
                status=status,
                course_id=course.id,
                institution_id=course.institution_id,
                created_at=created_at or self.next_time(),
            )
        )

    def job_registration(
        self,
        student: Student,
        job: Job,
        created_at: Optional[datetime] = None,
    ) -> Registration:
        return self._save(
            Registration(
                student_id=student.id,
                type=RegistrationType.JOB,
                status=RegistrationStatus.PENDING,
                job_id=job.id,
                company_id=job.company_id,
                created_at=created_at or self.next_time(),
            )
        )


@pytest.fixture
def factory(db_session: Session) -> Factory:
    return Factory(db_session)


@pytest.fixture
def institution_a(factory: Factory) -> Institution:
    return factory.institution(name="Institution A")


@pytest.fixture
def institution_b(factory: Factory) -> Institution:
    return factory.institution(name="Institution B")


@pytest.fixture
def course_a1(factory: Factory, institution_a: Institution) -> Course:
    return factory.course(institution_a, name="C1", required_subjects=["Math"], min_marks=50)


@pytest.fixture
def course_b2(factory: Factory, institution_b: Institution) -> Course:
    return factory.course(institution_b, name="C2", required_subjects=["Math"], min_marks=50)


@pytest.fixture
def student(factory: Factory) -> Student:
    return factory.student(student_id="student-main")
