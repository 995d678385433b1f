import httpx
import pytest
from fastapi.testclient import TestClient

from careerpath.db.models import ApprovalStatus, RegistrationStatus
from careerpath.db.session import get_sync_session
from careerpath.main import app
from careerpath.routers.student import profile as profile_routes
from careerpath.services.approval_service import ApprovalService, get_approval_service
from careerpath.utils.auth import AuthUtils

pytestmark = pytest.mark.integration

API = "/api/v1"


def _headers(user_id: str, role: str, email_verified: bool = True) -> dict:
    token = AuthUtils.generate_access_token(
        user_id, f"{user_id}@example.com", role, email_verified=email_verified
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def scheduled_checks(monkeypatch):
    calls = []
    monkeypatch.setattr(
        profile_routes.job_match_check_task,
        "delay",
        lambda *args, **kwargs: calls.append(args),
    )
    return calls


@pytest.fixture
def client(db_session, scheduled_checks):
    def override_session():
        yield db_session

    app.dependency_overrides[get_sync_session] = override_session
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealthAndIdentity:
    def test_health_needs_no_token(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "healthy"
        assert "X-Request-ID" in response.headers

    def test_missing_token_is_unauthorized(self, client):
        response = client.get(f"{API}/student/registrations")
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_wrong_role_is_forbidden(self, client, student):
        response = client.get(
            f"{API}/student/registrations", headers=_headers(student.id, "company")
        )
        assert response.status_code == 403

    def test_unverified_email_is_forbidden(self, client, student):
        response = client.get(
            f"{API}/student/registrations",
            headers=_headers(student.id, "student", email_verified=False),
        )
        assert response.status_code == 403


class TestStudentEndpoints:
    def test_grades_then_apply(self, client, student, institution_a, course_a1):
        headers = _headers(student.id, "student")

        grades = client.post(
            f"{API}/student/grades",
            json={"institutionId": institution_a.id, "marks": 72, "skills": "Math, Physics"},
            headers=headers,
        )
        assert grades.status_code == 201
        assert grades.json()["data"]["skills"] == ["Math", "Physics"]

        eligibility = client.get(
            f"{API}/student/courses/{course_a1.id}/eligibility", headers=headers
        )
        assert eligibility.json()["data"]["eligible"] is True

        applied = client.post(f"{API}/student/courses/{course_a1.id}/apply", headers=headers)
        assert applied.status_code == 201
        assert applied.json()["data"]["status"] == "pending"
        assert applied.json()["data"]["courseId"] == course_a1.id

        again = client.post(f"{API}/student/courses/{course_a1.id}/apply", headers=headers)
        assert again.status_code == 200
        assert again.json()["status"] == "warning"

        listed = client.get(f"{API}/student/registrations", headers=headers)
        assert len(listed.json()["data"]) == 1

    def test_grades_are_entered_once(self, client, factory, student, institution_a):
        factory.grades(student, institution_a)

        response = client.post(
            f"{API}/student/grades",
            json={"institutionId": institution_a.id, "marks": 99, "skills": ["Math"]},
            headers=_headers(student.id, "student"),
        )
        assert response.status_code == 400
        assert response.json()["meta"]["error_code"] == "GRADES_ALREADY_SUBMITTED"

    def test_ineligible_application(self, client, student, course_a1):
        response = client.post(
            f"{API}/student/courses/{course_a1.id}/apply",
            headers=_headers(student.id, "student"),
        )
        assert response.status_code == 422
        assert response.json()["message"] == "Please enter your grades first."
        assert response.json()["meta"]["reason_code"] == "grades_missing"

    def test_profile_update_schedules_job_match(self, client, student, scheduled_checks):
        response = client.patch(
            f"{API}/student/profile",
            json={"skills": ["Python", "SQL"], "experienceYears": 4},
            headers=_headers(student.id, "student"),
        )
        assert response.status_code == 200
        assert response.json()["data"]["experienceYears"] == 4
        assert len(scheduled_checks) == 1
        assert scheduled_checks[0][1] == student.id

    def test_unknown_course(self, client, student):
        response = client.post(
            f"{API}/student/courses/00000000-0000-0000-0000-000000000000/apply",
            headers=_headers(student.id, "student"),
        )
        assert response.status_code == 404
        assert response.json()["meta"]["error_code"] == "COURSE_NOT_FOUND"


class TestInstitutionEndpoints:
    def test_admit_runs_cascade(self, client, factory, student, institution_a, course_a1, course_b2):
        admitted = factory.course_registration(student, course_a1)
        elsewhere = factory.course_registration(student, course_b2)

        response = client.patch(
            f"{API}/institution/registrations/{admitted.id}/status",
            json={"status": "admitted"},
            headers=_headers(institution_a.owner_uid, "institution"),
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "admitted"
        factory.session.refresh(elsewhere)
        assert elsewhere.status == RegistrationStatus.REMOVED

    def test_other_institution_cannot_decide(self, client, factory, student, institution_b, course_a1):
        registration = factory.course_registration(student, course_a1)

        response = client.patch(
            f"{API}/institution/registrations/{registration.id}/status",
            json={"status": "rejected"},
            headers=_headers(institution_b.owner_uid, "institution"),
        )
        assert response.status_code == 403

    def test_publish_then_locked(self, client, factory, student, institution_a, course_a1):
        registration = factory.course_registration(
            student, course_a1, status=RegistrationStatus.ADMITTED
        )
        headers = _headers(institution_a.owner_uid, "institution")

        published = client.post(f"{API}/institution/{institution_a.id}/publish", headers=headers)
        assert published.json()["data"]["published"] is True

        locked = client.patch(
            f"{API}/institution/registrations/{registration.id}/status",
            json={"status": "pending"},
            headers=headers,
        )
        assert locked.status_code == 409
        assert locked.json()["meta"]["error_code"] == "ADMISSIONS_PUBLISHED"

    def test_list_applicants(self, client, factory, student, institution_a, course_a1):
        factory.course_registration(student, course_a1)

        response = client.get(
            f"{API}/institution/{institution_a.id}/applicants",
            headers=_headers(institution_a.owner_uid, "institution"),
        )
        assert response.status_code == 200
        assert [r["studentId"] for r in response.json()["data"]] == [student.id]


class TestCompanyEndpoints:
    def test_applicants_and_invite(self, client, factory, student):
        company = factory.company(name="Econet")
        job = factory.job(company, title="Junior Developer")
        registration = factory.job_registration(student, job)
        headers = _headers(company.owner_uid, "company")

        applicants = client.get(f"{API}/company/{company.id}/applicants", headers=headers)
        [applicant] = applicants.json()["data"]
        assert applicant["score"] == 70
        assert applicant["tier"] == "qualified"

        invite = client.post(
            f"{API}/company/registrations/{registration.id}/invite",
            json={"date": "2025-03-01", "time": "10:00", "place": "Head Office"},
            headers=headers,
        )
        assert invite.status_code == 201
        assert invite.json()["data"]["type"] == "interview_invitation"

        notifications = client.get(
            f"{API}/shared/notifications/", headers=_headers(student.id, "student")
        )
        assert notifications.json()["data"]["unreadCount"] == 1


class TestAdminEndpoints:
    def test_approve_institution(self, client, db_session, factory):
        institution = factory.institution(name="NUL", status=ApprovalStatus.PENDING)
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"success": True, "message": "sent"})
        )
        app.dependency_overrides[get_approval_service] = lambda: ApprovalService(
            db_session, transport=transport
        )

        response = client.post(
            f"{API}/admin/institutions/{institution.id}/approve",
            headers=_headers("admin-1", "admin"),
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "approved"

    def test_failed_webhook_is_bad_gateway(self, client, db_session, factory):
        company = factory.company(name="Acme", status=ApprovalStatus.PENDING)
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"success": False, "message": "nope"})
        )
        app.dependency_overrides[get_approval_service] = lambda: ApprovalService(
            db_session, transport=transport
        )

        response = client.post(
            f"{API}/admin/companies/{company.id}/approve",
            headers=_headers("admin-1", "admin"),
        )
        assert response.status_code == 502

    def test_unknown_kind_is_rejected(self, client):
        response = client.post(
            f"{API}/admin/students/abc/approve", headers=_headers("admin-1", "admin")
        )
        assert response.status_code == 422
