import json

import httpx
import pytest

from careerpath.config.settings import settings
from careerpath.db.models import ApprovalStatus
from careerpath.services.approval_service import ApprovalService
from careerpath.utils.errors import ApprovalWebhookError, BusinessLogicError

pytestmark = pytest.mark.integration


def _transport(calls, status_code=200, body=None):
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(
            status_code, json=body if body is not None else {"success": True, "message": "ok"}
        )

    return httpx.MockTransport(handler)


class TestApprove:
    @pytest.mark.asyncio
    async def test_posts_record_to_webhook_and_approves(self, factory):
        institution = factory.institution(name="NUL", status=ApprovalStatus.PENDING)
        calls = []
        service = ApprovalService(factory.session, transport=_transport(calls))

        record = await service.approve("institutions", institution.id)

        assert record.status == ApprovalStatus.APPROVED
        assert len(calls) == 1
        assert str(calls[0].url) == settings.APPROVAL_WEBHOOK_URL
        assert json.loads(calls[0].content) == {
            "id": institution.id,
            "email": institution.email,
            "name": "NUL",
            "role": "institution",
        }

    @pytest.mark.asyncio
    async def test_declined_webhook_leaves_record_pending(self, factory):
        company = factory.company(name="Acme", status=ApprovalStatus.PENDING)
        calls = []
        service = ApprovalService(
            factory.session,
            transport=_transport(calls, body={"success": False, "message": "Email exists"}),
        )

        with pytest.raises(ApprovalWebhookError) as exc_info:
            await service.approve("companies", company.id)

        assert "Email exists" in exc_info.value.message
        factory.session.refresh(company)
        assert company.status == ApprovalStatus.PENDING

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", ["ok", [], 1])
    async def test_non_object_reply_is_a_webhook_error(self, factory, body):
        company = factory.company(name="Acme", status=ApprovalStatus.PENDING)
        calls = []
        service = ApprovalService(factory.session, transport=_transport(calls, body=body))

        with pytest.raises(ApprovalWebhookError):
            await service.approve("companies", company.id)

        factory.session.refresh(company)
        assert company.status == ApprovalStatus.PENDING

    @pytest.mark.asyncio
    async def test_unreachable_webhook(self, factory):
        company = factory.company(name="Acme", status=ApprovalStatus.PENDING)

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        service = ApprovalService(factory.session, transport=httpx.MockTransport(handler))
        with pytest.raises(ApprovalWebhookError):
            await service.approve("companies", company.id)

    @pytest.mark.asyncio
    async def test_already_approved_skips_webhook(self, factory):
        company = factory.company(name="Acme")
        calls = []

        await ApprovalService(factory.session, transport=_transport(calls)).approve(
            "companies", company.id
        )

        assert calls == []

    @pytest.mark.asyncio
    async def test_unknown_kind(self, factory):
        with pytest.raises(BusinessLogicError):
            await ApprovalService(factory.session).approve("students", "x")


class TestSuspend:
    @pytest.mark.asyncio
    async def test_suspend_without_webhook(self, factory):
        institution = factory.institution(name="NUL")
        calls = []

        record = await ApprovalService(
            factory.session, transport=_transport(calls)
        ).suspend("institutions", institution.id)

        assert record.status == ApprovalStatus.SUSPENDED
        assert calls == []
