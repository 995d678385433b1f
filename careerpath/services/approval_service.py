from typing import Optional, Type, Union

import httpx
from fastapi import Depends
from sqlalchemy.orm import Session

from careerpath.config.settings import settings
from careerpath.db.models import ApprovalStatus, Company, Institution, UserRole
from careerpath.db.session import get_sync_session
from careerpath.db.store import EntityStore
from careerpath.utils.errors import ApprovalWebhookError, BusinessLogicError
from careerpath.utils.logging import get_logger

logger = get_logger()

ApprovableRecord = Union[Institution, Company]

# URL segment -> (model, role sent to the webhook)
APPROVABLE_KINDS = {
    "institutions": (Institution, UserRole.INSTITUTION),
    "companies": (Company, UserRole.COMPANY),
}


class ApprovalService:
    """Admin approval of institutions and companies.

    Approval goes through the external webhook, which creates the account and
    emails the credentials; the record only becomes approved once the webhook
    reports success.
    """

    def __init__(
        self,
        db_session: Session,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.db = db_session
        self.store = EntityStore(db_session)
        self.transport = transport

    def _resolve_kind(self, kind: str) -> tuple[Type[ApprovableRecord], UserRole]:
        if kind not in APPROVABLE_KINDS:
            raise BusinessLogicError(
                f"Unknown record kind: {kind}", "UNKNOWN_APPROVAL_KIND"
            )
        return APPROVABLE_KINDS[kind]

    async def approve(self, kind: str, record_id: str) -> ApprovableRecord:
        model, role = self._resolve_kind(kind)
        record = self.store.get(model, record_id)
        if record.status == ApprovalStatus.APPROVED:
            logger.info(f"{model.__name__} {record.id} already approved")
            return record

        payload = {
            "id": record.id,
            "email": record.email,
            "name": record.name,
            "role": role.value,
        }

        try:
            async with httpx.AsyncClient(transport=self.transport) as client:
                response = await client.post(
                    settings.APPROVAL_WEBHOOK_URL,
                    json=payload,
                    timeout=settings.APPROVAL_WEBHOOK_TIMEOUT,
                )
        except httpx.RequestError as e:
            logger.error(f"Approval webhook unreachable for {model.__name__} {record.id}: {e}")
            raise ApprovalWebhookError(f"Approval webhook unreachable: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.status_code >= 400 or not body.get("success"):
            message = body.get("message") or f"HTTP {response.status_code}"
            logger.warning(
                f"Approval webhook declined {model.__name__} {record.id}: {message}"
            )
            raise ApprovalWebhookError(f"Approval failed: {message}")

        record = self.store.update(record, status=ApprovalStatus.APPROVED)
        logger.info(f"{model.__name__} {record.id} approved")
        return record

    async def suspend(self, kind: str, record_id: str) -> ApprovableRecord:
        model, _ = self._resolve_kind(kind)
        record = self.store.get(model, record_id)
        if record.status == ApprovalStatus.SUSPENDED:
            return record

        record = self.store.update(record, status=ApprovalStatus.SUSPENDED)
        logger.info(f"{model.__name__} {record.id} suspended")
        return record


def get_approval_service(
    db_session: Session = Depends(get_sync_session),
) -> ApprovalService:
    """Dependency function to get ApprovalService instance"""
    return ApprovalService(db_session)
