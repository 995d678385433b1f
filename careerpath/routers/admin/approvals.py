from typing import Annotated, Literal

from fastapi import APIRouter, Depends, Request

from careerpath.db.models import Institution
from careerpath.middlewares.auth_middleware import AuthState, require_admin
from careerpath.schemas.registration_schemas import CompanyResponse, InstitutionResponse
from careerpath.services.approval_service import ApprovalService, get_approval_service
from careerpath.services.lifecycle_service import (
    LifecycleService,
    get_lifecycle_service,
)
from careerpath.utils.logging import get_logger
from careerpath.utils.responses import ResponseBuilder

approvals_router = APIRouter()
logger = get_logger()

ApprovableKind = Literal["institutions", "companies"]


def _dump(record) -> dict:
    schema = InstitutionResponse if isinstance(record, Institution) else CompanyResponse
    return schema.model_validate(record).model_dump(by_alias=True)


@approvals_router.post("/{kind}/{record_id}/approve")
async def approve(
    request: Request,
    kind: ApprovableKind,
    record_id: str,
    current_user: Annotated[AuthState, Depends(require_admin)],
    approval_service: Annotated[ApprovalService, Depends(get_approval_service)],
):
    """Approve an institution or company; the webhook emails its credentials."""
    record = await approval_service.approve(kind, record_id)
    logger.info(f"Admin {current_user.user_id} approved {kind} {record_id}")
    return ResponseBuilder.success(
        request=request,
        data=_dump(record),
        message=f"{record.name} approved",
    )


@approvals_router.post("/{kind}/{record_id}/suspend")
async def suspend(
    request: Request,
    kind: ApprovableKind,
    record_id: str,
    current_user: Annotated[AuthState, Depends(require_admin)],
    approval_service: Annotated[ApprovalService, Depends(get_approval_service)],
):
    record = await approval_service.suspend(kind, record_id)
    logger.info(f"Admin {current_user.user_id} suspended {kind} {record_id}")
    return ResponseBuilder.success(
        request=request,
        data=_dump(record),
        message=f"{record.name} suspended",
    )


@approvals_router.post("/institutions/{institution_id}/publish")
async def publish_institution(
    request: Request,
    institution_id: str,
    current_user: Annotated[AuthState, Depends(require_admin)],
    lifecycle_service: Annotated[LifecycleService, Depends(get_lifecycle_service)],
):
    institution = await lifecycle_service.publish(
        institution_id, actor_id=current_user.user_id
    )
    return ResponseBuilder.success(
        request=request,
        data=_dump(institution),
        message="Admissions published",
    )
