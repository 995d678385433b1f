from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from careerpath.db.session import get_sync_session
from careerpath.middlewares.auth_middleware import AuthState, require_company
from careerpath.routers.ownership import owned_company, registration_of_owned_company
from careerpath.schemas.job_schemas import InterviewInviteRequest, JobApplicantResponse
from careerpath.schemas.notification_schemas import NotificationResponse
from careerpath.services.job_application_service import JobApplicationService
from careerpath.utils.logging import get_logger
from careerpath.utils.responses import ResponseBuilder

applicants_router = APIRouter()
logger = get_logger()


@applicants_router.get("/{company_id}/applicants")
async def list_applicants(
    request: Request,
    company_id: str,
    current_user: Annotated[AuthState, Depends(require_company)],
    db: Annotated[Session, Depends(get_sync_session)],
):
    """Job applicants with their qualification score and tier as of now."""
    owned_company(db, company_id, current_user)
    applicants = await JobApplicationService(db).list_job_applicants(company_id)
    return ResponseBuilder.success(
        request=request,
        data=[
            JobApplicantResponse.from_applicant(a).model_dump(by_alias=True)
            for a in applicants
        ],
        message=f"Retrieved {len(applicants)} applicants",
    )


@applicants_router.post(
    "/registrations/{registration_id}/invite", status_code=status.HTTP_201_CREATED
)
async def invite_to_interview(
    request: Request,
    registration_id: str,
    payload: InterviewInviteRequest,
    current_user: Annotated[AuthState, Depends(require_company)],
    db: Annotated[Session, Depends(get_sync_session)],
):
    registration = registration_of_owned_company(db, registration_id, current_user)
    notification = await JobApplicationService(db).invite_to_interview(
        registration.company_id,
        registration.id,
        date=payload.date,
        time=payload.time,
        place=payload.place,
    )
    return ResponseBuilder.success(
        request=request,
        data=NotificationResponse.model_validate(notification).model_dump(by_alias=True),
        message="Interview invitation sent",
        status_code=status.HTTP_201_CREATED,
    )
