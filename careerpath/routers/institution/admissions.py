from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from careerpath.db.session import get_sync_session
from careerpath.middlewares.auth_middleware import AuthState, require_institution
from careerpath.routers.ownership import (
    owned_institution,
    registration_of_owned_institution,
)
from careerpath.schemas.registration_schemas import (
    CascadeReportResponse,
    InstitutionResponse,
    RegistrationResponse,
    SetStatusRequest,
)
from careerpath.services.lifecycle_service import LifecycleService
from careerpath.utils.logging import get_logger
from careerpath.utils.responses import ResponseBuilder

admissions_router = APIRouter()
logger = get_logger()


@admissions_router.get("/{institution_id}/applicants")
async def list_applicants(
    request: Request,
    institution_id: str,
    current_user: Annotated[AuthState, Depends(require_institution)],
    db: Annotated[Session, Depends(get_sync_session)],
):
    owned_institution(db, institution_id, current_user)
    registrations = await LifecycleService(db).list_institution_applicants(
        institution_id
    )
    return ResponseBuilder.success(
        request=request,
        data=[
            RegistrationResponse.model_validate(r).model_dump(by_alias=True)
            for r in registrations
        ],
        message=f"Retrieved {len(registrations)} applicants",
    )


@admissions_router.patch("/registrations/{registration_id}/status")
async def set_registration_status(
    request: Request,
    registration_id: str,
    payload: SetStatusRequest,
    current_user: Annotated[AuthState, Depends(require_institution)],
    db: Annotated[Session, Depends(get_sync_session)],
):
    """
    Record an admission decision.

    Admitting runs the exclusivity cascade; rejecting or removing backfills
    the seat from the course waitlist. Repeating a decision is a no-op that
    resumes any unfinished follow-up steps.
    """
    registration_of_owned_institution(db, registration_id, current_user)
    registration = await LifecycleService(db).set_status(
        registration_id, payload.status, actor_id=current_user.user_id
    )
    return ResponseBuilder.success(
        request=request,
        data=RegistrationResponse.model_validate(registration).model_dump(by_alias=True),
        message=f"Registration status is {registration.status.value}",
    )


@admissions_router.post("/registrations/{registration_id}/cascade")
async def rerun_cascade(
    request: Request,
    registration_id: str,
    current_user: Annotated[AuthState, Depends(require_institution)],
    db: Annotated[Session, Depends(get_sync_session)],
):
    """Resume an interrupted exclusivity cascade for an admitted registration."""
    registration_of_owned_institution(db, registration_id, current_user)
    report = await LifecycleService(db).run_exclusivity_cascade(
        registration_id, actor_id=current_user.user_id
    )
    return ResponseBuilder.success(
        request=request,
        data=CascadeReportResponse.model_validate(report).model_dump(by_alias=True),
        message="Exclusivity cascade completed",
    )


@admissions_router.post("/{institution_id}/publish")
async def publish_admissions(
    request: Request,
    institution_id: str,
    current_user: Annotated[AuthState, Depends(require_institution)],
    db: Annotated[Session, Depends(get_sync_session)],
):
    owned_institution(db, institution_id, current_user)
    institution = await LifecycleService(db).publish(
        institution_id, actor_id=current_user.user_id
    )
    return ResponseBuilder.success(
        request=request,
        data=InstitutionResponse.model_validate(institution).model_dump(by_alias=True),
        message="Admissions published",
    )
