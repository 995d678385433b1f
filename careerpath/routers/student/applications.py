from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from careerpath.middlewares.auth_middleware import AuthState, require_student
from careerpath.schemas.registration_schemas import (
    CascadeReportResponse,
    EligibilityResponse,
    RegistrationResponse,
)
from careerpath.services.job_application_service import (
    JobApplicationService,
    get_job_application_service,
)
from careerpath.services.lifecycle_service import (
    LifecycleService,
    get_lifecycle_service,
)
from careerpath.services.student_service import StudentService, get_student_service
from careerpath.utils.logging import get_logger
from careerpath.utils.responses import ResponseBuilder

applications_router = APIRouter()
logger = get_logger()


@applications_router.get("/courses/{course_id}/eligibility")
async def check_course_eligibility(
    request: Request,
    course_id: str,
    current_user: Annotated[AuthState, Depends(require_student)],
    lifecycle_service: Annotated[LifecycleService, Depends(get_lifecycle_service)],
):
    result = await lifecycle_service.check_course_eligibility(
        current_user.user_id, course_id
    )
    data = EligibilityResponse(
        eligible=result.eligible,
        reason=result.reason,
        reason_code=result.reason_code.value if result.reason_code else None,
    )
    return ResponseBuilder.success(
        request=request,
        data=data.model_dump(by_alias=True),
        message="Eligible" if result.eligible else result.reason,
    )


@applications_router.post("/courses/{course_id}/apply", status_code=status.HTTP_201_CREATED)
async def apply_to_course(
    request: Request,
    course_id: str,
    current_user: Annotated[AuthState, Depends(require_student)],
    lifecycle_service: Annotated[LifecycleService, Depends(get_lifecycle_service)],
):
    registration = await lifecycle_service.apply_to_course(
        current_user.user_id, course_id
    )
    return ResponseBuilder.success(
        request=request,
        data=RegistrationResponse.model_validate(registration).model_dump(by_alias=True),
        message="Application submitted successfully",
        status_code=status.HTTP_201_CREATED,
    )


@applications_router.post("/jobs/{job_id}/apply", status_code=status.HTTP_201_CREATED)
async def apply_to_job(
    request: Request,
    job_id: str,
    current_user: Annotated[AuthState, Depends(require_student)],
    job_service: Annotated[JobApplicationService, Depends(get_job_application_service)],
):
    registration = await job_service.apply_to_job(current_user.user_id, job_id)
    return ResponseBuilder.success(
        request=request,
        data=RegistrationResponse.model_validate(registration).model_dump(by_alias=True),
        message="Job application submitted successfully",
        status_code=status.HTTP_201_CREATED,
    )


@applications_router.get("/registrations")
async def list_registrations(
    request: Request,
    current_user: Annotated[AuthState, Depends(require_student)],
    student_service: Annotated[StudentService, Depends(get_student_service)],
):
    registrations = await student_service.list_registrations(current_user.user_id)
    return ResponseBuilder.success(
        request=request,
        data=[
            RegistrationResponse.model_validate(r).model_dump(by_alias=True)
            for r in registrations
        ],
        message=f"Retrieved {len(registrations)} registrations",
    )


@applications_router.post("/registrations/{registration_id}/choose")
async def choose_institution(
    request: Request,
    registration_id: str,
    current_user: Annotated[AuthState, Depends(require_student)],
    lifecycle_service: Annotated[LifecycleService, Depends(get_lifecycle_service)],
):
    """Keep one admission and withdraw from every other course."""
    report = await lifecycle_service.choose_institution(
        current_user.user_id, registration_id
    )
    return ResponseBuilder.success(
        request=request,
        data=CascadeReportResponse.model_validate(report).model_dump(by_alias=True),
        message="Institution chosen successfully",
    )
