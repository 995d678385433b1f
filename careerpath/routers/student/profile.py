from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from careerpath.middlewares.auth_middleware import AuthState, require_student
from careerpath.schemas.student_schemas import (
    AddDocumentRequest,
    EnterGradesRequest,
    GradeSnapshotResponse,
    StudentResponse,
    UpdateProfileRequest,
)
from careerpath.services.student_service import StudentService, get_student_service
from careerpath.tasks.background.job_match_check import job_match_check_task
from careerpath.utils.logging import get_logger
from careerpath.utils.responses import ResponseBuilder

profile_router = APIRouter()
logger = get_logger()


@profile_router.post("/grades", status_code=status.HTTP_201_CREATED)
async def enter_grades(
    request: Request,
    payload: EnterGradesRequest,
    current_user: Annotated[AuthState, Depends(require_student)],
    student_service: Annotated[StudentService, Depends(get_student_service)],
):
    """
    Enter grades for one institution.

    Grades are entered once per institution, before the first application
    there, and are then frozen for every eligibility check at that institution.
    """
    snapshot = await student_service.enter_grades(
        student_id=current_user.user_id,
        institution_id=payload.institution_id,
        marks=payload.marks,
        skills=payload.skills,
    )
    return ResponseBuilder.success(
        request=request,
        data=GradeSnapshotResponse.model_validate(snapshot).model_dump(by_alias=True),
        message="Grades submitted successfully",
        status_code=status.HTTP_201_CREATED,
    )


@profile_router.patch("/profile")
async def update_profile(
    request: Request,
    payload: UpdateProfileRequest,
    current_user: Annotated[AuthState, Depends(require_student)],
    student_service: Annotated[StudentService, Depends(get_student_service)],
):
    student = await student_service.update_profile(
        student_id=current_user.user_id,
        name=payload.name,
        marks=payload.marks,
        skills=payload.skills,
        experience_years=payload.experience_years,
    )

    # New skills or marks may qualify the student for jobs
    job_match_check_task.delay(request.state.request_id, student.id)  # type: ignore

    return ResponseBuilder.success(
        request=request,
        data=StudentResponse.model_validate(student).model_dump(by_alias=True),
        message="Profile updated successfully",
    )


@profile_router.post("/documents", status_code=status.HTTP_201_CREATED)
async def add_document(
    request: Request,
    payload: AddDocumentRequest,
    current_user: Annotated[AuthState, Depends(require_student)],
    student_service: Annotated[StudentService, Depends(get_student_service)],
):
    student = await student_service.add_document(current_user.user_id, payload.url)
    return ResponseBuilder.success(
        request=request,
        data=StudentResponse.model_validate(student).model_dump(by_alias=True),
        message="Document added successfully",
        status_code=status.HTTP_201_CREATED,
    )
