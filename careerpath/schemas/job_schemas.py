from datetime import datetime
from typing import List, Optional

from pydantic import Field

from careerpath.db.models import RegistrationStatus
from careerpath.schemas.camel_base_model import CamelCaseBaseModel as BaseModel
from careerpath.services.job_application_service import JobApplicant
from careerpath.services.qualification import QualificationTier


class InterviewInviteRequest(BaseModel):
    date: str = Field(..., min_length=1, description="Interview date as shown to the applicant")
    time: str = Field(..., min_length=1, description="Interview time")
    place: str = Field(..., min_length=1, description="Interview location")


class JobApplicantResponse(BaseModel):
    registration_id: str
    status: RegistrationStatus = Field(..., description="Always pending for job applications")
    job_id: str
    job_title: str
    student_id: str
    student_name: str
    student_email: Optional[str] = None
    documents: List[str] = Field(default_factory=list)
    score: int = Field(..., description="Qualification score, computed at read time")
    tier: QualificationTier = Field(..., description="Qualification tier")
    applied_at: datetime

    @classmethod
    def from_applicant(cls, applicant: JobApplicant) -> "JobApplicantResponse":
        return cls(
            registration_id=applicant.registration.id,
            status=applicant.registration.status,
            job_id=applicant.job.id,
            job_title=applicant.job.title,
            student_id=applicant.student.id,
            student_name=applicant.student.name,
            student_email=applicant.student.email,
            documents=list(applicant.student.documents or []),
            score=applicant.qualification.score,
            tier=applicant.qualification.tier,
            applied_at=applicant.registration.created_at,
        )
