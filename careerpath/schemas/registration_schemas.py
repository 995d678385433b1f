from datetime import datetime
from typing import List, Optional

from pydantic import Field

from careerpath.db.models import ApprovalStatus, RegistrationStatus, RegistrationType
from careerpath.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class RegistrationResponse(BaseModel):
    id: str = Field(..., description="Registration ID")
    student_id: str = Field(..., description="Applicant's user ID")
    type: RegistrationType = Field(..., description="course or job")
    status: RegistrationStatus = Field(..., description="Registration status")
    course_id: Optional[str] = Field(None, description="Course ID (course registrations)")
    institution_id: Optional[str] = Field(None, description="Institution ID (course registrations)")
    job_id: Optional[str] = Field(None, description="Job ID (job registrations)")
    company_id: Optional[str] = Field(None, description="Company ID (job registrations)")
    created_at: datetime = Field(..., description="Application time, used for FIFO ordering")
    updated_at: Optional[datetime] = Field(None, description="Last status change")


class SetStatusRequest(BaseModel):
    status: RegistrationStatus = Field(..., description="New registration status")


class CascadeReportResponse(BaseModel):
    anchor_registration_id: str = Field(..., description="The admitted registration")
    removed: List[str] = Field(default_factory=list, description="Registrations removed in this run")
    promoted: List[str] = Field(default_factory=list, description="Registrations promoted from waitlists")
    skipped: List[str] = Field(default_factory=list, description="Registrations left untouched")


class EligibilityResponse(BaseModel):
    eligible: bool = Field(..., description="Whether the student may apply")
    reason: str = Field("", description="Human-readable reason when ineligible")
    reason_code: Optional[str] = Field(None, description="Machine-readable reason")


class InstitutionResponse(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    status: ApprovalStatus
    published: bool
    published_at: Optional[datetime] = None


class CompanyResponse(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    location: Optional[str] = None
    status: ApprovalStatus
