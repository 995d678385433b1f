from datetime import datetime
from typing import List, Optional, Union

from pydantic import Field, field_validator

from careerpath.schemas.camel_base_model import CamelCaseBaseModel as BaseModel
from careerpath.utils.string_utils import clean_labels, split_csv_labels


def _parse_labels(value: Union[str, List[str], None]) -> Optional[List[str]]:
    """Skills and subjects arrive either as a list or as a comma separated string."""
    if value is None:
        return None
    if isinstance(value, str):
        return split_csv_labels(value)
    return clean_labels(value)


class EnterGradesRequest(BaseModel):
    institution_id: str = Field(..., description="Institution the grades are entered for")
    marks: float = Field(..., ge=0, le=100, description="Overall marks")
    skills: List[str] = Field(..., description="Subjects passed")

    @field_validator("skills", mode="before")
    @classmethod
    def normalize_skills(cls, value):
        return _parse_labels(value)


class GradeSnapshotResponse(BaseModel):
    id: str
    student_id: str
    institution_id: str
    marks: float
    skills: List[str]
    created_at: datetime


class UpdateProfileRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, description="Display name")
    marks: Optional[float] = Field(None, ge=0, le=100, description="Current marks")
    skills: Optional[List[str]] = Field(None, description="Skills")
    experience_years: Optional[int] = Field(None, ge=0, description="Years of work experience")

    @field_validator("skills", mode="before")
    @classmethod
    def normalize_skills(cls, value):
        return _parse_labels(value)


class AddDocumentRequest(BaseModel):
    url: str = Field(..., min_length=1, description="Stored document URL")


class StudentResponse(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    marks: float
    experience_years: int
    skills: List[str]
    documents: List[str]
    grades_submitted: bool
