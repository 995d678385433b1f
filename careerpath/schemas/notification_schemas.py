from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from careerpath.db.models import NotificationKind
from careerpath.schemas.camel_base_model import CamelCaseBaseModel as BaseModel


class NotificationResponse(BaseModel):
    id: str = Field(..., description="Notification ID")
    student_id: str = Field(..., description="Recipient")
    type: NotificationKind = Field(..., description="interview_invitation or job_match")
    message: str = Field(..., description="Human-readable message")
    job_id: Optional[str] = Field(None, description="Related job")
    company_id: Optional[str] = Field(None, description="Related company")
    read: bool = Field(..., description="Whether the student has read it")
    created_at: datetime = Field(..., description="Creation time")


class NotificationListResponse(BaseModel):
    notifications: List[Dict[str, Any]] = Field(..., description="Serialized notifications")
    unread_count: int = Field(..., description="Unread notifications in this list")


class NotificationStats(BaseModel):
    marked_read_count: int = Field(0, description="Notifications marked read by this call")
