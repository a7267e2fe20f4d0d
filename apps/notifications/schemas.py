from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class NotificationResponse(BaseModel):
    id: int
    department: str
    user_id: Optional[int]
    type: str
    title: str
    message: str
    link: Optional[str]
    reference_id: Optional[int]
    reference_type: Optional[str]
    is_read: bool
    read_at: Optional[datetime]
    created_by: Optional[int]
    created_at: datetime

    class Config:
        from_attributes = True


class UnreadCountResponse(BaseModel):
    count: int


class BulkUpdateResponse(BaseModel):
    message: str
    updated: int


class NotificationCreate(BaseModel):
    department: str = Field(..., max_length=100)
    type: str = Field(..., max_length=50)
    title: str = Field(..., max_length=255)
    message: str
    user_id: Optional[int] = None
    link: Optional[str] = Field(None, max_length=255)
    reference_id: Optional[int] = None
    reference_type: Optional[str] = Field(None, max_length=50)
