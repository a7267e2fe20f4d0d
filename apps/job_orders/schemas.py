from pydantic import BaseModel, Field, validator
from typing import Optional, List
from datetime import datetime

from apps.job_orders.models import JobOrderStatus, JobOrderPriority


class JobOrderBase(BaseModel):
    title: str = Field(..., max_length=255)
    description: str
    category: Optional[str] = Field(None, max_length=100)
    type: Optional[str] = Field(None, max_length=100)
    priority: JobOrderPriority = JobOrderPriority.MEDIUM
    department: str = Field(..., max_length=100)
    location: Optional[str] = Field(None, max_length=255)
    asset_id: Optional[str] = Field(None, max_length=100)
    estimated_hours: Optional[float] = Field(None, ge=0)
    tags: Optional[str] = Field(None, max_length=500)
    due_date: Optional[datetime] = None

class JobOrderCreate(JobOrderBase):
    pass

class JobOrderUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, max_length=100)
    type: Optional[str] = Field(None, max_length=100)
    priority: Optional[JobOrderPriority] = None
    location: Optional[str] = Field(None, max_length=255)
    asset_id: Optional[str] = Field(None, max_length=100)
    estimated_hours: Optional[float] = Field(None, ge=0)
    tags: Optional[str] = Field(None, max_length=500)
    due_date: Optional[datetime] = None


# ============ Workflow actions ============

class RejectRequest(BaseModel):
    reason: str = ""

class AssignRequest(BaseModel):
    tech_id: int

class ResolveRequest(BaseModel):
    action_taken: str = ""
    resolution_notes: Optional[str] = None

class CommentCreate(BaseModel):
    comment: str = Field(..., min_length=1)
    is_internal: bool = False


# ============ Persisted record views ============

class AttachmentResponse(BaseModel):
    id: int
    job_order_id: int
    file_name: str
    file_url: str
    file_size: int
    mime_type: Optional[str] = None
    uploaded_by: Optional[int] = None
    uploaded_by_name: Optional[str] = None
    uploaded_at: Optional[datetime] = None

class CommentResponse(BaseModel):
    id: int
    job_order_id: int
    user_id: int
    author_name: Optional[str] = None
    comment: str
    is_internal: bool
    created_at: Optional[datetime] = None

class HistoryResponse(BaseModel):
    id: int
    job_order_id: int
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    action: str
    field_changed: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    created_at: Optional[datetime] = None

class JobOrderResponse(BaseModel):
    id: int
    work_order_no: str
    title: str
    description: str
    category: Optional[str] = None
    type: Optional[str] = None
    priority: str
    department: str
    location: Optional[str] = None
    asset_id: Optional[str] = None
    tags: Optional[str] = None
    status: str
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    action_taken: Optional[str] = None
    resolution_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    requester_id: int
    requester_name: Optional[str] = None
    requester_dept: Optional[str] = None
    tech_id: Optional[int] = None
    tech_name: Optional[str] = None
    approved_by_id: Optional[int] = None
    approved_by_name: Optional[str] = None
    closed_by_id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    available_actions: List[str] = []

class JobOrderDetail(JobOrderResponse):
    attachments: List[AttachmentResponse] = []
    comments: List[CommentResponse] = []
    history: List[HistoryResponse] = []


# ============ Ticket (display projection) ============

class TicketUser(BaseModel):
    id: str
    name: str
    avatar: str
    department: Optional[str] = None

class TicketAttachment(BaseModel):
    id: str
    name: str
    size: int = 0
    type: Optional[str] = None
    url: str
    uploaded_at: Optional[datetime] = None

class Ticket(BaseModel):
    id: str
    raw_id: int
    title: str
    description: str
    status: JobOrderStatus
    priority: JobOrderPriority
    assignee: Optional[TicketUser] = None
    requester: TicketUser
    category: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    due_date: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    tags: List[str] = []
    attachments: Optional[List[TicketAttachment]] = None
    action_taken: Optional[str] = None
    resolution_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    department: Optional[str] = None

class TicketDraft(BaseModel):
    """What the create-ticket form collects."""
    title: str
    description: str
    priority: JobOrderPriority = JobOrderPriority.MEDIUM
    category: str = "General"
    tags: Optional[List[str]] = None
    department: Optional[str] = None


# ============ Queries ============

SORTABLE_COLUMNS = ("created_at", "updated_at", "priority", "status", "work_order_no", "id")

class JobOrderFilters(BaseModel):
    status: Optional[JobOrderStatus] = None
    priority: Optional[JobOrderPriority] = None
    department: Optional[str] = None
    search: Optional[str] = None
    requester_id: Optional[int] = None
    tech_id: Optional[int] = None
    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    sort_by: str = "created_at"
    sort_order: str = "desc"

    @validator('sort_by')
    def known_sort_column(cls, v):
        return v if v in SORTABLE_COLUMNS else "created_at"

    @validator('sort_order')
    def normalize_sort_order(cls, v):
        return "asc" if (v or "").lower() == "asc" else "desc"

class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

class TicketListResponse(BaseModel):
    items: List[Ticket]
    pagination: PaginationMeta

class JobOrderStatsResponse(BaseModel):
    total: int
    pending_approval: int = 0
    approved: int = 0
    queued: int = 0
    assigned: int = 0
    in_progress: int = 0
    on_hold: int = 0
    resolved: int = 0
    closed: int = 0
    rejected: int = 0
    cancelled: int = 0

class QueuePullResponse(BaseModel):
    job_order: Optional[JobOrderResponse] = None
    message: str

class JobOrderCreateResponse(BaseModel):
    job_order: JobOrderResponse
    attachments: List[AttachmentResponse] = []
    failed_attachments: List[str] = []
    message: str
