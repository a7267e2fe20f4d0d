from fastapi import APIRouter, Depends, HTTPException, status, Query, Form, File, UploadFile
from pydantic import ValidationError as PydanticValidationError
from typing import List, Optional
from datetime import datetime
import math

from apps.job_orders.schemas import (
    JobOrderCreate, JobOrderUpdate, JobOrderResponse, JobOrderDetail, JobOrderFilters,
    JobOrderStatsResponse, JobOrderCreateResponse, RejectRequest, AssignRequest,
    ResolveRequest, CommentCreate, AttachmentResponse, CommentResponse,
    Ticket, TicketListResponse, PaginationMeta, QueuePullResponse
)
from apps.job_orders.services import JobOrderService, get_job_order_service
from apps.job_orders.projection import map_job_order_to_ticket
from apps.job_orders.models import JobOrderStatus, JobOrderPriority
from apps.auth.schemas import UserSession
from apps.auth.services import get_current_session

router = APIRouter()

# ============ STATIC ROUTES FIRST (before /{job_order_id}) ============

@router.get(
    "/stats/summary",
    response_model=JobOrderStatsResponse,
    summary="Get job order statistics",
    description="Counts per status over the job orders the caller can see"
)
def get_job_order_stats(
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    return JobOrderStatsResponse(**service.get_stats(session))

@router.get(
    "/my-active",
    response_model=List[Ticket],
    summary="Get my active job orders",
    description="The caller's open job orders, most urgent first"
)
def get_my_active_job_orders(
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    return [map_job_order_to_ticket(job) for job in service.get_my_active(session)]

@router.get(
    "/pending-approvals",
    response_model=List[Ticket],
    summary="Get job orders awaiting my approval",
    description="Pending job orders of the department the caller approves for"
)
def get_pending_approvals(
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    return [map_job_order_to_ticket(job) for job in service.get_pending_approvals(session)]

@router.get(
    "/queue",
    response_model=List[Ticket],
    summary="Get the assignment queue",
    description="Approved job orders waiting for a technician (IT staff)"
)
def get_queue(
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    return [map_job_order_to_ticket(job) for job in service.get_queue(session)]

@router.post(
    "/queue/next",
    response_model=QueuePullResponse,
    summary="Take the next job order from the queue",
    description="Assign the most urgent queued job order to the calling technician"
)
def pull_next_from_queue(
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    job = service.pull_next_from_queue(session)
    if job is None:
        return QueuePullResponse(message="No work orders in queue")
    return QueuePullResponse(
        job_order=service.job_order_to_response(job, session),
        message=f"Job order {job.work_order_no} assigned to you",
    )

# ============ CRUD ROUTES ============

@router.post(
    "/",
    response_model=JobOrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a job order",
    description="File a new IT job order. It starts in pending_approval."
)
def create_job_order(
    job_order: JobOrderCreate,
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    job = service.create_job_order(job_order, session)
    return service.job_order_to_response(job, session)

@router.post(
    "/submit",
    response_model=JobOrderCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a job order with attachments",
    description="Multipart variant of create. Failed uploads are listed without undoing the order."
)
def submit_job_order(
    title: str = Form(...),
    description: str = Form(...),
    department: str = Form(...),
    category: Optional[str] = Form(None),
    type: Optional[str] = Form(None),
    priority: JobOrderPriority = Form(JobOrderPriority.MEDIUM),
    location: Optional[str] = Form(None),
    asset_id: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    due_date: Optional[datetime] = Form(None),
    files: List[UploadFile] = File(default=[]),
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    try:
        data = JobOrderCreate(
            title=title, description=description, department=department, category=category,
            type=type, priority=priority, location=location, asset_id=asset_id, tags=tags,
            due_date=due_date,
        )
    except PydanticValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.errors())
    return service.submit_job_order(data, files, session)

@router.get(
    "/",
    response_model=TicketListResponse,
    summary="List job orders",
    description="Filtered, paginated tickets. Visibility depends on the caller's position."
)
def list_job_orders(
    status_filter: Optional[JobOrderStatus] = Query(None, alias="status", description="Filter by status"),
    priority: Optional[JobOrderPriority] = Query(None, description="Filter by priority"),
    department: Optional[str] = Query(None, description="Filter by department"),
    search: Optional[str] = Query(None, description="Search title, description and work order number"),
    requester_id: Optional[int] = Query(None, description="Filter by requester"),
    tech_id: Optional[int] = Query(None, description="Filter by assigned technician"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc"),
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    try:
        filters = JobOrderFilters(
            status=status_filter, priority=priority, department=department, search=search,
            requester_id=requester_id, tech_id=tech_id, page=page, limit=limit,
            sort_by=sort_by, sort_order=sort_order,
        )
    except PydanticValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.errors())

    try:
        records, total = service.list_job_orders(filters, session)
    except HTTPException:
        raise
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

    return TicketListResponse(
        items=[map_job_order_to_ticket(record) for record in records],
        pagination=PaginationMeta(
            page=filters.page,
            limit=filters.limit,
            total=total,
            pages=math.ceil(total / filters.limit),
        ),
    )

# ============ DYNAMIC ROUTES (must come after static routes) ============

@router.get(
    "/number/{work_order_no}",
    response_model=JobOrderDetail,
    summary="Get job order by work order number"
)
def get_job_order_by_number(
    work_order_no: str,
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    job = service.get_job_order_by_number(work_order_no)
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job order not found")
    return service.get_job_order_detail(job.id, session)

@router.get(
    "/{job_order_id}",
    response_model=JobOrderDetail,
    summary="Get job order by ID",
    description="The job order with its attachments, comments and history"
)
def get_job_order(
    job_order_id: int,
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    return service.get_job_order_detail(job_order_id, session)

@router.get(
    "/{job_order_id}/ticket",
    response_model=Ticket,
    summary="Get job order as a ticket"
)
def get_ticket(
    job_order_id: int,
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    return map_job_order_to_ticket(service.get_job_order_detail(job_order_id, session))

@router.put(
    "/{job_order_id}",
    response_model=JobOrderResponse,
    summary="Edit job order details",
    description="Change classification fields (IT staff or the requester)"
)
def update_job_order(
    job_order_id: int,
    job_order_update: JobOrderUpdate,
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    job = service.update_job_order(job_order_id, job_order_update, session)
    return service.job_order_to_response(job, session)

@router.delete(
    "/{job_order_id}",
    response_model=JobOrderResponse,
    summary="Cancel job order",
    description="Job orders are never removed; deleting cancels them"
)
def delete_job_order(
    job_order_id: int,
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    job = service.cancel(job_order_id, session)
    return service.job_order_to_response(job, session)

# ============ WORKFLOW ============

@router.post("/{job_order_id}/approve", response_model=JobOrderResponse, summary="Approve job order")
def approve_job_order(
    job_order_id: int,
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    return service.job_order_to_response(service.approve(job_order_id, session), session)

@router.post("/{job_order_id}/reject", response_model=JobOrderResponse, summary="Reject job order")
def reject_job_order(
    job_order_id: int,
    body: RejectRequest,
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    return service.job_order_to_response(service.reject(job_order_id, body.reason, session), session)

@router.post("/{job_order_id}/assign", response_model=JobOrderResponse, summary="Assign job order to a technician")
def assign_job_order(
    job_order_id: int,
    body: AssignRequest,
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    return service.job_order_to_response(service.assign(job_order_id, body.tech_id, session), session)

@router.post("/{job_order_id}/start", response_model=JobOrderResponse, summary="Start work on job order")
def start_job_order(
    job_order_id: int,
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    return service.job_order_to_response(service.start(job_order_id, session), session)

@router.post("/{job_order_id}/resolve", response_model=JobOrderResponse, summary="Resolve job order")
def resolve_job_order(
    job_order_id: int,
    body: ResolveRequest,
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    job = service.resolve(job_order_id, body.action_taken, body.resolution_notes, session)
    return service.job_order_to_response(job, session)

@router.post("/{job_order_id}/close", response_model=JobOrderResponse, summary="Close job order")
def close_job_order(
    job_order_id: int,
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    return service.job_order_to_response(service.close(job_order_id, session), session)

@router.post("/{job_order_id}/cancel", response_model=JobOrderResponse, summary="Cancel job order")
def cancel_job_order(
    job_order_id: int,
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    return service.job_order_to_response(service.cancel(job_order_id, session), session)

@router.post("/{job_order_id}/hold", response_model=JobOrderResponse, summary="Put job order on hold")
def hold_job_order(
    job_order_id: int,
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    return service.job_order_to_response(service.hold(job_order_id, session), session)

@router.post("/{job_order_id}/resume", response_model=JobOrderResponse, summary="Resume an on-hold job order")
def resume_job_order(
    job_order_id: int,
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    return service.job_order_to_response(service.resume(job_order_id, session), session)

# ============ ATTACHMENTS & COMMENTS ============

@router.post(
    "/{job_order_id}/attachments",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload attachment"
)
def upload_attachment(
    job_order_id: int,
    file: UploadFile = File(...),
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    attachment = service.add_attachment(job_order_id, file.filename, file.file, file.content_type, session)
    return service.attachment_to_response(attachment)

@router.post(
    "/{job_order_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add comment"
)
def add_comment(
    job_order_id: int,
    body: CommentCreate,
    service: JobOrderService = Depends(get_job_order_service),
    session: UserSession = Depends(get_current_session)
):
    return service.comment_to_response(service.add_comment(job_order_id, body, session))
