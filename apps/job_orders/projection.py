"""
Mapping between persisted job order records and the ticket view the
dashboard renders.

Both functions are pure: they read their argument and build a new object.
"""
from typing import Any, List, Mapping, Optional

from apps.job_orders.models import JobOrderStatus, JobOrderPriority
from apps.job_orders.schemas import (
    JobOrderCreate, Ticket, TicketAttachment, TicketDraft, TicketUser
)


def map_status(value: Any) -> JobOrderStatus:
    try:
        return JobOrderStatus(value)
    except ValueError:
        return JobOrderStatus.PENDING_APPROVAL


def map_priority(value: Any) -> JobOrderPriority:
    try:
        return JobOrderPriority(value)
    except ValueError:
        return JobOrderPriority.MEDIUM


def initials(name: Optional[str], fallback: str) -> str:
    return name[:2].upper() if name else fallback


def parse_tags(tags: Optional[str]) -> List[str]:
    if not tags:
        return []
    return [tag.strip() for tag in tags.split(",") if tag.strip()]


def _attachment(data: Mapping[str, Any]) -> TicketAttachment:
    return TicketAttachment(
        id=str(data.get("id")),
        name=data.get("file_name") or data.get("name") or "",
        size=data.get("file_size") or data.get("size") or 0,
        type=data.get("mime_type") or data.get("type"),
        url=data.get("file_url") or data.get("url") or "",
        uploaded_at=data.get("uploaded_at"),
    )


def map_job_order_to_ticket(record: Mapping[str, Any]) -> Ticket:
    tech_id = record.get("tech_id")
    tech_name = record.get("tech_name")
    requester_name = record.get("requester_name")

    assignee = None
    if tech_id:
        assignee = TicketUser(
            id=str(tech_id),
            name=tech_name or "Unknown Tech",
            avatar=initials(tech_name, "TT"),
        )

    attachments = record.get("attachments")

    return Ticket(
        id=record["work_order_no"],
        raw_id=record["id"],
        title=record["title"],
        description=record["description"],
        status=map_status(record.get("status")),
        priority=map_priority(record.get("priority")),
        assignee=assignee,
        requester=TicketUser(
            id=str(record.get("requester_id")),
            name=requester_name or "Unknown User",
            avatar=initials(requester_name, "UU"),
            department=record.get("requester_dept"),
        ),
        category=record.get("category") or record.get("type") or "General",
        created_at=record.get("created_at"),
        updated_at=record.get("updated_at"),
        due_date=record.get("due_date"),
        resolved_at=record.get("resolved_at"),
        tags=parse_tags(record.get("tags")),
        attachments=[_attachment(a) for a in attachments] if attachments is not None else None,
        action_taken=record.get("action_taken"),
        resolution_notes=record.get("resolution_notes"),
        rejection_reason=record.get("rejection_reason"),
        department=record.get("department"),
    )


def map_ticket_to_job_order_payload(draft: TicketDraft) -> JobOrderCreate:
    return JobOrderCreate(
        title=draft.title,
        description=draft.description,
        type=draft.category.lower(),
        category=draft.category,
        priority=draft.priority,
        department=draft.department or "IT",
        tags=",".join(draft.tags) if draft.tags else None,
    )
