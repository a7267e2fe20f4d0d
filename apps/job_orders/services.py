from sqlalchemy.orm import Session
from sqlalchemy import or_, func, case
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from typing import List, Optional, Tuple, Dict, BinaryIO
from fastapi import Depends, HTTPException
from datetime import datetime
import logging

from apps.job_orders.models import (
    JobOrder, JobOrderStatus, JobOrderPriority,
    JobOrderAttachment, JobOrderComment, JobOrderHistory
)
from apps.job_orders.schemas import (
    JobOrderCreate, JobOrderUpdate, JobOrderFilters, CommentCreate
)
from core.storage import FileStorage, get_file_storage
from apps.job_orders.workflow import (
    Transition, TRANSITIONS, ACTIVE_STATUSES,
    check_transition, authorize, target_status, available_transitions, is_terminal
)
from apps.auth.models import UserModel
from apps.auth.schemas import UserSession
from apps.auth.permissions import TROUBLESHOOTER_POSITIONS, department_aliases, same_department
from apps.notifications.services import NotificationService
from core.database import get_db
from core.exceptions import NotFound, InvalidTransition, ValidationError, PermissionDenied, UpstreamFailure

logger = logging.getLogger(__name__)

WORK_ORDER_PREFIX = "JOR"
MAX_NUMBER_ATTEMPTS = 3
MAX_QUEUE_ATTEMPTS = 5

HISTORY_ACTIONS = {
    Transition.APPROVE: "approved",
    Transition.REJECT: "rejected",
    Transition.ASSIGN: "assigned",
    Transition.START: "started",
    Transition.RESOLVE: "resolved",
    Transition.CLOSE: "closed",
    Transition.CANCEL: "cancelled",
    Transition.HOLD: "on_hold",
    Transition.RESUME: "resumed",
}

EDITABLE_FIELDS = (
    "title", "description", "category", "type", "priority", "location",
    "asset_id", "estimated_hours", "tags", "due_date",
)

# NOT NULL columns that an edit may change but never clear
REQUIRED_FIELDS = ("title", "description", "priority")

priority_rank = case(
    (JobOrder.priority == JobOrderPriority.CRITICAL, 1),
    (JobOrder.priority == JobOrderPriority.HIGH, 2),
    (JobOrder.priority == JobOrderPriority.MEDIUM, 3),
    (JobOrder.priority == JobOrderPriority.LOW, 4),
    else_=5,
)


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _history_value(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (JobOrderStatus, JobOrderPriority)):
        return value.value
    return str(value)


class JobOrderService:
    def __init__(
        self,
        db: Session,
        notifications: Optional[NotificationService] = None,
        storage: Optional[FileStorage] = None,
    ):
        self.db = db
        self.notifications = notifications or NotificationService(db)
        self.storage = storage or get_file_storage()

    # ============ Numbering ============

    def generate_work_order_no(self, now: Optional[datetime] = None) -> str:
        """Next JOR-YYYY-MM-NNN number; the sequence restarts every month."""
        now = now or datetime.utcnow()
        prefix = f"{WORK_ORDER_PREFIX}-{now.year}-{now.month:02d}"
        rows = self.db.query(JobOrder.work_order_no).filter(
            JobOrder.work_order_no.startswith(f"{prefix}-", autoescape=True)
        ).all()
        last_number = 0
        for (work_order_no,) in rows:
            suffix = work_order_no.rsplit("-", 1)[-1]
            if suffix.isdigit():
                last_number = max(last_number, int(suffix))
        return f"{prefix}-{last_number + 1:03d}"

    # ============ Lookups and visibility ============

    def get_job_order(self, job_order_id: int) -> Optional[JobOrder]:
        return self.db.query(JobOrder).filter(JobOrder.id == job_order_id).first()

    def get_job_order_by_number(self, work_order_no: str) -> Optional[JobOrder]:
        return self.db.query(JobOrder).filter(JobOrder.work_order_no == work_order_no).first()

    def _get_or_404(self, job_order_id: int) -> JobOrder:
        job = self.get_job_order(job_order_id)
        if not job:
            raise NotFound("Job order not found")
        return job

    def _apply_visibility(self, query, session: UserSession):
        perms = session.permissions
        if perms.is_troubleshooter:
            return query
        if perms.is_approver:
            return query.filter(
                or_(
                    JobOrder.requester_id == session.user_id,
                    func.lower(func.trim(JobOrder.department)).in_(department_aliases(perms.approvable_dept)),
                )
            )
        return query.filter(JobOrder.requester_id == session.user_id)

    def can_view(self, job: JobOrder, session: UserSession) -> bool:
        perms = session.permissions
        if perms.is_troubleshooter or job.requester_id == session.user_id:
            return True
        return perms.is_approver and same_department(perms.approvable_dept, job.department)

    def _get_visible(self, job_order_id: int, session: UserSession) -> JobOrder:
        job = self._get_or_404(job_order_id)
        if not self.can_view(job, session):
            raise PermissionDenied("Access denied to this job order")
        return job

    # ============ Queries ============

    def list_job_orders(self, filters: JobOrderFilters, session: UserSession) -> Tuple[List[Dict], int]:
        """Filtered, paginated job orders visible to ``session``."""
        query = self._apply_visibility(self.db.query(JobOrder), session)

        if filters.status:
            query = query.filter(JobOrder.status == filters.status)
        if filters.priority:
            query = query.filter(JobOrder.priority == filters.priority)
        if filters.department:
            query = query.filter(
                func.lower(func.trim(JobOrder.department)).in_(department_aliases(filters.department))
            )
        if filters.requester_id:
            query = query.filter(JobOrder.requester_id == filters.requester_id)
        if filters.tech_id:
            query = query.filter(JobOrder.tech_id == filters.tech_id)
        if filters.search:
            term = filters.search.strip()
            query = query.filter(
                or_(
                    JobOrder.title.icontains(term, autoescape=True),
                    JobOrder.description.icontains(term, autoescape=True),
                    JobOrder.work_order_no.icontains(term, autoescape=True),
                )
            )

        total = query.count()

        if filters.sort_by == "priority":
            column = priority_rank
            # rank 1 is critical, so "desc" (most urgent first) is ascending rank
            ordering = [column.asc() if filters.sort_order == "desc" else column.desc()]
        else:
            column = getattr(JobOrder, filters.sort_by)
            ordering = [column.asc() if filters.sort_order == "asc" else column.desc()]
        ordering.append(JobOrder.id.asc() if filters.sort_order == "asc" else JobOrder.id.desc())

        offset = (filters.page - 1) * filters.limit
        rows = query.order_by(*ordering).offset(offset).limit(filters.limit).all()
        return [self.job_order_to_response(job, session) for job in rows], total

    def get_job_order_detail(self, job_order_id: int, session: UserSession) -> Dict:
        job = self._get_visible(job_order_id, session)
        data = self.job_order_to_response(job, session)
        comments = job.comments
        if not session.permissions.is_troubleshooter:
            comments = [c for c in comments if not c.is_internal]
        data["attachments"] = [self.attachment_to_response(a) for a in job.attachments]
        data["comments"] = [self.comment_to_response(c) for c in comments]
        data["history"] = [self.history_to_response(h) for h in job.history]
        return data

    def get_my_active(self, session: UserSession) -> List[Dict]:
        """The requester's open orders, most urgent first (floating tracker)."""
        rows = (
            self.db.query(JobOrder)
            .filter(JobOrder.requester_id == session.user_id, JobOrder.status.in_(list(ACTIVE_STATUSES)))
            .order_by(priority_rank.asc(), JobOrder.created_at.desc(), JobOrder.id.desc())
            .all()
        )
        return [self.job_order_to_response(job, session) for job in rows]

    def get_pending_approvals(self, session: UserSession) -> List[Dict]:
        perms = session.permissions
        if not perms.is_approver:
            return []
        rows = (
            self.db.query(JobOrder)
            .filter(
                JobOrder.status == JobOrderStatus.PENDING_APPROVAL,
                func.lower(func.trim(JobOrder.department)).in_(department_aliases(perms.approvable_dept)),
            )
            .order_by(priority_rank.asc(), JobOrder.created_at.asc(), JobOrder.id.asc())
            .all()
        )
        return [self.job_order_to_response(job, session) for job in rows]

    def _queued(self, query):
        """Queued orders, most urgent first, then longest waiting."""
        return (
            query.filter(JobOrder.status == JobOrderStatus.QUEUED)
            .order_by(priority_rank.asc(), JobOrder.approved_at.asc(), JobOrder.id.asc())
        )

    def get_queue(self, session: UserSession) -> List[Dict]:
        if not session.permissions.is_troubleshooter:
            raise PermissionDenied("Only IT staff can view the queue")
        rows = self._queued(self.db.query(JobOrder)).all()
        return [self.job_order_to_response(job, session) for job in rows]

    def get_stats(self, session: UserSession) -> Dict:
        query = self._apply_visibility(self.db.query(JobOrder.status, func.count(JobOrder.id)), session)
        stats = query.group_by(JobOrder.status).all()

        stats_dict = {s.value: 0 for s in JobOrderStatus}
        for job_status, count in stats:
            stats_dict[JobOrderStatus(job_status).value] = count
        stats_dict["total"] = sum(count for _, count in stats)
        return stats_dict

    # ============ Creation and edits ============

    def create_job_order(self, data: JobOrderCreate, session: UserSession) -> JobOrder:
        """Create a pending job order filed by ``session``."""
        missing = [
            field for field in ("title", "description", "department")
            if _is_blank(getattr(data, field))
        ]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        values = data.model_dump()
        for field in ("title", "description", "department"):
            values[field] = values[field].strip()

        for attempt in range(MAX_NUMBER_ATTEMPTS):
            work_order_no = self.generate_work_order_no()
            job = JobOrder(
                **values,
                work_order_no=work_order_no,
                status=JobOrderStatus.PENDING_APPROVAL,
                requester_id=session.user_id,
            )
            self.db.add(job)
            try:
                self.db.flush()
            except IntegrityError:
                self.db.rollback()
                logger.warning(f"Work order number {work_order_no} taken, retrying")
                continue
            self._log_history(job.id, session.user_id, "created", "status", None, JobOrderStatus.PENDING_APPROVAL.value)
            self.db.commit()
            self.db.refresh(job)
            break
        else:
            raise UpstreamFailure("Could not allocate a work order number, please retry")

        logger.info(f"Created job order: {job.work_order_no} for department: {job.department}")
        self.notifications.notify_approvers_on_create(job, session.name, session.user_id)
        return job

    def submit_job_order(self, data: JobOrderCreate, files: list, session: UserSession) -> Dict:
        """
        Create a job order and upload its attachments.

        The order is committed before any file is stored. A file that fails to
        upload is reported in ``failed_attachments``; the order stays.
        """
        job = self.create_job_order(data, session)
        attachments, failed = [], []
        for upload in files or []:
            try:
                attachment = self.add_attachment(
                    job.id, upload.filename, upload.file, upload.content_type, session
                )
                attachments.append(self.attachment_to_response(attachment))
            except HTTPException as e:
                logger.warning(f"Attachment {upload.filename!r} failed for {job.work_order_no}: {e.detail}")
                failed.append(upload.filename or "")
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"Attachment {upload.filename!r} could not be saved for {job.work_order_no}: {e}")
                failed.append(upload.filename or "")

        message = "Job order created successfully"
        if failed:
            message += f", but {len(failed)} attachment(s) could not be uploaded"
        return {
            "job_order": self.job_order_to_response(job, session),
            "attachments": attachments,
            "failed_attachments": failed,
            "message": message,
        }

    def update_job_order(self, job_order_id: int, update: JobOrderUpdate, session: UserSession) -> JobOrder:
        """Edit classification fields. Status only changes through transitions."""
        job = self._get_visible(job_order_id, session)
        if not (session.permissions.is_troubleshooter or job.requester_id == session.user_id):
            raise PermissionDenied("Only IT staff or the requester can edit this job order")
        if is_terminal(job.status):
            raise InvalidTransition(f"Cannot edit a {JobOrderStatus(job.status).value} job order")

        update_data = update.model_dump(exclude_unset=True)
        if not update_data:
            raise ValidationError("No valid fields to update")

        cleared = [
            field for field in REQUIRED_FIELDS
            if field in update_data
            and (update_data[field] is None or (isinstance(update_data[field], str) and _is_blank(update_data[field])))
        ]
        if cleared:
            raise ValidationError(f"Fields cannot be empty: {', '.join(cleared)}")
        for field in ("title", "description"):
            if field in update_data:
                update_data[field] = update_data[field].strip()

        for field, value in update_data.items():
            if field not in EDITABLE_FIELDS:
                continue
            current = getattr(job, field)
            if current != value:
                self._log_history(
                    job.id, session.user_id, "updated", field, _history_value(current), _history_value(value)
                )
                setattr(job, field, value)

        self.db.commit()
        self.db.refresh(job)
        logger.info(f"Updated job order {job.work_order_no} by user {session.username}")
        return job

    def add_attachment(
        self,
        job_order_id: int,
        filename: str,
        fileobj: BinaryIO,
        content_type: Optional[str],
        session: UserSession,
    ) -> JobOrderAttachment:
        job = self._get_visible(job_order_id, session)
        if not filename:
            raise ValidationError("No file uploaded")

        stored = self.storage.save(filename, fileobj)

        attachment = JobOrderAttachment(
            job_order_id=job.id,
            file_name=filename,
            file_path=stored.path,
            file_url=stored.url,
            file_size=stored.size,
            mime_type=content_type,
            uploaded_by=session.user_id,
        )
        self.db.add(attachment)
        self._log_history(job.id, session.user_id, "attachment_added", "attachments", None, filename)
        self.db.commit()
        self.db.refresh(attachment)
        logger.info(f"Attached {filename} to job order {job.work_order_no}")
        return attachment

    def add_comment(self, job_order_id: int, data: CommentCreate, session: UserSession) -> JobOrderComment:
        job = self._get_visible(job_order_id, session)
        if _is_blank(data.comment):
            raise ValidationError("Comment is required")
        if data.is_internal and not session.permissions.is_troubleshooter:
            raise PermissionDenied("Only IT staff can add internal comments")

        comment = JobOrderComment(
            job_order_id=job.id,
            user_id=session.user_id,
            comment=data.comment.strip(),
            is_internal=data.is_internal,
        )
        self.db.add(comment)
        self._log_history(job.id, session.user_id, "comment_added", "comments", None, comment.comment[:100])
        self.db.commit()
        self.db.refresh(comment)
        return comment

    # ============ Transitions ============

    def _prepare(self, job_order_id: int, transition: Transition, session: UserSession) -> JobOrder:
        job = self._get_or_404(job_order_id)
        check_transition(job.status, transition)
        authorize(transition, session, job)
        return job

    def _commit_transition(
        self,
        job: JobOrder,
        transition: Transition,
        session: UserSession,
        values: Optional[Dict] = None,
        now: Optional[datetime] = None,
    ) -> JobOrder:
        """
        Write the new status, its timestamp and the audit fields in one UPDATE
        guarded by the status the caller validated against. If another request
        changed the status in between, nothing is written.
        """
        now = now or datetime.utcnow()
        previous = JobOrderStatus(job.status)
        target = target_status(transition, job)
        rule = TRANSITIONS[transition]

        changes = dict(values or {})
        changes["status"] = target
        changes["updated_at"] = now
        if rule.timestamp_field:
            changes[rule.timestamp_field] = now

        updated = (
            self.db.query(JobOrder)
            .filter(JobOrder.id == job.id, JobOrder.status == previous)
            .update(changes, synchronize_session=False)
        )
        if updated != 1:
            self.db.rollback()
            raise InvalidTransition(
                f"Cannot {transition.value}. Job order {job.work_order_no} was changed by another request"
            )

        self._log_history(
            job.id, session.user_id, HISTORY_ACTIONS[transition], "status", previous.value, target.value
        )
        self.db.commit()
        self.db.refresh(job)
        logger.info(
            f"Job order {job.work_order_no}: {previous.value} -> {target.value} by {session.username}"
        )
        return job

    def approve(self, job_order_id: int, session: UserSession) -> JobOrder:
        job = self._prepare(job_order_id, Transition.APPROVE, session)
        job = self._commit_transition(job, Transition.APPROVE, session, {"approved_by_id": session.user_id})
        self.notifications.notify_requester_on_approve(job, session.user_id)
        self.notifications.notify_it_officers_on_queue(job, session.user_id)
        return job

    def reject(self, job_order_id: int, reason: Optional[str], session: UserSession) -> JobOrder:
        job = self._prepare(job_order_id, Transition.REJECT, session)
        if _is_blank(reason):
            raise ValidationError("Rejection reason is required")
        job = self._commit_transition(job, Transition.REJECT, session, {"rejection_reason": reason})
        self.notifications.notify_requester_on_reject(job, reason, session.user_id)
        return job

    def assign(self, job_order_id: int, tech_id: int, session: UserSession) -> JobOrder:
        job = self._prepare(job_order_id, Transition.ASSIGN, session)
        tech = self.db.query(UserModel).filter(
            UserModel.id == tech_id,
            UserModel.position.in_(sorted(TROUBLESHOOTER_POSITIONS)),
        ).first()
        if not tech:
            raise ValidationError(f"Technician {tech_id} not found")
        job = self._commit_transition(job, Transition.ASSIGN, session, {"tech_id": tech.id})
        self.notifications.notify_tech_on_assign(job, session.user_id)
        self.notifications.notify_requester_on_status_update(job, JobOrderStatus.ASSIGNED.value, session.user_id)
        return job

    def pull_next_from_queue(self, session: UserSession) -> Optional[JobOrder]:
        """
        Assign the head of the queue to the calling technician.

        Returns None when the queue is empty. An order taken by someone else
        in the meantime is skipped in favour of the next one.
        """
        if not session.permissions.is_troubleshooter:
            raise PermissionDenied("Only IT staff can take work from the queue")
        candidates = self._queued(self.db.query(JobOrder.id)).limit(MAX_QUEUE_ATTEMPTS).all()
        for (job_id,) in candidates:
            try:
                return self.assign(job_id, session.user_id, session)
            except InvalidTransition:
                logger.info(f"Job order {job_id} left the queue before {session.username} could take it")
        return None

    def start(self, job_order_id: int, session: UserSession) -> JobOrder:
        job = self._prepare(job_order_id, Transition.START, session)
        active = self.db.query(JobOrder).filter(
            JobOrder.tech_id == job.tech_id,
            JobOrder.status == JobOrderStatus.IN_PROGRESS,
            JobOrder.id != job.id,
        ).first()
        if active:
            raise InvalidTransition(
                f"Technician already has an active work order ({active.work_order_no}). Complete it first."
            )
        job = self._commit_transition(job, Transition.START, session)
        self.notifications.notify_requester_on_status_update(job, JobOrderStatus.IN_PROGRESS.value, session.user_id)
        return job

    def resolve(
        self,
        job_order_id: int,
        action_taken: Optional[str],
        resolution_notes: Optional[str],
        session: UserSession,
    ) -> JobOrder:
        job = self._prepare(job_order_id, Transition.RESOLVE, session)
        if _is_blank(action_taken):
            raise ValidationError("action_taken is required")

        now = datetime.utcnow()
        actual_hours = None
        if job.started_at:
            actual_hours = round((now - job.started_at).total_seconds() / 3600, 2)

        job = self._commit_transition(
            job, Transition.RESOLVE, session,
            {
                "action_taken": action_taken,
                "resolution_notes": resolution_notes,
                "actual_hours": actual_hours,
            },
            now=now,
        )
        self.notifications.notify_requester_on_resolve(job, session.user_id)
        return job

    def close(self, job_order_id: int, session: UserSession) -> JobOrder:
        job = self._prepare(job_order_id, Transition.CLOSE, session)
        job = self._commit_transition(job, Transition.CLOSE, session, {"closed_by_id": session.user_id})
        if job.requester_id != session.user_id:
            self.notifications.notify_requester_on_status_update(job, JobOrderStatus.CLOSED.value, session.user_id)
        return job

    def cancel(self, job_order_id: int, session: UserSession) -> JobOrder:
        job = self._prepare(job_order_id, Transition.CANCEL, session)
        job = self._commit_transition(job, Transition.CANCEL, session)
        if job.requester_id != session.user_id:
            self.notifications.notify_requester_on_status_update(job, JobOrderStatus.CANCELLED.value, session.user_id)
        return job

    def hold(self, job_order_id: int, session: UserSession) -> JobOrder:
        job = self._prepare(job_order_id, Transition.HOLD, session)
        job = self._commit_transition(
            job, Transition.HOLD, session, {"held_from_status": JobOrderStatus(job.status).value}
        )
        self.notifications.notify_requester_on_status_update(job, JobOrderStatus.ON_HOLD.value, session.user_id)
        return job

    def resume(self, job_order_id: int, session: UserSession) -> JobOrder:
        job = self._prepare(job_order_id, Transition.RESUME, session)
        job = self._commit_transition(job, Transition.RESUME, session, {"held_from_status": None})
        self.notifications.notify_requester_on_status_update(job, JobOrderStatus(job.status).value, session.user_id)
        return job

    # ============ Helpers ============

    def _log_history(self, job_order_id, user_id, action, field_changed=None, old_value=None, new_value=None):
        self.db.add(JobOrderHistory(
            job_order_id=job_order_id,
            user_id=user_id,
            action=action,
            field_changed=field_changed,
            old_value=old_value,
            new_value=new_value,
        ))

    def job_order_to_response(self, job: JobOrder, session: Optional[UserSession] = None) -> Dict:
        """Convert JobOrder model to response dictionary"""
        return {
            "id": job.id,
            "work_order_no": job.work_order_no,
            "title": job.title,
            "description": job.description,
            "category": job.category,
            "type": job.type,
            "priority": _history_value(job.priority),
            "department": job.department,
            "location": job.location,
            "asset_id": job.asset_id,
            "tags": job.tags,
            "status": _history_value(job.status),
            "estimated_hours": job.estimated_hours,
            "actual_hours": job.actual_hours,
            "action_taken": job.action_taken,
            "resolution_notes": job.resolution_notes,
            "rejection_reason": job.rejection_reason,
            "requester_id": job.requester_id,
            "requester_name": job.requester.name if job.requester else None,
            "requester_dept": job.requester.dept if job.requester else None,
            "tech_id": job.tech_id,
            "tech_name": job.tech.name if job.tech else None,
            "approved_by_id": job.approved_by_id,
            "approved_by_name": job.approved_by.name if job.approved_by else None,
            "closed_by_id": job.closed_by_id,
            "created_at": job.created_at,
            "updated_at": job.updated_at,
            "due_date": job.due_date,
            "approved_at": job.approved_at,
            "assigned_at": job.assigned_at,
            "started_at": job.started_at,
            "resolved_at": job.resolved_at,
            "closed_at": job.closed_at,
            "available_actions": [t.value for t in available_transitions(session, job)] if session else [],
        }

    def attachment_to_response(self, attachment: JobOrderAttachment) -> Dict:
        return {
            "id": attachment.id,
            "job_order_id": attachment.job_order_id,
            "file_name": attachment.file_name,
            "file_url": attachment.file_url,
            "file_size": attachment.file_size,
            "mime_type": attachment.mime_type,
            "uploaded_by": attachment.uploaded_by,
            "uploaded_by_name": attachment.uploader.name if attachment.uploader else None,
            "uploaded_at": attachment.uploaded_at,
        }

    def comment_to_response(self, comment: JobOrderComment) -> Dict:
        return {
            "id": comment.id,
            "job_order_id": comment.job_order_id,
            "user_id": comment.user_id,
            "author_name": comment.author.name if comment.author else None,
            "comment": comment.comment,
            "is_internal": bool(comment.is_internal),
            "created_at": comment.created_at,
        }

    def history_to_response(self, entry: JobOrderHistory) -> Dict:
        return {
            "id": entry.id,
            "job_order_id": entry.job_order_id,
            "user_id": entry.user_id,
            "user_name": entry.user.name if entry.user else None,
            "action": entry.action,
            "field_changed": entry.field_changed,
            "old_value": entry.old_value,
            "new_value": entry.new_value,
            "created_at": entry.created_at,
        }


# Dependency injection
def get_job_order_service(
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_file_storage),
) -> JobOrderService:
    return JobOrderService(db, NotificationService(db), storage)
