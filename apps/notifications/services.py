from sqlalchemy.orm import Session
from sqlalchemy import or_, and_
from typing import List, Optional
from fastapi import Depends
from datetime import datetime
import logging

from apps.notifications.models import Notification
from apps.notifications.schemas import NotificationCreate
from apps.auth.models import UserModel
from apps.auth.schemas import UserSession
from apps.auth.permissions import (
    normalize_department, approver_positions_for, APPROVER_DEPT_MAP, TROUBLESHOOTER_POSITIONS
)
from core.database import get_db
from core.exceptions import NotFound, PermissionDenied, ValidationError

logger = logging.getLogger(__name__)

JOB_ORDER_LINK = "/dashboard/it-job-order"

POSTABLE_DEPARTMENTS = frozenset({"admin", "administrator", "program", "laboratory", "followup"})

STATUS_LABELS = {
    "in_progress": "is now in progress. Your IT Officer has started working on it",
    "on_hold": "has been put on hold",
    "closed": "has been closed",
    "cancelled": "has been cancelled",
    "queued": "is queued and waiting to be assigned to an IT Officer",
    "assigned": "has been assigned to an IT Officer",
}


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    # ============ Writing ============

    def send(
        self,
        department: Optional[str],
        type: str,
        title: str,
        message: str,
        created_by: Optional[int],
        user_id: Optional[int] = None,
        link: Optional[str] = None,
        reference_id: Optional[int] = None,
        reference_type: Optional[str] = None,
    ) -> Notification:
        """Store a notification for a user, or for a whole department when user_id is None."""
        missing = [
            name for name, value in (
                ("department", department), ("type", type), ("title", title), ("message", message)
            ) if not value
        ]
        if missing:
            raise ValidationError(f"Missing required notification fields: {', '.join(missing)}")

        notification = Notification(
            department=normalize_department(department),
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            link=link,
            reference_id=reference_id,
            reference_type=reference_type,
            created_by=created_by,
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def create_notification(self, data: NotificationCreate, session: UserSession) -> Notification:
        """Post a notification on behalf of the current user."""
        department = normalize_department(data.department)
        if department and department not in POSTABLE_DEPARTMENTS:
            raise ValidationError(
                f"Invalid department '{data.department}'. Valid: {', '.join(sorted(POSTABLE_DEPARTMENTS))}"
            )
        if data.user_id is not None and not self.db.get(UserModel, data.user_id):
            raise ValidationError(f"User {data.user_id} not found")

        notification = self.send(created_by=session.user_id, **data.model_dump())
        logger.info(f"Notification {notification.id} posted to {notification.department} by {session.username}")
        return notification

    def notify_user(
        self,
        user_id: int,
        job_order,
        type: str,
        title: str,
        message: str,
        created_by: Optional[int],
        dept: Optional[str] = None,
    ) -> Optional[Notification]:
        """
        Notify one user about a job order.

        Delivery problems are logged and swallowed: the workflow change that
        triggered the notification is already committed and must stand.
        """
        try:
            department = dept
            if not department:
                user = self.db.query(UserModel).filter(UserModel.id == user_id).first()
                department = user.dept if user else None
            if not department:
                logger.warning(f"No department for user {user_id}, skipping notification for {job_order.work_order_no}")
                return None
            notification = self.send(
                department=department,
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                link=JOB_ORDER_LINK,
                reference_id=job_order.id,
                reference_type="job_order",
                created_by=created_by,
            )
            logger.info(f"Notified user {user_id} ({notification.department}) - {type} - {job_order.work_order_no}")
            return notification
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to notify user {user_id}: {e}")
            return None

    def _users_with_positions(self, positions: List[str]) -> List[UserModel]:
        if not positions:
            return []
        return self.db.query(UserModel).filter(UserModel.position.in_(positions)).all()

    # ============ Job order workflow events ============

    def notify_approvers_on_create(self, job_order, requester_name: str, created_by: int) -> int:
        """Tell the approver of the order's department that it awaits approval."""
        positions = approver_positions_for(job_order.department)
        if not positions:
            logger.warning(
                f"No approver mapped for department '{job_order.department}'. Notifying all approvers."
            )
            positions = list(APPROVER_DEPT_MAP)
        approvers = self._users_with_positions(positions)
        sent = 0
        for approver in approvers:
            if self.notify_user(
                approver.id, job_order, "new_job_order", "New Work Order Submitted",
                f"{requester_name} submitted work order {job_order.work_order_no} and is awaiting your approval.",
                created_by, dept=approver.dept,
            ):
                sent += 1
        return sent

    def notify_it_officers_on_queue(self, job_order, created_by: int) -> int:
        officers = self._users_with_positions(sorted(TROUBLESHOOTER_POSITIONS))
        if not officers:
            logger.warning("No IT officers found to notify.")
        sent = 0
        for officer in officers:
            if self.notify_user(
                officer.id, job_order, "new_job_order", "New Work Order in Queue",
                f"Work order {job_order.work_order_no} from {job_order.department} department "
                f"has been approved and is ready for assignment.",
                created_by, dept=officer.dept,
            ):
                sent += 1
        return sent

    def notify_requester_on_approve(self, job_order, created_by: int):
        return self.notify_user(
            job_order.requester_id, job_order, "approved", "Work Order Approved",
            f"Your work order {job_order.work_order_no} has been approved and added to the queue.",
            created_by,
        )

    def notify_requester_on_reject(self, job_order, reason: str, created_by: int):
        return self.notify_user(
            job_order.requester_id, job_order, "rejected", "Work Order Rejected",
            f"Your work order {job_order.work_order_no} was rejected. Reason: {reason}",
            created_by,
        )

    def notify_tech_on_assign(self, job_order, created_by: int):
        return self.notify_user(
            job_order.tech_id, job_order, "assigned", "New Work Order Assigned",
            f"Work order {job_order.work_order_no} has been assigned to you. Please check the details.",
            created_by,
        )

    def notify_requester_on_resolve(self, job_order, created_by: int):
        return self.notify_user(
            job_order.requester_id, job_order, "resolved", "Work Order Resolved",
            f"Your work order {job_order.work_order_no} has been resolved. "
            f"Please verify and close it if satisfied.",
            created_by,
        )

    def notify_requester_on_status_update(self, job_order, new_status: str, created_by: int):
        label = STATUS_LABELS.get(new_status, f"status updated to: {new_status}")
        return self.notify_user(
            job_order.requester_id, job_order, "status_update", "Work Order Updated",
            f"Your work order {job_order.work_order_no} {label}.",
            created_by,
        )

    # ============ Reading ============

    def _visible_to(self, session: UserSession):
        query = self.db.query(Notification).filter(Notification.is_deleted == False)  # noqa: E712
        department = normalize_department(session.dept)
        if department:
            return query.filter(
                or_(
                    Notification.user_id == session.user_id,
                    and_(Notification.user_id.is_(None), Notification.department == department),
                )
            )
        return query.filter(Notification.user_id == session.user_id)

    def get_notifications(
        self, session: UserSession, skip: int = 0, limit: int = 50, unread_only: bool = False
    ) -> List[Notification]:
        query = self._visible_to(session)
        if unread_only:
            query = query.filter(Notification.is_read == False)  # noqa: E712
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).offset(skip).limit(limit).all()

    def get_unread_count(self, session: UserSession) -> int:
        return self._visible_to(session).filter(Notification.is_read == False).count()  # noqa: E712

    def _get_visible(self, notification_id: int, session: UserSession) -> Notification:
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id, Notification.is_deleted == False  # noqa: E712
        ).first()
        if not notification:
            raise NotFound("Notification not found")
        if not self._visible_to(session).filter(Notification.id == notification_id).first():
            raise PermissionDenied("This notification belongs to someone else")
        return notification

    def mark_as_read(self, notification_id: int, session: UserSession) -> Notification:
        notification = self._get_visible(notification_id, session)
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.utcnow()
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def mark_all_as_read(self, session: UserSession) -> int:
        notifications = self._visible_to(session).filter(Notification.is_read == False).all()  # noqa: E712
        now = datetime.utcnow()
        for notification in notifications:
            notification.is_read = True
            notification.read_at = now
        self.db.commit()
        logger.info(f"Marked {len(notifications)} notification(s) read for user {session.user_id}")
        return len(notifications)

    def delete_notification(self, notification_id: int, session: UserSession) -> None:
        notification = self._get_visible(notification_id, session)
        notification.is_deleted = True
        notification.deleted_at = datetime.utcnow()
        self.db.commit()

    def delete_all_notifications(self, session: UserSession) -> int:
        notifications = self._visible_to(session).all()
        now = datetime.utcnow()
        for notification in notifications:
            notification.is_deleted = True
            notification.deleted_at = now
        self.db.commit()
        return len(notifications)


# Dependency injection
def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    return NotificationService(db)
