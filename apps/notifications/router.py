from fastapi import APIRouter, Depends, Query, status
from typing import List

from apps.notifications.schemas import (
    NotificationCreate, NotificationResponse, UnreadCountResponse, BulkUpdateResponse
)
from apps.notifications.services import NotificationService, get_notification_service
from apps.auth.schemas import UserSession
from apps.auth.services import get_current_session

router = APIRouter()


@router.get(
    "/",
    response_model=List[NotificationResponse],
    summary="Get my notifications",
    description="Notifications addressed to the current user or to their whole department"
)
def get_notifications(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    unread_only: bool = Query(False),
    service: NotificationService = Depends(get_notification_service),
    session: UserSession = Depends(get_current_session)
):
    return service.get_notifications(session, skip=skip, limit=limit, unread_only=unread_only)


@router.post(
    "/",
    response_model=NotificationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a notification",
    description="Notify one user, or a whole department when user_id is omitted"
)
def create_notification(
    notification: NotificationCreate,
    service: NotificationService = Depends(get_notification_service),
    session: UserSession = Depends(get_current_session)
):
    return service.create_notification(notification, session)


@router.get("/unread-count", response_model=UnreadCountResponse, summary="Count unread notifications")
def get_unread_count(
    service: NotificationService = Depends(get_notification_service),
    session: UserSession = Depends(get_current_session)
):
    return UnreadCountResponse(count=service.get_unread_count(session))


@router.patch("/read-all", response_model=BulkUpdateResponse, summary="Mark all notifications read")
def mark_all_as_read(
    service: NotificationService = Depends(get_notification_service),
    session: UserSession = Depends(get_current_session)
):
    updated = service.mark_all_as_read(session)
    return BulkUpdateResponse(message="All notifications marked as read", updated=updated)


@router.patch("/{notification_id}/read", response_model=NotificationResponse, summary="Mark a notification read")
def mark_as_read(
    notification_id: int,
    service: NotificationService = Depends(get_notification_service),
    session: UserSession = Depends(get_current_session)
):
    return service.mark_as_read(notification_id, session)


@router.delete("/", response_model=BulkUpdateResponse, summary="Delete all my notifications")
def delete_all_notifications(
    service: NotificationService = Depends(get_notification_service),
    session: UserSession = Depends(get_current_session)
):
    deleted = service.delete_all_notifications(session)
    return BulkUpdateResponse(message="All notifications deleted successfully", updated=deleted)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a notification")
def delete_notification(
    notification_id: int,
    service: NotificationService = Depends(get_notification_service),
    session: UserSession = Depends(get_current_session)
):
    service.delete_notification(notification_id, session)
