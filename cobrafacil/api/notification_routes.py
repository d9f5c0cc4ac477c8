from fastapi import APIRouter, HTTPException, Depends, Query
from fastapi import status
from typing import Dict, Any
import logging

from cobrafacil.core.auth_dependencies import AccessContext, get_access_context
from cobrafacil.core.exceptions import SERVICE_ERRORS, http_error
from cobrafacil.schemas.notification_schema import NotificationCreateRequest
from cobrafacil.services.notification_service import notification_service, notification_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("/", response_model=Dict[str, Any])
async def list_notifications(
    unread_only: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    ctx: AccessContext = Depends(get_access_context),
):
    try:
        return await notification_service.list_notifications(ctx.effective_user_id, unread_only, skip, limit)
    except Exception as e:
        logger.error(f"Error listing notifications: {e}")
        raise HTTPException(status_code=500, detail="Failed to list notifications")


@router.post("/", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def create_notification(data: NotificationCreateRequest, ctx: AccessContext = Depends(get_access_context)):
    try:
        notification = await notification_service.create_notification(
            user_id=ctx.effective_user_id,
            title=data.title,
            message=data.message,
            type=data.type,
            loan_id=data.loan_id,
            client_id=data.client_id,
        )
        return notification_to_dict(notification)
    except Exception as e:
        logger.error(f"Error creating notification: {e}")
        raise HTTPException(status_code=500, detail="Failed to create notification")


@router.post("/read-all", response_model=Dict[str, Any])
async def mark_all_read(ctx: AccessContext = Depends(get_access_context)):
    try:
        return {"updated": await notification_service.mark_all_read(ctx.effective_user_id)}
    except Exception as e:
        logger.error(f"Error marking notifications as read: {e}")
        raise HTTPException(status_code=500, detail="Failed to update notifications")


@router.post("/{notification_id}/read", response_model=Dict[str, Any])
async def mark_read(notification_id: str, ctx: AccessContext = Depends(get_access_context)):
    try:
        notification = await notification_service.mark_read(ctx.effective_user_id, notification_id)
        return notification_to_dict(notification)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error marking notification {notification_id} as read: {e}")
        raise HTTPException(status_code=500, detail="Failed to update notification")


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(notification_id: str, ctx: AccessContext = Depends(get_access_context)):
    try:
        await notification_service.delete_notification(ctx.effective_user_id, notification_id)
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error deleting notification {notification_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete notification")
