import logging
from typing import Any, Dict, Optional

from cobrafacil.core.exceptions import NotFoundError
from cobrafacil.database.models import Notification
from cobrafacil.helpers.object_id import parse_object_id
from cobrafacil.schemas.notification_schema import NotificationTypeEnum

logger = logging.getLogger(__name__)


def notification_to_dict(n: Notification) -> Dict[str, Any]:
    return {
        "id": str(n.id),
        "title": n.title,
        "message": n.message,
        "type": getattr(n.type, "value", n.type),
        "is_read": n.is_read,
        "loan_id": n.loan_id,
        "client_id": n.client_id,
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }


class NotificationService:
    """In-app notifications shown in the owner's notification center."""

    async def create_notification(
        self,
        *,
        user_id: str,
        title: str,
        message: str,
        type: NotificationTypeEnum = NotificationTypeEnum.info,
        loan_id: Optional[str] = None,
        client_id: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            loan_id=loan_id,
            client_id=client_id,
        )
        await notification.insert()
        logger.debug("Notification %s created for user %s", notification.id, user_id)
        return notification

    async def list_notifications(self, user_id: str, unread_only: bool = False, skip: int = 0, limit: int = 50) -> Dict[str, Any]:
        query: Dict[str, Any] = {"user_id": user_id}
        if unread_only:
            query["is_read"] = False

        total = await Notification.find(query).count()
        unread = await Notification.find({"user_id": user_id, "is_read": False}).count()
        docs = await Notification.find(query).sort("-created_at").skip(skip).limit(limit).to_list()

        return {
            "data": [notification_to_dict(n) for n in docs],
            "total": total,
            "unread": unread,
            "skip": skip,
            "limit": limit,
        }

    async def _get_owned(self, user_id: str, notification_id: str) -> Notification:
        notification = await Notification.get(parse_object_id(notification_id, "Notification"))
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("Notification not found")
        return notification

    async def mark_read(self, user_id: str, notification_id: str) -> Notification:
        notification = await self._get_owned(user_id, notification_id)
        if not notification.is_read:
            notification.is_read = True
            await notification.save()
        return notification

    async def mark_all_read(self, user_id: str) -> int:
        result = await Notification.find({"user_id": user_id, "is_read": False}).update({"$set": {"is_read": True}})
        modified = getattr(result, "modified_count", 0) or 0
        logger.info("Marked %d notifications as read for user %s", modified, user_id)
        return modified

    async def delete_notification(self, user_id: str, notification_id: str) -> None:
        notification = await self._get_owned(user_id, notification_id)
        await notification.delete()


notification_service = NotificationService()
