import logging
from typing import Optional, Dict, Any, List
from datetime import datetime

from cobrafacil.database.models import ActivityLog

logger = logging.getLogger(__name__)


class ActivityService:
    """Records who did what on an owner's account, for the employee activity log."""

    async def log_activity(
        self,
        *,
        owner_id: str,
        action: str,
        actor_id: Optional[str] = None,
        actor_name: Optional[str] = None,
        is_employee: bool = False,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status: str = "successful",
        timestamp: Optional[datetime] = None,
    ) -> ActivityLog:
        payload = {
            "owner_id": owner_id,
            "action": action,
            "actor_id": actor_id,
            "actor_name": actor_name,
            "is_employee": is_employee,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "details": details,
            "status": status,
            "timestamp": timestamp or datetime.now(),
        }
        try:
            entry = ActivityLog(**payload)
            await entry.insert()
            return entry
        except Exception as e:
            logger.error(f"Failed to create activity log (action={action}, owner={owner_id}): {e}")
            raise

    # Records an action taken through an access context, never failing the caller
    async def record(self, ctx, action: str, entity_type: Optional[str] = None, entity_id: Optional[str] = None,
                     details: Optional[Dict[str, Any]] = None) -> None:
        try:
            await self.log_activity(
                owner_id=ctx.effective_user_id,
                action=action,
                actor_id=ctx.user_id,
                actor_name=ctx.actor_name,
                is_employee=ctx.is_employee,
                entity_type=entity_type,
                entity_id=entity_id,
                details=details,
            )
        except Exception:
            logger.exception("Failed to write activity log for %s", action)

    async def get_activities(self, owner_id: str, skip: int = 0, limit: int = 50, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            query: Dict[str, Any] = {"owner_id": owner_id}
            if filters:
                for key in ("action", "actor_id", "entity_type", "entity_id", "status"):
                    if filters.get(key):
                        query[key] = filters[key]
                if "is_employee" in filters and filters["is_employee"] is not None:
                    query["is_employee"] = filters["is_employee"]
                ts_query = {}
                if filters.get("start_date"):
                    ts_query["$gte"] = filters["start_date"]
                if filters.get("end_date"):
                    ts_query["$lte"] = filters["end_date"]
                if ts_query:
                    query["timestamp"] = ts_query

            total = await ActivityLog.find(query).count()
            docs = await ActivityLog.find(query).sort("-timestamp").skip(skip).limit(limit).to_list()

            results: List[Dict[str, Any]] = []
            for d in docs:
                results.append({
                    "id": str(d.id),
                    "action": d.action,
                    "actor_id": d.actor_id,
                    "actor_name": d.actor_name,
                    "is_employee": d.is_employee,
                    "entity_type": d.entity_type,
                    "entity_id": d.entity_id,
                    "details": d.details,
                    "timestamp": d.timestamp.isoformat() if d.timestamp else None,
                    "status": d.status,
                })

            return {"data": results, "total": total, "skip": skip, "limit": limit}
        except Exception as e:
            logger.error(f"Failed to query activity logs: {e}")
            raise


activity_service = ActivityService()
