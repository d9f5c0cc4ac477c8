from fastapi import APIRouter, HTTPException, Depends, Query
from typing import Optional, Dict, Any
from datetime import datetime
import logging

from cobrafacil.core.auth_dependencies import AccessContext, require_owner
from cobrafacil.services.activity_service import activity_service

router = APIRouter(prefix="/activity", tags=["Activity"])

logger = logging.getLogger(__name__)


@router.get("/", status_code=200)
async def list_activity(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=1000),
    action: Optional[str] = Query(default=None),
    actor_id: Optional[str] = Query(default=None),
    entity_type: Optional[str] = Query(default=None),
    entity_id: Optional[str] = Query(default=None),
    is_employee: Optional[bool] = Query(default=None),
    start_date: Optional[str] = Query(default=None, description="YYYY-MM-DD"),
    end_date: Optional[str] = Query(default=None, description="YYYY-MM-DD"),
    ctx: AccessContext = Depends(require_owner),
):
    """List what the owner and the employees did, newest first."""
    try:
        filters: Dict[str, Any] = {
            "action": action,
            "actor_id": actor_id,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "is_employee": is_employee,
        }

        if start_date:
            try:
                filters["start_date"] = datetime.strptime(start_date, "%Y-%m-%d")
            except ValueError:
                raise HTTPException(status_code=400, detail="Invalid start_date format, expected YYYY-MM-DD")
        if end_date:
            try:
                ed = datetime.strptime(end_date, "%Y-%m-%d")
                filters["end_date"] = ed.replace(hour=23, minute=59, second=59, microsecond=999999)
            except ValueError:
                raise HTTPException(status_code=400, detail="Invalid end_date format, expected YYYY-MM-DD")

        return await activity_service.get_activities(ctx.user_id, skip=skip, limit=limit, filters=filters)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error listing activity: {e}")
        raise HTTPException(status_code=500, detail="Failed to list activity")
