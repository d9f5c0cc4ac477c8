from fastapi import APIRouter, HTTPException, Depends, Query
from fastapi import status
from typing import Dict, Any, Optional
import logging

from cobrafacil.core.auth_dependencies import AccessContext, require_permission
from cobrafacil.core.exceptions import SERVICE_ERRORS, http_error
from cobrafacil.schemas.client_schema import ClientCreateRequest, ClientUpdateRequest
from cobrafacil.schemas.employee_schema import EmployeePermission
from cobrafacil.services.client_score_service import client_score_service
from cobrafacil.services.client_service import client_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["Clients"])


@router.get("/", response_model=Dict[str, Any])
async def list_clients(
    search: Optional[str] = Query(None, description="Name, phone or CPF"),
    client_type: Optional[str] = Query(None, pattern="^(all|loan|monthly|both)$"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    ctx: AccessContext = Depends(require_permission(EmployeePermission.view_clients)),
):
    try:
        return await client_service.get_clients(ctx.effective_user_id, search, client_type, skip, limit)
    except Exception as e:
        logger.error(f"Error listing clients: {e}")
        raise HTTPException(status_code=500, detail="Failed to list clients")


@router.post("/", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def create_client(
    data: ClientCreateRequest,
    ctx: AccessContext = Depends(require_permission(EmployeePermission.create_clients)),
):
    try:
        return await client_service.create_client(ctx, data)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error creating client: {e}")
        raise HTTPException(status_code=500, detail="Failed to create client")


@router.get("/{client_id}", response_model=Dict[str, Any])
async def get_client(client_id: str, ctx: AccessContext = Depends(require_permission(EmployeePermission.view_clients))):
    try:
        return await client_service.get_client(ctx.effective_user_id, client_id)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error retrieving client {client_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to retrieve client")


@router.put("/{client_id}", response_model=Dict[str, Any])
async def update_client(
    client_id: str,
    data: ClientUpdateRequest,
    ctx: AccessContext = Depends(require_permission(EmployeePermission.edit_clients)),
):
    try:
        return await client_service.update_client(ctx, client_id, data)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error updating client {client_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update client")


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(client_id: str, ctx: AccessContext = Depends(require_permission(EmployeePermission.delete_clients))):
    try:
        await client_service.delete_client(ctx, client_id)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error deleting client {client_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete client")


# Recomputes the client's score from its loans and payments
@router.post("/{client_id}/score", response_model=Dict[str, Any])
async def recalculate_score(client_id: str, ctx: AccessContext = Depends(require_permission(EmployeePermission.view_clients))):
    try:
        await client_service.get_owned_client(ctx.effective_user_id, client_id)
        data = await client_score_service.update_client_score(client_id)
        return data.model_dump()
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error updating score of client {client_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update client score")
