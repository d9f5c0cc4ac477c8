from fastapi import APIRouter, Depends, UploadFile, File, Form, HTTPException, status
from typing import Any, Dict, List, Optional
import logging

from cobrafacil.core.auth_dependencies import AccessContext, require_permission
from cobrafacil.core.exceptions import SERVICE_ERRORS, http_error
from cobrafacil.schemas.employee_schema import EmployeePermission
from cobrafacil.services.document_service import document_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/clients", tags=["Client Documents"])


# Uploads one file to the client's document folder
@router.post("/{client_id}/documents", response_model=Dict[str, Any], status_code=status.HTTP_201_CREATED)
async def upload_document(
    client_id: str,
    file: UploadFile = File(...),
    description: Optional[str] = Form(None),
    ctx: AccessContext = Depends(require_permission(EmployeePermission.edit_clients)),
):
    try:
        return await document_service.upload_document(ctx.effective_user_id, client_id, file, description, ctx.user_id)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error uploading document for client {client_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload document")


@router.get("/{client_id}/documents", response_model=List[Dict[str, Any]])
async def list_documents(client_id: str, ctx: AccessContext = Depends(require_permission(EmployeePermission.view_clients))):
    try:
        return await document_service.list_documents(ctx.effective_user_id, client_id)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error listing documents of client {client_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to list documents")


@router.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(document_id: str, ctx: AccessContext = Depends(require_permission(EmployeePermission.edit_clients))):
    try:
        await document_service.delete_document(ctx.effective_user_id, document_id)
    except HTTPException:
        raise
    except SERVICE_ERRORS as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"Error deleting document {document_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete document")
