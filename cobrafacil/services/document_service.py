import logging
import uuid
import os
from typing import Any, Dict, List, Optional
from fastapi import UploadFile, HTTPException

from cobrafacil.core.config import settings
from cobrafacil.core.exceptions import NotFoundError
from cobrafacil.core.supabase_client import get_supabase_client
from cobrafacil.database.models import Client, ClientDocument
from cobrafacil.helpers.object_id import parse_object_id
from cobrafacil.helpers.response_builder import serialize_document

logger = logging.getLogger(__name__)

ALLOWED_TYPES = {"image/jpeg", "image/png", "image/jpg", "image/webp", "application/pdf"}
MAX_SIZE = 10 * 1024 * 1024

# Magic numbers used when the browser sends no useful content type
_SIGNATURES = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"%PDF", "application/pdf"),
)
_EXTENSIONS = {".jpg": "image/jpeg", ".jpeg": "image/jpeg", ".png": "image/png", ".webp": "image/webp", ".pdf": "application/pdf"}


def detect_content_type(contents: bytes, filename: str, declared: Optional[str] = None) -> str:
    if declared and declared not in ("text/plain", "application/octet-stream"):
        return declared
    header = contents[:12]
    for signature, content_type in _SIGNATURES:
        if header.startswith(signature):
            return content_type
    if header[0:4] == b"RIFF" and header[8:12] == b"WEBP":
        return "image/webp"
    ext = os.path.splitext(filename or "")[1].lower()
    return _EXTENSIONS.get(ext, "application/octet-stream")


class DocumentService:
    """Files attached to a client (ID photos, contracts, proofs), kept in Supabase Storage."""

    def __init__(self, bucket: Optional[str] = None):
        self.bucket = bucket or settings.SUPABASE_DOCUMENTS_BUCKET
        self._supabase = None

    @property
    def supabase(self):
        if self._supabase is None:
            try:
                self._supabase = get_supabase_client()
            except RuntimeError as e:
                logger.error(f"Error initializing document storage: {str(e)}")
                raise HTTPException(status_code=500, detail="Storage service not available")
        return self._supabase

    async def _get_owned_client(self, owner_id: str, client_id: str) -> Client:
        client = await Client.get(parse_object_id(client_id, "Client"))
        if client is None or client.user_id != owner_id:
            raise NotFoundError("Client not found")
        return client

    # Validates uploaded file type and size constraints, returning the bytes and resolved type
    async def _read_and_validate(self, file: UploadFile) -> tuple:
        if not file or not file.filename:
            raise HTTPException(status_code=400, detail="Invalid file")

        await file.seek(0)
        contents = await file.read()
        size = len(contents)

        if size == 0:
            raise HTTPException(status_code=400, detail="Empty file uploaded")
        if size > MAX_SIZE:
            raise HTTPException(status_code=400, detail=f"File size {size} exceeds limit of {MAX_SIZE} bytes")

        content_type = detect_content_type(contents, file.filename, file.content_type)
        if content_type not in ALLOWED_TYPES:
            logger.warning(f"Rejected file {file.filename} with type {content_type}")
            raise HTTPException(
                status_code=400,
                detail=f"File type {content_type} not allowed. Allowed types: {', '.join(sorted(ALLOWED_TYPES))}",
            )
        return contents, content_type

    # Uploads a client file and records its metadata
    async def upload_document(
        self,
        owner_id: str,
        client_id: str,
        file: UploadFile,
        description: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        await self._get_owned_client(owner_id, client_id)
        contents, content_type = await self._read_and_validate(file)

        ext = os.path.splitext(file.filename)[1]
        storage_path = f"{owner_id}/{client_id}/{uuid.uuid4()}{ext}"

        try:
            res = self.supabase.storage.from_(self.bucket).upload(storage_path, contents, {"content-type": content_type})
            if isinstance(res, dict) and res.get("error"):
                raise RuntimeError(res["error"])
            file_url = self.supabase.storage.from_(self.bucket).get_public_url(storage_path)
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Supabase upload error for file {file.filename} (content_type={content_type}): {e}")
            raise HTTPException(status_code=500, detail=f"Supabase upload failed: {e}")

        document = ClientDocument(
            user_id=owner_id,
            client_id=client_id,
            file_name=file.filename,
            file_url=file_url,
            storage_path=storage_path,
            content_type=content_type,
            size=len(contents),
            description=description,
            created_by=created_by,
        )
        try:
            await document.insert()
        except Exception as e:
            logger.error(f"Failed to save document metadata, removing uploaded file: {e}")
            await self._delete_file_from_supabase(storage_path, raise_on_error=False)
            raise HTTPException(status_code=500, detail="Failed to save document")

        logger.info(f"Uploaded {file.filename} for client {client_id} ({len(contents)} bytes)")
        return serialize_document(document)

    async def list_documents(self, owner_id: str, client_id: str) -> List[Dict[str, Any]]:
        await self._get_owned_client(owner_id, client_id)
        docs = await ClientDocument.find({"user_id": owner_id, "client_id": client_id}).sort("-created_at").to_list()
        return [serialize_document(d) for d in docs]

    async def delete_document(self, owner_id: str, document_id: str) -> None:
        document = await ClientDocument.get(parse_object_id(document_id, "Document"))
        if document is None or document.user_id != owner_id:
            raise NotFoundError("Document not found")

        await self._delete_file_from_supabase(document.storage_path)
        await document.delete()
        logger.info(f"Deleted document {document_id} of client {document.client_id}")

    # Removes every file of a client, used when the client is deleted
    async def delete_client_documents(self, owner_id: str, client_id: str) -> int:
        docs = await ClientDocument.find({"user_id": owner_id, "client_id": client_id}).to_list()
        for document in docs:
            await self._delete_file_from_supabase(document.storage_path, raise_on_error=False)
            await document.delete()
        return len(docs)

    # Deletes a file from Supabase storage using its storage path
    async def _delete_file_from_supabase(self, file_path: str, raise_on_error: bool = True):
        try:
            result = self.supabase.storage.from_(self.bucket).remove([file_path])
            logger.info(f"Deleted file {file_path} from Supabase")
            return result
        except Exception as e:
            logger.error(f"Supabase delete error for {file_path}: {e}")
            if raise_on_error:
                raise HTTPException(status_code=500, detail=f"Failed to delete file: {str(e)}")
            return None


document_service = DocumentService()
