from beanie import Document
from typing import Optional
from datetime import datetime
from pydantic import Field


class ClientDocument(Document):
    user_id: str
    client_id: str
    file_name: str
    file_url: str
    storage_path: str
    content_type: Optional[str] = None
    size: int = 0
    description: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "client_documents"
