# app/application/commands.py
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

from app.domain.models import FieldMapping


class BulkProductUploadCommand(BaseModel):
    account: str
    filename: str
    content: bytes
    mapping: FieldMapping
    sheet: Optional[str] = None

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower().lstrip(".")


class BulkImageUploadCommand(BaseModel):
    account: str
    filename: str
    content: bytes
    origin: Optional[str] = None
