# app/presentation/schemas.py
from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class ErrorResponse(BaseModel):
    success: bool = False
    data: None = None
    message: str
    details: Dict[str, Any] = {}


# ── AI processing ────────────────────────────────────────────────
class TriggerData(BaseModel):
    run_id: str = Field(..., serialization_alias="runId")
    dispatched: int
    finished: bool = False


class RunStatus(BaseModel):
    run_id: str = Field(..., serialization_alias="runId")
    account: Optional[str] = None
    dispatched: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    started_at: Optional[str] = Field(None, serialization_alias="startedAt")
    finished_at: Optional[str] = Field(None, serialization_alias="finishedAt")
    done: bool = False


# ── Bulk images ──────────────────────────────────────────────────
class ImageUploadData(BaseModel):
    uploaded: List[str] = []
    unmatched: List[str] = []
    run_id: Optional[str] = Field(None, serialization_alias="runId")
