# app/presentation/routers.py
from __future__ import annotations

import re
import logging
from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Query, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from app.application.archive_distributor import ArchiveDistributor
from app.application.classification_orchestrator import ClassificationOrchestrator
from app.application.commands import BulkImageUploadCommand, BulkProductUploadCommand
from app.application.product_upload_use_case import BulkProductUploadUseCase
from app.container import (
    get_archive_distributor, get_orchestrator, get_product_upload_uc, get_run_state,
)
from app.domain.errors import MissingFileError, PipelineError
from app.domain.models import FieldMapping
from app.presentation.schemas import ImageUploadData, RunStatus, TriggerData
from app.services.run_state import RunStateService


# ──────────────────────────────────────────────────────────────────────
# Logging
# ──────────────────────────────────────────────────────────────────────
logger = logging.getLogger("lca.api")

ACCOUNT_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def _ok(data: Any = None, message: Optional[str] = None, status_code: int = 200) -> JSONResponse:
    content = jsonable_encoder(
        {"success": True, "data": data, "message": message},
        custom_encoder={ObjectId: str, datetime: lambda d: d.isoformat()},
    )
    return JSONResponse(status_code=status_code, content=content)


def _fail(message: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "data": None, "message": message, "details": {}},
    )


async def require_account(x_account: str | None = Header(None, alias="X-Account")) -> str:
    """Tenant scope: selects the record store and the scratch namespace."""
    if not x_account or not ACCOUNT_RE.match(x_account):
        raise HTTPException(status_code=400, detail="Missing or invalid X-Account header")
    return x_account


def _origin(request: Request) -> str | None:
    origin = (request.headers.get("origin") or "").strip().rstrip("/")
    return origin or None


async def _read_upload(file: UploadFile | None) -> tuple[str, bytes]:
    if file is None or not file.filename:
        raise MissingFileError("No file uploaded")
    return file.filename, await file.read()


router = APIRouter(prefix="/v1/products")


# ── BULK PRODUCTS (csv / xls[xm]) ────────────────────────────────────
@router.post("/bulk-upload")
async def bulk_upload_products(
    file: UploadFile | None = File(None),
    code_field: str | None = Form(None, alias="codeField"),
    name_field: str | None = Form(None, alias="nameField"),
    description_field: str | None = Form(None, alias="descriptionField"),
    weight_field: str | None = Form(None, alias="weightField"),
    country_field: str | None = Form(None, alias="countryOfOriginField"),
    supplier_field: str | None = Form(None, alias="supplierNameField"),
    category_field: str | None = Form(None, alias="categoryField"),
    sub_category_field: str | None = Form(None, alias="subCategoryField"),
    selected_sheet: str | None = Form(None, alias="selectedSheet"),
    account: str = Depends(require_account),
    uc: BulkProductUploadUseCase = Depends(get_product_upload_uc),
):
    filename, content = await _read_upload(file)
    mapping = FieldMapping(
        code=code_field,
        name=name_field,
        description=description_field,
        weight=weight_field,
        country_of_origin=country_field,
        supplier_name=supplier_field,
        category=category_field,
        sub_category=sub_category_field,
    )
    cmd = BulkProductUploadCommand(
        account=account, filename=filename, content=content,
        mapping=mapping, sheet=selected_sheet or None,
    )
    try:
        saved = await uc.execute(cmd)
    except PipelineError:
        raise
    except Exception as e:
        logger.exception("Product upload error")
        return _fail(f"Failed to upload products: {e}")
    return _ok(saved, f"{len(saved)} products uploaded; AI processing pending", status_code=201)


# ── BULK IMAGES (zip / rar) ───────────────────────────────────────
@router.post("/bulk-images")
async def bulk_image_upload(
    request: Request,
    file: UploadFile | None = File(None),
    account: str = Depends(require_account),
    distributor: ArchiveDistributor = Depends(get_archive_distributor),
):
    filename, content = await _read_upload(file)
    cmd = BulkImageUploadCommand(account=account, filename=filename, content=content, origin=_origin(request))
    try:
        result = await distributor.execute(cmd)
    except PipelineError:
        raise
    except Exception as e:
        logger.exception("Bulk image upload error")
        return _fail(str(e))

    data = ImageUploadData(uploaded=result.uploaded, unmatched=result.unmatched, run_id=result.run_id)
    return _ok(data, "Files uploaded and processed successfully")


# ── AI PROCESSING ─────────────────────────────────────────────────
@router.post("/ai-processing/trigger")
async def trigger_ai_processing(
    wait: bool = Query(False, description="Wait until every dispatched record is finished"),
    account: str = Depends(require_account),
    orchestrator: ClassificationOrchestrator = Depends(get_orchestrator),
):
    try:
        handle = await orchestrator.trigger(account)
        if wait:
            await handle.wait()
    except Exception as e:
        logger.exception("Manual AI processing trigger error")
        return _fail(f"Failed to trigger AI processing: {e}")

    data = TriggerData(run_id=handle.run_id, dispatched=handle.dispatched, finished=wait)
    msg = "AI processing finished for pending products" if wait else "AI processing initiated for pending products"
    return _ok(data, msg)


@router.get("/ai-processing/runs/{run_id}")
async def get_run_status(
    run_id: str,
    account: str = Depends(require_account),
    runs: RunStateService = Depends(get_run_state),
):
    state = await runs.get(run_id)
    if not state or state.get("account") != account:
        raise HTTPException(status_code=404, detail="Run not found")
    return _ok(RunStatus(**state))
