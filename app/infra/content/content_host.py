# app/infra/content/content_host.py
from __future__ import annotations

import os
import uuid
import logging
import mimetypes
from pathlib import Path
from urllib.parse import urlencode

import httpx

from app.domain.errors import ContentHostError
from app.domain.ports import ContentHostPort

DEFAULT_ORIGIN = os.getenv("CONTENT_HOST_URL", "http://127.0.0.1:5000")
UPLOAD_PATH = "/uploadcontent/notes/uploads/images/"
PUBLIC_PATH = "/content/notes/uploads/images/"
UPLOAD_TIMEOUT = float(os.getenv("CONTENT_UPLOAD_TIMEOUT", "30"))

logger = logging.getLogger("lca.content")


def generate_filename(path: Path) -> str:
    """`file-<uuid4><ext>`, keeping the original extension."""
    return f"file-{uuid.uuid4()}{path.suffix}"


def build_upload_url(origin: str, filename: str) -> str:
    return f"{origin.rstrip('/')}{UPLOAD_PATH}?{urlencode({'filename': filename})}"


def build_download_url(origin: str, filename: str) -> str:
    return f"{origin.rstrip('/')}{PUBLIC_PATH}{filename}"


class HttpContentHost(ContentHostPort):
    """
    Uploads a file as multipart field `file` to
    `<origin>/uploadcontent/notes/uploads/images/?filename=<name>`; the file is
    then served from `<origin>/content/notes/uploads/images/<name>`.
    """
    def __init__(self, timeout: float = UPLOAD_TIMEOUT, transport: httpx.AsyncBaseTransport | None = None):
        self.timeout = timeout
        self.transport = transport

    async def upload(self, origin: str, path: Path) -> str:
        origin = origin or DEFAULT_ORIGIN
        name = generate_filename(path)
        url = build_upload_url(origin, name)
        ctype = mimetypes.guess_type(path.name)[0] or "application/octet-stream"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            with path.open("rb") as fh:
                try:
                    r = await client.post(url, files={"file": (path.name, fh, ctype)})
                    r.raise_for_status()
                except httpx.HTTPStatusError as e:
                    logger.error(
                        "Error uploading %s: status=%s body=%s",
                        path, e.response.status_code, e.response.text[:500],
                    )
                    raise ContentHostError(
                        f"Image upload failed with status {e.response.status_code}",
                        {"image": path.name, "status": e.response.status_code},
                    ) from e
                except httpx.HTTPError as e:
                    logger.error("Error uploading %s: %s", path, e)
                    raise ContentHostError(f"Image upload failed: {e}", {"image": path.name}) from e

        logger.info("Uploaded %s as %s (%s)", path.name, name, r.text[:200])
        return build_download_url(origin, name)
