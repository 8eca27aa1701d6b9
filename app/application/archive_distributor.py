# app/application/archive_distributor.py
from __future__ import annotations

import os
import re
import uuid
import shutil
import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from app.domain.errors import ContentHostError, MissingFileError
from app.domain.ports import ContentHostPort, ProductRepoPort, RepoFactoryPort
from app.infra.archive.extractors import extractor_for
from app.services.retry import retry
from .classification_orchestrator import ClassificationOrchestrator
from .commands import BulkImageUploadCommand

SCRATCH_DIR    = Path(os.getenv("SCRATCH_DIR", "temp")).resolve()
UPLOAD_RETRIES = int(os.getenv("AI_RETRIES", "1"))
IMAGE_RE       = re.compile(r"\.(jpg|jpeg|png|gif)$", re.IGNORECASE)

logger = logging.getLogger("lca.archive")


def _scan(root: Path) -> List[Tuple[str, List[Path]]]:
    """[(product code, sorted image files directly inside its directory)]"""
    out = []
    for product_dir in sorted(p for p in root.iterdir() if p.is_dir()):
        images = sorted(p for p in product_dir.iterdir() if p.is_file() and IMAGE_RE.search(p.name))
        out.append((product_dir.name, images))
    return out


@dataclass
class DistributionResult:
    uploaded: List[str] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)
    run_id: Optional[str] = None


class ArchiveDistributor:
    """
    Flow:
      1) save the archive into SCRATCH_DIR/<account>/<request-id>/ and extract it
      2) every top-level directory is a product code; each image directly
         inside it is uploaded (one at a time) and pushed onto `images`
      3) trigger classification for the account
      4) always remove the request's scratch directory
    """
    def __init__(
        self,
        repos: RepoFactoryPort,
        content_host: ContentHostPort,
        orchestrator: ClassificationOrchestrator,
        scratch_root: Path | None = None,
        retries: int = UPLOAD_RETRIES,
    ):
        self.repos = repos
        self.content_host = content_host
        self.orchestrator = orchestrator
        self.scratch_root = Path(scratch_root) if scratch_root else SCRATCH_DIR
        self.retries = retries

    async def execute(self, cmd: BulkImageUploadCommand) -> DistributionResult:
        if not cmd.content:
            raise MissingFileError("No file uploaded")

        filename = Path(cmd.filename).name
        request_dir = self.scratch_root / cmd.account / uuid.uuid4().hex
        archive_path = request_dir / filename
        extraction_dir = request_dir / (Path(filename).stem or "extracted")

        try:
            await asyncio.to_thread(extraction_dir.mkdir, parents=True, exist_ok=True)
            extract = extractor_for(filename)
            await asyncio.to_thread(archive_path.write_bytes, cmd.content)
            await asyncio.to_thread(extract, archive_path, extraction_dir)

            repo = self.repos.for_account(cmd.account)
            result = await self._distribute(repo, extraction_dir, cmd.origin or "")

            # images are already linked; a failed trigger leaves records pending
            try:
                handle = await self.orchestrator.trigger(cmd.account)
                result.run_id = handle.run_id
            except Exception as e:
                logger.error("Error in AI processing trigger for account %s: %s", cmd.account, e)
            return result
        finally:
            await self._cleanup(request_dir, archive_path)

    async def _distribute(self, repo: ProductRepoPort, root: Path, origin: str) -> DistributionResult:
        result = DistributionResult()
        for code, images in await asyncio.to_thread(_scan, root):
            logger.info("Processing images for product: %s", code)
            for image in images:
                try:
                    url = await retry(self.content_host.upload, [origin, image], self.retries)
                except ContentHostError as e:
                    e.details.setdefault("productCode", code)
                    e.details["uploaded"] = list(result.uploaded)
                    raise

                matched = await repo.push_image(code, url)
                result.uploaded.append(url)
                if matched == 0 and code not in result.unmatched:
                    result.unmatched.append(code)
                    logger.warning("No product with code %s; image %s uploaded but not linked", code, url)
                logger.info("Uploaded: %s", url)
        return result

    async def _cleanup(self, request_dir: Path, archive_path: Path) -> None:
        try:
            if archive_path.exists():
                await asyncio.to_thread(archive_path.unlink)
                logger.info("Removed uploaded file: %s", archive_path)
            if request_dir.exists():
                await asyncio.to_thread(shutil.rmtree, request_dir)
                logger.info("Removed extraction directory: %s", request_dir)
        except OSError as e:
            logger.error("Error during cleanup of %s: %s", request_dir, e)
