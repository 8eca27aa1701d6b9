# app/application/product_upload_use_case.py
from __future__ import annotations

import logging
from typing import Any, Dict, List

from app.domain.errors import MissingFileError
from app.domain.ports import RepoFactoryPort
from .commands import BulkProductUploadCommand
from .tabular_normalizer import normalize

logger = logging.getLogger("lca.ingest")


class BulkProductUploadUseCase:
    """
    Parse + validate an uploaded table and insert the records in one write,
    already marked `pending`. Classification runs later (after images).
    """
    def __init__(self, repos: RepoFactoryPort):
        self.repos = repos

    async def execute(self, cmd: BulkProductUploadCommand) -> List[Dict[str, Any]]:
        if not cmd.content:
            raise MissingFileError("No file uploaded")

        docs = normalize(cmd.content, cmd.extension, cmd.mapping, cmd.sheet)
        repo = self.repos.for_account(cmd.account)
        await repo.ensure_indexes()
        saved = await repo.insert_many(docs)
        logger.info(
            "[bulk-upload] account=%s file=%s inserted=%d (pending AI processing)",
            cmd.account, cmd.filename, len(saved),
        )
        return saved
