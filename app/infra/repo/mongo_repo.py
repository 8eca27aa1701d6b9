# app/infra/repo/mongo_repo.py
from __future__ import annotations

import os
import logging
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import OperationFailure

from app.domain.models import AiProcessingStatus
from app.domain.ports import ProductRepoPort, RepoFactoryPort

MONGO_URI       = os.getenv("MONGO_URI", "mongodb://localhost:27017")
DB_PREFIX       = os.getenv("MONGO_DB_PREFIX", "lca_")
COLL_NAME       = os.getenv("MONGO_COLL", "products")

logger = logging.getLogger("lca.repo")

# A record that never got an explicit status counts as pending.
PENDING_FILTER: Dict[str, Any] = {
    "$or": [
        {"aiProcessingStatus": AiProcessingStatus.PENDING.value},
        {"aiProcessingStatus": {"$exists": False}},
    ]
}


class MongoProductRepo(ProductRepoPort):
    """Async repository for one account's `products` collection."""

    def __init__(self, coll: AsyncIOMotorCollection) -> None:
        self.coll = coll

    # ──────────────────────────────────────────────────────────────
    #  Indexing
    # ──────────────────────────────────────────────────────────────
    async def ensure_indexes(self) -> None:
        """
        - code: lookup key for image distribution
        - aiProcessingStatus: pending scans
        """
        try:
            await self.coll.create_index([("code", ASCENDING)])
        except OperationFailure as e:
            logger.warning("create_index(code) skipped: %s", e)
        try:
            await self.coll.create_index([("aiProcessingStatus", ASCENDING)])
        except OperationFailure as e:
            logger.warning("create_index(aiProcessingStatus) skipped: %s", e)

    # ──────────────────────────────────────────────────────────────
    #  Writes
    # ──────────────────────────────────────────────────────────────
    async def insert_many(self, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not docs:
            return []
        res = await self.coll.insert_many(docs)
        # insert_many sets `_id` on the passed dicts as well
        for doc, _id in zip(docs, res.inserted_ids):
            doc["_id"] = _id
        return docs

    async def update_fields(self, product_id: Any, fields: Dict[str, Any]) -> None:
        await self.coll.update_one({"_id": product_id}, {"$set": fields})

    async def push_image(self, code: str, url: str) -> int:
        res = await self.coll.update_one({"code": code}, {"$push": {"images": url}})
        return res.matched_count

    # ──────────────────────────────────────────────────────────────
    #  Classification state
    # ──────────────────────────────────────────────────────────────
    async def find_pending(self) -> List[Dict[str, Any]]:
        cursor = self.coll.find(PENDING_FILTER)
        return [doc async for doc in cursor]

    async def claim_pending(self, product_id: Any) -> Optional[Dict[str, Any]]:
        return await self.coll.find_one_and_update(
            {"_id": product_id, **PENDING_FILTER},
            {"$set": {"aiProcessingStatus": AiProcessingStatus.PROCESSING.value}},
            return_document=ReturnDocument.AFTER,
        )


class MongoRepoFactory(RepoFactoryPort):
    """One shared client; one database per account (`<prefix><account>`)."""

    def __init__(self, uri: str = MONGO_URI, db_prefix: str = DB_PREFIX, coll_name: str = COLL_NAME) -> None:
        self.client = AsyncIOMotorClient(uri)
        self.db_prefix = db_prefix
        self.coll_name = coll_name
        self._repos: Dict[str, MongoProductRepo] = {}

    def for_account(self, account: str) -> MongoProductRepo:
        repo = self._repos.get(account)
        if repo is None:
            db = self.client[f"{self.db_prefix}{account}"]
            repo = MongoProductRepo(db[self.coll_name])
            self._repos[account] = repo
        return repo

    async def ping(self) -> bool:
        await self.client.admin.command("ping")
        return True
