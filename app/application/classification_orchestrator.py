# app/application/classification_orchestrator.py
from __future__ import annotations

import os
import uuid
import asyncio
import logging
import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set

from app.domain.emissions import calculate_process_emissions, calculate_raw_material_emissions
from app.domain.models import AiProcessingStatus, ManufacturingProcess, Material
from app.domain.ports import ClassifierPort, ProductRepoPort, RepoFactoryPort
from app.services.retry import retry
from app.services.run_state import RunStateService

MAX_CONCURRENCY = int(os.getenv("AI_MAX_CONCURRENCY", "4"))
AI_RETRIES      = int(os.getenv("AI_RETRIES", "1"))

logger = logging.getLogger("lca.classify")


@dataclass
class RunHandle:
    run_id: str
    account: str
    dispatched: int
    tasks: List[asyncio.Task] = field(default_factory=list, repr=False)

    async def wait(self) -> None:
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)


class ClassificationOrchestrator:
    """
    pending → processing → completed | failed, one task per record.

    - trigger(): scan pending records, dispatch, return without waiting
    - a record is only worked on after an atomic claim (pending → processing),
      so overlapping triggers never process the same record twice
    - at most `max_concurrency` records are classified at once
    """
    def __init__(
        self,
        repos: RepoFactoryPort,
        classifier: ClassifierPort,
        runs: RunStateService | None = None,
        max_concurrency: int = MAX_CONCURRENCY,
        retries: int = AI_RETRIES,
    ):
        self.repos = repos
        self.classifier = classifier
        self.runs = runs
        self.retries = retries
        self._sem = asyncio.Semaphore(max(1, int(max_concurrency)))
        self._tasks: Set[asyncio.Task] = set()

    # ──────────────────────────────────────────────────────────────
    #  Dispatch
    # ──────────────────────────────────────────────────────────────
    async def trigger(self, account: str) -> RunHandle:
        repo = self.repos.for_account(account)
        pending = await repo.find_pending()
        handle = RunHandle(run_id=uuid.uuid4().hex, account=account, dispatched=len(pending))

        logger.info("🔄 Starting AI processing run=%s account=%s pending=%d",
                    handle.run_id, account, handle.dispatched)
        if self.runs:
            try:
                await self.runs.start(handle.run_id, account, handle.dispatched)
            except Exception as e:
                logger.warning("run-state unavailable for run=%s: %s", handle.run_id, e)

        for doc in pending:
            handle.tasks.append(self._spawn(
                self._process(repo, doc["_id"], handle.run_id),
                name=f"classify:{account}:{doc.get('code')}",
            ))
        self._spawn(self._finish(handle), name=f"run:{handle.run_id}")

        logger.info("🚀 AI processing initiated for %d products (run=%s)", handle.dispatched, handle.run_id)
        return handle

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("task %s crashed: %r", task.get_name(), exc)

    async def _finish(self, handle: RunHandle) -> None:
        await handle.wait()
        logger.info("AI processing run=%s finished (%d records)", handle.run_id, handle.dispatched)
        if self.runs:
            try:
                await self.runs.finish(handle.run_id)
            except Exception as e:
                logger.warning("run-state unavailable for run=%s: %s", handle.run_id, e)

    async def _count(self, run_id: str, counter: str) -> None:
        if not self.runs:
            return
        try:
            await self.runs.incr(run_id, counter)
        except Exception as e:
            logger.warning("run-state unavailable for run=%s: %s", run_id, e)

    async def drain(self) -> None:
        """Wait for every in-flight record (used on shutdown and in tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ──────────────────────────────────────────────────────────────
    #  Per-record pipeline
    # ──────────────────────────────────────────────────────────────
    async def _process(self, repo: ProductRepoPort, product_id: Any, run_id: str) -> AiProcessingStatus | None:
        async with self._sem:
            product = await repo.claim_pending(product_id)
            if product is None:
                logger.info("skip %s: no longer pending", product_id)
                await self._count(run_id, "skipped")
                return None

            try:
                status = await self.classify_record(repo, product)
            except Exception as e:
                await repo.update_fields(product["_id"], {"aiProcessingStatus": AiProcessingStatus.FAILED.value})
                logger.error("❌ Failed to classify and update product %s: %s", product.get("code"), e)
                status = AiProcessingStatus.FAILED

            await self._count(run_id, status.value)
            return status

    async def classify_record(self, repo: ProductRepoPort, product: Dict[str, Any]) -> AiProcessingStatus:
        """Classification + emissions for one claimed record; errors propagate."""
        code = product.get("code")
        name = product.get("name")
        description = product.get("description")

        classify_result = await retry(
            self.classifier.classify_product, [code, name, description], self.retries
        )
        bom = await retry(
            self.classifier.classify_bom, [code, name, description, product.get("weight")], self.retries
        )
        processes = await retry(
            self.classifier.classify_manufacturing_process, [code, name, description, bom], self.retries
        )

        materials = [Material.model_validate(m).model_dump(by_alias=True) for m in bom or []]
        manufacturing = [ManufacturingProcess.model_validate(p).model_dump() for p in processes or []]

        raw = calculate_raw_material_emissions(materials, product.get("countryOfOrigin"))
        from_processes = calculate_process_emissions(manufacturing)
        total = raw + from_processes

        category = (classify_result or {}).get("category")
        subcategory = (classify_result or {}).get("subcategory")
        if not (category and subcategory):
            await repo.update_fields(product["_id"], {"aiProcessingStatus": AiProcessingStatus.FAILED.value})
            logger.warning("⚠️ Product %s classification failed, marked as failed.", code)
            return AiProcessingStatus.FAILED

        await repo.update_fields(product["_id"], {
            "category": category,
            "subCategory": subcategory,
            "materials": materials,
            "productManufacturingProcess": manufacturing,
            "co2Emission": total,
            "co2EmissionRawMaterials": raw,
            "co2EmissionFromProcesses": from_processes,
            "aiProcessingStatus": AiProcessingStatus.COMPLETED.value,
            "modifiedDate": dt.datetime.now(dt.timezone.utc),
        })
        logger.info("✅ Product %s AI processing completed with category: %s, subcategory: %s",
                    code, category, subcategory)
        return AiProcessingStatus.COMPLETED
