# app/services/run_state.py
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from app.domain.ports import CachePort

COUNTERS = ("dispatched", "completed", "failed", "skipped")


class RunStateService:
    """Progress of one orchestration run, kept in `run:{run_id}` (hash)."""

    def __init__(self, store: CachePort):
        self.rs = store

    @staticmethod
    def _key(run_id: str) -> str:
        return f"run:{run_id}"

    async def start(self, run_id: str, account: str, dispatched: int):
        await self.rs.hset(self._key(run_id), {
            "account": account,
            "dispatched": dispatched,
            "completed": 0,
            "failed": 0,
            "skipped": 0,
            "started_at": datetime.now(timezone.utc).isoformat(),
        })

    async def incr(self, run_id: str, counter: str) -> int:
        if counter not in COUNTERS:
            raise ValueError(f"unknown run counter: {counter}")
        return await self.rs.hincrby(self._key(run_id), counter, 1)

    async def finish(self, run_id: str):
        await self.rs.hset(self._key(run_id), {
            "finished_at": datetime.now(timezone.utc).isoformat(),
        })

    async def get(self, run_id: str) -> Optional[Dict[str, Any]]:
        raw = await self.rs.hgetall(self._key(run_id))
        if not raw:
            return None
        out: Dict[str, Any] = {"run_id": run_id, "account": raw.get("account")}
        for c in COUNTERS:
            out[c] = int(raw.get(c) or 0)
        out["started_at"] = raw.get("started_at")
        out["finished_at"] = raw.get("finished_at")
        out["done"] = bool(raw.get("finished_at"))
        return out
