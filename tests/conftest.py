# tests/conftest.py
import copy
import itertools
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from app.application.classification_orchestrator import RunHandle
from app.domain.errors import ContentHostError
from app.domain.ports import (
    CachePort, ClassifierPort, ContentHostPort, ProductRepoPort, RepoFactoryPort,
)

PENDING_LIKE = ("pending", None)


class FakeProductRepo(ProductRepoPort):
    def __init__(self):
        self.docs: Dict[int, Dict[str, Any]] = {}
        self.writes: List[tuple] = []
        self._ids = itertools.count(1)

    async def ensure_indexes(self):
        return None

    async def insert_many(self, docs):
        out = []
        for d in docs:
            d["_id"] = next(self._ids)
            self.docs[d["_id"]] = copy.deepcopy(d)
            out.append(d)
        self.writes.append(("insert_many", len(docs)))
        return out

    async def find_pending(self):
        return [copy.deepcopy(d) for d in self.docs.values() if d.get("aiProcessingStatus") in PENDING_LIKE]

    async def claim_pending(self, product_id):
        d = self.docs.get(product_id)
        if d is None or d.get("aiProcessingStatus") not in PENDING_LIKE:
            return None
        d["aiProcessingStatus"] = "processing"
        self.writes.append(("claim", product_id))
        return copy.deepcopy(d)

    async def update_fields(self, product_id, fields):
        self.docs[product_id].update(copy.deepcopy(fields))
        self.writes.append(("update", product_id, tuple(sorted(fields))))

    async def push_image(self, code, url):
        for d in self.docs.values():
            if d.get("code") == code:
                d.setdefault("images", []).append(url)
                self.writes.append(("push", code, url))
                return 1
        return 0

    # helpers
    def add(self, **doc) -> int:
        doc.setdefault("aiProcessingStatus", "pending")
        doc["_id"] = next(self._ids)
        self.docs[doc["_id"]] = doc
        return doc["_id"]

    def by_code(self, code) -> Optional[Dict[str, Any]]:
        return next((d for d in self.docs.values() if d.get("code") == code), None)


class FakeRepoFactory(RepoFactoryPort):
    def __init__(self):
        self.repos: Dict[str, FakeProductRepo] = {}

    def for_account(self, account):
        return self.repos.setdefault(account, FakeProductRepo())


class FakeClassifier(ClassifierPort):
    def __init__(self):
        self.product = {"category": "Furniture", "subcategory": "Chairs"}
        self.bom = [
            {"materialClass": "Steel", "specificMaterial": "Carbon steel", "weight": 2.0},
            {"materialClass": "Plastic", "specificMaterial": "PP", "weight": 0.5},
        ]
        self.processes = [{"category": "Forming", "processes": ["Stamping", "Injection Molding"]}]
        self.failures: Dict[str, int] = {}
        self.fail_codes: set = set()
        self.calls: List[tuple] = []

    def _maybe_fail(self, op, code):
        self.calls.append((op, code))
        if code in self.fail_codes:
            raise RuntimeError(f"{op} unavailable for {code}")
        left = self.failures.get(op, 0)
        if left:
            self.failures[op] = left - 1
            raise RuntimeError(f"{op} unavailable")

    async def classify_product(self, code, name, description):
        self._maybe_fail("product", code)
        return dict(self.product) if self.product is not None else None

    async def classify_bom(self, code, name, description, weight):
        self._maybe_fail("bom", code)
        return copy.deepcopy(self.bom)

    async def classify_manufacturing_process(self, code, name, description, bom):
        self._maybe_fail("process", code)
        return copy.deepcopy(self.processes)


class FakeContentHost(ContentHostPort):
    def __init__(self):
        self.uploads: List[Path] = []
        self.fail_on: Optional[str] = None
        self._n = itertools.count(1)

    async def upload(self, origin, path):
        if self.fail_on and path.name == self.fail_on:
            raise ContentHostError("Image upload failed with status 500", {"image": path.name, "status": 500})
        self.uploads.append(path)
        base = (origin or "http://127.0.0.1:5000").rstrip("/")
        return f"{base}/content/notes/uploads/images/file-{next(self._n)}{path.suffix}"


class FakeCache(CachePort):
    def __init__(self):
        self.hashes: Dict[str, Dict[str, str]] = {}

    async def hset(self, key, mapping, ttl=None):
        self.hashes.setdefault(key, {}).update({k: str(v) for k, v in mapping.items()})

    async def hincrby(self, key, field, amount=1):
        h = self.hashes.setdefault(key, {})
        h[field] = str(int(h.get(field, 0)) + amount)
        return int(h[field])

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))


class SpyOrchestrator:
    def __init__(self):
        self.triggered: List[str] = []

    async def trigger(self, account):
        self.triggered.append(account)
        return RunHandle(run_id=f"run-{len(self.triggered)}", account=account, dispatched=0)


@pytest.fixture
def repos():
    return FakeRepoFactory()


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def content_host():
    return FakeContentHost()


@pytest.fixture
def cache():
    return FakeCache()


@pytest.fixture
def spy_orchestrator():
    return SpyOrchestrator()
