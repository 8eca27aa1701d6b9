# app/domain/ports.py
from __future__ import annotations
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional


class ProductRepoPort(ABC):
    """Record store scoped to one account."""
    @abstractmethod
    async def ensure_indexes(self) -> None: ...

    @abstractmethod
    async def insert_many(self, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def find_pending(self) -> List[Dict[str, Any]]:
        """Records whose status is `pending` or was never set."""

    @abstractmethod
    async def claim_pending(self, product_id: Any) -> Optional[Dict[str, Any]]:
        """Atomically flip pending → processing; None when someone else owns it."""

    @abstractmethod
    async def update_fields(self, product_id: Any, fields: Dict[str, Any]) -> None: ...

    @abstractmethod
    async def push_image(self, code: str, url: str) -> int:
        """Append `url` to the product's images; returns the matched count."""


class RepoFactoryPort(ABC):
    @abstractmethod
    def for_account(self, account: str) -> ProductRepoPort: ...


class ClassifierPort(ABC):
    @abstractmethod
    async def classify_product(self, code: str, name: str, description: str) -> Dict[str, Any]: ...

    @abstractmethod
    async def classify_bom(self, code: str, name: str, description: str, weight: Optional[float]) -> List[Dict[str, Any]]: ...

    @abstractmethod
    async def classify_manufacturing_process(
        self, code: str, name: str, description: str, bom: List[Dict[str, Any]]
    ) -> List[Dict[str, Any]]: ...


class ContentHostPort(ABC):
    @abstractmethod
    async def upload(self, origin: str, path: Path) -> str:
        """Upload one image file; returns its public download URL."""


class CachePort(ABC):
    @abstractmethod
    async def hset(self, key: str, mapping: dict, ttl: Optional[int] = None) -> None: ...
    @abstractmethod
    async def hincrby(self, key: str, field: str, amount: int = 1) -> int: ...
    @abstractmethod
    async def hgetall(self, key: str) -> dict: ...
