# app/container.py
from functools import lru_cache
from typing import Optional

from app.infra.cache.redis_cache import RedisCache
from app.infra.content.content_host import HttpContentHost
from app.infra.llm.openai_adapter import OpenAIClassifier
from app.infra.repo.mongo_repo import MongoRepoFactory

from app.services.run_state import RunStateService

from app.application.archive_distributor import ArchiveDistributor
from app.application.classification_orchestrator import ClassificationOrchestrator
from app.application.product_upload_use_case import BulkProductUploadUseCase

@lru_cache
def _cache() -> RedisCache: return RedisCache.from_env()

@lru_cache
def _repos() -> MongoRepoFactory: return MongoRepoFactory()

@lru_cache
def _classifier() -> OpenAIClassifier: return OpenAIClassifier()

@lru_cache
def _content_host() -> HttpContentHost: return HttpContentHost()

@lru_cache
def _runs() -> RunStateService: return RunStateService(_cache())

@lru_cache
def _orchestrator() -> ClassificationOrchestrator:
    return ClassificationOrchestrator(repos=_repos(), classifier=_classifier(), runs=_runs())

def get_repos() -> MongoRepoFactory: return _repos()
def get_cache() -> RedisCache: return _cache()
def get_classifier() -> OpenAIClassifier: return _classifier()
def get_run_state() -> RunStateService: return _runs()
def get_orchestrator() -> ClassificationOrchestrator: return _orchestrator()

def get_product_upload_uc() -> BulkProductUploadUseCase:
    return BulkProductUploadUseCase(repos=_repos())

def get_archive_distributor() -> ArchiveDistributor:
    return ArchiveDistributor(repos=_repos(), content_host=_content_host(), orchestrator=_orchestrator())

def started_orchestrator() -> Optional[ClassificationOrchestrator]:
    """The orchestrator if something already built it (avoids spinning one up at shutdown)."""
    return _orchestrator() if _orchestrator.cache_info().currsize else None
