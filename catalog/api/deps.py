from fastapi import Depends, Request

from catalog.context import RequestContext
from catalog.database import get_db
from catalog.services.currency_service import CurrencyService
from catalog.utils.cache import CacheService, cache_service
from catalog.utils.storage import StorageService

__all__ = [
    "get_db",
    "get_request_context",
    "get_cache_service",
    "get_currency_service",
    "get_storage_service",
]


def get_request_context(request: Request) -> RequestContext:
    return RequestContext.from_request(request)


def get_cache_service() -> CacheService:
    return cache_service


def get_currency_service(cache: CacheService = Depends(get_cache_service)) -> CurrencyService:
    return CurrencyService(cache=cache)


def get_storage_service() -> StorageService:
    return StorageService()
