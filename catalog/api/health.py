from fastapi import APIRouter, Depends
from sqlalchemy import text

from catalog.api.deps import get_storage_service
from catalog.database import engine
from catalog.utils.cache import redis_client
from catalog.utils.storage import SUB_PATHS, StorageService

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("/", summary="Health check")
def health_check():
    """Simple health check."""
    return {"status": "healthy"}


@router.get(
    "/ready",
    summary="Readiness check",
    description="Check that the database, Redis and asset storage are usable."
)
def readiness_check(storage: StorageService = Depends(get_storage_service)):
    """
    Readiness check for all dependencies.

    Returns status of:
    - Database connection
    - Redis connection (product cache and exchange rates)
    - Asset storage directories
    """
    checks = {
        "database": False,
        "redis": False,
        "storage": False
    }

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            checks["database"] = True
    except Exception as e:
        checks["database_error"] = str(e)

    try:
        redis_client.ping()
        checks["redis"] = True
    except Exception as e:
        checks["redis_error"] = str(e)

    try:
        storage.prepare_directories()
        checks["storage"] = all(storage.root.joinpath(sub_path).is_dir() for sub_path in SUB_PATHS)
    except OSError as e:
        checks["storage_error"] = str(e)

    all_healthy = all([checks["database"], checks["redis"], checks["storage"]])

    return {
        "status": "ready" if all_healthy else "not_ready",
        "checks": checks
    }
