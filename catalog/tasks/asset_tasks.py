import logging

from catalog.context import RequestContext
from catalog.database import SessionLocal
from catalog.services.asset_service import AssetService
from catalog.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="reconcile_assets")
def reconcile_assets(apply: bool = False) -> dict:
    """
    Find (and optionally repair) icon/image rows and files that no longer match.

    Asset rows and files are written in two separate steps, so a failure
    between them leaves a row without its file or a file without its row.
    This task is run on demand by an operator.

    Args:
        apply: Delete orphan files and dangling rows instead of only reporting

    Returns:
        Reconciliation report per sub-path
    """
    logger.info(f"Starting asset reconciliation (apply={apply})")

    db = SessionLocal()
    try:
        service = AssetService(db, RequestContext.for_cli("reconcile_assets"))
        report = service.reconcile(apply=apply)
    finally:
        db.close()

    logger.info(f"Asset reconciliation finished: {report}")
    return report
