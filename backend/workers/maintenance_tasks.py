"""
Housekeeping tasks run by Celery beat
"""
import logging
from typing import Dict

from workers.celery_app import celery_app
from core.database import get_db_context
from services.bulk_download import cleanup_old_archives
from services.membership_service import expire_lapsed_memberships

logger = logging.getLogger(__name__)


@celery_app.task(name="workers.maintenance_tasks.cleanup_bulk_downloads")
def cleanup_bulk_downloads() -> Dict:
    """Delete bulk download archives past their max age"""
    deleted = cleanup_old_archives()
    return {"deleted": deleted}


@celery_app.task(bind=True, name="workers.maintenance_tasks.expire_memberships", max_retries=3)
def expire_memberships(self) -> Dict:
    """Clear memberships whose end date has passed"""
    try:
        with get_db_context() as db:
            expired = expire_lapsed_memberships(db)
        return {"expired": expired}
    except Exception as e:
        logger.error(f"❌ Membership expiry failed: {str(e)}")
        raise self.retry(exc=e, countdown=60)
