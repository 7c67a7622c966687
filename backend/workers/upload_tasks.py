"""
Bulk upload processing task
Probes uploaded files, captures thumbnails and suggests tags
"""
import logging
from typing import Dict

from workers.celery_app import celery_app
from core.database import get_db_context
from services.bulk_upload_service import BulkUploadError, process_session

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="workers.upload_tasks.process_bulk_upload_session", max_retries=3)
def process_bulk_upload_session(self, session_id: int) -> Dict:
    """
    Process every pending file of an upload session

    Args:
        session_id: BulkUploadSession id

    Returns:
        dict: processed, successful and failed counts
    """
    logger.info(f"🎬 Processing bulk upload session {session_id}")

    try:
        with get_db_context() as db:
            result = process_session(db, session_id)
        return {"session_id": session_id, **result}

    except BulkUploadError as e:
        logger.error(f"❌ Session {session_id}: {str(e)}")
        return {"session_id": session_id, "error": str(e)}
    except Exception as e:
        logger.error(f"❌ Processing session {session_id} failed: {str(e)}")
        raise self.retry(exc=e, countdown=60)
