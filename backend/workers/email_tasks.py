"""
Campaign email tasks
Queues one send per recipient, spaced by the campaign's hourly rate
"""
import logging
from typing import Dict

from workers.celery_app import celery_app
from core.database import get_db_context
from models.email import EmailSend, CampaignStatus
from services.email_campaigns import get_campaign_or_404, queue_campaign_sends, deliver_send, due_campaign_ids
from services.email_service import EmailCampaignError, send_counter

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="workers.email_tasks.send_campaign", max_retries=3)
def send_campaign(self, campaign_id: int) -> Dict:
    """
    Create pending sends for a campaign that is sending and schedule each one

    Args:
        campaign_id: Campaign already switched to status sending

    Returns:
        dict: campaign id and number of emails queued
    """
    logger.info(f"📧 Queueing campaign {campaign_id}")

    try:
        with get_db_context() as db:
            campaign = get_campaign_or_404(db, campaign_id)
            if campaign.status != CampaignStatus.SENDING:
                logger.warning(f"⚠️ Campaign {campaign_id} is {campaign.status.value}, not sending")
                return {"campaign_id": campaign_id, "queued": 0}

            schedule = queue_campaign_sends(db, campaign)

    except EmailCampaignError as e:
        logger.error(f"❌ Campaign {campaign_id} cannot be queued: {str(e)}")
        return {"campaign_id": campaign_id, "queued": 0, "error": str(e)}
    except Exception as e:
        logger.error(f"❌ Queueing campaign {campaign_id} failed: {str(e)}")
        raise self.retry(exc=e, countdown=60)

    # Sends are committed; a failed dispatch must not retry the campaign
    for send_id, countdown in schedule:
        send_campaign_email.apply_async(args=[send_id], countdown=countdown)

    return {"campaign_id": campaign_id, "queued": len(schedule)}


@celery_app.task(bind=True, name="workers.email_tasks.send_campaign_email", max_retries=None)
def send_campaign_email(self, send_id: int) -> Dict:
    """
    Deliver one campaign email

    The per-process hourly counter holds the campaign's rate; when the hour is
    used up the task is retried once the window resets. Eager runs have no
    broker to hold the retry, so the send stays pending and is reported deferred.
    """
    with get_db_context() as db:
        send = db.query(EmailSend).filter(EmailSend.id == send_id).first()
        if not send:
            logger.warning(f"⚠️ Send {send_id} no longer exists")
            return {"send_id": send_id, "status": "missing"}

        rate = send.campaign.send_rate

        if not send_counter.should_send(rate):
            wait = send_counter.seconds_until_reset()
            logger.info(f"⏳ Hourly limit of {rate} reached, send {send_id} deferred {wait}s")
            if self.request.is_eager:
                return {"send_id": send_id, "status": "deferred", "retry_in": wait}
            raise self.retry(countdown=wait)

        if deliver_send(db, send_id):
            send_counter.record()

        db.refresh(send)
        return {"send_id": send_id, "status": send.status.value}


@celery_app.task(name="workers.email_tasks.dispatch_scheduled_campaigns")
def dispatch_scheduled_campaigns() -> Dict:
    """Beat task: start every scheduled campaign whose time has passed"""
    with get_db_context() as db:
        campaign_ids = due_campaign_ids(db)

    for campaign_id in campaign_ids:
        logger.info(f"🗓️ Scheduled campaign {campaign_id} is due")
        send_campaign.delay(campaign_id)

    return {"dispatched": campaign_ids}
