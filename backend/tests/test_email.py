"""
Email campaign tests
"""
from datetime import datetime, timedelta

import pytest

from core.config import settings
from models.email import CampaignStatus, EmailCampaign, EmailSend, EmailSubscriber, SendStatus
from models.user import UserRole
from services import email_campaigns
from services.email_service import (
    EmailCampaignError,
    HourlySendCounter,
    compute_send_delay,
    generate_newsletter_content,
    get_segment_recipients,
    personalization_context,
    personalize_template,
    send_counter,
    send_schedule,
)
from workers.email_tasks import send_campaign_email


@pytest.fixture
def promoter_headers(staff_headers):
    return staff_headers(UserRole.PROMOTER)


@pytest.fixture
def subscribers(test_db, member_user, test_user):
    rows = [
        EmailSubscriber(user_id=member_user.id, email=member_user.email, is_subscribed=True),
        EmailSubscriber(user_id=test_user.id, email=test_user.email, is_subscribed=True),
        EmailSubscriber(email="gone@example.com", is_subscribed=False),
    ]
    test_db.add_all(rows)
    test_db.commit()
    return rows


def _campaign_payload(**overrides):
    payload = {
        "name": "Spring drop",
        "subject": "New loops for {{username}}",
        "htmlContent": "<p>Hi {{username}}</p><a href='{{unsubscribe_link}}'>unsubscribe</a>",
        "textContent": "Hi {{username}}",
        "sendRate": 120,
    }
    payload.update(overrides)
    return payload


class TestRateLimiting:
    """Send spacing and the hourly counter"""

    def test_send_delay_rounds_up(self):
        assert compute_send_delay(100) == 36
        assert compute_send_delay(7) == 515
        assert compute_send_delay(3600) == 1

    def test_send_delay_rejects_zero(self):
        with pytest.raises(ValueError):
            compute_send_delay(0)

    def test_send_schedule(self):
        assert send_schedule(3, 120) == [0, 30, 60]

    def test_counter_resets_after_an_hour(self):
        clock = [1000.0]
        counter = HourlySendCounter(clock=lambda: clock[0])

        counter.record()
        counter.record()
        assert counter.should_send(2) is False
        assert counter.seconds_until_reset() == 3600

        clock[0] += 1800
        assert counter.should_send(2) is False
        assert counter.seconds_until_reset() == 1800

        clock[0] += 1801
        assert counter.should_send(2) is True
        assert counter.count == 0


class TestTemplates:
    """Personalization"""

    def test_placeholders_are_replaced(self):
        context = personalization_context("nova@example.com", now=datetime(2024, 3, 5))
        rendered = personalize_template("{{username}} {{current_date}} {{unsubscribe_link}}", context)
        assert rendered.startswith("nova March 05, 2024 ")
        assert "email=nova%40example.com" in rendered

    def test_html_values_are_escaped(self):
        context = personalization_context("a@example.com")
        context["username"] = "<b>dj</b>"
        assert personalize_template("{{username}}", context, html=True) == "&lt;b&gt;dj&lt;/b&gt;"

    def test_newsletter_keeps_recipient_placeholders(self, test_db, sample_videos):
        content = generate_newsletter_content(test_db, [sample_videos[1].id, sample_videos[0].id], "20% off", "EDM fans")
        assert content["subject"] == "TheVideoPool - New DJ Videos Available for EDM fans"
        assert "{{username}}" in content["text"]
        assert content["html"].index("Retro Grid Loop") < content["html"].index("Laser Countdown")
        assert "20% off" in content["html"]


class TestCampaignLifecycle:
    """Draft, schedule, send"""

    def test_created_as_draft(self, client, promoter_headers):
        response = client.post("/api/admin/email/campaigns", json=_campaign_payload(), headers=promoter_headers)
        assert response.status_code == 201
        assert response.json()["status"] == "draft"

    def test_requires_promoter_role(self, client, auth_headers):
        response = client.post("/api/admin/email/campaigns", json=_campaign_payload(), headers=auth_headers)
        assert response.status_code == 403

    def test_invalid_template_rejected(self, client, promoter_headers):
        response = client.post(
            "/api/admin/email/campaigns",
            json=_campaign_payload(htmlContent="<p>{{ username </p>"),
            headers=promoter_headers,
        )
        assert response.status_code == 400

    def test_schedule_in_past_rejected(self, test_db):
        campaign = email_campaigns.create_campaign(test_db, {"name": "x", "subject": "y", "html_content": "z"})
        with pytest.raises(EmailCampaignError):
            email_campaigns.schedule_campaign(test_db, campaign, datetime.utcnow() - timedelta(minutes=5))

    def test_schedule_then_dispatch_when_due(self, test_db):
        campaign = email_campaigns.create_campaign(test_db, {"name": "x", "subject": "y", "html_content": "z"})
        now = datetime.utcnow()
        email_campaigns.schedule_campaign(test_db, campaign, now + timedelta(hours=1), now=now)
        assert campaign.status == CampaignStatus.SCHEDULED

        assert email_campaigns.due_campaign_ids(test_db, now=now) == []
        assert email_campaigns.due_campaign_ids(test_db, now=now + timedelta(hours=2)) == [campaign.id]
        test_db.refresh(campaign)
        assert campaign.status == CampaignStatus.SENDING

    def test_list_filters_by_status(self, client, test_db, promoter_headers):
        draft = email_campaigns.create_campaign(test_db, {"name": "draft", "subject": "s", "html_content": "h"})
        sending = email_campaigns.create_campaign(test_db, {"name": "live", "subject": "s", "html_content": "h"})
        email_campaigns.start_sending(test_db, sending)

        response = client.get("/api/admin/email/campaigns?status=draft", headers=promoter_headers)
        assert response.status_code == 200
        assert [c["id"] for c in response.json()["campaigns"]] == [draft.id]

    def test_sending_campaign_is_locked(self, test_db):
        campaign = email_campaigns.create_campaign(test_db, {"name": "x", "subject": "y", "html_content": "z"})
        email_campaigns.start_sending(test_db, campaign)

        with pytest.raises(EmailCampaignError):
            email_campaigns.update_campaign(test_db, campaign, {"name": "changed"})
        with pytest.raises(EmailCampaignError):
            email_campaigns.delete_campaign(test_db, campaign)


class TestDelivery:
    """Queued sends and segments"""

    def test_segment_skips_unsubscribed(self, test_db, subscribers):
        emails = [sub.email for sub, _user in get_segment_recipients(test_db)]
        assert emails == ["member@example.com", "testuser@example.com"]

    def test_segment_by_membership(self, test_db, subscribers, test_membership):
        members = get_segment_recipients(test_db, {"membershipId": test_membership.id})
        assert [sub.email for sub, _user in members] == ["member@example.com"]

        non_members = get_segment_recipients(test_db, {"membershipId": None})
        assert [sub.email for sub, _user in non_members] == ["testuser@example.com"]

    def test_queue_and_deliver_completes_campaign(self, test_db, subscribers):
        campaign = email_campaigns.create_campaign(
            test_db, {"name": "x", "subject": "Hi {{username}}", "html_content": "<p>{{username}}</p>", "send_rate": 60}
        )
        email_campaigns.start_sending(test_db, campaign)

        schedule = email_campaigns.queue_campaign_sends(test_db, campaign)
        assert [countdown for _send_id, countdown in schedule] == [0, 60]

        for send_id, _countdown in schedule:
            email_campaigns.deliver_send(test_db, send_id)

        test_db.refresh(campaign)
        assert campaign.status == CampaignStatus.COMPLETE
        assert campaign.sent_count == 2
        assert test_db.query(EmailSend).filter(EmailSend.status == SendStatus.SENT).count() == 2

    def test_send_now_runs_through_worker(self, client, test_db, subscribers, promoter_headers):
        campaign_id = client.post(
            "/api/admin/email/campaigns", json=_campaign_payload(), headers=promoter_headers
        ).json()["id"]

        response = client.post(f"/api/admin/email/campaigns/{campaign_id}/send-now", headers=promoter_headers)
        assert response.status_code == 200
        assert response.json()["campaign"]["status"] == "complete"
        assert response.json()["campaign"]["sentCount"] == 2

    def test_send_now_defers_sends_over_hourly_rate(self, client, test_db, subscribers, promoter_headers):
        campaign_id = client.post(
            "/api/admin/email/campaigns", json=_campaign_payload(sendRate=1), headers=promoter_headers
        ).json()["id"]

        response = client.post(f"/api/admin/email/campaigns/{campaign_id}/send-now", headers=promoter_headers)
        assert response.status_code == 200
        assert response.json()["campaign"]["status"] == "sending"
        assert response.json()["campaign"]["sentCount"] == 1

        statuses = sorted(
            send.status.value for send in test_db.query(EmailSend).filter(EmailSend.campaign_id == campaign_id)
        )
        assert statuses == ["pending", "sent"]
        assert send_counter.count == 1

    def test_skipped_send_leaves_hourly_budget(self, test_db, subscribers):
        campaign = email_campaigns.create_campaign(test_db, {"name": "x", "subject": "y", "html_content": "z"})
        send = EmailSend(campaign_id=campaign.id, email="member@example.com", status=SendStatus.PENDING)
        test_db.add(send)
        test_db.commit()

        result = send_campaign_email.apply(args=[send.id]).get()

        assert result == {"send_id": send.id, "status": "pending"}
        assert send_counter.count == 0

    def test_default_send_rate_from_settings(self, test_db, monkeypatch):
        monkeypatch.setattr(settings, "EMAIL_DEFAULT_SEND_RATE", 250)
        campaign = email_campaigns.create_campaign(test_db, {"name": "x", "subject": "y", "html_content": "z"})
        assert campaign.send_rate == 250

    def test_tracking_counts_open_once(self, client, test_db, subscribers):
        campaign = email_campaigns.create_campaign(test_db, {"name": "x", "subject": "y", "html_content": "z"})
        email_campaigns.start_sending(test_db, campaign)
        send_id, _ = email_campaigns.queue_campaign_sends(test_db, campaign)[0]
        email_campaigns.deliver_send(test_db, send_id)

        assert client.get(f"/api/email/track/open/{send_id}").headers["content-type"] == "image/gif"
        client.get(f"/api/email/track/open/{send_id}")
        redirect = client.get(
            f"/api/email/track/click/{send_id}?url=https://thevideopool.com/videos/1",
            follow_redirects=False,
        )
        assert redirect.status_code == 302

        test_db.refresh(campaign)
        assert campaign.open_count == 1
        assert campaign.click_count == 1

    def test_click_rejects_unsafe_url(self, client):
        response = client.get("/api/email/track/click/1?url=javascript:alert(1)", follow_redirects=False)
        assert response.status_code == 400

    def test_click_rejects_protocol_relative_url(self, client):
        response = client.get("/api/email/track/click/1?url=//evil.example/login", follow_redirects=False)
        assert response.status_code == 400

    def test_click_keeps_failed_status(self, client, test_db, subscribers):
        campaign = email_campaigns.create_campaign(test_db, {"name": "x", "subject": "y", "html_content": "z"})
        send = EmailSend(campaign_id=campaign.id, email="member@example.com", status=SendStatus.FAILED)
        test_db.add(send)
        test_db.commit()

        client.get(f"/api/email/track/click/{send.id}?url=/videos/1", follow_redirects=False)

        test_db.refresh(send)
        assert send.status == SendStatus.FAILED
        assert send.clicked_at is not None


class TestSubscribers:
    """Opt-out handling"""

    def test_unsubscribe_is_case_insensitive(self, client, test_db, subscribers):
        response = client.get("/api/email/unsubscribe?email=MEMBER@example.com")
        assert response.status_code == 200

        subscriber = test_db.query(EmailSubscriber).filter(EmailSubscriber.email == "member@example.com").first()
        test_db.refresh(subscriber)
        assert subscriber.is_subscribed is False
        assert subscriber.unsubscribed_at is not None

    def test_unsubscribe_unknown_email(self, client):
        assert client.get("/api/email/unsubscribe?email=nobody@example.com").status_code == 404

    def test_import_users(self, test_db, subscribers, test_admin):
        result = email_campaigns.import_users(test_db)
        assert result["created"] == 1
        assert test_db.query(EmailCampaign).count() == 0
        assert test_db.query(EmailSubscriber).count() == 4
