"""
Email Service
SMTP delivery, template personalization, send-rate limiting, segment selection
and newsletter generation
"""
import math
import smtplib
import ssl
import time
import logging
import threading
from datetime import datetime, timedelta
from email.message import EmailMessage
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import quote

from jinja2 import Environment, TemplateSyntaxError, select_autoescape
from sqlalchemy.orm import Session

from core.config import settings
from models.user import User
from models.video import Video
from models.email import EmailSubscriber
from services import ai_service

logger = logging.getLogger(__name__)

HOUR_SECONDS = 3600

# Plain-text bodies are rendered without escaping; HTML bodies escape substituted values
_text_env = Environment(autoescape=False)
_html_env = Environment(autoescape=select_autoescape(default_for_string=True))


class EmailCampaignError(Exception):
    """Campaign operation rejected; status_code is the HTTP status to answer with"""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


# ============================================
# Delivery
# ============================================

def send_email(to_email: str, subject: str, html: str, text: Optional[str] = None) -> bool:
    """
    Send one email over SMTP

    When SMTP_HOST is not configured the message is logged instead of sent.

    Returns:
        True when the message was handed to the server (or logged), False on failure
    """
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM}>"
    msg["To"] = to_email
    msg.set_content(text or "")
    msg.add_alternative(html, subtype="html")

    if not settings.SMTP_HOST:
        logger.info(f"📨 [DRY-RUN] Email to={to_email} subject={subject}")
        return True

    try:
        if settings.SMTP_PORT == 465:
            with smtplib.SMTP_SSL(settings.SMTP_HOST, settings.SMTP_PORT, context=ssl.create_default_context(), timeout=20) as server:
                if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(msg)
        else:
            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=20) as server:
                server.ehlo()
                server.starttls(context=ssl.create_default_context())
                if settings.SMTP_USERNAME and settings.SMTP_PASSWORD:
                    server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
                server.send_message(msg)

        logger.info(f"📨 Email sent to {to_email} (subject={subject})")
        return True
    except (smtplib.SMTPException, OSError):
        logger.exception(f"❌ SMTP send failed (to={to_email} subject={subject})")
        return False


# ============================================
# Personalization
# ============================================

def unsubscribe_link(email: str) -> str:
    return f"{settings.UNSUBSCRIBE_BASE_URL}?email={quote(email)}"


def personalization_context(email: str, user: Optional[User] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Values available to campaign templates"""
    now = now or datetime.utcnow()
    return {
        "username": user.username if user else email.split("@")[0],
        "email": email,
        "user_id": user.id if user else "",
        "current_date": now.strftime("%B %d, %Y"),
        "unsubscribe_link": unsubscribe_link(email),
    }


def validate_template(content: Optional[str]) -> None:
    """
    Raises:
        EmailCampaignError: If the content is not a valid template
    """
    if not content:
        return
    try:
        _text_env.parse(content)
    except TemplateSyntaxError as e:
        raise EmailCampaignError(f"Invalid template syntax at line {e.lineno}: {e.message}")


def personalize_template(content: str, context: Dict[str, Any], html: bool = False) -> str:
    """Replace {{username}}, {{email}}, {{user_id}}, {{current_date}} and {{unsubscribe_link}}"""
    env = _html_env if html else _text_env
    return env.from_string(content).render(**context)


# ============================================
# Rate limiting
# ============================================

def compute_send_delay(rate_per_hour: int) -> int:
    """Seconds between consecutive sends for a target hourly rate"""
    if rate_per_hour <= 0:
        raise ValueError("rate_per_hour must be positive")
    return math.ceil(HOUR_SECONDS / rate_per_hour)


def send_schedule(recipient_count: int, rate_per_hour: int) -> List[int]:
    """Countdown in seconds for each send, spaced by the rate's fixed delay"""
    delay = compute_send_delay(rate_per_hour)
    return [index * delay for index in range(recipient_count)]


class HourlySendCounter:
    """
    Counts sends in the current hour window; the window resets once an hour
    has passed since it opened.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._window_start = clock()
        self._count = 0

    def _roll(self) -> None:
        if self._clock() - self._window_start > HOUR_SECONDS:
            self._window_start = self._clock()
            self._count = 0

    @property
    def count(self) -> int:
        with self._lock:
            self._roll()
            return self._count

    def should_send(self, limit: int) -> bool:
        with self._lock:
            self._roll()
            return self._count < limit

    def record(self) -> None:
        with self._lock:
            self._roll()
            self._count += 1

    def seconds_until_reset(self) -> int:
        with self._lock:
            remaining = HOUR_SECONDS - (self._clock() - self._window_start)
            return max(1, math.ceil(remaining))

    def reset(self) -> None:
        with self._lock:
            self._window_start = self._clock()
            self._count = 0


# Per-process counter used by the campaign send task
send_counter = HourlySendCounter()


# ============================================
# Segments
# ============================================

def get_segment_recipients(db: Session, segment_options: Optional[Dict[str, Any]] = None) -> List[Tuple[EmailSubscriber, Optional[User]]]:
    """
    Subscribed addresses matching a segment

    Segment options:
        membershipId: tier id, or None for users without a membership
        downloadsMin / downloadsMax: bounds on downloadsUsed
        lastLoginDays: logged in within this many days
    """
    options = segment_options or {}

    query = (
        db.query(EmailSubscriber, User)
        .outerjoin(User, EmailSubscriber.user_id == User.id)
        .filter(EmailSubscriber.is_subscribed.is_(True))
    )

    if "membershipId" in options:
        if options["membershipId"] is None:
            query = query.filter(User.membership_id.is_(None))
        else:
            query = query.filter(User.membership_id == options["membershipId"])

    if options.get("downloadsMin") is not None:
        query = query.filter(User.downloads_used >= options["downloadsMin"])

    if options.get("downloadsMax") is not None:
        query = query.filter(User.downloads_used <= options["downloadsMax"])

    if options.get("lastLoginDays") is not None:
        cutoff = datetime.utcnow() - timedelta(days=int(options["lastLoginDays"]))
        query = query.filter(User.last_login >= cutoff)

    rows = query.order_by(EmailSubscriber.id).all()
    return [(subscriber, user) for subscriber, user in rows if "@" in (subscriber.email or "")]


# ============================================
# Newsletter generation
# ============================================

NEWSLETTER_HTML = """<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <h1 style="color: #6d28d9;">New DJ Videos on TheVideoPool</h1>
  <p>Hi {{ '{{username}}' }},</p>
  <p>{{ intro }}</p>
  {% if promotional_text %}<p><strong>{{ promotional_text }}</strong></p>{% endif %}
  <ul>
  {% for video in videos %}
    <li>
      <a href="{{ app_url }}/videos/{{ video.id }}">{{ video.title }}</a>
      {% if video.resolution %}({{ video.resolution }}){% endif %}
    </li>
  {% endfor %}
  </ul>
  <p><a href="{{ app_url }}/browse">Browse the full library</a></p>
  <p style="font-size: 12px; color: #666;">
    You are receiving this email because you subscribed to TheVideoPool updates.
    <a href="{{ '{{unsubscribe_link}}' }}">Unsubscribe</a>
  </p>
</div>
"""

NEWSLETTER_TEXT = """Hi {{ '{{username}}' }},

{{ intro }}
{% if promotional_text %}
{{ promotional_text }}
{% endif %}
{% for video in videos %}- {{ video.title }}: {{ app_url }}/videos/{{ video.id }}
{% endfor %}
Browse the full library: {{ app_url }}/browse

Unsubscribe: {{ '{{unsubscribe_link}}' }}
"""

DEFAULT_INTRO = "Fresh videos just landed in the pool. Here are this week's top picks for your sets."


def newsletter_subject(segment: Optional[str] = None) -> str:
    subject = "TheVideoPool - New DJ Videos Available"
    if segment:
        subject += f" for {segment}"
    return subject


def generate_newsletter_content(
    db: Session,
    video_ids: List[int],
    promotional_text: Optional[str] = None,
    segment: Optional[str] = None
) -> Dict[str, str]:
    """
    Build subject, HTML and text for a newsletter about the given videos.
    Output keeps {{username}} and {{unsubscribe_link}} for per-recipient rendering.
    """
    videos = db.query(Video).filter(Video.id.in_(video_ids)).all() if video_ids else []
    by_id = {video.id: video for video in videos}
    ordered = [by_id[vid] for vid in video_ids if vid in by_id]

    intro = DEFAULT_INTRO
    if ordered and ai_service.is_enabled():
        titles = ", ".join(video.title for video in ordered)
        prompt = (
            "Write a two-sentence, upbeat newsletter introduction for DJs and VJs "
            f"announcing these new videos: {titles}."
            + (f" The audience is {segment}." if segment else "")
            + " Return only the text."
        )
        intro = ai_service.generate_text(prompt) or DEFAULT_INTRO

    context = {
        "intro": intro,
        "promotional_text": promotional_text,
        "videos": ordered,
        "app_url": settings.APP_URL,
    }

    return {
        "subject": newsletter_subject(segment),
        "html": _html_env.from_string(NEWSLETTER_HTML).render(**context),
        "text": _text_env.from_string(NEWSLETTER_TEXT).render(**context),
    }
