"""Queue worker — claims pending notifications and delivers them.

A drain is plain synchronous code: the HTTP trigger, the ``manage.py``
CLI and tests all call ``drain()`` directly. Rows are claimed with a
single guarded update (PENDING → SENDING) before any mail is sent, so two
overlapping drains never deliver the same row. Claims are committed
immediately, so ``drain()`` must run outside a Unit of Work.

Lanes:
    high    priority == HIGH, drained in chunks until empty on every trigger
    normal  NORMAL then LOW, up to the batch size, FIFO within a class
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from enum import Enum

import structlog
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain
from protean.utils.query import Q

from storefront.channel import get_email_channel
from storefront.notification.notification import (
    NotificationPriority,
    NotificationStatus,
    QueuedNotification,
)
from storefront.templates import get_template
from storefront.utils.clock import utcnow

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 25
MAX_BATCH_SIZE = 100
HIGH_PRIORITY_CHUNK = 10
STALE_CLAIM_MINUTES = 15
SENT_RETENTION_DAYS = 7


class DrainMode(Enum):
    NORMAL = "normal"
    AGGRESSIVE = "aggressive"


@dataclass
class DrainReport:
    sent: int = 0
    failed: int = 0  # Failed attempts in this drain
    exhausted: int = 0  # Of those, rows now parked as FAILED
    high_priority: int = 0  # Rows claimed from the high lane

    def merge(self, other: "DrainReport") -> "DrainReport":
        return DrainReport(
            sent=self.sent + other.sent,
            failed=self.failed + other.failed,
            exhausted=self.exhausted + other.exhausted,
            high_priority=self.high_priority + other.high_priority,
        )

    def to_dict(self) -> dict:
        return asdict(self)


def effective_batch_size(batch_size: int = DEFAULT_BATCH_SIZE, mode: DrainMode = DrainMode.NORMAL) -> int:
    batch_size = max(int(batch_size), 0)
    if mode == DrainMode.AGGRESSIVE:
        return min(batch_size * 2, MAX_BATCH_SIZE)
    return min(batch_size, MAX_BATCH_SIZE)


# ---------------------------------------------------------------------------
# Claiming
# ---------------------------------------------------------------------------
def _claim(priority: int, limit: int, now: datetime) -> list[QueuedNotification]:
    repo = current_domain.repository_for(QueuedNotification)
    criteria = Q(status=NotificationStatus.PENDING.value, priority=priority, available_at__lte=now)
    return repo._dao._claim(
        criteria,
        {"status": NotificationStatus.SENDING.value, "claimed_at": now, "updated_at": now},
        limit,
        "enqueued_at",
    )


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------
def _deliver(notification: QueuedNotification, report: DrainReport, now: datetime) -> None:
    channel = get_email_channel()
    try:
        rendered = get_template(notification.template).render(notification.context())
        result = channel.send(
            to=notification.recipient_email,
            subject=notification.subject or rendered["subject"],
            body=rendered["body"],
            html_body=rendered.get("html_body"),
            template=notification.template,
        )
    except Exception as exc:
        logger.error(
            "Notification delivery raised",
            notification_id=str(notification.id),
            template=notification.template,
            error=str(exc),
        )
        result = {"status": "failed", "error": str(exc)}

    if result.get("status") == "sent":
        notification.mark_sent()
        report.sent += 1
    else:
        notification.record_failure(result.get("error", "Unknown delivery error"), now=now)
        report.failed += 1
        if notification.status == NotificationStatus.FAILED.value:
            report.exhausted += 1
            logger.error(
                "Notification permanently failed",
                notification_id=str(notification.id),
                attempts=notification.attempts,
                last_error=notification.last_error,
            )
        else:
            logger.warning(
                "Notification delivery failed, will retry",
                notification_id=str(notification.id),
                attempts=notification.attempts,
                max_attempts=notification.max_attempts,
            )

    try:
        current_domain.repository_for(QueuedNotification).add(notification)
    except ExpectedVersionError:
        # Row changed under us (e.g. a stale-claim release); it is back in the queue.
        logger.warning("Notification outcome not recorded, row was modified", notification_id=str(notification.id))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def drain_high_priority(now: datetime | None = None) -> DrainReport:
    """Drain the high-priority lane completely, ignoring batch limits.

    A row that fails is pushed back by its retry delay, so it is not
    re-claimed within the same drain.
    """
    now = now or utcnow()
    report = DrainReport()
    while True:
        claimed = _claim(NotificationPriority.HIGH.value, HIGH_PRIORITY_CHUNK, now)
        if not claimed:
            break
        report.high_priority += len(claimed)
        for notification in claimed:
            _deliver(notification, report, now)
    return report


def drain(
    batch_size: int = DEFAULT_BATCH_SIZE,
    mode: DrainMode = DrainMode.NORMAL,
    now: datetime | None = None,
) -> DrainReport:
    """Run one drain: the whole high lane, then one bounded normal batch."""
    now = now or utcnow()
    report = drain_high_priority(now=now)

    remaining = effective_batch_size(batch_size, mode)
    normal = DrainReport()
    for priority in (NotificationPriority.NORMAL.value, NotificationPriority.LOW.value):
        if remaining <= 0:
            break
        claimed = _claim(priority, remaining, now)
        remaining -= len(claimed)
        for notification in claimed:
            _deliver(notification, normal, now)

    report = report.merge(normal)
    logger.info("Queue drained", mode=mode.value, **report.to_dict())
    return report


def queue_stats(now: datetime | None = None) -> dict:
    """Snapshot of queue depth and recent throughput."""
    now = now or utcnow()
    since = now - timedelta(hours=24)
    query = current_domain.repository_for(QueuedNotification)._dao.query

    def count(**filters) -> int:
        return query.filter(**filters).count()

    return {
        "pending": count(status=NotificationStatus.PENDING.value),
        "sending": count(status=NotificationStatus.SENDING.value),
        "sent_24h": count(status=NotificationStatus.SENT.value, sent_at__gte=since),
        "failed_24h": count(status=NotificationStatus.FAILED.value, updated_at__gte=since),
        "retrying": count(status=NotificationStatus.PENDING.value, attempts__gt=0),
        "high_priority_pending": count(
            status=NotificationStatus.PENDING.value, priority=NotificationPriority.HIGH.value
        ),
    }


def cleanup_sent(older_than_days: int = SENT_RETENTION_DAYS, now: datetime | None = None) -> int:
    """Delete SENT rows older than the retention window. FAILED rows are kept."""
    cutoff = (now or utcnow()) - timedelta(days=older_than_days)
    repo = current_domain.repository_for(QueuedNotification)
    expired = repo._dao.query.filter(status=NotificationStatus.SENT.value, sent_at__lt=cutoff)
    deleted = expired.limit(None).delete()
    logger.info("Sent notifications cleaned up", deleted=deleted, older_than_days=older_than_days)
    return deleted


def release_stale_claims(older_than_minutes: int = STALE_CLAIM_MINUTES, now: datetime | None = None) -> int:
    """Return rows stuck in SENDING (worker crashed mid-send) to the queue."""
    cutoff = (now or utcnow()) - timedelta(minutes=older_than_minutes)
    repo = current_domain.repository_for(QueuedNotification)
    stale_query = repo._dao.query.filter(status=NotificationStatus.SENDING.value, claimed_at__lt=cutoff)
    stale = stale_query.limit(None).all().items

    released = 0
    for notification in stale:
        notification.release_claim()
        try:
            repo.add(notification)
        except ExpectedVersionError:
            continue
        released += 1

    if released:
        logger.warning("Stale notification claims released", released=released)
    return released
