"""QueuedNotification aggregate (CQRS) — one transactional email awaiting delivery.

Rows are persisted on enqueue and consumed only by the queue worker, which
claims them (PENDING → SENDING) in a single guarded update before sending,
so two overlapping drains never deliver the same row.

State Machine:
    PENDING → SENDING (claim)
    SENDING → SENT
    SENDING → PENDING (failed attempt, retry budget left; available again after a delay)
    SENDING → FAILED  (retry budget exhausted; never retried)
    SENDING → PENDING (stale claim released)
"""

import json
from datetime import datetime, timedelta
from enum import Enum, IntEnum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text

from storefront.domain import storefront
from storefront.notification.events import NotificationDeliveryFailed, NotificationEnqueued, NotificationSent
from storefront.utils.clock import utcnow

DEFAULT_MAX_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 60


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class NotificationPriority(IntEnum):
    HIGH = 1
    NORMAL = 5
    LOW = 10


class NotificationTemplate(Enum):
    PAYMENT_CONFIRMED = "payment_confirmed"
    DOWNLOAD_LINK = "download_link"
    OTP_CODE = "otp_code"


class NotificationStatus(Enum):
    PENDING = "Pending"
    SENDING = "Sending"
    SENT = "Sent"
    FAILED = "Failed"


_VALID_TRANSITIONS = {
    NotificationStatus.PENDING: {NotificationStatus.SENDING},
    NotificationStatus.SENDING: {
        NotificationStatus.SENT,
        NotificationStatus.PENDING,  # Retry or released claim
        NotificationStatus.FAILED,
    },
    NotificationStatus.SENT: set(),  # Terminal
    NotificationStatus.FAILED: set(),  # Terminal
}


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class QueuedNotification:
    # Recipient
    recipient_email: String(required=True, max_length=254)
    recipient_name: String(max_length=255, sanitize=False)

    # Content
    template: String(required=True, choices=NotificationTemplate)
    template_data: Text(sanitize=False)  # JSON
    subject: String(max_length=500, sanitize=False)  # Overrides the template's subject

    # Queueing
    priority: Integer(default=NotificationPriority.NORMAL.value)
    status: String(choices=NotificationStatus, default=NotificationStatus.PENDING.value)
    dedupe_key: String(max_length=255, unique=True)
    order_id: Identifier()

    # Retry
    attempts: Integer(default=0)
    max_attempts: Integer(default=DEFAULT_MAX_ATTEMPTS, min_value=1)
    last_error: String(max_length=1000, sanitize=False)

    # Timestamps
    enqueued_at: DateTime()
    available_at: DateTime()  # Not claimable before this instant
    claimed_at: DateTime()
    sent_at: DateTime()
    updated_at: DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        recipient_email,
        template,
        template_data=None,
        priority=NotificationPriority.NORMAL.value,
        recipient_name=None,
        subject=None,
        order_id=None,
        dedupe_key=None,
        max_attempts=DEFAULT_MAX_ATTEMPTS,
    ):
        if int(priority) not in {p.value for p in NotificationPriority}:
            raise ValidationError({"priority": [f"Unknown priority class: {priority}"]})

        now = utcnow()
        notification = cls(
            recipient_email=recipient_email,
            recipient_name=recipient_name,
            template=template,
            template_data=json.dumps(template_data or {}),
            subject=subject,
            priority=int(priority),
            status=NotificationStatus.PENDING.value,
            dedupe_key=dedupe_key,
            order_id=order_id,
            attempts=0,
            max_attempts=max_attempts,
            enqueued_at=now,
            available_at=now,
            updated_at=now,
        )
        notification.raise_(
            NotificationEnqueued(
                notification_id=str(notification.id),
                template=template,
                priority=int(priority),
                order_id=order_id,
                enqueued_at=now,
            )
        )
        return notification

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: NotificationStatus) -> None:
        current = NotificationStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def context(self) -> dict:
        return json.loads(self.template_data) if self.template_data else {}

    def is_high_priority(self) -> bool:
        return self.priority <= NotificationPriority.HIGH.value

    # -------------------------------------------------------------------
    # Delivery outcomes (only valid on a claimed row)
    # -------------------------------------------------------------------
    def mark_sent(self) -> None:
        self._assert_can_transition(NotificationStatus.SENT)
        now = utcnow()
        self.attempts = (self.attempts or 0) + 1
        self.status = NotificationStatus.SENT.value
        self.sent_at = now
        self.last_error = None
        self.updated_at = now
        self.raise_(
            NotificationSent(
                notification_id=str(self.id),
                template=self.template,
                attempts=self.attempts,
                sent_at=now,
            )
        )

    def record_failure(self, error: str, now: datetime | None = None) -> None:
        """Count one failed attempt. Parks the row as FAILED once the budget is spent."""
        now = now or utcnow()
        self.attempts = (self.attempts or 0) + 1
        self.last_error = (error or "Unknown delivery error")[:1000]
        self.updated_at = now

        if self.attempts >= self.max_attempts:
            self._assert_can_transition(NotificationStatus.FAILED)
            self.status = NotificationStatus.FAILED.value
            self.raise_(
                NotificationDeliveryFailed(
                    notification_id=str(self.id),
                    template=self.template,
                    attempts=self.attempts,
                    last_error=self.last_error,
                    failed_at=now,
                )
            )
        else:
            self._assert_can_transition(NotificationStatus.PENDING)
            self.status = NotificationStatus.PENDING.value
            self.claimed_at = None
            self.available_at = now + timedelta(seconds=RETRY_DELAY_SECONDS * self.attempts)

    def release_claim(self) -> None:
        """Return a row abandoned mid-send to the queue without spending an attempt."""
        self._assert_can_transition(NotificationStatus.PENDING)
        now = utcnow()
        self.status = NotificationStatus.PENDING.value
        self.claimed_at = None
        self.available_at = now
        self.updated_at = now
