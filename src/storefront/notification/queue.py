"""Enqueueing transactional email.

``enqueue`` only persists a row; delivery happens later in a drain. A
``dedupe_key`` makes enqueue idempotent: a second enqueue with the same
key returns the existing row and queues nothing new.
"""

import json

import structlog
from protean import handle
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.notification.notification import (
    DEFAULT_MAX_ATTEMPTS,
    NotificationPriority,
    NotificationTemplate,
    QueuedNotification,
)

logger = structlog.get_logger(__name__)


@storefront.command(part_of="QueuedNotification")
class EnqueueNotification:
    recipient_email = String(required=True, max_length=254)
    recipient_name = String(max_length=255, sanitize=False)
    template = String(required=True, choices=NotificationTemplate)
    template_data = Text(sanitize=False)  # JSON
    subject = String(max_length=500, sanitize=False)
    priority = Integer(default=NotificationPriority.NORMAL.value)
    order_id = Identifier()
    dedupe_key = String(max_length=255)
    max_attempts = Integer(default=DEFAULT_MAX_ATTEMPTS, min_value=1)


def find_by_dedupe_key(dedupe_key: str) -> QueuedNotification | None:
    repo = current_domain.repository_for(QueuedNotification)
    matches = repo._dao.query.filter(dedupe_key=dedupe_key).limit(1).all().items
    return matches[0] if matches else None


@storefront.command_handler(part_of=QueuedNotification)
class EnqueueNotificationHandler:
    @handle(EnqueueNotification)
    def enqueue(self, command: EnqueueNotification) -> str:
        if command.dedupe_key:
            existing = find_by_dedupe_key(command.dedupe_key)
            if existing is not None:
                logger.info(
                    "Duplicate notification skipped",
                    dedupe_key=command.dedupe_key,
                    notification_id=str(existing.id),
                )
                return str(existing.id)

        notification = QueuedNotification.create(
            recipient_email=command.recipient_email,
            recipient_name=command.recipient_name,
            template=command.template,
            template_data=json.loads(command.template_data) if command.template_data else {},
            subject=command.subject,
            priority=command.priority,
            order_id=command.order_id,
            dedupe_key=command.dedupe_key,
            max_attempts=command.max_attempts,
        )
        current_domain.repository_for(QueuedNotification).add(notification)
        logger.info(
            "Notification enqueued",
            notification_id=str(notification.id),
            template=notification.template,
            priority=notification.priority,
        )
        return str(notification.id)


def enqueue(
    recipient_email: str,
    template: str,
    template_data: dict | None = None,
    priority: int = NotificationPriority.NORMAL.value,
    recipient_name: str | None = None,
    subject: str | None = None,
    order_id: str | None = None,
    dedupe_key: str | None = None,
) -> str:
    """Persist a notification for a later drain. Returns the notification id."""
    return current_domain.process(
        EnqueueNotification(
            recipient_email=recipient_email,
            recipient_name=recipient_name,
            template=template,
            template_data=json.dumps(template_data or {}),
            subject=subject,
            priority=int(priority),
            order_id=order_id,
            dedupe_key=dedupe_key,
        ),
        asynchronous=False,
    )
