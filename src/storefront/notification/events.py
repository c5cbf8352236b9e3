"""Domain events for the QueuedNotification aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="QueuedNotification")
class NotificationEnqueued:
    __version__ = 1

    notification_id = Identifier(required=True)
    template = String(required=True, max_length=50)
    priority = Integer(required=True)
    order_id = Identifier()
    enqueued_at = DateTime(required=True)


@storefront.event(part_of="QueuedNotification")
class NotificationSent:
    __version__ = 1

    notification_id = Identifier(required=True)
    template = String(required=True, max_length=50)
    attempts = Integer(required=True)
    sent_at = DateTime(required=True)


@storefront.event(part_of="QueuedNotification")
class NotificationDeliveryFailed:
    """Delivery attempts are exhausted; the row is parked for manual inspection."""

    __version__ = 1

    notification_id = Identifier(required=True)
    template = String(required=True, max_length=50)
    attempts = Integer(required=True)
    last_error = String(max_length=1000)
    failed_at = DateTime(required=True)
