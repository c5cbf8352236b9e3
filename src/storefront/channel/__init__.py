"""Email channel registry — singleton access to the mail adapter.

Uses the fake adapter by default; the SMTP adapter is configured when
``SMTP_HOST`` is present in the environment.
"""

import os

from storefront.channel.email_port import EmailPort

_channel_instance: EmailPort | None = None


def _smtp_from_env() -> EmailPort:
    from storefront.channel.smtp_email import DEFAULT_TIMEOUT_SECONDS, SMTPEmailAdapter

    return SMTPEmailAdapter(
        host=os.environ["SMTP_HOST"],
        port=int(os.environ.get("SMTP_PORT", "587")),
        username=os.environ.get("SMTP_USERNAME"),
        password=os.environ.get("SMTP_PASSWORD"),
        sender=os.environ.get("SMTP_FROM", "no-reply@localhost"),
        security=os.environ.get("SMTP_SECURITY", "starttls").lower(),
        timeout=float(os.environ.get("SMTP_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)),
    )


def get_email_channel() -> EmailPort:
    """Return the configured email adapter (singleton)."""
    global _channel_instance
    if _channel_instance is None:
        if os.environ.get("SMTP_HOST"):
            _channel_instance = _smtp_from_env()
        else:
            from storefront.channel.fake_email import FakeEmailAdapter

            _channel_instance = FakeEmailAdapter()
    return _channel_instance


def set_email_channel(channel: EmailPort) -> None:
    """Override the email adapter (useful for testing)."""
    global _channel_instance
    _channel_instance = channel


def reset_channels() -> None:
    """Reset the channel singleton (useful for testing)."""
    global _channel_instance
    _channel_instance = None
