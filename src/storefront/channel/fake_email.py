"""Fake email adapter — records sent emails for testing."""

from uuid import uuid4

from storefront.channel.email_port import EmailPort


class FakeEmailAdapter(EmailPort):
    """Email adapter that records messages in memory for test assertions."""

    def __init__(self):
        self.sent_emails: list[dict] = []
        self.attempts: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Email delivery failed"
        self.fail_recipients: set[str] = set()
        self.raise_error = False

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Email delivery failed",
        fail_recipients: set[str] | None = None,
        raise_error: bool = False,
    ):
        """Configure the fake adapter behavior for testing.

        ``fail_recipients`` fails only those addresses; ``raise_error``
        simulates a transport crash instead of a reported failure.
        """
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.fail_recipients = set(fail_recipients or ())
        self.raise_error = raise_error

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: str | None = None,
        template: str | None = None,
    ) -> dict:
        self.attempts.append({"to": to, "subject": subject, "template": template})

        if self.raise_error:
            raise ConnectionError(self.failure_reason)

        if not self.should_succeed or to in self.fail_recipients:
            return {
                "message_id": None,
                "status": "failed",
                "error": self.failure_reason,
            }

        message_id = f"email-{uuid4().hex[:12]}"
        record = {
            "message_id": message_id,
            "to": to,
            "subject": subject,
            "body": body,
            "html_body": html_body,
            "template": template,
        }
        self.sent_emails.append(record)

        return {"message_id": message_id, "status": "sent"}

    def reset(self):
        """Clear sent emails (useful between tests)."""
        self.sent_emails.clear()
        self.attempts.clear()
        self.should_succeed = True
        self.failure_reason = "Email delivery failed"
        self.fail_recipients = set()
        self.raise_error = False
