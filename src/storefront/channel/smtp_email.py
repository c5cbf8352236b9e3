"""SMTP email adapter — delivers mail through a configured SMTP relay.

Every network operation runs under a bounded socket timeout so a stalled
relay fails the attempt instead of hanging the queue worker.
"""

import smtplib
import socket
import ssl
from email.message import EmailMessage
from email.utils import make_msgid

import structlog

from storefront.channel.email_port import EmailPort

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class SMTPEmailAdapter(EmailPort):
    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        sender: str = "no-reply@localhost",
        security: str = "starttls",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        if security not in {"starttls", "ssl", "none"}:
            raise ValueError(f"Unknown SMTP security mode: {security}")
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.security = security
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        if self.security == "ssl":
            server = smtplib.SMTP_SSL(
                self.host, self.port, timeout=self.timeout, context=ssl.create_default_context()
            )
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        server.ehlo()
        if self.security == "starttls":
            server.starttls(context=ssl.create_default_context())
            server.ehlo()
        if self.username and self.password:
            server.login(self.username, self.password)
        return server

    def _build_message(self, to: str, subject: str, body: str, html_body: str | None) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid()
        message.set_content(body)
        if html_body:
            message.add_alternative(html_body, subtype="html")
        return message

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: str | None = None,
        template: str | None = None,
    ) -> dict:
        message = self._build_message(to, subject, body, html_body)
        server = None
        try:
            server = self._connect()
            server.send_message(message)
        except socket.timeout:
            logger.warning("SMTP operation timed out", host=self.host, port=self.port, template=template)
            return {"message_id": None, "status": "failed", "error": f"SMTP timeout after {self.timeout}s"}
        except smtplib.SMTPException as exc:
            logger.warning("SMTP delivery failed", host=self.host, error=str(exc), template=template)
            return {"message_id": None, "status": "failed", "error": f"SMTP error: {exc}"}
        except OSError as exc:
            logger.warning("SMTP connection failed", host=self.host, port=self.port, error=str(exc))
            return {"message_id": None, "status": "failed", "error": f"Network error: {exc}"}
        finally:
            if server is not None:
                try:
                    server.quit()
                except (smtplib.SMTPException, OSError):
                    server.close()

        return {"message_id": message["Message-ID"], "status": "sent"}
