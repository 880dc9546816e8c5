"""
Delivery transports used by the fan-out.

The core only depends on the two abstract interfaces. Concrete
implementations:

- ``RedisPushTransport`` publishes realtime notifications on a per-user
  Redis channel that the socket gateway relays to connected browsers.
- ``SmtpEmailTransport`` sends rendered mail through an SMTP relay.
- ``NoopPushTransport`` / ``NoopEmailTransport`` stand in when a channel
  is not configured, so dispatch code never checks for a missing transport.
"""

import asyncio
import logging
import smtplib
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from jobmatch.config import Settings, settings as default_settings
from jobmatch.core.exceptions import TransportError
from jobmatch.schemas.notification import EmailMessage, PushMessage
from jobmatch.services.notification.messages import render_email

logger = logging.getLogger(__name__)


class PushTransport(ABC):

    @abstractmethod
    async def send(self, recipient_id: str, message: PushMessage) -> None:
        """Deliver one realtime notification. Raises on failure."""

    async def close(self) -> None:
        return None


class EmailTransport(ABC):

    @abstractmethod
    async def send(self, recipient_email: str, message: EmailMessage) -> None:
        """Deliver one email. Raises on failure."""

    async def close(self) -> None:
        return None


class NoopPushTransport(PushTransport):
    async def send(self, recipient_id: str, message: PushMessage) -> None:
        logger.debug(f"Push disabled; dropping {message.type.value} for {recipient_id}")


class NoopEmailTransport(EmailTransport):
    async def send(self, recipient_email: str, message: EmailMessage) -> None:
        logger.debug(f"Email disabled; dropping {message.template.value} for {recipient_email}")


class RedisPushTransport(PushTransport):

    def __init__(self, redis_url: str, channel_prefix: str = "notifications"):
        self._redis_url = redis_url
        self._channel_prefix = channel_prefix
        self._client: Optional[redis.Redis] = None

    @property
    async def client(self) -> redis.Redis:
        """Get or create Redis client."""
        if self._client is None:
            self._client = await redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    def channel_for(self, recipient_id: str) -> str:
        return f"{self._channel_prefix}:{recipient_id}"

    async def send(self, recipient_id: str, message: PushMessage) -> None:
        try:
            client = await self.client
            await client.publish(
                self.channel_for(recipient_id),
                message.model_dump_json(by_alias=True),
            )
        except RedisError as e:
            raise TransportError(f"push to {recipient_id} failed: {e}") from e

    async def close(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
        except RedisError as e:
            logger.debug(f"Error closing push redis client: {e}")
        finally:
            self._client = None


class SmtpEmailTransport(EmailTransport):

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        sender: str = "no-reply@jobmatch.local",
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.timeout = timeout

    def _build(self, recipient_email: str, message: EmailMessage) -> MIMEMultipart:
        text, html = render_email(message)
        mime = MIMEMultipart("alternative")
        mime["Subject"] = message.subject
        mime["From"] = self.sender
        mime["To"] = recipient_email
        mime.attach(MIMEText(text, "plain", "utf-8"))
        mime.attach(MIMEText(html, "html", "utf-8"))
        return mime

    def _deliver(self, recipient_email: str, mime: MIMEMultipart) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.sendmail(self.sender, [recipient_email], mime.as_string())

    async def send(self, recipient_email: str, message: EmailMessage) -> None:
        mime = self._build(recipient_email, message)
        try:
            await asyncio.to_thread(self._deliver, recipient_email, mime)
        except (smtplib.SMTPException, OSError) as e:
            raise TransportError(f"email to {recipient_email} failed: {e}") from e


def build_push_transport(config: Settings = default_settings) -> PushTransport:
    if not config.PUSH_ENABLED:
        return NoopPushTransport()
    return RedisPushTransport(config.REDIS_URL, config.PUSH_CHANNEL_PREFIX)


def build_email_transport(config: Settings = default_settings) -> EmailTransport:
    if not config.SMTP_HOST:
        logger.warning("SMTP_HOST not configured. Emails will be skipped.")
        return NoopEmailTransport()
    return SmtpEmailTransport(
        host=config.SMTP_HOST,
        port=config.SMTP_PORT,
        username=config.SMTP_USERNAME,
        password=config.SMTP_PASSWORD,
        use_tls=config.SMTP_USE_TLS,
        sender=config.EMAIL_SENDER,
        timeout=config.FANOUT_SEND_TIMEOUT_SECONDS,
    )
