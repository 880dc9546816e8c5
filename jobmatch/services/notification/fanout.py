"""
Bounded concurrent delivery.

One unit of work per recipient. Units run as asyncio tasks behind a
semaphore; inside a unit the push and the email go out concurrently, each
under its own timeout. A failing or slow send only marks that recipient's
outcome, it never aborts the round.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Iterable, List, Optional

from jobmatch.schemas.notification import (
    DeliveryOutcome,
    DeliveryStatus,
    EmailMessage,
    PushMessage,
)
from jobmatch.services.notification.transports import EmailTransport, PushTransport

logger = logging.getLogger(__name__)


@dataclass
class Delivery:
    """What to send to one recipient."""

    recipient_id: str
    push: Optional[PushMessage] = None
    email_address: Optional[str] = None
    email: Optional[EmailMessage] = None


class FanoutPool:

    def __init__(
        self,
        push_transport: PushTransport,
        email_transport: EmailTransport,
        concurrency: int = 20,
        send_timeout: float = 10.0,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.push_transport = push_transport
        self.email_transport = email_transport
        self.concurrency = concurrency
        self.send_timeout = send_timeout

    async def _attempt(
        self, recipient_id: str, channel: str, send: Awaitable[None]
    ) -> Optional[str]:
        """Run one send. Returns an error description, or None on success."""
        try:
            await asyncio.wait_for(send, timeout=self.send_timeout)
            return None
        except asyncio.TimeoutError:
            logger.warning(
                f"{channel} to {recipient_id} timed out after {self.send_timeout}s"
            )
            return f"{channel}: timed out"
        except Exception as e:
            logger.error(f"{channel} to {recipient_id} failed: {e}")
            return f"{channel}: {e}"

    async def _deliver_one(
        self, semaphore: asyncio.Semaphore, delivery: Delivery
    ) -> DeliveryOutcome:
        outcome = DeliveryOutcome(recipient_id=delivery.recipient_id)
        async with semaphore:
            channels = []
            sends = []
            if delivery.push is not None:
                channels.append("push")
                sends.append(
                    self._attempt(
                        delivery.recipient_id,
                        "push",
                        self.push_transport.send(delivery.recipient_id, delivery.push),
                    )
                )
            if delivery.email is not None and delivery.email_address:
                channels.append("email")
                sends.append(
                    self._attempt(
                        delivery.recipient_id,
                        "email",
                        self.email_transport.send(delivery.email_address, delivery.email),
                    )
                )

            errors = await asyncio.gather(*sends)

        for channel, error in zip(channels, errors):
            status = DeliveryStatus.SENT if error is None else DeliveryStatus.FAILED
            setattr(outcome, channel, status)
            if error is not None:
                outcome.errors.append(error)
        return outcome

    async def deliver(self, deliveries: Iterable[Delivery]) -> List[DeliveryOutcome]:
        """
        Deliver to every recipient, at most once each.

        Args:
            deliveries: One entry per recipient. Later duplicates of a
                recipient id are dropped.

        Returns:
            One outcome per distinct recipient, in input order.
        """
        unique: List[Delivery] = []
        seen = set()
        for delivery in deliveries:
            if delivery.recipient_id in seen:
                logger.debug(f"Dropping duplicate delivery for {delivery.recipient_id}")
                continue
            seen.add(delivery.recipient_id)
            unique.append(delivery)

        if not unique:
            return []

        semaphore = asyncio.Semaphore(self.concurrency)
        return list(
            await asyncio.gather(*(self._deliver_one(semaphore, d) for d in unique))
        )
