"""
Outbound notification fan-out.

Delivery mechanics (SMTP, SMS gateways, push providers) live outside this
service: each channel is an injected async sender. The defaults only log.
Every send is best-effort and never raises into the caller.
"""
import asyncio
from typing import Awaitable, Callable, Dict, Iterable, Optional, Tuple

from src.config.constants import NotificationType
from src.shared.utils import get_logger

logger = get_logger(__name__)

Sender = Callable[[str, str, str], Awaitable[None]]

ADMIN_CHANNEL = "admin"


def logging_sender(channel: str) -> Sender:
    async def send(recipient: str, product_name: str, message: str) -> None:
        logger.info(f"[{channel}] to {recipient} - {product_name}: {message}")

    return send


class NotificationDispatcher:
    """Routes notifications to the sender registered for each channel"""

    def __init__(
        self,
        email: Optional[Sender] = None,
        sms: Optional[Sender] = None,
        push: Optional[Sender] = None,
        in_app: Optional[Sender] = None,
        admin: Optional[Sender] = None,
        admin_recipients: Iterable[str] = ("admins",),
    ):
        self.senders: Dict[str, Sender] = {
            NotificationType.EMAIL.value: email or logging_sender("email"),
            NotificationType.SMS.value: sms or logging_sender("sms"),
            NotificationType.PUSH.value: push or logging_sender("push"),
            NotificationType.IN_APP.value: in_app or logging_sender("in_app"),
            ADMIN_CHANNEL: admin or logging_sender("admin"),
        }
        self.admin_recipients = tuple(admin_recipients)

    async def send(self, channel: str, recipient: str, product_name: str, message: str) -> bool:
        sender = self.senders.get(channel)
        if sender is None:
            logger.warning(f"No sender registered for channel {channel}")
            return False
        try:
            await sender(recipient, product_name, message)
            return True
        except Exception as e:
            logger.error(f"Failed to send {channel} notification to {recipient}: {e}")
            return False

    async def send_many(self, deliveries: Iterable[Tuple[str, str]], product_name: str, message: str) -> int:
        """Send to (channel, recipient) pairs concurrently; returns the number delivered."""
        results = await asyncio.gather(
            *(self.send(channel, recipient, product_name, message) for channel, recipient in deliveries),
            return_exceptions=True,
        )
        return sum(1 for result in results if result is True)

    async def notify_admins(self, product_name: str, message: str) -> int:
        return await self.send_many(
            ((ADMIN_CHANNEL, recipient) for recipient in self.admin_recipients), product_name, message
        )
