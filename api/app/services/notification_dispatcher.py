"""Delivery of code availability to the user.

Two independent, best-effort effects follow issuance: an instant push on the
user's realtime channel and a private message carrying the code. Either may
fail without affecting the other or the stored code.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from app.core.config import Settings
from app.metrics.code_metrics import MESSAGES_SKIPPED, NOTIFICATION_FAILURES
from app.services.host_platform import HostPlatformClient
from app.services.realtime import CODE_AVAILABLE_EVENT, RealtimeBroker, code_channel
from app.utils.logging import mask_code

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationOutcome:
    """Which delivery effects succeeded."""

    pushed: bool
    messaged: bool


class NotificationDispatcher:
    """Push and message users when their code becomes available."""

    def __init__(
        self,
        broker: RealtimeBroker,
        host_platform: Optional[HostPlatformClient],
        settings: Settings,
    ):
        self.broker = broker
        self.host_platform = host_platform
        self.subject = settings.MESSAGE_SUBJECT
        self.template = settings.MESSAGE_TEMPLATE

    def format_message(self, code: str) -> str:
        return self.template.format(code=code)

    async def notify(self, user_id: str, username: str, code: str) -> NotificationOutcome:
        pushed = await self._push(user_id)
        messaged = await self._message(username, code)
        logger.info(
            f"Notified user {user_id} of code {mask_code(code)} "
            f"(pushed={pushed}, messaged={messaged})"
        )
        return NotificationOutcome(pushed=pushed, messaged=messaged)

    async def _push(self, user_id: str) -> bool:
        channel = code_channel(user_id)
        try:
            await self.broker.send(channel, CODE_AVAILABLE_EVENT)
        except Exception:
            NOTIFICATION_FAILURES.labels(effect="push").inc()
            logger.exception(f"Failed to push code availability on {channel}")
            return False
        return True

    async def _message(self, username: str, code: str) -> bool:
        if self.host_platform is None:
            MESSAGES_SKIPPED.inc()
            logger.warning(
                f"Host platform not configured; skipping private message to {username}"
            )
            return False
        try:
            await self.host_platform.send_private_message(
                to=username,
                subject=self.subject,
                text=self.format_message(code),
            )
        except Exception:
            NOTIFICATION_FAILURES.labels(effect="message").inc()
            logger.exception(f"Failed to send private message to {username}")
            return False
        return True
