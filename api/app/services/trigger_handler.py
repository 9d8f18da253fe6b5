"""Comment-trigger handling and idempotent code issuance."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import partial
from typing import Optional

from app.core.config import Settings
from app.db.code_store import CodeStore
from app.metrics.code_metrics import TRIGGER_EVENTS
from app.models.codes import CommentCreateEvent
from app.services.code_generator import generate_code
from app.services.host_platform import HostPlatformClient
from app.services.notification_dispatcher import NotificationDispatcher
from app.utils.logging import mask_code

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuanceResult:
    """Outcome of a successful trigger."""

    user_id: str
    username: str
    code: str
    created: bool


class TriggerHandler:
    """Turn trigger comments into stored codes and notifications.

    The handler is fire-and-forget: the platform that sends comment events
    gets no result, so every failure after the trigger matched is logged and
    dropped. ``handle_comment_created`` returns the issuance result (or None)
    for callers that want it.
    """

    def __init__(
        self,
        store: CodeStore,
        dispatcher: NotificationDispatcher,
        settings: Settings,
        host_platform: Optional[HostPlatformClient] = None,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.host_platform = host_platform
        self.trigger_command = settings.TRIGGER_COMMAND
        self._pattern = re.compile(re.escape(settings.TRIGGER_COMMAND), re.IGNORECASE)
        self._factory = partial(
            generate_code, settings.CODE_LENGTH, settings.CODE_ALPHABET
        )

    def matches(self, body: Optional[str]) -> bool:
        """Return True when ``body`` contains the trigger command."""
        if not body:
            return False
        return self._pattern.search(body) is not None

    async def handle_comment_created(
        self, event: CommentCreateEvent
    ) -> Optional[IssuanceResult]:
        body = event.body
        if not body:
            TRIGGER_EVENTS.labels(outcome="no_body").inc()
            return None

        if not self.matches(body):
            TRIGGER_EVENTS.labels(outcome="no_match").inc()
            return None

        try:
            return await self._issue(event)
        except Exception:
            TRIGGER_EVENTS.labels(outcome="failed").inc()
            logger.exception(f"Error issuing code for user {event.user_id}")
            return None

    async def _issue(self, event: CommentCreateEvent) -> Optional[IssuanceResult]:
        user_id = event.user_id
        if not user_id:
            TRIGGER_EVENTS.labels(outcome="no_user").inc()
            logger.error("No userId found in comment event")
            return None

        logger.info(f"Trigger command {self.trigger_command} received from user {user_id}")

        username = await self._resolve_username(user_id, event.username)
        if not username:
            TRIGGER_EVENTS.labels(outcome="no_username").inc()
            logger.error(f"No username found for user {user_id}")
            return None

        code, created = await self.store.get_or_create(user_id, self._factory)
        TRIGGER_EVENTS.labels(outcome="issued" if created else "reused").inc()
        logger.info(
            f"{'Generated and stored' if created else 'Reusing existing'} code "
            f"for user {user_id}: {mask_code(code)}"
        )

        await self.dispatcher.notify(user_id, username, code)
        return IssuanceResult(
            user_id=user_id, username=username, code=code, created=created
        )

    async def _resolve_username(
        self, user_id: str, event_username: Optional[str]
    ) -> Optional[str]:
        if event_username:
            return event_username
        if self.host_platform is None:
            return None
        return await self.host_platform.get_username(user_id)
