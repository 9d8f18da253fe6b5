"""Client-side reveal state machine.

The controller keeps ``RevealState`` in sync with the server. Two triggers
ask it to re-check: a fixed-interval poll and wake-up events from the push
channel. Both go through ``check_for_code``, which only moves the state
forward when the server reports something new.

States:
    LOCKED     code hidden, nothing retrieved yet
    ANIMATING  code retrieved, reveal animation running
    REVEALED   code visible; stays here until deletion or a different code
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import httpx
from app.client.api_client import CodeRevealClient, PushSubscriber, identity_headers
from app.core.config import Settings
from app.models.codes import CodeStatus

logger = logging.getLogger(__name__)

REDACTED_PLACEHOLDER = "████████"


class RevealPhase(str, Enum):
    LOCKED = "locked"
    ANIMATING = "animating"
    REVEALED = "revealed"


@dataclass(frozen=True)
class RevealState:
    """Snapshot of what the companion view should display."""

    code: Optional[str] = None
    is_revealed: bool = False
    is_animating: bool = False

    @property
    def phase(self) -> RevealPhase:
        if self.is_revealed:
            return RevealPhase.REVEALED
        if self.is_animating:
            return RevealPhase.ANIMATING
        return RevealPhase.LOCKED

    @property
    def display_text(self) -> str:
        if self.code is None or self.phase is RevealPhase.LOCKED:
            return REDACTED_PLACEHOLDER
        return self.code


LOCKED_STATE = RevealState()

StateListener = Callable[[RevealState], None]


class RevealController:
    """Drive the locked → animating → revealed transitions for one user."""

    def __init__(
        self,
        client: CodeRevealClient,
        push_subscriber: Optional[PushSubscriber] = None,
        poll_interval_seconds: float = 30.0,
        reveal_delay_seconds: float = 0.1,
    ) -> None:
        self.client = client
        self.push_subscriber = push_subscriber
        self.poll_interval_seconds = poll_interval_seconds
        self.reveal_delay_seconds = reveal_delay_seconds
        self._state = LOCKED_STATE
        self._listeners: List[StateListener] = []
        self._check_lock = asyncio.Lock()
        self._poll_task: asyncio.Task[None] | None = None
        self._push_task: asyncio.Task[None] | None = None
        self._reveal_task: asyncio.Task[None] | None = None

    @property
    def state(self) -> RevealState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def on_change(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def _set_state(self, new_state: RevealState) -> None:
        if new_state == self._state:
            return
        self._state = new_state
        logger.debug("Reveal state -> %s", new_state.phase.value)
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("Reveal state listener failed")

    async def start(self) -> None:
        """Run an initial check, then start polling and push subscription."""
        if self.is_running:
            return
        await self.check_for_code()
        self._poll_task = asyncio.create_task(self._poll_loop())
        if self.push_subscriber is not None:
            self._push_task = asyncio.create_task(
                self.push_subscriber.listen_forever(self._on_push_event)
            )
        logger.info("Reveal controller started")

    async def stop(self) -> None:
        """Cancel polling, push subscription and any pending reveal.

        Safe to call repeatedly and when ``start`` never ran or failed.
        """
        for attr in ("_poll_task", "_push_task", "_reveal_task"):
            task = getattr(self, attr)
            setattr(self, attr, None)
            if task is None:
                continue
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        if self.push_subscriber is not None:
            await self.push_subscriber.close()
        logger.info("Reveal controller stopped")

    async def check_for_code(self) -> RevealState:
        """Reconcile local state with the server's code status.

        Transport failures leave the state untouched; the next poll retries.
        """
        async with self._check_lock:
            try:
                result = await self.client.retrieve_code()
            except (httpx.HTTPError, ValueError) as e:
                logger.debug("Code check failed, will retry: %s", e)
                return self._state

            if result.status == CodeStatus.AVAILABLE and result.code:
                self._apply_available(result.code)
            else:
                self._apply_unavailable()
            return self._state

    def _apply_available(self, code: str) -> None:
        if self._state.code == code:
            return
        self._cancel_reveal()
        self._set_state(RevealState(code=code, is_revealed=False, is_animating=True))
        self._reveal_task = asyncio.create_task(self._finish_reveal(code))

    def _apply_unavailable(self) -> None:
        if self._state.code is None:
            return
        self._reset()

    async def _finish_reveal(self, code: str) -> None:
        await asyncio.sleep(self.reveal_delay_seconds)
        if self._state.code != code or not self._state.is_animating:
            return
        self._set_state(replace(self._state, is_revealed=True, is_animating=False))

    async def delete_code(self) -> bool:
        """Delete the code on the server and return to LOCKED.

        The local reset happens even when the request fails.
        """
        deleted = True
        try:
            await self.client.delete_code()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Code deletion failed: %s", e)
            deleted = False
        async with self._check_lock:
            self._reset()
        return deleted

    def _reset(self) -> None:
        self._cancel_reveal()
        self._set_state(LOCKED_STATE)

    def _cancel_reveal(self) -> None:
        if self._reveal_task is not None and not self._reveal_task.done():
            self._reveal_task.cancel()
        self._reveal_task = None

    async def _on_push_event(self, event: Dict[str, Any]) -> None:
        if not isinstance(event, dict):
            return
        if str(event.get("status", "")).upper() != "AVAILABLE":
            return
        logger.debug("Push event received, checking for code")
        await self.check_for_code()

    async def _poll_loop(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval_seconds)
            try:
                await self.check_for_code()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Code poll failed; retrying next interval")


def build_reveal_controller(
    settings: Settings,
    base_url: str,
    user_id: str,
    username: Optional[str] = None,
) -> RevealController:
    """Wire a controller for ``user_id`` against the API at ``base_url``.

    The push URL is derived from ``base_url`` by swapping the scheme to
    ``ws``/``wss``.
    """
    headers = identity_headers(user_id, username)
    base_url = base_url.rstrip("/")
    if base_url.startswith("https://"):
        ws_base = "wss://" + base_url[len("https://") :]
    elif base_url.startswith("http://"):
        ws_base = "ws://" + base_url[len("http://") :]
    else:
        ws_base = base_url
    return RevealController(
        client=CodeRevealClient(base_url, headers=headers),
        push_subscriber=PushSubscriber(
            f"{ws_base}/api/realtime",
            headers=headers,
            reconnect_delay_seconds=settings.CLIENT_RECONNECT_DELAY_SECONDS,
        ),
        poll_interval_seconds=settings.CLIENT_POLL_INTERVAL_SECONDS,
        reveal_delay_seconds=settings.CLIENT_REVEAL_DELAY_SECONDS,
    )
