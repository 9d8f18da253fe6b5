"""Tests for the client reveal state machine."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from app.client.api_client import CodeRevealClient, PushSubscriber
from app.client.reveal_controller import (
    LOCKED_STATE,
    REDACTED_PLACEHOLDER,
    RevealController,
    RevealPhase,
    RevealState,
    build_reveal_controller,
)
from app.models.codes import CodeStatus, DeleteCodeResponse, RetrieveCodeResponse

REVEAL_DELAY = 0.01

AVAILABLE = RetrieveCodeResponse(status=CodeStatus.AVAILABLE, code="ABCDEFGH")
AVAILABLE_OTHER = RetrieveCodeResponse(status=CodeStatus.AVAILABLE, code="ZYXWVUTS")
UNAVAILABLE = RetrieveCodeResponse(status=CodeStatus.UNAVAILABLE, code=None)


@pytest.fixture
def api_client():
    client = MagicMock(spec=CodeRevealClient)
    client.retrieve_code = AsyncMock(return_value=UNAVAILABLE)
    client.delete_code = AsyncMock(return_value=DeleteCodeResponse())
    return client


@pytest.fixture
def controller(api_client):
    return RevealController(
        api_client, poll_interval_seconds=60.0, reveal_delay_seconds=REVEAL_DELAY
    )


@pytest.fixture
def seen_states(controller):
    states = []
    controller.on_change(states.append)
    return states


async def _wait_for_reveal():
    await asyncio.sleep(REVEAL_DELAY * 5)


@pytest.mark.unit
class TestRevealState:
    def test_initial_state_is_locked(self):
        assert LOCKED_STATE.phase is RevealPhase.LOCKED
        assert LOCKED_STATE.display_text == REDACTED_PLACEHOLDER

    def test_animating_shows_code(self):
        state = RevealState(code="ABCDEFGH", is_animating=True)

        assert state.phase is RevealPhase.ANIMATING
        assert state.display_text == "ABCDEFGH"

    def test_revealed_phase(self):
        assert RevealState(code="ABCDEFGH", is_revealed=True).phase is RevealPhase.REVEALED


@pytest.mark.unit
class TestCheckForCode:
    @pytest.mark.asyncio
    async def test_unavailable_stays_locked(self, controller, seen_states):
        state = await controller.check_for_code()

        assert state == LOCKED_STATE
        assert seen_states == []

    @pytest.mark.asyncio
    async def test_available_animates_then_reveals(self, controller, api_client, seen_states):
        api_client.retrieve_code.return_value = AVAILABLE

        state = await controller.check_for_code()
        assert state == RevealState(code="ABCDEFGH", is_revealed=False, is_animating=True)

        await _wait_for_reveal()

        assert controller.state == RevealState(
            code="ABCDEFGH", is_revealed=True, is_animating=False
        )
        assert [s.phase for s in seen_states] == [RevealPhase.ANIMATING, RevealPhase.REVEALED]

    @pytest.mark.asyncio
    async def test_same_code_during_animation_reveals_once(
        self, controller, api_client, seen_states
    ):
        api_client.retrieve_code.return_value = AVAILABLE

        await controller.check_for_code()
        await controller.check_for_code()
        await _wait_for_reveal()

        assert [s.phase for s in seen_states] == [RevealPhase.ANIMATING, RevealPhase.REVEALED]

    @pytest.mark.asyncio
    async def test_revealed_never_regresses(self, controller, api_client, seen_states):
        api_client.retrieve_code.return_value = AVAILABLE
        await controller.check_for_code()
        await _wait_for_reveal()

        await controller.check_for_code()
        await _wait_for_reveal()

        assert controller.state.phase is RevealPhase.REVEALED
        assert len(seen_states) == 2

    @pytest.mark.asyncio
    async def test_transport_error_leaves_state(self, controller, api_client):
        api_client.retrieve_code.return_value = AVAILABLE
        await controller.check_for_code()
        await _wait_for_reveal()

        api_client.retrieve_code.side_effect = httpx.ConnectError("offline")
        state = await controller.check_for_code()

        assert state.phase is RevealPhase.REVEALED
        assert state.code == "ABCDEFGH"

    @pytest.mark.asyncio
    async def test_transport_error_while_locked_is_noop(self, controller, api_client):
        api_client.retrieve_code.side_effect = httpx.ReadTimeout("slow")

        assert await controller.check_for_code() == LOCKED_STATE

    @pytest.mark.asyncio
    async def test_unavailable_after_reveal_resets(self, controller, api_client):
        api_client.retrieve_code.return_value = AVAILABLE
        await controller.check_for_code()
        await _wait_for_reveal()

        api_client.retrieve_code.return_value = UNAVAILABLE
        state = await controller.check_for_code()

        assert state == LOCKED_STATE

    @pytest.mark.asyncio
    async def test_unavailable_during_animation_cancels_reveal(self, controller, api_client):
        api_client.retrieve_code.return_value = AVAILABLE
        await controller.check_for_code()

        api_client.retrieve_code.return_value = UNAVAILABLE
        await controller.check_for_code()
        await _wait_for_reveal()

        assert controller.state == LOCKED_STATE

    @pytest.mark.asyncio
    async def test_different_code_animates_again(self, controller, api_client):
        api_client.retrieve_code.return_value = AVAILABLE
        await controller.check_for_code()
        await _wait_for_reveal()

        api_client.retrieve_code.return_value = AVAILABLE_OTHER
        state = await controller.check_for_code()
        assert state.phase is RevealPhase.ANIMATING
        assert state.code == "ZYXWVUTS"

        await _wait_for_reveal()
        assert controller.state.phase is RevealPhase.REVEALED

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_transition(self, controller, api_client):
        def broken_listener(state):
            raise RuntimeError("render failed")

        controller.on_change(broken_listener)
        api_client.retrieve_code.return_value = AVAILABLE

        state = await controller.check_for_code()

        assert state.phase is RevealPhase.ANIMATING


@pytest.mark.unit
class TestDeleteCode:
    @pytest.mark.asyncio
    async def test_delete_resets_to_locked(self, controller, api_client):
        api_client.retrieve_code.return_value = AVAILABLE
        await controller.check_for_code()
        await _wait_for_reveal()

        assert await controller.delete_code() is True

        assert controller.state == LOCKED_STATE
        api_client.delete_code.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_delete_failure_still_resets(self, controller, api_client):
        api_client.retrieve_code.return_value = AVAILABLE
        await controller.check_for_code()
        api_client.delete_code.side_effect = httpx.ConnectError("offline")

        assert await controller.delete_code() is False

        await _wait_for_reveal()
        assert controller.state == LOCKED_STATE


@pytest.mark.unit
class TestLifecycle:
    @pytest.mark.asyncio
    async def test_push_event_triggers_check(self, controller, api_client):
        api_client.retrieve_code.return_value = AVAILABLE

        await controller._on_push_event({"status": "AVAILABLE"})

        assert controller.state.code == "ABCDEFGH"

    @pytest.mark.asyncio
    async def test_non_object_push_events_are_ignored(self, controller, api_client):
        for event in (["not", "a", "dict"], "AVAILABLE", 1, None):
            await controller._on_push_event(event)

        api_client.retrieve_code.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_other_push_events_are_ignored(self, controller, api_client):
        await controller._on_push_event({"type": "subscribed", "channel": "code_t2_alice"})

        api_client.retrieve_code.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_start_checks_immediately_and_polls(self, api_client):
        controller = RevealController(
            api_client, poll_interval_seconds=0.01, reveal_delay_seconds=REVEAL_DELAY
        )
        try:
            await controller.start()
            assert controller.is_running
            assert api_client.retrieve_code.await_count == 1

            await asyncio.sleep(0.1)
            assert api_client.retrieve_code.await_count > 1
        finally:
            await controller.stop()

        assert not controller.is_running

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, controller, api_client):
        try:
            await controller.start()
            await controller.start()

            assert api_client.retrieve_code.await_count == 1
        finally:
            await controller.stop()

    @pytest.mark.asyncio
    async def test_poll_survives_unexpected_errors(self, api_client):
        api_client.retrieve_code.side_effect = [UNAVAILABLE, RuntimeError("boom"), AVAILABLE]
        controller = RevealController(
            api_client, poll_interval_seconds=0.01, reveal_delay_seconds=REVEAL_DELAY
        )
        try:
            await controller.start()
            await asyncio.sleep(0.1)
        finally:
            await controller.stop()

        assert controller.state.code == "ABCDEFGH"

    @pytest.mark.asyncio
    async def test_stop_without_start_is_safe(self, controller):
        await controller.stop()
        await controller.stop()

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_reveal(self, controller, api_client):
        api_client.retrieve_code.return_value = AVAILABLE
        await controller.check_for_code()

        await controller.stop()
        await _wait_for_reveal()

        assert controller.state.phase is RevealPhase.ANIMATING

    @pytest.mark.asyncio
    async def test_push_subscriber_lifecycle(self, api_client):
        subscriber = MagicMock(spec=PushSubscriber)
        subscriber.listen_forever = AsyncMock(return_value=None)
        subscriber.close = AsyncMock(return_value=None)
        controller = RevealController(api_client, push_subscriber=subscriber)

        await controller.start()
        await asyncio.sleep(0)
        await controller.stop()
        await controller.stop()

        subscriber.listen_forever.assert_awaited_once_with(controller._on_push_event)
        assert subscriber.close.await_count == 2


@pytest.mark.unit
def test_build_reveal_controller_uses_settings(test_settings):
    controller = build_reveal_controller(
        test_settings, "https://example.test/", "t2_alice", "alice"
    )

    assert controller.poll_interval_seconds == 30.0
    assert controller.reveal_delay_seconds == 0.1
    assert controller.push_subscriber.url == "wss://example.test/api/realtime"
    assert controller.push_subscriber.headers == {
        "x-user-id": "t2_alice",
        "x-username": "alice",
    }
    assert controller.client.base_url == "https://example.test"
