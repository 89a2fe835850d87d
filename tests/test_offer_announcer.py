"""Tests for the offer announcer and alert backends."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from provider_dispatch.models.enums import AlertState
from provider_dispatch.services.alert_backends import InProcessAlertBackend
from provider_dispatch.services.offer_announcer import OfferAnnouncer

from conftest import FakeAudioPlayer, FakeBridge, FakeVibrator


class TestInProcessAlert:

    @pytest.mark.asyncio
    async def test_pulses_sound_and_vibration(self, announcer, player, vibrator):
        assert await announcer.start_continuous_alert() is True
        await asyncio.sleep(0.12)

        assert announcer.state == AlertState.RINGING
        assert announcer.active_backend == "in_process"
        assert announcer.in_process.pulse_count >= 2
        assert player.loads == 1
        assert player.plays >= 2
        assert vibrator.patterns[0] == [0, 500, 200, 500]

        await announcer.stop_continuous_alert()

    @pytest.mark.asyncio
    async def test_second_start_is_a_no_op(self, announcer, player):
        await announcer.start_continuous_alert()
        assert await announcer.start_continuous_alert() is False
        await asyncio.sleep(0.01)

        assert player.loads == 1
        await announcer.stop_continuous_alert()

    @pytest.mark.asyncio
    async def test_stop_halts_pulses_and_is_idempotent(self, announcer, player):
        await announcer.start_continuous_alert()
        await asyncio.sleep(0.07)
        await announcer.stop_continuous_alert()
        await announcer.stop_continuous_alert()

        pulses = announcer.in_process.pulse_count
        await asyncio.sleep(0.12)

        assert announcer.state == AlertState.IDLE
        assert announcer.in_process.pulse_count == pulses
        assert not announcer.in_process.running
        assert player.stops >= 1

    @pytest.mark.asyncio
    async def test_stop_when_idle(self, announcer):
        await announcer.stop_continuous_alert()
        assert announcer.state == AlertState.IDLE

    @pytest.mark.asyncio
    async def test_missing_sound_keeps_vibrating_with_bounded_reloads(self):
        player = FakeAudioPlayer(fail_load=True)
        vibrator = FakeVibrator()
        backend = InProcessAlertBackend(player, vibrator, interval=0.01, reload_attempts=3)
        announcer = OfferAnnouncer(backend)

        await announcer.start_continuous_alert()
        await asyncio.sleep(0.15)
        await announcer.stop_continuous_alert()

        assert backend.pulse_count >= 5
        assert len(vibrator.patterns) == backend.pulse_count
        assert player.plays == 0
        assert player.loads == 1 + 3

    @pytest.mark.asyncio
    async def test_vibration_failure_does_not_stop_sound(self, player):
        backend = InProcessAlertBackend(player, FakeVibrator(fail=True), interval=0.02)
        announcer = OfferAnnouncer(backend)

        await announcer.start_continuous_alert()
        await asyncio.sleep(0.07)
        await announcer.stop_continuous_alert()

        assert player.plays >= 2

    @pytest.mark.asyncio
    async def test_stop_mid_pulse(self, vibrator):
        player = FakeAudioPlayer(play_delay=0.2)
        announcer = OfferAnnouncer(InProcessAlertBackend(player, vibrator, interval=0.05))

        await announcer.start_continuous_alert()
        await asyncio.sleep(0.03)
        await announcer.stop_continuous_alert()

        assert announcer.state == AlertState.IDLE
        assert player.plays == 0
        assert not announcer.in_process.running

    @pytest.mark.asyncio
    async def test_release_frees_sound(self, announcer, player):
        await announcer.start_continuous_alert()
        await asyncio.sleep(0.01)
        await announcer.release()

        assert player.released is True
        assert announcer.state == AlertState.IDLE


class TestBackgroundAlert:

    @pytest.mark.asyncio
    async def test_background_service_preferred(self, in_process, background, bridge):
        announcer = OfferAnnouncer(in_process, background)

        await announcer.start_continuous_alert()

        assert bridge.ringing is True
        assert announcer.active_backend == "background"
        assert not in_process.running

        await announcer.stop_continuous_alert()
        assert bridge.ringing is False
        assert bridge.stops == 1

    @pytest.mark.asyncio
    async def test_falls_back_when_background_start_fails(self, in_process):
        from provider_dispatch.services.alert_backends import BackgroundServiceBackend

        bridge = FakeBridge(fail_start=True)
        announcer = OfferAnnouncer(in_process, BackgroundServiceBackend(bridge))

        await announcer.start_continuous_alert()

        assert bridge.starts == 1
        assert announcer.active_backend == "in_process"
        assert in_process.running

        await announcer.stop_continuous_alert()

    @pytest.mark.asyncio
    async def test_unavailable_background_is_skipped(self, in_process):
        from provider_dispatch.services.alert_backends import BackgroundServiceBackend

        bridge = FakeBridge(available=False)
        announcer = OfferAnnouncer(in_process, BackgroundServiceBackend(bridge))

        await announcer.start_continuous_alert()

        assert bridge.starts == 0
        assert announcer.active_backend == "in_process"
        await announcer.stop_continuous_alert()

    @pytest.mark.asyncio
    async def test_failed_background_stop_stops_in_process_loop(self, in_process):
        from provider_dispatch.services.alert_backends import BackgroundServiceBackend

        bridge = FakeBridge(fail_stop=True)
        announcer = OfferAnnouncer(in_process, BackgroundServiceBackend(bridge))
        in_process.stop = AsyncMock()

        await announcer.start_continuous_alert()
        await announcer.stop_continuous_alert()

        in_process.stop.assert_awaited_once()
        assert announcer.state == AlertState.IDLE
