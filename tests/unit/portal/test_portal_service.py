"""Tests for the authorization engine flows."""

import asyncio

import pytest

from sulitwifi.core.modules.nac.models import NacAction
from sulitwifi.core.modules.portal.service import COIN_SESSION_SECONDS
from sulitwifi.errors import (
    CoinSlotDisabledError,
    InvalidVoucherError,
    NoRecentCoinError,
    StoreUnavailableError,
    VoucherAlreadyUsedError,
)

pytestmark = pytest.mark.anyio

MAC = "AA:BB:CC:DD:EE:FF"
OTHER_MAC = "11:22:33:44:55:66"


async def insert_coin(core, mac=MAC):
    """Client opens the portal, then a coin drops."""
    await core.services.portal.record_probe(mac)
    return await core.services.portal.register_coin_pulse()


class TestVoucherRedemption:
    """Tests for PortalService.redeem_voucher."""

    async def test_one_hour_voucher(self, core, clock, bridge):
        await core.services.voucher.add_voucher("SULIT-1HR", 3600)

        session = await core.services.portal.redeem_voucher(MAC, "SULIT-1HR")

        assert session.mac_address == MAC
        assert session.voucher_code == "SULIT-1HR"
        assert session.remaining_seconds(clock()) == 3600
        assert bridge.authorized == [(MAC, 60)]

    async def test_second_redemption_already_used(self, core, bridge):
        await core.services.voucher.add_voucher("SULIT-1HR", 3600)
        await core.services.portal.redeem_voucher(MAC, "SULIT-1HR")

        with pytest.raises(VoucherAlreadyUsedError):
            await core.services.portal.redeem_voucher(OTHER_MAC, "SULIT-1HR")

        assert await core.services.session.get(OTHER_MAC) is None
        assert bridge.authorized == [(MAC, 60)]

    async def test_invalid_code_creates_nothing(self, core, bridge):
        with pytest.raises(InvalidVoucherError):
            await core.services.portal.redeem_voucher(MAC, "SULIT-NOPE")

        assert await core.services.session.get(MAC) is None
        assert bridge.calls == []

    async def test_failed_redemption_keeps_existing_session(self, core, clock):
        await core.services.voucher.add_voucher("SULIT-1HR", 3600)
        await core.services.portal.redeem_voucher(MAC, "SULIT-1HR")
        clock.advance(60)

        with pytest.raises(VoucherAlreadyUsedError):
            await core.services.portal.redeem_voucher(MAC, "SULIT-1HR")

        session = await core.services.session.get(MAC)
        assert session is not None
        assert session.remaining_seconds(clock()) == 3540

    async def test_minutes_rounded_up(self, core, bridge):
        await core.services.voucher.add_voucher("SULIT-ODD", 61)

        await core.services.portal.redeem_voucher(MAC, "SULIT-ODD")

        assert bridge.authorized == [(MAC, 2)]

    async def test_nac_failure_does_not_roll_back(self, core, bridge):
        bridge.failures = 100
        await core.services.voucher.add_voucher("SULIT-1HR", 3600)

        session = await core.services.portal.redeem_voucher(MAC, "SULIT-1HR")

        assert session is not None
        assert await core.services.session.get(MAC) is not None
        voucher = await core.services.voucher.lookup("SULIT-1HR")
        assert voucher is not None and voucher.used

    async def test_request_waits_for_one_nac_attempt_only(self, core, bridge):
        bridge.failures = 100
        await core.services.voucher.add_voucher("SULIT-1HR", 3600)

        await core.services.portal.redeem_voucher(MAC, "SULIT-1HR")

        assert bridge.authorized == [(MAC, 60)]

    async def test_failed_authorize_retried_in_background(self, core, bridge):
        bridge.failures = 1
        await core.services.voucher.add_voucher("SULIT-1HR", 3600)

        await core.services.portal.redeem_voucher(MAC, "SULIT-1HR")
        await core.services.portal.wait_for_nac_retries()

        assert bridge.authorized == [(MAC, 60), (MAC, 60)]

    async def test_session_store_failure_leaves_voucher_redeemable(self, core, clock, bridge, monkeypatch):
        await core.services.voucher.add_voucher("SULIT-1HR", 3600)
        put = core.services.session.put

        async def unavailable_put(*args, **kwargs):
            raise StoreUnavailableError("Store operation 'session.put' failed")

        monkeypatch.setattr(core.services.session, "put", unavailable_put)
        with pytest.raises(StoreUnavailableError):
            await core.services.portal.redeem_voucher(MAC, "SULIT-1HR")
        assert bridge.calls == []

        monkeypatch.setattr(core.services.session, "put", put)
        session = await core.services.portal.redeem_voucher(MAC, "SULIT-1HR")

        assert session.remaining_seconds(clock()) == 3600
        assert bridge.authorized == [(MAC, 60)]
        with pytest.raises(VoucherAlreadyUsedError):
            await core.services.portal.redeem_voucher(MAC, "SULIT-1HR")

    async def test_interrupted_redemption_not_open_to_other_clients(self, core, monkeypatch):
        await core.services.voucher.add_voucher("SULIT-1HR", 3600)
        put = core.services.session.put

        async def unavailable_put(*args, **kwargs):
            raise StoreUnavailableError("Store operation 'session.put' failed")

        monkeypatch.setattr(core.services.session, "put", unavailable_put)
        with pytest.raises(StoreUnavailableError):
            await core.services.portal.redeem_voucher(MAC, "SULIT-1HR")
        monkeypatch.setattr(core.services.session, "put", put)

        with pytest.raises(VoucherAlreadyUsedError):
            await core.services.portal.redeem_voucher(OTHER_MAC, "SULIT-1HR")
        assert await core.services.session.get(OTHER_MAC) is None

    async def test_new_voucher_replaces_running_session(self, core, clock):
        await core.services.voucher.add_voucher("SULIT-1HR", 3600)
        await core.services.voucher.add_voucher("SULIT-30M", 1800)
        await core.services.portal.redeem_voucher(MAC, "SULIT-1HR")
        clock.advance(600)

        await core.services.portal.redeem_voucher(MAC, "SULIT-30M")

        session = await core.services.portal.get_status(MAC)
        assert session is not None
        assert session.remaining_seconds(clock()) == 1800


class TestCoinRedemption:
    """Tests for PortalService.redeem_coin and coin pulses."""

    async def test_coin_within_window(self, core, clock, bridge):
        await insert_coin(core)
        clock.advance(30)

        session = await core.services.portal.redeem_coin(MAC)

        assert session.duration_seconds == COIN_SESSION_SECONDS == 900
        assert session.remaining_seconds(clock()) == 900
        assert session.is_coin
        assert bridge.authorized == [(MAC, 15)]

    async def test_coin_after_window(self, core, clock, bridge):
        await insert_coin(core)
        clock.advance(121)

        with pytest.raises(NoRecentCoinError):
            await core.services.portal.redeem_coin(MAC)
        assert bridge.calls == []

    async def test_no_coin_at_all(self, core):
        await core.services.portal.record_probe(MAC)

        with pytest.raises(NoRecentCoinError):
            await core.services.portal.redeem_coin(MAC)

    async def test_probe_alone_enough_when_pulse_not_required(self, core, clock):
        core.config.coin_requires_pulse = False
        await core.services.portal.record_probe(MAC)
        clock.advance(119)

        session = await core.services.portal.redeem_coin(MAC)

        assert session.duration_seconds == 900

    async def test_one_coin_one_session(self, core):
        await insert_coin(core)
        await core.services.portal.redeem_coin(MAC)

        with pytest.raises(NoRecentCoinError):
            await core.services.portal.redeem_coin(MAC)

    async def test_grants_requesting_mac_not_tracked_mac(self, core, bridge):
        await insert_coin(core, mac=OTHER_MAC)

        session = await core.services.portal.redeem_coin(MAC)

        assert session.mac_address == MAC
        assert await core.services.session.get(OTHER_MAC) is None
        assert bridge.authorized == [(MAC, 15)]

    async def test_disabled_coin_slot(self, core):
        core.config.coin_slot_enabled = False

        with pytest.raises(CoinSlotDisabledError):
            await core.services.portal.redeem_coin(MAC)

    async def test_pulse_ignored_when_slot_disabled(self, core):
        core.config.coin_slot_enabled = False

        pulse = await core.services.portal.register_coin_pulse()

        assert not pulse.accepted
        assert pulse.pulse_count == 0

    async def test_pulse_debounce(self, core, clock):
        first = await core.services.portal.register_coin_pulse()
        bounce = await core.services.portal.register_coin_pulse()
        clock.advance(1)
        second = await core.services.portal.register_coin_pulse()

        assert first.accepted and first.pulse_count == 1
        assert not bounce.accepted and bounce.pulse_count == 1
        assert second.accepted and second.pulse_count == 2


class TestProbeAndStatus:
    """Tests for probe, status and logout."""

    async def test_probe_of_online_client_is_not_tracked(self, core):
        await core.services.session.put(MAC, "SULIT-1HR", 3600)

        session = await core.services.portal.record_probe(MAC)

        assert session is not None
        assert await core.services.tracker.consume_if_valid() is None

    async def test_status_is_read_only(self, core, clock):
        await core.services.session.put(MAC, "SULIT-1HR", 3600)
        clock.advance(10)

        first = await core.services.portal.get_status(MAC)
        second = await core.services.portal.get_status(MAC)

        assert first is not None and second is not None
        assert first.grant_id == second.grant_id

    async def test_logout_deletes_then_revokes(self, core, bridge):
        await core.services.session.put(MAC, "SULIT-1HR", 3600)

        await core.services.portal.logout(MAC)

        assert await core.services.session.get(MAC) is None
        assert bridge.revoked == [MAC]

    async def test_logout_without_session(self, core, bridge):
        await core.services.portal.logout(MAC)
        await core.services.portal.logout(MAC)

        assert bridge.revoked == [MAC, MAC]

    async def test_logout_survives_revoke_failure(self, core, bridge):
        bridge.failures = 100
        await core.services.session.put(MAC, "SULIT-1HR", 3600)

        await core.services.portal.logout(MAC)

        assert await core.services.session.get(MAC) is None

    async def test_failed_logout_revoke_retried_by_sweep(self, core, bridge):
        bridge.failures = 1
        await core.services.session.put(MAC, "SULIT-1HR", 3600)

        await core.services.portal.logout(MAC)
        assert bridge.revoked == [MAC]

        assert await core.services.portal.expire_sessions() == 1
        assert bridge.revoked == [MAC, MAC]
        assert await core.services.portal.expire_sessions() == 0


class TestExpirySweep:
    """Tests for PortalService.expire_sessions."""

    async def test_five_second_session_revoked_after_lazy_read(self, core, clock, bridge):
        await core.services.session.put(MAC, "SULIT-5S", 5)
        clock.advance(6)

        assert await core.services.portal.get_status(MAC) is None
        assert await core.services.portal.expire_sessions() == 1
        assert bridge.revoked == [MAC]

    async def test_sweep_revokes_and_deletes_unread_expired(self, core, clock, bridge):
        await core.services.session.put(MAC, None, 5)
        await core.services.session.put(OTHER_MAC, None, 600)
        clock.advance(6)

        assert await core.services.portal.expire_sessions() == 1

        assert bridge.revoked == [MAC]
        assert await core.services.session.list_expired() == []
        assert await core.services.session.count_live() == 1

    async def test_sweep_runs_once_per_expiry(self, core, clock, bridge):
        await core.services.session.put(MAC, None, 5)
        clock.advance(6)

        await core.services.portal.expire_sessions()
        assert await core.services.portal.expire_sessions() == 0
        assert bridge.revoked == [MAC]

    async def test_sweep_skips_replaced_session(self, core, clock, bridge):
        await core.services.session.put(MAC, None, 5)
        clock.advance(6)
        await core.services.portal.get_status(MAC)
        await core.services.session.put(MAC, "SULIT-NEW", 600)

        assert await core.services.portal.expire_sessions() == 0
        assert bridge.revoked == []
        assert await core.services.session.get(MAC) is not None

    async def test_sweep_failure_does_not_raise(self, core, clock, bridge):
        bridge.failures = 100
        await core.services.session.put(MAC, None, 5)
        clock.advance(6)

        assert await core.services.portal.expire_sessions() == 1
        assert await core.services.session.list_expired() == []

    async def test_failed_revoke_retried_on_next_sweep(self, core, clock, bridge):
        bridge.failures = 3
        await core.services.session.put(MAC, None, 5)
        clock.advance(6)

        assert await core.services.portal.expire_sessions() == 1
        assert bridge.revoked == [MAC, MAC, MAC]

        assert await core.services.portal.expire_sessions() == 1
        assert bridge.revoked == [MAC, MAC, MAC, MAC]
        assert await core.services.portal.expire_sessions() == 0

    async def test_grant_during_slow_revoke_is_reauthorized(self, core, clock, bridge):
        bridge.delays = {NacAction.REVOKE: 0.05, NacAction.AUTHORIZE: 0.01}
        await core.services.voucher.add_voucher("SULIT-1HR", 3600)
        await core.services.session.put(MAC, None, 5)
        clock.advance(6)

        await asyncio.gather(
            core.services.portal.expire_sessions(),
            core.services.portal.redeem_voucher(MAC, "SULIT-1HR"),
        )

        assert bridge.calls[-1] == (NacAction.AUTHORIZE, MAC, 60)
        assert NacAction.REVOKE in [action for action, _, _ in bridge.calls]
        session = await core.services.session.get(MAC)
        assert session is not None and session.voucher_code == "SULIT-1HR"


class TestReconcile:
    """Tests for PortalService.reconcile."""

    async def test_reauthorizes_live_sessions_with_remaining_minutes(self, core, clock, bridge):
        await core.services.session.put(MAC, None, 3600)
        await core.services.session.put(OTHER_MAC, None, 120)
        clock.advance(90)

        failures = await core.services.portal.reconcile()

        assert failures == 0
        assert sorted(bridge.authorized) == sorted([(MAC, 59), (OTHER_MAC, 1)])

    async def test_skips_expired_sessions(self, core, clock, bridge):
        await core.services.session.put(MAC, None, 5)
        clock.advance(6)

        assert await core.services.portal.reconcile() == 0
        assert bridge.calls == []

    async def test_counts_failures(self, core, bridge):
        bridge.failures = 100
        await core.services.session.put(MAC, None, 600)

        assert await core.services.portal.reconcile() == 1
