"""Tests for the session service: replacement, lazy expiry, idempotent delete."""

import asyncio

import pytest

pytestmark = pytest.mark.anyio

MAC = "AA:BB:CC:DD:EE:FF"
OTHER_MAC = "11:22:33:44:55:66"


class TestPut:
    """Tests for SessionService.put."""

    async def test_put_then_get(self, core, clock):
        await core.services.session.put(MAC, "SULIT-1HR", 3600)

        session = await core.services.session.get(MAC)

        assert session is not None
        assert session.voucher_code == "SULIT-1HR"
        assert session.remaining_seconds(clock()) == 3600

    async def test_second_put_replaces_without_stacking(self, core, clock):
        await core.services.session.put(MAC, "SULIT-1HR", 3600)
        clock.advance(100)
        await core.services.session.put(MAC, "SULIT-30M", 1800)

        session = await core.services.session.get(MAC)

        assert session is not None
        assert session.voucher_code == "SULIT-30M"
        assert session.duration_seconds == 1800
        assert session.remaining_seconds(clock()) == 1800
        assert len(await core.services.session.list_live()) == 1

    async def test_each_put_is_a_new_grant(self, core):
        first = await core.services.session.put(MAC, None, 60)
        second = await core.services.session.put(MAC, None, 60)

        assert first.grant_id != second.grant_id


class TestGet:
    """Tests for lazy expiry on read."""

    async def test_absent_mac(self, core):
        assert await core.services.session.get(MAC) is None

    async def test_expired_session_is_absent_and_not_counted(self, core, clock):
        await core.services.session.put(MAC, "SULIT-1HR", 3600)
        await core.services.session.put(OTHER_MAC, "SULIT-2HR", 7200)
        clock.advance(3600)

        assert await core.services.session.get(MAC) is None
        assert await core.services.session.count_live() == 1
        assert [s.mac_address for s in await core.services.session.list_live()] == [OTHER_MAC]

    async def test_count_live_excludes_expired_before_any_read(self, core, clock):
        await core.services.session.put(MAC, None, 5)
        clock.advance(6)

        assert await core.services.session.count_live() == 0

    async def test_expired_read_deletes_record_and_marks_lapsed(self, core, clock):
        await core.services.session.put(MAC, None, 5)
        clock.advance(6)

        await core.services.session.get(MAC)

        assert await core.services.session.list_expired() == []
        assert core.services.session.take_lapsed() == {MAC}
        assert core.services.session.take_lapsed() == set()

    async def test_stale_grant_delete_keeps_replacement(self, core, clock):
        old = await core.services.session.put(MAC, None, 5)
        clock.advance(6)
        await core.services.session.put(MAC, "SULIT-NEW", 600)

        assert await core.services.session.delete_grant(MAC, old.grant_id) is False
        session = await core.services.session.get(MAC)
        assert session is not None and session.voucher_code == "SULIT-NEW"


class TestDelete:
    """Tests for SessionService.delete."""

    async def test_delete_removes_session(self, core):
        await core.services.session.put(MAC, None, 600)

        assert await core.services.session.delete(MAC) is True
        assert await core.services.session.get(MAC) is None

    async def test_delete_is_idempotent(self, core):
        assert await core.services.session.delete(MAC) is False
        assert await core.services.session.delete(MAC) is False

    async def test_racing_put_and_delete_leave_consistent_state(self, core):
        await asyncio.gather(
            core.services.session.put(MAC, "A", 600),
            core.services.session.delete(MAC),
            core.services.session.put(MAC, "B", 600),
        )

        session = await core.services.session.get(MAC)
        assert session is not None
        assert session.voucher_code == "B"
        assert len(core.services.session._locks) == 0
