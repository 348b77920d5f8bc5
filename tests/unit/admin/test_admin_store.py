"""Tests for the in-memory admin token store."""

from datetime import UTC, datetime, timedelta

import pytest

from sulitwifi.core.modules.admin.models import AdminSession
from sulitwifi.core.modules.admin.store import MemoryAdminTokenStore

pytestmark = pytest.mark.anyio

START = datetime(2025, 1, 1, 8, 0, tzinfo=UTC)


def make_session(token: str, created_at: datetime, ttl_seconds: int = 3600) -> AdminSession:
    return AdminSession(token=token, created_at=created_at, expires_at=created_at + timedelta(seconds=ttl_seconds))


async def test_valid_token_found():
    store = MemoryAdminTokenStore()
    await store.insert(make_session("abc", START))

    session = await store.find_valid("abc", START + timedelta(minutes=59))

    assert session is not None
    assert session.token == "abc"


async def test_expired_token_not_found_and_dropped():
    store = MemoryAdminTokenStore()
    await store.insert(make_session("abc", START))

    assert await store.find_valid("abc", START + timedelta(hours=1)) is None
    assert len(store) == 0


async def test_insert_prunes_expired_tokens():
    store = MemoryAdminTokenStore()
    for i in range(5):
        await store.insert(make_session(f"old-{i}", START))

    await store.insert(make_session("new", START + timedelta(hours=2)))

    assert len(store) == 1
    assert await store.find_valid("new", START + timedelta(hours=2)) is not None
