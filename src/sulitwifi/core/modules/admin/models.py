"""Admin authentication models."""

from datetime import datetime
from typing import NewType

from pydantic import BaseModel, Field

from sulitwifi.core.db import MongoModel

AdminToken = NewType("AdminToken", str)


class AdminSession(MongoModel):
    """Admin login token.

    Indexed on token - unique, expires_at (TTL).
    """

    token: str
    created_at: datetime
    expires_at: datetime


class DashboardStats(BaseModel):
    """Counters shown on the admin dashboard."""

    active_sessions: int = Field(..., description="Clients with a live session")
    vouchers_used: int = Field(..., description="Vouchers already redeemed")
    vouchers_available: int = Field(..., description="Vouchers not yet redeemed")
    coin_pulses: int = Field(..., description="Coin pulses recorded since installation")
