"""Client session models."""

import math
from datetime import datetime, timedelta
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from sulitwifi.core.db import MongoModel

COIN_CODE_PREFIX = "COIN-"


class Session(MongoModel):
    """Time-bounded authorization for one client MAC.

    Indexed on mac_address - unique (one session per client), expires_at.
    Remaining time is always derived from start_time; expires_at only serves queries.
    """

    mac_address: str
    voucher_code: str | None = None  # Voucher code, or COIN-<timestamp> for coin-funded sessions
    start_time: datetime
    duration_seconds: int = Field(..., gt=0)
    grant_id: UUID = Field(default_factory=uuid4)  # Distinguishes a replacement grant from the one it replaced
    expires_at: datetime

    @classmethod
    def grant(cls, mac_address: str, voucher_code: str | None, duration_seconds: int, start_time: datetime) -> "Session":
        return cls(
            mac_address=mac_address,
            voucher_code=voucher_code,
            start_time=start_time,
            duration_seconds=duration_seconds,
            expires_at=start_time + timedelta(seconds=duration_seconds),
        )

    def remaining_seconds(self, now: datetime) -> int:
        elapsed = (now - self.start_time).total_seconds()
        return max(0, math.ceil(self.duration_seconds - elapsed))

    def is_live(self, now: datetime) -> bool:
        return self.remaining_seconds(now) > 0

    @property
    def is_coin(self) -> bool:
        return self.voucher_code is not None and self.voucher_code.startswith(COIN_CODE_PREFIX)


class SessionView(BaseModel):
    """Client session status (API representation)."""

    mac_address: str = Field(..., description="Client hardware address")
    voucher_code: str | None = Field(None, description="Redeemed voucher code or coin marker")
    start_time: datetime = Field(..., description="When the grant started")
    duration_seconds: int = Field(..., description="Granted duration in seconds")
    remaining_time: int = Field(..., description="Seconds of access left")

    @classmethod
    def from_domain(cls, session: Session, now: datetime) -> "SessionView":
        """Create view model from domain model at the given instant."""
        return cls(
            mac_address=session.mac_address,
            voucher_code=session.voucher_code,
            start_time=session.start_time,
            duration_seconds=session.duration_seconds,
            remaining_time=session.remaining_seconds(now),
        )
