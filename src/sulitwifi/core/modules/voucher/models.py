"""Voucher models."""

from datetime import datetime

from pydantic import Field

from sulitwifi.core.db import MongoModel
from sulitwifi.utils import now


def normalize_voucher_code(code: str) -> str:
    """Codes are matched case-insensitively; the stored form is upper-case."""
    return code.strip().upper()


class Voucher(MongoModel):
    """Single-use code redeemable for a fixed amount of session time.

    Indexed on code - unique. Never deleted; `used` only ever goes false -> true.
    A used voucher without `session_granted_at` can be claimed again by the same MAC only.
    """

    code: str
    duration_seconds: int = Field(..., gt=0)
    used: bool = False
    created_at: datetime = Field(default_factory=now)
    used_at: datetime | None = None
    used_by: str | None = None  # MAC address that redeemed the voucher
    session_granted_at: datetime | None = None  # set once the session is stored
