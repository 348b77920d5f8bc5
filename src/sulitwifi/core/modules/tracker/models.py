from datetime import datetime

from sulitwifi.core.db import MongoModel

DEFAULT_SLOT = "default"


class TrackerSlot(MongoModel):
    """Most recently seen unauthenticated client plus the latest coin pulse.

    Indexed on key - unique. One document per deployment (or per access point).
    Last writer wins: a second client probing before the coin drops takes the slot over.
    """

    key: str = DEFAULT_SLOT
    mac: str | None = None
    seen_at: datetime | None = None
    pulse_at: datetime | None = None
    pulse_count: int = 0  # Lifetime pulses, for the dashboard
