import math
import re
from datetime import UTC, datetime
from pathlib import Path

MAC_RE = re.compile(r"^[0-9A-Fa-f]{2}([:-])(?:[0-9A-Fa-f]{2}\1){4}[0-9A-Fa-f]{2}$")
ARP_TABLE_PATH = Path("/proc/net/arp")
_ZERO_MAC = "00:00:00:00:00:00"


def now() -> datetime:
    return datetime.now(UTC)


def is_mac(value: str) -> bool:
    return bool(MAC_RE.fullmatch(value.strip()))


def normalize_mac(value: str) -> str:
    """Upper-case colon-separated form, e.g. aa-bb-cc-dd-ee-ff -> AA:BB:CC:DD:EE:FF."""
    return value.strip().replace("-", ":").upper()


def ceil_minutes(seconds: float) -> int:
    """Whole minutes covering the given number of seconds."""
    return max(0, math.ceil(seconds / 60))


def lookup_arp_mac(ip: str, arp_table: Path = ARP_TABLE_PATH) -> str | None:
    """Find the hardware address the kernel has cached for an IPv4 peer."""
    try:
        lines = arp_table.read_text().splitlines()[1:]  # Skip header
    except OSError:
        return None
    for line in lines:
        parts = line.split()
        if len(parts) >= 4 and parts[0] == ip and parts[3] != _ZERO_MAC:
            return parts[3]
    return None
