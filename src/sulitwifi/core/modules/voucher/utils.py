import secrets

VOUCHER_PREFIX = "SULIT-"
VOUCHER_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # No 0/O or 1/I look-alikes
VOUCHER_SUFFIX_LENGTH = 6


def generate_voucher_code() -> str:
    """Random code with a fixed prefix, length and alphabet, e.g. SULIT-7KQ2MX."""
    suffix = "".join(secrets.choice(VOUCHER_ALPHABET) for _ in range(VOUCHER_SUFFIX_LENGTH))
    return VOUCHER_PREFIX + suffix
