"""Tracking number generation.

Simulated shipments get a prefixed code (``SIM-7K2Q9XW4PA``) so they can never
be mistaken for a carrier-issued number.
"""

import secrets
import string

TRACKING_ALPHABET = string.ascii_uppercase + string.digits
TRACKING_SUFFIX_LENGTH = 10


def generate_tracking_number(prefix: str = "SIM", length: int = TRACKING_SUFFIX_LENGTH) -> str:
    suffix = "".join(secrets.choice(TRACKING_ALPHABET) for _ in range(length))
    return f"{prefix}-{suffix}"


def is_simulated(tracking_number: str, prefix: str = "SIM") -> bool:
    head, sep, tail = tracking_number.partition("-")
    return bool(sep) and head == prefix and len(tail) == TRACKING_SUFFIX_LENGTH and all(
        c in TRACKING_ALPHABET for c in tail
    )
