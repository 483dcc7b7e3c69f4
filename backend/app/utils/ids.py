"""Externally visible identifiers (``TX…`` / ``REF…``).

Format: prefix + millisecond timestamp + random hex suffix. Uniqueness is
enforced by the unique index on the column; callers retry on collision.
"""

import secrets
import time

TRANSACTION_PREFIX = "TX"
REFERENCE_PREFIX = "REF"
MAX_ID_ATTEMPTS = 5


def generate_external_id(prefix: str) -> str:
    return f"{prefix}{int(time.time() * 1000)}{secrets.token_hex(4).upper()}"


def transaction_id() -> str:
    return generate_external_id(TRANSACTION_PREFIX)


def reference_id() -> str:
    return generate_external_id(REFERENCE_PREFIX)
