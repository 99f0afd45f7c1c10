"""
Snippet ids — millisecond timestamp plus random digits, both base 36.

Two ids minted in the same millisecond differ in their random suffix with
overwhelming probability; ``unique_id`` turns that into a guarantee against
a known set of taken ids.
"""

import secrets
import time
from collections.abc import Callable, Container

ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
RANDOM_DIGITS = 9
MAX_ATTEMPTS = 16


class IdCollisionError(RuntimeError):
    """No free id was produced within the attempt budget."""


def to_base36(value: int) -> str:
    """Encode a non-negative integer in lowercase base 36."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(ALPHABET[rem])
    return "".join(reversed(digits))


def generate_id(now_ms: int | None = None, random_digits: int = RANDOM_DIGITS) -> str:
    """Mint a new id from the current time (or ``now_ms``) and random digits."""
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    suffix = "".join(secrets.choice(ALPHABET) for _ in range(random_digits))
    return to_base36(now_ms) + suffix


def unique_id(
    taken: Container[str],
    generator: Callable[[], str] = generate_id,
    max_attempts: int = MAX_ATTEMPTS,
) -> str:
    """Return a generated id that is not in ``taken``."""
    for _ in range(max_attempts):
        candidate = generator()
        if candidate not in taken:
            return candidate
    raise IdCollisionError(f"No unique id after {max_attempts} attempts")
