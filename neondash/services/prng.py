# neondash/services/prng.py
"""
Deterministic pseudo-randomness for bootstrap data.

Accounts that predate stored metrics/journeys get synthesized ones. The values
must be stable across reloads and processes, so the seed is a SHA-256 digest of
the account id (never Python's salted `hash()`), fed into `random.Random`.
"""

import hashlib
import random


def seeded_rng(*parts) -> random.Random:
    """Return a `random.Random` seeded from the string form of `parts`."""
    key = ":".join(str(p) for p in parts).encode("utf-8")
    digest = hashlib.sha256(key).digest()
    return random.Random(int.from_bytes(digest[:8], "big"))


def seeded_unit(seed_id: str) -> float:
    """Stable value in [0, 1) for `seed_id`."""
    return seeded_rng(seed_id).random()
