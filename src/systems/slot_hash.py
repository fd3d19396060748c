"""Deterministic hashing of creature ids using xxhash.

Used to spread round-robin updates across cycles: the same id always
lands in the same slot, independent of dict ordering or arrival order.

Formula: Slot = Hash(Seed, Domain, CreatureID) mod Span
"""

from __future__ import annotations

import struct

import xxhash

# Domain tags keep unrelated hash uses from correlating.
DOMAIN_ROUND_ROBIN = 1
DOMAIN_ARENA = 2


class SlotHasher:
    """Stateless keyed hash; every call is a pure function of its inputs."""

    __slots__ = ("_seed",)

    _MAX_UINT64 = (1 << 64) - 1

    def __init__(self, seed: int = 0) -> None:
        self._seed = seed

    def hash(self, domain: int, key: int, salt: int = 0) -> int:
        payload = struct.pack("<qiqq", self._seed, domain, key, salt)
        return xxhash.xxh64(payload).intdigest()

    def slot(self, key: int, span: int, domain: int = DOMAIN_ROUND_ROBIN) -> int:
        """Return a slot in ``[0, span)`` for *key*."""
        if span <= 0:
            raise ValueError("span must be positive")
        return self.hash(domain, key) % span

    def next_float(self, domain: int, key: int, salt: int) -> float:
        """Return a deterministic float in [0.0, 1.0)."""
        return self.hash(domain, key, salt) / (self._MAX_UINT64 + 1)

    def next_int(self, domain: int, key: int, salt: int, low: int, high: int) -> int:
        """Return a deterministic integer in [low, high] inclusive."""
        return low + int(self.next_float(domain, key, salt) * (high - low + 1))
