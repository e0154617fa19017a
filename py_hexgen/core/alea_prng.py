"""
Python implementation of the Alea PRNG used for every random draw in the
generation pipeline.

Based on Johannes Baagøe's Alea algorithm. Each generation stage owns its
own instance, so results depend only on the seed and never on Python's or
NumPy's global random state.
"""

from typing import Sequence

import numpy as np


def _uint32(n):
    """Convert to unsigned 32-bit integer."""
    return int(n) & 0xFFFFFFFF


class AleaPRNG:
    """
    Alea PRNG seeded from an integer (or any value with a stable ``str``).

    Besides the raw ``random()`` stream it offers the handful of helpers the
    generators need: inclusive integer ranges, Bernoulli trials, uniform and
    weighted selection.
    """

    def __init__(self, seed):
        """Initialize with a seed value."""
        self.seed = seed
        self.call_count = 0

        mash_n = 0xEFC8249D

        def mash(data):
            nonlocal mash_n
            for char in str(data):
                mash_n = mash_n + ord(char)
                h = 0.02519603282416938 * mash_n
                mash_n = _uint32(h)
                h -= mash_n
                h *= mash_n
                mash_n = _uint32(h)
                h -= mash_n
                mash_n += h * 0x100000000  # 2^32
            return _uint32(mash_n) * 2.3283064365386963e-10  # 2^-32

        self.s0 = mash(" ")
        self.s1 = mash(" ")
        self.s2 = mash(" ")
        self.c = 1

        self.s0 -= mash(seed)
        if self.s0 < 0:
            self.s0 += 1
        self.s1 -= mash(seed)
        if self.s1 < 0:
            self.s1 += 1
        self.s2 -= mash(seed)
        if self.s2 < 0:
            self.s2 += 1

    def random(self) -> float:
        """Generate next random number in [0, 1)."""
        self.call_count += 1
        t = 2091639 * self.s0 + self.c * 2.3283064365386963e-10  # 2^-32
        self.s0 = self.s1
        self.s1 = self.s2
        self.c = int(t)
        self.s2 = t - self.c
        return self.s2

    def randint(self, low: int, high: int) -> int:
        """Return an integer in [low, high], both ends inclusive."""
        if high < low:
            raise ValueError(f"Empty range [{low}, {high}]")
        return low + int(self.random() * (high - low + 1))

    def chance(self, probability: float) -> bool:
        """Bernoulli trial. Always consumes exactly one draw."""
        return self.random() < probability

    def choice(self, seq: Sequence):
        """Choose a random element from a non-empty sequence."""
        if not seq:
            raise IndexError("Cannot choose from an empty sequence")
        return seq[int(self.random() * len(seq))]

    def weighted_index(self, weights: Sequence[float]) -> int:
        """
        Pick an index with probability proportional to its weight.

        Falls back to a uniform pick when every weight is zero. Returns -1 for
        an empty sequence.
        """
        n = len(weights)
        if n == 0:
            return -1

        cumulative = np.cumsum(np.asarray(weights, dtype=np.float64))
        total = float(cumulative[-1])
        if total <= 0:
            return int(self.random() * n)

        target = self.random() * total
        index = int(np.searchsorted(cumulative, target, side="right"))
        return min(index, n - 1)

    def random_array(self, count: int) -> np.ndarray:
        """Draw ``count`` values in [0, 1) as a float64 array, in stream order."""
        return np.fromiter((self.random() for _ in range(count)), dtype=np.float64, count=count)
