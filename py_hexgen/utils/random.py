"""
Random number generation utilities.

Every stage of the pipeline draws from its own Alea PRNG derived from the
run seed plus a per-stage offset. Python's random module is only used to
pick a seed when the caller asks for a random one.
"""

import random

from ..core.alea_prng import AleaPRNG

MAX_SEED = 2**31 - 1


def random_seed() -> int:
    """Pick a fresh non-zero seed for an unseeded run."""
    return random.SystemRandom().randint(1, MAX_SEED)


def resolve_seed(seed) -> int:
    """
    Normalize a user supplied seed.

    ``None`` and ``0`` mean "choose one"; anything else is used as is.
    """
    if not seed:
        return random_seed()
    return int(seed)


def create_prng(seed: int, offset: int = 0) -> AleaPRNG:
    """
    Create the PRNG for one generation stage.

    Args:
        seed: Run seed
        offset: Stage specific offset used to decorrelate the stages

    Returns:
        AleaPRNG instance
    """
    return AleaPRNG(seed + offset)
