"""Shared helpers."""

from .random import create_prng, random_seed, resolve_seed

__all__ = ["create_prng", "random_seed", "resolve_seed"]
