"""
Neighbor geometry for an offset-coordinate hex grid.

Cells are addressed by linear index ``z * width + x``. Rows grow "north" and
odd rows are shifted half a cell to the right, so the column offset of the
diagonal neighbors depends on row parity:

    direction   even row      odd row
    NE          (x,   z+1)    (x+1, z+1)
    E           (x+1, z)      (x+1, z)
    SE          (x,   z-1)    (x+1, z-1)
    SW          (x-1, z-1)    (x,   z-1)
    W           (x-1, z)      (x-1, z)
    NW          (x-1, z+1)    (x,   z+1)

Everything here is a pure function of (index, direction, width, height).
"""

from enum import IntEnum
from typing import Iterator, Tuple

import numpy as np


class HexDirection(IntEnum):
    """The six hex edges, clockwise from north-east."""

    NE = 0
    E = 1
    SE = 2
    SW = 3
    W = 4
    NW = 5

    def opposite(self) -> "HexDirection":
        return HexDirection((self + 3) % 6)

    def previous(self) -> "HexDirection":
        return HexDirection((self + 5) % 6)

    def next(self) -> "HexDirection":
        return HexDirection((self + 1) % 6)


DIRECTION_COUNT = 6

# (dx for even rows, dx for odd rows, dz) per direction
_OFFSETS = (
    (0, 1, 1),  # NE
    (1, 1, 0),  # E
    (0, 1, -1),  # SE
    (-1, 0, -1),  # SW
    (-1, -1, 0),  # W
    (-1, 0, 1),  # NW
)


def opposite_direction(direction: int) -> int:
    """Opposite edge, ``(d + 3) mod 6``."""
    return (direction + 3) % 6


def neighbor_index(index: int, direction: int, width: int, height: int) -> int:
    """
    Index of the neighbor across ``direction``.

    Returns:
        Neighbor index, or -1 when the neighbor falls outside the grid or the
        direction is invalid
    """
    if width <= 0 or height <= 0 or not 0 <= direction < DIRECTION_COUNT:
        return -1

    x = index % width
    z = index // width
    dx_even, dx_odd, dz = _OFFSETS[direction]
    nx = x + (dx_even if z % 2 == 0 else dx_odd)
    nz = z + dz

    if nx < 0 or nx >= width or nz < 0 or nz >= height:
        return -1
    return nz * width + nx


def neighbor_indices(index: int, width: int, height: int) -> Iterator[int]:
    """Yield every valid neighbor of ``index`` in direction order."""
    for direction in range(DIRECTION_COUNT):
        neighbor = neighbor_index(index, direction, width, height)
        if neighbor >= 0:
            yield neighbor


def build_neighbor_table(width: int, height: int) -> np.ndarray:
    """
    Vectorized neighbor lookup for a whole grid.

    Returns:
        int32 array shaped (width * height, 6); column ``d`` holds the
        neighbor across direction ``d`` or -1 where it is off-grid
    """
    n = max(width, 0) * max(height, 0)
    table = np.full((n, DIRECTION_COUNT), -1, dtype=np.int32)
    if n == 0:
        return table

    index = np.arange(n)
    x = index % width
    z = index // width
    odd = (z % 2) == 1

    for direction, (dx_even, dx_odd, dz) in enumerate(_OFFSETS):
        nx = x + np.where(odd, dx_odd, dx_even)
        nz = z + dz
        valid = (nx >= 0) & (nx < width) & (nz >= 0) & (nz < height)
        table[valid, direction] = nz[valid] * width + nx[valid]

    return table


def direction_between(from_index: int, to_index: int, width: int, height: int) -> int:
    """Direction leading from one cell to an adjacent cell, or -1 if not adjacent."""
    for direction in range(DIRECTION_COUNT):
        if neighbor_index(from_index, direction, width, height) == to_index:
            return direction
    return -1


def offset_to_cube(x: int, z: int) -> Tuple[int, int, int]:
    """Convert offset (column, row) to cube coordinates (x, y, z)."""
    cx = x - z // 2
    cz = z
    return cx, -cx - cz, cz


def hex_distance(a: int, b: int, width: int) -> int:
    """Number of hex steps between two cells given by linear index."""
    ax, ay, az = offset_to_cube(a % width, a // width)
    bx, by, bz = offset_to_cube(b % width, b // width)
    return (abs(ax - bx) + abs(ay - by) + abs(az - bz)) // 2


def hex_distances(source: int, targets: np.ndarray, width: int) -> np.ndarray:
    """Vectorized ``hex_distance`` from one cell to many."""
    targets = np.asarray(targets, dtype=np.int64)
    sx, sy, sz = offset_to_cube(source % width, source // width)
    tz = targets // width
    tx = targets % width - tz // 2
    ty = -tx - tz
    return (np.abs(tx - sx) + np.abs(ty - sy) + np.abs(tz - sz)) // 2


__all__ = [
    "DIRECTION_COUNT",
    "HexDirection",
    "build_neighbor_table",
    "direction_between",
    "hex_distance",
    "hex_distances",
    "neighbor_index",
    "neighbor_indices",
    "offset_to_cube",
    "opposite_direction",
]
