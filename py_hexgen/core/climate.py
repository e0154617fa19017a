"""
Climate calculation: moisture and biome assignment.

This module implements:
- Multi-octave hash-based value noise for base moisture
- Coastal moisture boost for land next to water
- Biome classification from elevation and moisture

Moisture is a pure function of the cell coordinates and the seed, so the
stage needs no PRNG: identical seed and elevation field give identical
output.
"""

from typing import Optional

import numpy as np
import structlog

from .cancellation import CancellationToken
from .cells import CellBuffer, TerrainType
from .generation_config import ClimateOptions, ElevationOptions

logger = structlog.get_logger()

_MASK32 = 0xFFFFFFFF


def _hash(ix: np.ndarray, iy: np.ndarray, seed: int) -> np.ndarray:
    """Mix integer lattice coordinates and a seed into values in [-1, 1]."""
    ix = ix.astype(np.uint64)
    iy = iy.astype(np.uint64)
    s = np.uint64(seed & _MASK32)

    h = (ix * np.uint64(374761393) + iy * np.uint64(668265263) + s * np.uint64(1013904223)) & np.uint64(_MASK32)
    h = ((h ^ (h >> np.uint64(13))) * np.uint64(1274126177)) & np.uint64(_MASK32)
    h = h ^ (h >> np.uint64(16))
    return (h & np.uint64(0x7FFFFFFF)).astype(np.float64) / float(0x7FFFFFFF) * 2.0 - 1.0


def _smoothstep(t: np.ndarray) -> np.ndarray:
    return t * t * (3.0 - 2.0 * t)


def value_noise(x: np.ndarray, y: np.ndarray, seed: int) -> np.ndarray:
    """
    Single-octave lattice value noise.

    The four surrounding lattice corners are hashed and blended bilinearly
    with smoothstep-eased offsets.

    Returns:
        Values in [-1, 1]
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    x0 = np.floor(x)
    y0 = np.floor(y)
    fx = _smoothstep(x - x0)
    fy = _smoothstep(y - y0)

    ix = x0.astype(np.int64)
    iy = y0.astype(np.int64)

    n00 = _hash(ix, iy, seed)
    n10 = _hash(ix + 1, iy, seed)
    n01 = _hash(ix, iy + 1, seed)
    n11 = _hash(ix + 1, iy + 1, seed)

    nx0 = n00 + (n10 - n00) * fx
    nx1 = n01 + (n11 - n01) * fx
    return nx0 + (nx1 - nx0) * fy


def fractal_noise(
    x: np.ndarray, y: np.ndarray, seed: int, scale: float, octaves: int = 4
) -> np.ndarray:
    """
    Sum ``octaves`` layers of value noise, doubling frequency and halving
    weight per octave, normalized by the total weight.

    Returns:
        Values in [0, 1]
    """
    total = np.zeros(np.shape(x), dtype=np.float64)
    amplitude = 1.0
    frequency = scale
    max_amplitude = 0.0

    for octave in range(octaves):
        total += value_noise(np.asarray(x) * frequency, np.asarray(y) * frequency, seed + octave * 1000) * amplitude
        max_amplitude += amplitude
        amplitude *= 0.5
        frequency *= 2.0

    return np.clip((total / max_amplitude + 1.0) / 2.0, 0.0, 1.0)


def classify_biome(
    elevation: int,
    moisture: float,
    elevation_options: Optional[ElevationOptions] = None,
    options: Optional[ClimateOptions] = None,
) -> TerrainType:
    """
    Determine the terrain type of one cell.

    Order of checks:
      1. Underwater -> sand
      2. Mountain elevation -> snow
      3. Hill elevation -> snow if wet, otherwise stone
      4. Dry lowland -> sand (desert)
      5. Wet lowland -> mud (swamp/jungle)
      6. Otherwise -> grass
    """
    elev = elevation_options or ElevationOptions()
    opts = options or ClimateOptions()

    if elevation < elev.water_level:
        return TerrainType.SAND
    if elevation >= elev.mountain_elevation:
        return TerrainType.SNOW
    if elevation >= elev.hill_elevation:
        return TerrainType.SNOW if moisture > opts.forest_moisture_max else TerrainType.STONE
    if moisture < opts.desert_moisture_max:
        return TerrainType.SAND
    if moisture >= opts.forest_moisture_max:
        return TerrainType.MUD
    return TerrainType.GRASS


def classify_biomes(
    elevation: np.ndarray,
    moisture: np.ndarray,
    elevation_options: Optional[ElevationOptions] = None,
    options: Optional[ClimateOptions] = None,
) -> np.ndarray:
    """Vectorized ``classify_biome``; same precedence, returns uint8 indices."""
    elev = elevation_options or ElevationOptions()
    opts = options or ClimateOptions()

    underwater = elevation < elev.water_level
    mountain = elevation >= elev.mountain_elevation
    hill = elevation >= elev.hill_elevation

    conditions = [
        underwater,
        mountain,
        hill & (moisture > opts.forest_moisture_max),
        hill,
        moisture < opts.desert_moisture_max,
        moisture >= opts.forest_moisture_max,
    ]
    choices = [
        TerrainType.SAND,
        TerrainType.SNOW,
        TerrainType.SNOW,
        TerrainType.STONE,
        TerrainType.SAND,
        TerrainType.MUD,
    ]
    return np.select(conditions, choices, default=TerrainType.GRASS).astype(np.uint8)


class ClimateGenerator:
    """Handles moisture and biome calculations."""

    def __init__(
        self,
        seed: int,
        options: Optional[ClimateOptions] = None,
        elevation: Optional[ElevationOptions] = None,
    ):
        """
        Initialize climate calculator.

        Args:
            seed: Run seed; the moisture offset is added here
            options: Noise and biome threshold options
            elevation: Elevation bounds and thresholds
        """
        self.options = options or ClimateOptions()
        self.elevation = elevation or ElevationOptions()
        self.seed = seed + self.options.moisture_seed_offset

    def generate(self, cells: CellBuffer, token: Optional[CancellationToken] = None) -> None:
        """Compute moisture, then assign biomes, storing both on ``cells``."""
        if cells.size == 0:
            return

        logger.info("Generating moisture")
        moisture = self.generate_moisture(cells.width, cells.height)

        if token is not None:
            token.raise_if_cancelled()

        coastal = self.apply_coastal_boost(cells, moisture)

        if token is not None:
            token.raise_if_cancelled()

        cells.moisture[:] = moisture
        cells.terrain[:] = classify_biomes(
            cells.elevation, moisture, self.elevation, self.options
        )

        land = cells.land_mask()
        logger.info(
            "Climate complete",
            coastal_cells=coastal,
            mean_land_moisture=round(float(moisture[land].mean()), 3) if land.any() else 0.0,
        )

    def generate_moisture(self, width: int, height: int) -> np.ndarray:
        """Base moisture in [0, 1] for every cell of a width x height grid."""
        index = np.arange(width * height)
        x = (index % width).astype(np.float64) if width else index.astype(np.float64)
        z = (index // width).astype(np.float64) if width else index.astype(np.float64)
        return fractal_noise(
            x,
            z,
            self.seed,
            self.options.moisture_noise_scale,
            self.options.moisture_octaves,
        )

    def apply_coastal_boost(self, cells: CellBuffer, moisture: np.ndarray) -> int:
        """
        Add the coastal boost (clamped to 1.0) to land cells touching water.

        Modifies ``moisture`` in place.

        Returns:
            Number of boosted cells
        """
        is_land = cells.land_mask()
        neighbors = cells.neighbors
        valid = neighbors >= 0
        water_neighbor = (valid & ~is_land[np.where(valid, neighbors, 0)]).any(axis=1)
        coastal = is_land & water_neighbor

        moisture[coastal] = np.minimum(
            1.0, moisture[coastal] + self.options.coastal_moisture_boost
        )
        return int(np.count_nonzero(coastal))


__all__ = [
    "ClimateGenerator",
    "classify_biome",
    "classify_biomes",
    "fractal_noise",
    "value_noise",
]
