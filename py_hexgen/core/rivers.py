"""
River generation by weighted steepest descent.

Rivers start at fitness-ranked headwaters (wet, high land) and walk downhill
one cell at a time:

1. Score every land cell; keep those above the minimum fitness
2. Repeatedly draw a source, weighting high-fitness tiers more heavily
3. Trace downhill: steeper drops are preferred, flat ground is crossed only
   by chance, uphill is never taken
4. Discard short traces; apply the rest as directed edges

Earlier rivers claim cells that later traces may not enter, so the result
depends on draw order.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

import numpy as np
import structlog

from .alea_prng import AleaPRNG
from .cancellation import CancellationToken
from .cells import CellBuffer
from .generation_config import ElevationOptions, RiverOptions
from .hex_neighbors import DIRECTION_COUNT, opposite_direction

logger = structlog.get_logger()

# (cell index, direction of the step leaving it); the terminus carries -1
RiverStep = Tuple[int, int]


@dataclass
class River:
    """A river as applied to the buffer."""

    id: int
    cells: List[int] = field(default_factory=list)

    @property
    def source(self) -> int:
        return self.cells[0]

    @property
    def mouth(self) -> int:
        return self.cells[-1]

    @property
    def length(self) -> int:
        return len(self.cells)


class RiverGenerator:
    """Places rivers on a buffer that already has elevation and moisture."""

    def __init__(
        self,
        prng: AleaPRNG,
        options: Optional[RiverOptions] = None,
        elevation: Optional[ElevationOptions] = None,
    ):
        self.prng = prng
        self.options = options or RiverOptions()
        self.elevation = elevation or ElevationOptions()
        self.rivers: List[River] = []

    def generate(
        self, cells: CellBuffer, token: Optional[CancellationToken] = None
    ) -> List[River]:
        """
        Trace and apply rivers until the river cell target is reached.

        Args:
            cells: Buffer with elevation and moisture set
            token: Optional cancellation token

        Returns:
            The rivers that were applied
        """
        self.rivers = []
        if cells.size == 0:
            return self.rivers

        candidates = self.find_river_sources(cells)
        if len(candidates) == 0:
            logger.info("No river sources found")
            return self.rivers

        # Kept fractional: small islands still get a river when the share is > 0
        target = cells.land_count() * self.options.river_percentage
        max_attempts = len(candidates) * 2
        fitness = self.source_fitness(cells)

        logger.info(
            "Generating rivers",
            candidates=len(candidates),
            target_cells=round(target, 2),
        )

        river_cells = 0
        attempts = 0
        while river_cells < target and len(candidates) > 0 and attempts < max_attempts:
            if token is not None and (attempts & 0x1F) == 0:
                token.raise_if_cancelled()
            attempts += 1

            weights = self._tier_weights(fitness[candidates])
            pick = self.prng.weighted_index(weights)
            source = int(candidates[pick])
            candidates = np.delete(candidates, pick)

            if cells.has_outgoing_river[source]:
                continue

            path = self.trace_river(cells, source)
            if len(path) < self.options.min_river_length:
                continue

            river = self.apply_river(cells, path)
            river_cells += river.length

        logger.info(
            "River generation complete",
            rivers=len(self.rivers),
            river_cells=river_cells,
            attempts=attempts,
        )
        return self.rivers

    def source_fitness(self, cells: CellBuffer) -> np.ndarray:
        """
        Headwater suitability per cell.

        fitness = 0.5 * moisture + 0.5 * moisture * elevation_bonus where the
        bonus is the clamped height above water relative to the maximum.
        Water cells score 0, and so does every cell when there is no land
        elevation range above the water level.
        """
        water = self.elevation.water_level
        span = self.elevation.max_elevation - water
        if span <= 0:
            return np.zeros(cells.size, dtype=np.float64)
        bonus = np.clip((cells.elevation.astype(np.float64) - water) / span, 0.0, 1.0)
        fitness = 0.5 * cells.moisture + 0.5 * cells.moisture * bonus
        fitness[~cells.land_mask()] = 0.0
        return fitness

    def find_river_sources(self, cells: CellBuffer) -> np.ndarray:
        """Indices of land cells at or above the minimum source fitness, ascending."""
        fitness = self.source_fitness(cells)
        eligible = cells.land_mask() & (fitness >= self.options.river_source_min_fitness)
        return np.flatnonzero(eligible)

    def _tier_weights(self, fitness: np.ndarray) -> np.ndarray:
        opts = self.options
        return np.select(
            [
                fitness >= opts.high_fitness_threshold,
                fitness >= opts.medium_fitness_threshold,
            ],
            [opts.high_fitness_weight, opts.medium_fitness_weight],
            default=opts.low_fitness_weight,
        )

    def trace_river(self, cells: CellBuffer, source: int) -> List[RiverStep]:
        """
        Walk downhill from ``source``.

        The walk stops when it enters an underwater cell (which is kept as
        the mouth), when no neighbor qualifies, or at the step cap.

        Returns:
            List of (cell, outgoing direction); the last entry has direction -1
        """
        path: List[RiverStep] = []
        visited: Set[int] = {source}
        current = source

        for _ in range(self.options.max_river_trace_steps):
            if cells.is_underwater(current):
                break

            direction = self.select_next_cell(cells, current, visited)
            if direction < 0:
                break

            path.append((current, direction))
            current = int(cells.neighbors[current, direction])
            visited.add(current)

        # Whatever cell the walk ended on (mouth, dead end or step cap) closes the river
        path.append((current, -1))
        return path

    def select_next_cell(self, cells: CellBuffer, current: int, visited: Set[int]) -> int:
        """
        Choose the direction to flow out of ``current``.

        Returns:
            Direction 0..5, or -1 when the river should stop here
        """
        elevation = int(cells.elevation[current])
        downhill: List[int] = []
        drops: List[float] = []
        flat: List[int] = []

        for direction in range(DIRECTION_COUNT):
            neighbor = int(cells.neighbors[current, direction])
            if neighbor < 0 or neighbor in visited or cells.has_river(neighbor):
                continue

            drop = elevation - int(cells.elevation[neighbor])
            if drop > 0:
                downhill.append(direction)
                drops.append(self.options.river_steepness_weight * drop)
            elif drop == 0:
                flat.append(direction)

        if downhill:
            return downhill[self.prng.weighted_index(drops)]

        if flat and self.prng.chance(self.options.river_flat_flow_chance):
            return self.prng.choice(flat)

        return -1

    def apply_river(self, cells: CellBuffer, path: List[RiverStep]) -> River:
        """Write outgoing/incoming edges along ``path`` and record the river."""
        for index, direction in path:
            if direction < 0:
                continue
            neighbor = int(cells.neighbors[index, direction])
            cells.has_outgoing_river[index] = True
            cells.outgoing_river[index] = direction
            cells.has_incoming_river[neighbor] = True
            cells.incoming_river[neighbor] = opposite_direction(direction)

        river = River(id=len(self.rivers) + 1, cells=[index for index, _ in path])
        self.rivers.append(river)
        return river


__all__ = ["River", "RiverGenerator", "RiverStep"]
