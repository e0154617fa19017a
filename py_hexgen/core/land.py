"""
Land generation using a chunk budget.

Instead of thresholding noise, land is grown in irregular chunks:

1. Start with every cell underwater
2. While land budget remains, pick a random cell and grow a connected chunk
   from it by breadth-first expansion, raising each visited cell
3. Sweep the land a few times, randomly raising cells into hills and
   mountains
4. Erode: sink lonely land cells and fill enclosed water cells

The chunk shapes come from the frontier filter: a newly visited neighbor
only joins the frontier with ``chunk_expansion_chance``, so chunks grow as
blobs rather than discs.
"""

from collections import deque
from typing import Optional, Tuple

import numpy as np
import structlog

from .alea_prng import AleaPRNG
from .cancellation import CancellationToken, check_cancelled
from .cells import CellBuffer
from .generation_config import ElevationOptions, LandOptions

logger = structlog.get_logger()


class LandGenerator:
    """Raises land out of an all-water buffer."""

    def __init__(
        self,
        prng: AleaPRNG,
        options: Optional[LandOptions] = None,
        elevation: Optional[ElevationOptions] = None,
    ):
        """
        Initialize the land generator.

        Args:
            prng: PRNG owned by this stage
            options: Chunking and erosion options
            elevation: Elevation bounds and water level
        """
        self.prng = prng
        self.options = options or LandOptions()
        self.elevation = elevation or ElevationOptions()

    def generate(
        self,
        cells: CellBuffer,
        land_percentage: Optional[float] = None,
        token: Optional[CancellationToken] = None,
    ) -> int:
        """
        Grow land on ``cells`` in place.

        Args:
            cells: Buffer to modify
            land_percentage: Target share of land; defaults to the options value
            token: Optional cancellation token

        Returns:
            Number of land cells after erosion
        """
        if cells.size == 0:
            return 0

        if land_percentage is None:
            land_percentage = self.options.land_percentage

        total = cells.size
        budget = self.land_budget(total, land_percentage)
        logger.info("Generating land", cells=total, land_budget=budget)

        iterations = 0
        while budget > 0 and iterations < self.options.max_chunk_iterations:
            check_cancelled(token, iterations)
            iterations += 1

            start = int(self.prng.random() * total)
            chunk_size = self.prng.randint(
                self.options.min_chunk_size, self.options.max_chunk_size
            )
            budget -= self.raise_chunk(cells, start, chunk_size)

        if token is not None:
            token.raise_if_cancelled()

        self.apply_elevation_passes(cells, token)

        if token is not None:
            token.raise_if_cancelled()

        lowered, raised = self.apply_erosion(cells)

        land_cells = cells.land_count()
        logger.info(
            "Land generation complete",
            chunks=iterations,
            land_cells=land_cells,
            land_ratio=round(land_cells / total, 3),
            eroded=lowered,
            filled=raised,
        )
        return land_cells

    @staticmethod
    def land_budget(total: int, land_percentage: float) -> int:
        """Cells to raise; ``round`` sends exact halves to the even neighbour."""
        return int(round(total * land_percentage))

    def raise_chunk(self, cells: CellBuffer, start: int, budget: int) -> int:
        """
        Grow one chunk from ``start`` and raise its cells.

        Args:
            cells: Buffer to modify
            start: Index the chunk grows from
            budget: Maximum number of successful raises for this chunk

        Returns:
            Number of cells actually raised (budget consumed)
        """
        raised = 0
        frontier = deque([start])
        visited = {start}
        neighbors = cells.neighbors

        while budget > 0 and frontier:
            current = frontier.popleft()

            if self._raise_cell(cells, current):
                raised += 1
                budget -= 1

            if budget <= 0:
                break

            for neighbor in neighbors[current]:
                neighbor = int(neighbor)
                if neighbor < 0 or neighbor in visited:
                    continue
                visited.add(neighbor)
                if self.prng.chance(self.options.chunk_expansion_chance):
                    frontier.append(neighbor)

        return raised

    def _raise_cell(self, cells: CellBuffer, index: int) -> bool:
        """Underwater cells surface at water level; land sometimes climbs a level."""
        current = int(cells.elevation[index])
        if current < self.elevation.water_level:
            cells.elevation[index] = self.elevation.water_level
            return True

        if self.prng.chance(self.options.elevation_raise_chance):
            if current < self.elevation.max_elevation:
                cells.elevation[index] = current + 1
                return True
        return False

    def apply_elevation_passes(
        self, cells: CellBuffer, token: Optional[CancellationToken] = None
    ) -> None:
        """Each pass gives every land cell an independent chance to rise one level."""
        for _ in range(self.options.elevation_passes):
            if token is not None:
                token.raise_if_cancelled()

            land = np.flatnonzero(cells.elevation >= self.elevation.water_level)
            draws = self.prng.random_array(len(land))
            rising = land[
                (draws < self.options.elevation_raise_chance)
                & (cells.elevation[land] < self.elevation.max_elevation)
            ]
            cells.elevation[rising] += 1

    def apply_erosion(self, cells: CellBuffer) -> Tuple[int, int]:
        """
        Smooth coastlines from a snapshot of the current land layout.

        Land cells whose land-neighbor ratio is below the land threshold drop
        to the minimum elevation; water cells above the water threshold rise
        to water level. Decisions use the pre-erosion layout only.

        Returns:
            (cells lowered, cells raised)
        """
        if cells.size == 0:
            return 0, 0

        is_land = cells.elevation >= self.elevation.water_level
        neighbors = cells.neighbors
        valid = neighbors >= 0

        land_neighbors = (valid & is_land[np.where(valid, neighbors, 0)]).sum(axis=1)
        neighbor_count = valid.sum(axis=1)
        ratio = np.divide(
            land_neighbors,
            neighbor_count,
            out=np.zeros(cells.size, dtype=np.float64),
            where=neighbor_count > 0,
        )
        has_neighbors = neighbor_count > 0

        lower = has_neighbors & is_land & (ratio < self.options.erosion_land_threshold)
        fill = has_neighbors & ~is_land & (ratio > self.options.erosion_water_threshold)

        cells.elevation[lower] = self.elevation.min_elevation
        cells.elevation[fill] = self.elevation.water_level
        return int(np.count_nonzero(lower)), int(np.count_nonzero(fill))


__all__ = ["LandGenerator"]
