"""
Road network connecting settlements.

Algorithm:
1. Find settlements (urban cells, castles, ziggurats)
2. Order them by importance (urban level plus a bonus for specials)
3. Grow a tree from the most important settlement, Prim style: each round
   connects the unconnected settlement with the shortest A* path to any
   connected one
4. Settlements nothing can reach are promoted to connected so later
   settlements may still attach to them

A* respects the terrain: no water, no megaflora, no climbs steeper than one
level and no edge a river flows through. A river cell can still be crossed
through its two dry edges, which reads as a bridge.
"""

import heapq
from typing import Dict, List, Optional, Tuple

import numpy as np
import structlog

from .cancellation import CancellationToken, check_cancelled
from .cells import CellBuffer, SpecialFeature
from .generation_config import ElevationOptions, RoadOptions
from .hex_neighbors import DIRECTION_COUNT, hex_distance, hex_distances, opposite_direction

logger = structlog.get_logger()

_SETTLEMENT_SPECIALS = (SpecialFeature.CASTLE, SpecialFeature.ZIGGURAT)


class RoadGenerator:
    """Builds a road tree over the settlements of a decorated buffer."""

    def __init__(
        self,
        options: Optional[RoadOptions] = None,
        elevation: Optional[ElevationOptions] = None,
    ):
        self.options = options or RoadOptions()
        self.elevation = elevation or ElevationOptions()

    def generate(
        self, cells: CellBuffer, token: Optional[CancellationToken] = None
    ) -> List[List[int]]:
        """
        Connect settlements with roads.

        Returns:
            The applied paths, each a list of cell indices
        """
        roads: List[List[int]] = []
        if cells.size == 0:
            return roads

        settlements = self.find_settlements(cells)
        if len(settlements) < 2:
            logger.info("Not enough settlements for roads", settlements=len(settlements))
            return roads

        if token is not None:
            token.raise_if_cancelled()

        # Stable: equal importance keeps ascending index order
        settlements.sort(key=lambda index: -self.settlement_importance(cells, index))

        connected = [settlements[0]]
        unconnected = settlements[1:]
        islands = 0

        while unconnected:
            if token is not None:
                token.raise_if_cancelled()

            best = self._best_connection(cells, connected, unconnected, token)
            if best is None:
                # Nothing reachable: seed a new component with the most important leftover
                connected.append(unconnected.pop(0))
                islands += 1
                continue

            target, path = best
            self.apply_road(cells, path)
            roads.append(path)
            connected.append(target)
            unconnected.remove(target)

        logger.info(
            "Road generation complete",
            settlements=len(settlements),
            roads=len(roads),
            road_cells=sum(len(path) for path in roads),
            unreachable=islands,
        )
        return roads

    def _best_connection(
        self,
        cells: CellBuffer,
        connected: List[int],
        unconnected: List[int],
        token: Optional[CancellationToken],
    ) -> Optional[Tuple[int, List[int]]]:
        """Shortest path (fewest cells) from any connected to any unconnected settlement."""
        limit = self.options.max_settlement_connection_distance
        targets = np.asarray(unconnected, dtype=np.int64)

        pairs = []
        for source in connected:
            distances = hex_distances(source, targets, cells.width)
            for target, distance in zip(unconnected, distances):
                if distance <= limit:
                    pairs.append((int(distance), source, target))
        pairs.sort()

        best: Optional[Tuple[int, List[int]]] = None
        for distance, source, target in pairs:
            # A path has at least distance + 1 cells; later pairs cannot beat it
            if best is not None and distance + 1 >= len(best[1]):
                break
            path = self.find_path(cells, source, target, token)
            if path is not None and (best is None or len(path) < len(best[1])):
                best = (target, path)
        return best

    def find_settlements(self, cells: CellBuffer) -> List[int]:
        """Land cells with enough urban density, plus castles and ziggurats."""
        land = cells.land_mask()
        urban = cells.urban_level >= self.options.min_urban_level_for_settlement
        special = np.isin(cells.special, _SETTLEMENT_SPECIALS)
        return [int(i) for i in np.flatnonzero(land & (urban | special))]

    def settlement_importance(self, cells: CellBuffer, index: int) -> int:
        importance = int(cells.urban_level[index])
        if int(cells.special[index]) in _SETTLEMENT_SPECIALS:
            importance += self.options.special_importance_bonus
        return importance

    def find_path(
        self,
        cells: CellBuffer,
        start: int,
        end: int,
        token: Optional[CancellationToken] = None,
    ) -> Optional[List[int]]:
        """
        A* from ``start`` to ``end`` with hex distance as the heuristic.

        Returns:
            Cell indices from start to end inclusive, or None when no legal
            path exists within the path cost cap
        """
        if start == end:
            return [start]

        width = cells.width
        neighbors = cells.neighbors
        came_from: Dict[int, int] = {}
        g_score: Dict[int, int] = {start: 0}
        open_set = [(hex_distance(start, end, width), 0, start)]

        iterations = 0
        while open_set:
            iterations += 1
            check_cancelled(token, iterations)

            _, g, current = heapq.heappop(open_set)
            if g > g_score.get(current, g):
                continue  # stale entry

            if current == end:
                return self._reconstruct_path(came_from, current)

            if g > self.options.max_road_path_length:
                continue

            for direction in range(DIRECTION_COUNT):
                neighbor = int(neighbors[current, direction])
                if neighbor < 0:
                    continue
                if not self.can_place_road(cells, current, neighbor, direction):
                    continue

                tentative = g + self.movement_cost(cells, current, neighbor, direction)
                if tentative < g_score.get(neighbor, tentative + 1):
                    came_from[neighbor] = current
                    g_score[neighbor] = tentative
                    f_score = tentative + hex_distance(neighbor, end, width)
                    heapq.heappush(open_set, (f_score, tentative, neighbor))

        return None

    @staticmethod
    def _reconstruct_path(came_from: Dict[int, int], current: int) -> List[int]:
        path = [current]
        while current in came_from:
            current = came_from[current]
            path.append(current)
        path.reverse()
        return path

    def can_place_road(self, cells: CellBuffer, from_index: int, to_index: int, direction: int) -> bool:
        """Whether the edge ``from_index`` -> ``to_index`` (across ``direction``) may carry a road."""
        if cells.is_underwater(from_index) or cells.is_underwater(to_index):
            return False

        if abs(int(cells.elevation[from_index]) - int(cells.elevation[to_index])) > 1:
            return False

        if (
            cells.special[from_index] == SpecialFeature.MEGAFLORA
            or cells.special[to_index] == SpecialFeature.MEGAFLORA
        ):
            return False

        return not self.has_river_through_edge(cells, from_index, to_index, direction)

    @staticmethod
    def has_river_through_edge(cells: CellBuffer, from_index: int, to_index: int, direction: int) -> bool:
        opposite = opposite_direction(direction)
        return bool(
            (cells.has_outgoing_river[from_index] and cells.outgoing_river[from_index] == direction)
            or (cells.has_incoming_river[from_index] and cells.incoming_river[from_index] == direction)
            or (cells.has_outgoing_river[to_index] and cells.outgoing_river[to_index] == opposite)
            or (cells.has_incoming_river[to_index] and cells.incoming_river[to_index] == opposite)
        )

    def movement_cost(self, cells: CellBuffer, from_index: int, to_index: int, direction: int) -> int:
        """1 along an existing road; otherwise 1 + 2 per level climbed + 1 near a river."""
        if cells.roads[from_index, direction]:
            return 1

        cost = 1 + 2 * abs(int(cells.elevation[from_index]) - int(cells.elevation[to_index]))
        if cells.has_river(from_index) or cells.has_river(to_index):
            cost += 1
        return cost

    def apply_road(self, cells: CellBuffer, path: List[int]) -> None:
        """Set road flags on both sides of every edge along ``path``."""
        neighbors = cells.neighbors
        for from_index, to_index in zip(path, path[1:]):
            for direction in range(DIRECTION_COUNT):
                if neighbors[from_index, direction] == to_index:
                    cells.set_road(from_index, direction)
                    cells.set_road(to_index, opposite_direction(direction))
                    break


__all__ = ["RoadGenerator"]
