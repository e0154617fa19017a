"""
Live hex grid that generated maps are applied to.

The grid is the long-lived, single-threaded model consumers read from. It is
split into rectangular chunks; every cell edit asks its chunk to refresh.
While refresh suppression is on, chunks only remember that they are dirty,
so a bulk apply can finish with one ``refresh_all_chunks`` call.

Cells keep their own river and road invariants:

- a river never flows uphill (changing elevation drops invalid rivers)
- a road never crosses a river edge or a climb of more than one level
"""

from typing import List, Optional

import structlog

from .cells import CellSnapshot, SpecialFeature, TerrainType
from .hex_neighbors import DIRECTION_COUNT, neighbor_index, opposite_direction

logger = structlog.get_logger()

CHUNK_SIZE_X = 5
CHUNK_SIZE_Z = 5


class HexGridChunk:
    """Refresh bookkeeping for one block of cells."""

    def __init__(self, grid: "HexGrid", index: int):
        self.grid = grid
        self.index = index
        self.dirty = False
        self.refresh_count = 0

    def refresh(self) -> None:
        if self.grid.refresh_suppressed:
            self.dirty = True
            return
        self.rebuild()

    def rebuild(self) -> None:
        self.refresh_count += 1
        self.dirty = False


class HexCell:
    """One cell of the live grid."""

    def __init__(self, grid: "HexGrid", index: int, x: int, z: int, chunk: HexGridChunk):
        self.grid = grid
        self.index = index
        self.x = x
        self.z = z
        self.chunk = chunk

        self._elevation = 0
        self.water_level = 0
        self.terrain_type_index = TerrainType.SAND
        self.moisture = 0.0
        self.urban_level = 0
        self.farm_level = 0
        self.plant_level = 0
        self.special_index = SpecialFeature.NONE
        self.walled = False

        self.has_incoming_river = False
        self.has_outgoing_river = False
        self.incoming_river = 0
        self.outgoing_river = 0
        self.roads = [False] * DIRECTION_COUNT

    def __repr__(self) -> str:
        return f"HexCell(x={self.x}, z={self.z}, elevation={self._elevation})"

    @property
    def elevation(self) -> int:
        return self._elevation

    @elevation.setter
    def elevation(self, value: int) -> None:
        if self._elevation == value:
            return
        self._elevation = value
        self._validate_rivers()
        self._validate_roads()
        self.refresh()

    @property
    def is_underwater(self) -> bool:
        return self._elevation < self.water_level

    @property
    def has_river(self) -> bool:
        return self.has_incoming_river or self.has_outgoing_river

    @property
    def has_roads(self) -> bool:
        return any(self.roads)

    def get_neighbor(self, direction: int) -> Optional["HexCell"]:
        return self.grid.get_neighbor(self.index, direction)

    def has_river_through_edge(self, direction: int) -> bool:
        return (self.has_incoming_river and self.incoming_river == direction) or (
            self.has_outgoing_river and self.outgoing_river == direction
        )

    def elevation_difference(self, direction: int) -> int:
        neighbor = self.get_neighbor(direction)
        if neighbor is None:
            return 0
        return abs(self._elevation - neighbor.elevation)

    def is_valid_river_destination(self, neighbor: Optional["HexCell"]) -> bool:
        """Rivers only flow to cells at the same elevation or lower."""
        return neighbor is not None and self._elevation >= neighbor.elevation

    # Rivers

    def set_outgoing_river(self, direction: int) -> bool:
        """
        Start a river leaving through ``direction``.

        Replaces any existing outgoing river, and any incoming river on the
        same edge. The neighbor's previous incoming river is replaced too.

        Returns:
            False when the neighbor is missing or uphill
        """
        if self.has_outgoing_river and self.outgoing_river == direction:
            return True

        neighbor = self.get_neighbor(direction)
        if not self.is_valid_river_destination(neighbor):
            return False

        self.remove_outgoing_river()
        if self.has_incoming_river and self.incoming_river == direction:
            self.remove_incoming_river()

        self.has_outgoing_river = True
        self.outgoing_river = direction
        self.set_road(direction, False)
        self.refresh_self_only()

        neighbor.remove_incoming_river()
        neighbor.has_incoming_river = True
        neighbor.incoming_river = opposite_direction(direction)
        neighbor.set_road(opposite_direction(direction), False)
        neighbor.refresh_self_only()
        return True

    def remove_outgoing_river(self) -> None:
        if not self.has_outgoing_river:
            return
        self.has_outgoing_river = False
        self.refresh_self_only()

        neighbor = self.get_neighbor(self.outgoing_river)
        if neighbor is not None:
            neighbor.has_incoming_river = False
            neighbor.refresh_self_only()

    def remove_incoming_river(self) -> None:
        if not self.has_incoming_river:
            return
        self.has_incoming_river = False
        self.refresh_self_only()

        neighbor = self.get_neighbor(self.incoming_river)
        if neighbor is not None:
            neighbor.has_outgoing_river = False
            neighbor.refresh_self_only()

    def remove_river(self) -> None:
        self.remove_outgoing_river()
        self.remove_incoming_river()

    def _validate_rivers(self) -> None:
        if self.has_outgoing_river and not self.is_valid_river_destination(
            self.get_neighbor(self.outgoing_river)
        ):
            self.remove_outgoing_river()
        if self.has_incoming_river:
            neighbor = self.get_neighbor(self.incoming_river)
            if neighbor is not None and not neighbor.is_valid_river_destination(self):
                self.remove_incoming_river()

    # Roads

    def add_road(self, direction: int) -> bool:
        """
        Add a road across ``direction`` on both cells.

        Returns:
            False when the neighbor is missing, a river runs along the edge or
            the climb is steeper than one level
        """
        neighbor = self.get_neighbor(direction)
        if neighbor is None:
            return False
        if self.roads[direction]:
            return True
        if self.has_river_through_edge(direction):
            return False
        if self.elevation_difference(direction) > 1:
            return False

        self.set_road(direction, True)
        neighbor.set_road(opposite_direction(direction), True)
        return True

    def remove_roads(self) -> None:
        for direction in range(DIRECTION_COUNT):
            if self.roads[direction]:
                self.set_road(direction, False)
                neighbor = self.get_neighbor(direction)
                if neighbor is not None:
                    neighbor.set_road(opposite_direction(direction), False)

    def set_road(self, direction: int, state: bool) -> None:
        if self.roads[direction] == state:
            return
        self.roads[direction] = state
        self.refresh_self_only()

    def _validate_roads(self) -> None:
        for direction in range(DIRECTION_COUNT):
            if self.roads[direction] and self.elevation_difference(direction) > 1:
                self.set_road(direction, False)
                neighbor = self.get_neighbor(direction)
                if neighbor is not None:
                    neighbor.set_road(opposite_direction(direction), False)

    # Refresh

    def refresh_self_only(self) -> None:
        self.chunk.refresh()

    def refresh(self) -> None:
        """Refresh this chunk and any neighboring chunk sharing an edge."""
        self.chunk.refresh()
        for direction in range(DIRECTION_COUNT):
            neighbor = self.get_neighbor(direction)
            if neighbor is not None and neighbor.chunk is not self.chunk:
                neighbor.chunk.refresh()

    def snapshot(self) -> CellSnapshot:
        return CellSnapshot(
            index=self.index,
            x=self.x,
            z=self.z,
            elevation=self._elevation,
            water_level=self.water_level,
            terrain=TerrainType(self.terrain_type_index),
            moisture=self.moisture,
            urban_level=self.urban_level,
            farm_level=self.farm_level,
            plant_level=self.plant_level,
            special=SpecialFeature(self.special_index),
            walled=self.walled,
            has_incoming_river=self.has_incoming_river,
            incoming_river=self.incoming_river,
            has_outgoing_river=self.has_outgoing_river,
            outgoing_river=self.outgoing_river,
            roads=tuple(self.roads),
        )


class HexGrid:
    """
    A ``width`` x ``height`` grid of ``HexCell`` objects grouped in chunks.

    Not thread safe: only the thread that owns the grid may touch it.
    """

    def __init__(self, width: int, height: int):
        if width < 0 or height < 0:
            raise ValueError(f"Grid dimensions must be non-negative, got {width}x{height}")

        self.width = width
        self.height = height
        self.refresh_suppressed = False
        self.full_refresh_count = 0

        self.chunk_count_x = (width + CHUNK_SIZE_X - 1) // CHUNK_SIZE_X
        self.chunk_count_z = (height + CHUNK_SIZE_Z - 1) // CHUNK_SIZE_Z
        self.chunks = [
            HexGridChunk(self, i) for i in range(self.chunk_count_x * self.chunk_count_z)
        ]

        self.cells: List[HexCell] = []
        for z in range(height):
            for x in range(width):
                chunk_index = (z // CHUNK_SIZE_Z) * self.chunk_count_x + x // CHUNK_SIZE_X
                self.cells.append(HexCell(self, len(self.cells), x, z, self.chunks[chunk_index]))

    def __len__(self) -> int:
        return len(self.cells)

    @property
    def size(self) -> int:
        return len(self.cells)

    def get_cell(self, index: int) -> Optional[HexCell]:
        if 0 <= index < len(self.cells):
            return self.cells[index]
        return None

    def get_cell_by_offset(self, x: int, z: int) -> Optional[HexCell]:
        if 0 <= x < self.width and 0 <= z < self.height:
            return self.cells[z * self.width + x]
        return None

    def get_neighbor(self, index: int, direction: int) -> Optional[HexCell]:
        neighbor = neighbor_index(index, direction, self.width, self.height)
        if neighbor < 0:
            return None
        return self.cells[neighbor]

    def set_refresh_suppression(self, suppressed: bool) -> None:
        """Toggle batching of chunk refreshes. Dirty chunks wait for ``refresh_all_chunks``."""
        self.refresh_suppressed = suppressed

    def refresh_all_chunks(self) -> None:
        for chunk in self.chunks:
            chunk.rebuild()
        self.full_refresh_count += 1
        logger.debug("Refreshed all chunks", chunks=len(self.chunks))

    def dirty_chunks(self) -> int:
        return sum(1 for chunk in self.chunks if chunk.dirty)

    def snapshot(self) -> List[CellSnapshot]:
        return [cell.snapshot() for cell in self.cells]


__all__ = ["CHUNK_SIZE_X", "CHUNK_SIZE_Z", "HexCell", "HexGrid", "HexGridChunk"]
