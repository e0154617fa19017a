"""
Flat per-cell generation state.

The pipeline works on a ``CellBuffer``: one NumPy array per field, indexed by
linear cell index ``z * width + x``. A buffer is allocated once per run,
mutated in place by each stage and read once when the result is applied to
the live grid.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Optional, Tuple

import numpy as np

from .generation_config import ElevationOptions
from .hex_neighbors import DIRECTION_COUNT, build_neighbor_table


class TerrainType(IntEnum):
    """Biome / terrain texture index."""

    SAND = 0
    GRASS = 1
    MUD = 2
    STONE = 3
    SNOW = 4


class SpecialFeature(IntEnum):
    """Special features. Mutually exclusive with the density levels."""

    NONE = 0
    CASTLE = 1
    ZIGGURAT = 2
    MEGAFLORA = 3


TERRAIN_NAMES = {
    TerrainType.SAND: "Sand",
    TerrainType.GRASS: "Grass",
    TerrainType.MUD: "Mud",
    TerrainType.STONE: "Stone",
    TerrainType.SNOW: "Snow",
}


@dataclass(frozen=True)
class CellSnapshot:
    """Read-only view of one cell after generation."""

    index: int
    x: int
    z: int
    elevation: int
    water_level: int
    terrain: TerrainType
    moisture: float
    urban_level: int
    farm_level: int
    plant_level: int
    special: SpecialFeature
    walled: bool
    has_incoming_river: bool
    incoming_river: int
    has_outgoing_river: bool
    outgoing_river: int
    roads: Tuple[bool, ...]

    @property
    def is_underwater(self) -> bool:
        return self.elevation < self.water_level

    @property
    def has_river(self) -> bool:
        return self.has_incoming_river or self.has_outgoing_river

    @property
    def has_roads(self) -> bool:
        return any(self.roads)


class CellBuffer:
    """
    Struct-of-arrays store for a ``width`` x ``height`` hex grid.

    Fresh buffers hold the reset state: every cell at the minimum elevation
    (underwater), no moisture, no features, no rivers and no roads.
    """

    def __init__(self, width: int, height: int, elevation: Optional[ElevationOptions] = None):
        if width < 0 or height < 0:
            raise ValueError(f"Grid dimensions must be non-negative, got {width}x{height}")

        self.width = width
        self.height = height
        self.elevation_options = elevation or ElevationOptions()
        n = width * height

        self.elevation = np.full(n, self.elevation_options.min_elevation, dtype=np.int16)
        self.water_level = np.full(n, self.elevation_options.water_level, dtype=np.int16)
        self.terrain = np.zeros(n, dtype=np.uint8)
        self.moisture = np.zeros(n, dtype=np.float64)

        self.urban_level = np.zeros(n, dtype=np.uint8)
        self.farm_level = np.zeros(n, dtype=np.uint8)
        self.plant_level = np.zeros(n, dtype=np.uint8)
        self.special = np.zeros(n, dtype=np.uint8)
        self.walled = np.zeros(n, dtype=bool)

        self.has_incoming_river = np.zeros(n, dtype=bool)
        self.has_outgoing_river = np.zeros(n, dtype=bool)
        self.incoming_river = np.zeros(n, dtype=np.int8)
        self.outgoing_river = np.zeros(n, dtype=np.int8)

        self.roads = np.zeros((n, DIRECTION_COUNT), dtype=bool)

        self._neighbors: Optional[np.ndarray] = None

    def __len__(self) -> int:
        return self.width * self.height

    @property
    def size(self) -> int:
        return self.width * self.height

    @property
    def neighbors(self) -> np.ndarray:
        """(n, 6) neighbor table, -1 where the neighbor is off-grid."""
        if self._neighbors is None:
            self._neighbors = build_neighbor_table(self.width, self.height)
        return self._neighbors

    def coords(self, index: int) -> Tuple[int, int]:
        """Offset coordinates (x, z) of a linear index."""
        return index % self.width, index // self.width

    def index_of(self, x: int, z: int) -> int:
        return z * self.width + x

    def land_mask(self) -> np.ndarray:
        return self.elevation >= self.elevation_options.water_level

    def is_land(self, index: int) -> bool:
        return bool(self.elevation[index] >= self.elevation_options.water_level)

    def is_underwater(self, index: int) -> bool:
        return bool(self.elevation[index] < self.elevation_options.water_level)

    def has_river(self, index: int) -> bool:
        return bool(self.has_incoming_river[index] or self.has_outgoing_river[index])

    def land_count(self) -> int:
        return int(np.count_nonzero(self.land_mask()))

    def set_road(self, index: int, direction: int, value: bool = True) -> None:
        self.roads[index, direction] = value

    def snapshot(self, index: int) -> CellSnapshot:
        """Immutable copy of one cell."""
        if not 0 <= index < self.size:
            raise IndexError(f"Cell index {index} out of range")
        x, z = self.coords(index)
        return CellSnapshot(
            index=index,
            x=x,
            z=z,
            elevation=int(self.elevation[index]),
            water_level=int(self.water_level[index]),
            terrain=TerrainType(int(self.terrain[index])),
            moisture=float(self.moisture[index]),
            urban_level=int(self.urban_level[index]),
            farm_level=int(self.farm_level[index]),
            plant_level=int(self.plant_level[index]),
            special=SpecialFeature(int(self.special[index])),
            walled=bool(self.walled[index]),
            has_incoming_river=bool(self.has_incoming_river[index]),
            incoming_river=int(self.incoming_river[index]),
            has_outgoing_river=bool(self.has_outgoing_river[index]),
            outgoing_river=int(self.outgoing_river[index]),
            roads=tuple(bool(r) for r in self.roads[index]),
        )

    def statistics(self, min_urban_level: int = 2) -> Dict[str, object]:
        """Summary counts for logging and the API."""
        land = self.land_mask()
        land_cells = int(np.count_nonzero(land))
        total = self.size

        biomes = {}
        for terrain, name in TERRAIN_NAMES.items():
            biomes[name] = int(np.count_nonzero(land & (self.terrain == terrain)))

        specials = {
            feature.name.lower(): int(np.count_nonzero(self.special == feature))
            for feature in SpecialFeature
            if feature != SpecialFeature.NONE
        }

        return {
            "total_cells": total,
            "land_cells": land_cells,
            "water_cells": total - land_cells,
            "land_ratio": land_cells / total if total else 0.0,
            "biomes": biomes,
            "river_cells": int(
                np.count_nonzero(self.has_incoming_river | self.has_outgoing_river)
            ),
            "road_edges": int(np.count_nonzero(self.roads)) // 2,
            "settlements": int(
                np.count_nonzero(
                    land
                    & (
                        (self.urban_level >= min_urban_level)
                        | np.isin(self.special, (SpecialFeature.CASTLE, SpecialFeature.ZIGGURAT))
                    )
                )
            ),
            "special_features": specials,
        }


__all__ = ["CellBuffer", "CellSnapshot", "SpecialFeature", "TERRAIN_NAMES", "TerrainType"]
