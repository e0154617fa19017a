"""
Feature placement: vegetation, farms, settlements and special structures.

Two independent passes over the land:

- Density pass: with ``feature_placement_chance`` a cell gets plant, farm
  and urban levels (0..3) from its biome and moisture.
- Special pass: with ``special_feature_chance`` a cell may get a castle,
  ziggurat or megaflora; a placed special clears the density levels.

Cells under water or carrying a river are never decorated.
"""

from typing import Optional

import structlog

from .alea_prng import AleaPRNG
from .cancellation import CancellationToken, check_cancelled
from .cells import CellBuffer, SpecialFeature, TerrainType
from .generation_config import ElevationOptions, FeatureOptions

logger = structlog.get_logger()


class FeatureGenerator:
    """Decorates land cells according to biome suitability."""

    def __init__(
        self,
        prng: AleaPRNG,
        options: Optional[FeatureOptions] = None,
        elevation: Optional[ElevationOptions] = None,
    ):
        self.prng = prng
        self.options = options or FeatureOptions()
        self.elevation = elevation or ElevationOptions()

    def generate(self, cells: CellBuffer, token: Optional[CancellationToken] = None) -> None:
        """Run the density pass, then the special pass."""
        if cells.size == 0:
            return

        decorated = self.place_density_features(cells, token)

        if token is not None:
            token.raise_if_cancelled()

        specials = self.place_special_features(cells, token)

        logger.info(
            "Feature placement complete",
            decorated_cells=decorated,
            special_features=specials,
        )

    def can_place_feature(self, cells: CellBuffer, index: int) -> bool:
        """Land without a river."""
        return cells.is_land(index) and not cells.has_river(index)

    def place_density_features(
        self, cells: CellBuffer, token: Optional[CancellationToken] = None
    ) -> int:
        placed = 0
        for index in range(cells.size):
            check_cancelled(token, index)

            if not self.can_place_feature(cells, index):
                continue
            if not self.prng.chance(self.options.feature_placement_chance):
                continue

            terrain = int(cells.terrain[index])
            moisture = float(cells.moisture[index])
            cells.plant_level[index] = self.plant_level(terrain, moisture)
            cells.farm_level[index] = self.farm_level(terrain, moisture)
            cells.urban_level[index] = self.urban_level(terrain, moisture)
            placed += 1
        return placed

    def place_special_features(
        self, cells: CellBuffer, token: Optional[CancellationToken] = None
    ) -> int:
        placed = 0
        for index in range(cells.size):
            check_cancelled(token, index)

            if not self.can_place_feature(cells, index):
                continue
            if not self.prng.chance(self.options.special_feature_chance):
                continue

            special = self.special_feature(
                int(cells.terrain[index]),
                int(cells.elevation[index]),
                float(cells.moisture[index]),
            )
            if special == SpecialFeature.NONE:
                continue

            cells.special[index] = special
            cells.plant_level[index] = 0
            cells.farm_level[index] = 0
            cells.urban_level[index] = 0
            placed += 1
        return placed

    def plant_level(self, terrain: int, moisture: float) -> int:
        """Vegetation density; wetter is denser, deserts and snow are bare."""
        opts = self.options
        if terrain == TerrainType.GRASS:
            if moisture > opts.plant_high_moisture_threshold:
                return 2
            if moisture > opts.plant_medium_moisture_threshold:
                return self.prng.randint(1, 2)
            return 1
        if terrain == TerrainType.MUD:
            if moisture > opts.jungle_dense_plant_threshold:
                return 3
            return self.prng.randint(2, 3)
        if terrain == TerrainType.STONE:
            return 1 if moisture > opts.stone_plant_moisture_threshold else 0
        return 0

    def farm_level(self, terrain: int, moisture: float) -> int:
        """Farm density; grassland with moderate moisture farms best."""
        opts = self.options
        if terrain in (TerrainType.SAND, TerrainType.MUD):
            return 1 if self.prng.chance(opts.sparse_farm_chance) else 0
        if terrain == TerrainType.GRASS:
            if opts.farm_optimal_moisture_min < moisture < opts.farm_optimal_moisture_max:
                return self.prng.randint(1, 2)
            return 1
        if terrain == TerrainType.STONE:
            return 1 if self.prng.chance(opts.stone_farm_chance) else 0
        return 0

    def urban_level(self, terrain: int, moisture: float) -> int:
        """Urban density; drier open ground favours towns, jungle has none."""
        opts = self.options
        if terrain == TerrainType.SAND:
            return 1 if self.prng.chance(opts.desert_urban_chance) else 0
        if terrain == TerrainType.GRASS:
            if moisture < opts.urban_low_moisture_threshold:
                return self.prng.randint(1, 2)
            return 1 if self.prng.chance(opts.grass_urban_chance) else 0
        if terrain == TerrainType.STONE:
            return 1 if self.prng.chance(opts.stone_urban_chance) else 0
        return 0

    def special_feature(self, terrain: int, elevation: int, moisture: float) -> SpecialFeature:
        """Which special structure suits this biome, if any."""
        opts = self.options
        if terrain == TerrainType.SAND:
            return SpecialFeature.ZIGGURAT
        if terrain in (TerrainType.GRASS, TerrainType.STONE):
            if elevation >= opts.castle_min_elevation:
                return SpecialFeature.CASTLE
            return SpecialFeature.NONE
        if terrain == TerrainType.MUD:
            if moisture > opts.megaflora_moisture_threshold:
                return SpecialFeature.MEGAFLORA
            return SpecialFeature.NONE
        return SpecialFeature.NONE


__all__ = ["FeatureGenerator"]
