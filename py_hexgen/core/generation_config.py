"""
Tunable constants for procedural hex map generation.

The values are grouped by pipeline stage so each stage can be tuned
independently of the algorithms. All models validate on construction, so a
bad value fails fast with a pydantic ``ValidationError`` instead of
producing a broken map.
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ElevationOptions(BaseModel):
    """Elevation bounds and terrain thresholds shared by every stage."""

    model_config = ConfigDict(frozen=True)

    min_elevation: int = Field(default=-2, description="Lowest allowed cell elevation")
    max_elevation: int = Field(default=8, description="Highest allowed cell elevation")
    water_level: int = Field(
        default=1, description="Cells at or above this elevation are land"
    )
    hill_elevation: int = Field(default=4, description="Elevation where hills start")
    mountain_elevation: int = Field(
        default=6, description="Elevation where mountains start"
    )

    @model_validator(mode="after")
    def _check_ordering(self):
        if not self.min_elevation < self.max_elevation:
            raise ValueError("min_elevation must be below max_elevation")
        if not self.min_elevation <= self.water_level <= self.max_elevation:
            raise ValueError("water_level must lie within the elevation range")
        if not self.hill_elevation <= self.mountain_elevation <= self.max_elevation:
            raise ValueError("hill_elevation <= mountain_elevation <= max_elevation")
        return self


class LandOptions(BaseModel):
    """Chunk budget land growth and erosion."""

    model_config = ConfigDict(frozen=True)

    land_percentage: float = Field(
        default=0.5, ge=0.0, le=1.0, description="Target share of land cells"
    )
    min_chunk_size: int = Field(default=3, ge=1, description="Smallest chunk budget")
    max_chunk_size: int = Field(default=8, ge=1, description="Largest chunk budget")
    chunk_expansion_chance: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Chance a visited neighbor joins the expansion frontier",
    )
    elevation_raise_chance: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Chance an existing land cell is raised one more level",
    )
    elevation_passes: int = Field(
        default=3, ge=0, description="Full sweeps raising land after chunking"
    )
    max_chunk_iterations: int = Field(
        default=10000, ge=0, description="Hard cap on chunks per run"
    )
    erosion_land_threshold: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Land cells below this land-neighbor ratio sink",
    )
    erosion_water_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Water cells above this land-neighbor ratio fill in",
    )

    @model_validator(mode="after")
    def _check_chunk_sizes(self):
        if self.min_chunk_size > self.max_chunk_size:
            raise ValueError("min_chunk_size must not exceed max_chunk_size")
        return self


class ClimateOptions(BaseModel):
    """Moisture noise and biome thresholds."""

    model_config = ConfigDict(frozen=True)

    moisture_noise_scale: float = Field(
        default=0.03, gt=0.0, description="Base lattice frequency for moisture"
    )
    moisture_octaves: int = Field(default=4, ge=1, description="Noise octaves")
    moisture_seed_offset: int = Field(
        default=1000, description="Seed offset decorrelating moisture from land"
    )
    coastal_moisture_boost: float = Field(
        default=0.2, ge=0.0, le=1.0, description="Extra moisture next to water"
    )
    desert_moisture_max: float = Field(
        default=0.2, ge=0.0, le=1.0, description="Below this land is desert sand"
    )
    forest_moisture_max: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="At or above this lowland is mud; wet hills turn to snow",
    )


class RiverOptions(BaseModel):
    """Source selection and downhill tracing."""

    model_config = ConfigDict(frozen=True)

    river_percentage: float = Field(
        default=0.05, ge=0.0, le=1.0, description="Target share of land carrying rivers"
    )
    min_river_length: int = Field(
        default=3, ge=1, description="Shorter traces are discarded"
    )
    river_seed_offset: int = Field(default=7777, description="Seed offset for rivers")
    river_source_min_fitness: float = Field(
        default=0.25, ge=0.0, le=1.0, description="Minimum fitness for a headwater"
    )
    river_steepness_weight: float = Field(
        default=3.0, gt=0.0, description="Weight per elevation level of drop"
    )
    river_flat_flow_chance: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Chance to continue across flat ground when nothing is downhill",
    )
    max_river_trace_steps: int = Field(
        default=100, ge=1, description="Hard cap on steps per trace"
    )
    high_fitness_threshold: float = Field(default=0.75, ge=0.0, le=1.0)
    medium_fitness_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    high_fitness_weight: float = Field(default=4.0, ge=0.0)
    medium_fitness_weight: float = Field(default=2.0, ge=0.0)
    low_fitness_weight: float = Field(default=1.0, ge=0.0)


class FeatureOptions(BaseModel):
    """Density and special feature placement."""

    model_config = ConfigDict(frozen=True)

    feature_seed_offset: int = Field(default=2000, description="Seed offset for features")
    feature_placement_chance: float = Field(default=0.7, ge=0.0, le=1.0)
    special_feature_chance: float = Field(default=0.02, ge=0.0, le=1.0)

    plant_medium_moisture_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    plant_high_moisture_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    jungle_dense_plant_threshold: float = Field(default=0.9, ge=0.0, le=1.0)
    stone_plant_moisture_threshold: float = Field(default=0.5, ge=0.0, le=1.0)

    sparse_farm_chance: float = Field(default=0.2, ge=0.0, le=1.0)
    farm_optimal_moisture_min: float = Field(default=0.3, ge=0.0, le=1.0)
    farm_optimal_moisture_max: float = Field(default=0.6, ge=0.0, le=1.0)
    stone_farm_chance: float = Field(default=0.15, ge=0.0, le=1.0)

    desert_urban_chance: float = Field(default=0.1, ge=0.0, le=1.0)
    urban_low_moisture_threshold: float = Field(default=0.4, ge=0.0, le=1.0)
    grass_urban_chance: float = Field(default=0.3, ge=0.0, le=1.0)
    stone_urban_chance: float = Field(default=0.1, ge=0.0, le=1.0)

    castle_min_elevation: int = Field(
        default=3, description="Lowest elevation for a castle on grass or stone"
    )
    megaflora_moisture_threshold: float = Field(
        default=0.7, ge=0.0, le=1.0, description="Mud needs more moisture than this"
    )


class RoadOptions(BaseModel):
    """Settlement detection and road network search limits."""

    model_config = ConfigDict(frozen=True)

    min_urban_level_for_settlement: int = Field(default=2, ge=1, le=3)
    max_settlement_connection_distance: int = Field(
        default=15, ge=1, description="Pairs further apart (hex distance) are skipped"
    )
    max_road_path_length: int = Field(
        default=40, ge=1, description="A* stops expanding beyond this path cost"
    )
    special_importance_bonus: int = Field(
        default=5, ge=0, description="Importance added for castles and ziggurats"
    )


class GenerationOptions(BaseModel):
    """All generation tunables, one group per stage."""

    model_config = ConfigDict(frozen=True)

    elevation: ElevationOptions = Field(default_factory=ElevationOptions)
    land: LandOptions = Field(default_factory=LandOptions)
    climate: ClimateOptions = Field(default_factory=ClimateOptions)
    rivers: RiverOptions = Field(default_factory=RiverOptions)
    features: FeatureOptions = Field(default_factory=FeatureOptions)
    roads: RoadOptions = Field(default_factory=RoadOptions)

    def with_land_percentage(self, land_percentage: float) -> "GenerationOptions":
        """Copy with a different land target (validated)."""
        land = LandOptions(**{**self.land.model_dump(), "land_percentage": land_percentage})
        return self.model_copy(update={"land": land})


__all__ = [
    "ClimateOptions",
    "ElevationOptions",
    "FeatureOptions",
    "GenerationOptions",
    "LandOptions",
    "RiverOptions",
    "RoadOptions",
]
