"""Tests for generation option validation."""

import pytest
from pydantic import ValidationError

from py_hexgen.core.generation_config import (
    ElevationOptions,
    FeatureOptions,
    GenerationOptions,
    LandOptions,
    RiverOptions,
    RoadOptions,
)


class TestDefaults:
    """Defaults match the documented tuning."""

    def test_elevation_defaults(self):
        elevation = ElevationOptions()
        assert elevation.min_elevation == -2
        assert elevation.max_elevation == 8
        assert elevation.water_level == 1
        assert elevation.hill_elevation == 4
        assert elevation.mountain_elevation == 6

    def test_stage_defaults(self):
        options = GenerationOptions()
        assert options.land.land_percentage == 0.5
        assert (options.land.min_chunk_size, options.land.max_chunk_size) == (3, 8)
        assert options.climate.moisture_octaves == 4
        assert options.rivers.river_seed_offset == 7777
        assert options.rivers.min_river_length == 3
        assert options.features.feature_seed_offset == 2000
        assert options.features.castle_min_elevation == 3
        assert options.roads.max_settlement_connection_distance == 15
        assert options.roads.max_road_path_length == 40


class TestValidation:
    """Bad values fail at construction time."""

    def test_chunk_size_ordering(self):
        with pytest.raises(ValidationError):
            LandOptions(min_chunk_size=9, max_chunk_size=3)

    def test_percentage_bounds(self):
        with pytest.raises(ValidationError):
            LandOptions(land_percentage=1.5)
        with pytest.raises(ValidationError):
            RiverOptions(river_percentage=-0.1)

    def test_water_level_inside_range(self):
        with pytest.raises(ValidationError):
            ElevationOptions(water_level=12)

    def test_hill_below_mountain(self):
        with pytest.raises(ValidationError):
            ElevationOptions(hill_elevation=7, mountain_elevation=5)

    def test_settlement_level_bounds(self):
        with pytest.raises(ValidationError):
            RoadOptions(min_urban_level_for_settlement=4)

    def test_options_are_frozen(self):
        options = FeatureOptions()
        with pytest.raises(ValidationError):
            options.special_feature_chance = 0.5


class TestWithLandPercentage:
    """Copy helper used by the API."""

    def test_returns_modified_copy(self):
        options = GenerationOptions()
        changed = options.with_land_percentage(0.3)
        assert changed.land.land_percentage == 0.3
        assert options.land.land_percentage == 0.5
        assert changed.rivers == options.rivers

    def test_validates_new_value(self):
        with pytest.raises(ValidationError):
            GenerationOptions().with_land_percentage(2.0)
