"""Tests for chunk budget land generation."""

import numpy as np
import pytest

from py_hexgen.core.alea_prng import AleaPRNG
from py_hexgen.core.cancellation import CancellationToken, GenerationCancelled
from py_hexgen.core.cells import CellBuffer
from py_hexgen.core.generation_config import ElevationOptions, LandOptions
from py_hexgen.core.land import LandGenerator


def make_generator(seed=12345, **land_overrides):
    return LandGenerator(AleaPRNG(seed), LandOptions(**land_overrides), ElevationOptions())


class TestLandGeneration:
    """Full land stage."""

    def test_empty_grid_is_noop(self):
        cells = CellBuffer(0, 0)
        assert make_generator().generate(cells) == 0

    def test_elevation_stays_in_bounds(self):
        cells = CellBuffer(40, 30)
        make_generator().generate(cells)
        assert cells.elevation.min() >= -2
        assert cells.elevation.max() <= 8

    @pytest.mark.parametrize("seed", [1, 42, 12345, 98765])
    def test_land_ratio_near_target(self, seed):
        """The budget is a target: overlap and erosion keep the result near, not on, it."""
        cells = CellBuffer(40, 30)
        land = make_generator(seed).generate(cells, 0.5)
        assert land == cells.land_count()
        assert 0.25 <= land / cells.size <= 0.65

    def test_more_land_with_higher_percentage(self):
        low = CellBuffer(40, 30)
        high = CellBuffer(40, 30)
        make_generator(7).generate(low, 0.2)
        make_generator(7).generate(high, 0.8)
        assert high.land_count() > low.land_count()

    def test_zero_percentage_gives_ocean(self):
        cells = CellBuffer(20, 20)
        assert make_generator().generate(cells, 0.0) == 0
        assert np.all(cells.elevation == -2)

    def test_deterministic(self):
        a = CellBuffer(32, 32)
        b = CellBuffer(32, 32)
        make_generator(42).generate(a)
        make_generator(42).generate(b)
        assert np.array_equal(a.elevation, b.elevation)

    def test_produces_hills(self):
        cells = CellBuffer(40, 30)
        make_generator(3).generate(cells)
        assert cells.elevation.max() > 1

    def test_cancelled_token_aborts(self):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(GenerationCancelled):
            make_generator().generate(CellBuffer(20, 20), token=token)

    @pytest.mark.parametrize(
        "total, percentage, expected",
        [(1200, 0.5, 600), (5, 0.5, 2), (7, 0.5, 4), (10, 0.33, 3), (0, 0.5, 0)],
    )
    def test_land_budget(self, total, percentage, expected):
        assert LandGenerator.land_budget(total, percentage) == expected


class TestRaiseChunk:
    """Single chunk growth."""

    def test_respects_budget(self):
        cells = CellBuffer(20, 20)
        generator = make_generator()
        raised = generator.raise_chunk(cells, 210, 5)
        assert 1 <= raised <= 5
        # Fresh buffer: every raise surfaces a new land cell
        assert cells.land_count() == raised
        assert cells.is_land(210)
        assert np.all(cells.elevation[cells.land_mask()] == 1)

    def test_chunk_is_connected(self):
        cells = CellBuffer(20, 20)
        make_generator(8).raise_chunk(cells, 210, 8)
        land = set(np.flatnonzero(cells.land_mask()).tolist())

        seen = {210}
        stack = [210]
        while stack:
            current = stack.pop()
            for neighbor in cells.neighbors[current]:
                neighbor = int(neighbor)
                if neighbor in land and neighbor not in seen:
                    seen.add(neighbor)
                    stack.append(neighbor)
        assert seen == land

    def test_full_expansion_fills_budget(self):
        cells = CellBuffer(20, 20)
        generator = make_generator(chunk_expansion_chance=1.0)
        assert generator.raise_chunk(cells, 210, 7) == 7

    def test_land_cells_rise_but_cap_at_max(self):
        cells = CellBuffer(3, 1)
        cells.elevation[:] = 8
        generator = make_generator(elevation_raise_chance=1.0)
        assert generator.raise_chunk(cells, 1, 3) == 0
        assert np.all(cells.elevation == 8)


class TestElevationPasses:
    """Hill and mountain sweeps."""

    def test_only_land_rises(self):
        cells = CellBuffer(10, 10)
        cells.elevation[:50] = 1
        generator = make_generator(elevation_raise_chance=1.0, elevation_passes=2)
        generator.apply_elevation_passes(cells)
        assert np.all(cells.elevation[:50] == 3)
        assert np.all(cells.elevation[50:] == -2)

    def test_no_passes(self):
        cells = CellBuffer(10, 10)
        cells.elevation[:] = 1
        make_generator(elevation_passes=0).apply_elevation_passes(cells)
        assert np.all(cells.elevation == 1)


class TestErosion:
    """Coastline smoothing from a snapshot."""

    def test_lonely_land_sinks(self):
        cells = CellBuffer(5, 5)
        cells.elevation[12] = 2
        lowered, raised = make_generator().apply_erosion(cells)
        assert (lowered, raised) == (1, 0)
        assert cells.elevation[12] == -2

    def test_enclosed_water_fills(self):
        cells = CellBuffer(5, 5)
        cells.elevation[:] = 1
        cells.elevation[12] = -2
        lowered, raised = make_generator().apply_erosion(cells)
        assert (lowered, raised) == (0, 1)
        assert cells.elevation[12] == 1

    def test_decisions_use_pre_erosion_layout(self):
        """A line of two land cells: each sees one land neighbor of six, both sink."""
        cells = CellBuffer(5, 5)
        cells.elevation[11] = 1
        cells.elevation[12] = 1
        lowered, _ = make_generator().apply_erosion(cells)
        assert lowered == 2
        assert cells.land_count() == 0
