"""Tests for settlement detection and A* road building."""

import numpy as np
import pytest

from py_hexgen.core.cells import CellBuffer, SpecialFeature, TerrainType
from py_hexgen.core.generation_config import RoadOptions
from py_hexgen.core.hex_neighbors import HexDirection, hex_distance, opposite_direction
from py_hexgen.core.map_generator import generate_cells
from py_hexgen.core.roads import RoadGenerator


@pytest.fixture
def plain():
    """Flat 10x10 grassland."""
    cells = CellBuffer(10, 10)
    cells.elevation[:] = 1
    cells.terrain[:] = TerrainType.GRASS
    return cells


@pytest.fixture
def generator():
    return RoadGenerator()


def assert_roads_legal(cells):
    for index in range(cells.size):
        for direction in range(6):
            if not cells.roads[index, direction]:
                continue
            neighbor = int(cells.neighbors[index, direction])
            assert neighbor >= 0
            assert cells.roads[neighbor, opposite_direction(direction)]
            assert cells.is_land(index) and cells.is_land(neighbor)
            assert abs(int(cells.elevation[index]) - int(cells.elevation[neighbor])) <= 1
            assert cells.special[index] != SpecialFeature.MEGAFLORA
            assert cells.special[neighbor] != SpecialFeature.MEGAFLORA
            assert not RoadGenerator.has_river_through_edge(cells, index, neighbor, direction)


class TestSettlements:
    """Settlement detection and ranking."""

    def test_find_settlements(self, plain, generator):
        plain.urban_level[3] = 2
        plain.urban_level[4] = 1
        plain.special[5] = SpecialFeature.CASTLE
        plain.special[6] = SpecialFeature.ZIGGURAT
        plain.special[7] = SpecialFeature.MEGAFLORA
        plain.urban_level[8] = 3
        plain.elevation[8] = -1
        assert generator.find_settlements(plain) == [3, 5, 6]

    def test_importance(self, plain, generator):
        plain.urban_level[3] = 2
        plain.special[5] = SpecialFeature.CASTLE
        assert generator.settlement_importance(plain, 3) == 2
        assert generator.settlement_importance(plain, 5) == 5

    def test_custom_threshold(self, plain):
        plain.urban_level[3] = 1
        generator = RoadGenerator(RoadOptions(min_urban_level_for_settlement=1))
        assert generator.find_settlements(plain) == [3]


class TestPathfinding:
    """A* over legal edges."""

    def test_straight_path(self, plain, generator):
        path = generator.find_path(plain, 0, 5)
        assert path[0] == 0
        assert path[-1] == 5
        assert len(path) == hex_distance(0, 5, plain.width) + 1

    def test_path_is_connected(self, plain, generator):
        path = generator.find_path(plain, 0, 99)
        for a, b in zip(path, path[1:]):
            assert b in plain.neighbors[a]

    def test_same_cell(self, plain, generator):
        assert generator.find_path(plain, 12, 12) == [12]

    def test_blocked_by_water(self, plain, generator):
        for z in range(plain.height):
            plain.elevation[plain.index_of(5, z)] = -1
        assert generator.find_path(plain, 0, 9) is None

    def test_blocked_by_cliff(self, plain, generator):
        for z in range(plain.height):
            plain.elevation[plain.index_of(5, z)] = 3
        assert generator.find_path(plain, 0, 9) is None

    def test_climbs_gentle_slope(self, plain, generator):
        for z in range(plain.height):
            for x in range(5, plain.width):
                plain.elevation[plain.index_of(x, z)] = 2
        assert generator.find_path(plain, 0, 9) is not None

    def test_path_length_cap(self, plain):
        generator = RoadGenerator(RoadOptions(max_road_path_length=3))
        assert generator.find_path(plain, 0, 9) is None

    def test_detours_around_river_edge(self, plain, generator):
        """A river along an edge is never crossed; the road goes around it."""
        a, b = plain.index_of(2, 2), plain.index_of(3, 2)
        plain.has_outgoing_river[a] = True
        plain.outgoing_river[a] = HexDirection.E
        plain.has_incoming_river[b] = True
        plain.incoming_river[b] = HexDirection.W

        path = generator.find_path(plain, a, b)
        assert len(path) == 3
        assert path[0] == a and path[-1] == b


class TestEdgeRules:
    """can_place_road and movement_cost."""

    def test_underwater(self, plain, generator):
        plain.elevation[1] = 0
        assert not generator.can_place_road(plain, 0, 1, HexDirection.E)

    def test_steep(self, plain, generator):
        plain.elevation[1] = 3
        assert not generator.can_place_road(plain, 0, 1, HexDirection.E)
        plain.elevation[1] = 2
        assert generator.can_place_road(plain, 0, 1, HexDirection.E)

    def test_megaflora(self, plain, generator):
        plain.special[1] = SpecialFeature.MEGAFLORA
        assert not generator.can_place_road(plain, 0, 1, HexDirection.E)

    @pytest.mark.parametrize("side", ["from_out", "from_in", "to_out", "to_in"])
    def test_river_edge(self, plain, generator, side):
        if side == "from_out":
            plain.has_outgoing_river[0] = True
            plain.outgoing_river[0] = HexDirection.E
        elif side == "from_in":
            plain.has_incoming_river[0] = True
            plain.incoming_river[0] = HexDirection.E
        elif side == "to_out":
            plain.has_outgoing_river[1] = True
            plain.outgoing_river[1] = HexDirection.W
        else:
            plain.has_incoming_river[1] = True
            plain.incoming_river[1] = HexDirection.W
        assert not generator.can_place_road(plain, 0, 1, HexDirection.E)

    def test_river_on_other_edge_is_allowed(self, plain, generator):
        plain.has_outgoing_river[0] = True
        plain.outgoing_river[0] = HexDirection.NE
        assert generator.can_place_road(plain, 0, 1, HexDirection.E)

    def test_movement_cost(self, plain, generator):
        assert generator.movement_cost(plain, 0, 1, HexDirection.E) == 1
        plain.elevation[1] = 2
        assert generator.movement_cost(plain, 0, 1, HexDirection.E) == 3
        plain.has_incoming_river[1] = True
        assert generator.movement_cost(plain, 0, 1, HexDirection.E) == 4
        plain.set_road(0, HexDirection.E)
        assert generator.movement_cost(plain, 0, 1, HexDirection.E) == 1


class TestGenerate:
    """Network construction."""

    def test_needs_two_settlements(self, plain, generator):
        plain.urban_level[3] = 2
        assert generator.generate(plain) == []
        assert not plain.roads.any()

    def test_connects_pair(self, plain, generator):
        plain.urban_level[plain.index_of(1, 1)] = 2
        plain.urban_level[plain.index_of(6, 4)] = 2
        roads = generator.generate(plain)
        assert len(roads) == 1
        assert {roads[0][0], roads[0][-1]} == {plain.index_of(1, 1), plain.index_of(6, 4)}
        assert_roads_legal(plain)

    def test_connects_all_reachable(self, plain, generator):
        towns = [plain.index_of(1, 1), plain.index_of(8, 1), plain.index_of(4, 8), plain.index_of(8, 8)]
        for town in towns:
            plain.urban_level[town] = 2
        plain.special[plain.index_of(5, 5)] = SpecialFeature.CASTLE
        roads = generator.generate(plain)
        assert len(roads) == 4
        assert_roads_legal(plain)

        # Every settlement touches a road
        for town in towns + [plain.index_of(5, 5)]:
            assert plain.roads[town].any()

    def test_most_important_is_root(self, plain, generator):
        castle = plain.index_of(5, 5)
        town = plain.index_of(1, 1)
        plain.special[castle] = SpecialFeature.CASTLE
        plain.urban_level[town] = 2
        roads = generator.generate(plain)
        assert roads[0][0] == castle

    def test_unreachable_settlement_terminates(self, plain, generator):
        for z in range(plain.height):
            plain.elevation[plain.index_of(5, z)] = -1
        plain.urban_level[plain.index_of(1, 1)] = 2
        plain.urban_level[plain.index_of(8, 1)] = 2
        assert generator.generate(plain) == []

    def test_islands_connect_internally(self, plain, generator):
        for z in range(plain.height):
            plain.elevation[plain.index_of(5, z)] = -1
        for x, z in [(1, 1), (2, 7), (8, 1), (7, 7)]:
            plain.urban_level[plain.index_of(x, z)] = 2
        roads = generator.generate(plain)
        assert len(roads) == 2
        assert_roads_legal(plain)

    def test_reuses_existing_roads(self, plain, generator):
        plain.urban_level[plain.index_of(0, 0)] = 3
        plain.urban_level[plain.index_of(9, 0)] = 2
        plain.urban_level[plain.index_of(9, 1)] = 2
        generator.generate(plain)
        edges = int(np.count_nonzero(plain.roads)) // 2
        # Row road of 9 edges plus one short spur
        assert edges == 10

    def test_far_pairs_ignored(self, plain):
        plain.urban_level[plain.index_of(0, 0)] = 2
        plain.urban_level[plain.index_of(9, 9)] = 2
        generator = RoadGenerator(RoadOptions(max_settlement_connection_distance=3))
        assert generator.generate(plain) == []

    def test_crosses_river_as_bridge(self, plain, generator):
        """A river row is crossed through its dry edges, never along the flow."""
        for x in range(plain.width):
            index = plain.index_of(x, 5)
            if x < plain.width - 1:
                plain.has_outgoing_river[index] = True
                plain.outgoing_river[index] = HexDirection.E
            if x > 0:
                plain.has_incoming_river[index] = True
                plain.incoming_river[index] = HexDirection.W
        for x in (1, 2, 3):
            plain.special[plain.index_of(x, 4)] = SpecialFeature.MEGAFLORA
        plain.urban_level[plain.index_of(2, 2)] = 2
        plain.urban_level[plain.index_of(2, 8)] = 2

        roads = generator.generate(plain)
        assert len(roads) == 1
        assert any(plain.index_of(x, 5) in roads[0] for x in range(plain.width))
        assert_roads_legal(plain)

    @pytest.mark.parametrize("seed", [3, 42, 2024, 31337])
    def test_generated_maps_have_legal_roads(self, seed):
        cells = generate_cells(40, 30, seed)
        assert_roads_legal(cells)
