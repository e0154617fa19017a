"""
Core hex map generation functionality.
"""

from .alea_prng import AleaPRNG
from .cancellation import CancellationToken, GenerationCancelled
from .cells import CellBuffer, CellSnapshot, SpecialFeature, TerrainType
from .climate import ClimateGenerator, classify_biome
from .features import FeatureGenerator
from .generation_config import GenerationOptions
from .hex_grid import HexCell, HexGrid
from .hex_neighbors import HexDirection, hex_distance, neighbor_index, opposite_direction
from .land import LandGenerator
from .rivers import River, RiverGenerator
from .roads import RoadGenerator

__all__ = ['AleaPRNG', 'CancellationToken', 'GenerationCancelled',
           'CellBuffer', 'CellSnapshot', 'SpecialFeature', 'TerrainType',
           'ClimateGenerator', 'classify_biome', 'FeatureGenerator', 'GenerationOptions',
           'HexCell', 'HexGrid', 'HexDirection', 'hex_distance', 'neighbor_index',
           'opposite_direction', 'LandGenerator', 'River', 'RiverGenerator', 'RoadGenerator']
