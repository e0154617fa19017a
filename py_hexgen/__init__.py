"""Procedural hex world map generation."""

from .core.map_generator import MapGenerator, generate_cells

__version__ = "0.1.0"

__all__ = ["MapGenerator", "generate_cells", "__version__"]
