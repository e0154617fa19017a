"""HTTP interface for map generation."""
