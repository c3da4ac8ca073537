"""I/O modules for loading inputs and writing terrain packages."""

from .terrain_file import TerrainFile, write, read
from .raster import open_elevation, load_elevation, load_image
from .descriptors import (
    TerrainDescriptor,
    LevelDescriptor,
    MaterialEntry,
    write_descriptors,
    write_materials,
)

__all__ = [
    "TerrainFile",
    "write",
    "read",
    "open_elevation",
    "load_elevation",
    "load_image",
    "TerrainDescriptor",
    "LevelDescriptor",
    "MaterialEntry",
    "write_descriptors",
    "write_materials",
]
