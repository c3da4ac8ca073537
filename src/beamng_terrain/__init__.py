"""
BeamNG Terrain Export Tool

A Python library for turning elevation rasters and satellite imagery
into BeamNG terrain packages: a 16-bit heightmap, a per-texel material
layer map, and the material and level descriptor files that go with them.
"""

__version__ = "0.1.0"

from .core.interpolation import resample
from .core.heightmap import normalize
from .core.palette import Palette, PaletteMode, extract
from .core.layers import classify
from .io.terrain_file import TerrainFile
from .pipeline import TerrainExporter, PreparedTerrain, ExportResult
from .config import ExportSettings, load_settings

__all__ = [
    "resample",
    "normalize",
    "Palette",
    "PaletteMode",
    "extract",
    "classify",
    "TerrainFile",
    "TerrainExporter",
    "PreparedTerrain",
    "ExportResult",
    "ExportSettings",
    "load_settings",
]
