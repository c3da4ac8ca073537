"""Core data structures and algorithms."""

from .interpolation import resample
from .heightmap import normalize
from .palette import Palette, PaletteMode, extract
from .layers import classify

__all__ = ["resample", "normalize", "Palette", "PaletteMode", "extract", "classify"]
