"""
Layer Classification Module

Maps every image pixel to the nearest palette color, producing the
per-texel material index grid of a terrain.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Union

import numpy as np
from scipy.spatial.distance import cdist

from .validation import InvalidArgumentError, validate_image
from ..utils.log import get_logger

if TYPE_CHECKING:
    from .palette import Palette

logger = get_logger(__name__)

MAX_LAYERS = 256

# Pixels compared against the palette per block
DEFAULT_CHUNK_SIZE = 262_144


def palette_colors(palette: Union['Palette', np.ndarray, list]) -> np.ndarray:
    """Return palette colors as a (K, 3) float64 array."""
    if palette is None:
        raise InvalidArgumentError("Palette cannot be None")

    colors = getattr(palette, "colors", palette)
    arr = np.asarray(colors, dtype=np.float64)

    if arr.size == 0:
        return arr.reshape(0, 3)

    if arr.ndim != 2 or arr.shape[1] != 3:
        raise InvalidArgumentError(
            f"Palette must be a sequence of RGB triples, got shape {arr.shape}"
        )
    return arr


def nearest_palette_index(
    pixels: np.ndarray,
    colors: np.ndarray,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> np.ndarray:
    """
    Index of the nearest color for each pixel.

    Distance is squared Euclidean in RGB space; on a tie the lowest
    index wins.

    Args:
        pixels: (P, 3) array of RGB values
        colors: (K, 3) array of RGB values, K >= 1
        chunk_size: Number of pixels compared per block

    Returns:
        (P,) int64 array of indices into ``colors``
    """
    pixels = np.asarray(pixels, dtype=np.float64)
    colors = np.asarray(colors, dtype=np.float64)
    out = np.empty(len(pixels), dtype=np.int64)

    for start in range(0, len(pixels), chunk_size):
        block = pixels[start:start + chunk_size]
        distances = cdist(block, colors, metric='sqeuclidean')
        # argmin returns the first minimum, i.e. the lowest palette index
        out[start:start + chunk_size] = np.argmin(distances, axis=1)

    return out


def classify(image, palette: Union['Palette', np.ndarray, list]) -> np.ndarray:
    """
    Build the layer map of an image against a palette.

    Every pixel is classified, including transparent ones.

    Args:
        image: (H, W, 3) or (H, W, 4) uint8 image
        palette: Palette (or array of RGB triples), 1 to 256 entries

    Returns:
        (H, W) uint8 array of palette indices

    Raises:
        InvalidArgumentError: If the palette is empty or too large, or the
            image is malformed
    """
    colors = palette_colors(palette)

    if len(colors) == 0:
        raise InvalidArgumentError(
            "Palette is empty; there is no layer to assign pixels to. "
            "Check that the image has visible (non-transparent) pixels."
        )

    if len(colors) > MAX_LAYERS:
        raise InvalidArgumentError(
            f"Palette has {len(colors)} colors; layer indices are 8-bit, "
            f"so at most {MAX_LAYERS} are supported"
        )

    rgba = validate_image(image)
    height, width = rgba.shape[:2]

    logger.debug("Classifying pixels", width=width, height=height, layers=len(colors))

    indices = nearest_palette_index(rgba[..., :3].reshape(-1, 3), colors)
    return indices.reshape(height, width).astype(np.uint8)
