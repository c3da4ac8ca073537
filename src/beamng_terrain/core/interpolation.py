"""
Heightmap Resampling Module

Resamples an arbitrarily sized elevation raster onto a square terrain grid
using bicubic interpolation with edge clamping, and samples imagery onto
the same grid so layer maps stay registered with the heightmap.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from .validation import (
    validate_grid,
    validate_image,
    validate_positive,
    validate_target_size,
)
from ..utils.log import get_logger

logger = get_logger(__name__)

# Neighbour offsets of the 4x4 bicubic patch, relative to floor(src)
_PATCH_OFFSETS = np.arange(-1, 3)


def cubic_interpolate(p0, p1, p2, p3, x):
    """
    Cubic convolution between p1 and p2 at fraction x.

    Works elementwise on numpy arrays as well as on scalars.
    """
    return p1 + 0.5 * x * (
        p2 - p0 + x * (
            2.0 * p0 - 5.0 * p1 + 4.0 * p2 - p3 + x * (
                3.0 * (p1 - p2) + p3 - p0
            )
        )
    )


def bicubic_interpolate(patch: np.ndarray, fx, fy):
    """
    Interpolate inside a 4x4 patch.

    Args:
        patch: Array whose last two axes are (y, x) = (4, 4)
        fx: Fractional position along x, between patch columns 1 and 2
        fy: Fractional position along y, between patch rows 1 and 2

    Returns:
        Interpolated value(s); each row is interpolated along x first,
        then the four row results along y.
    """
    patch = np.asarray(patch, dtype=np.float64)
    rows = cubic_interpolate(
        patch[..., 0], patch[..., 1], patch[..., 2], patch[..., 3], fx
    )
    return cubic_interpolate(
        rows[..., 0], rows[..., 1], rows[..., 2], rows[..., 3], fy
    )


def source_coordinates(
    source_dim: int,
    target_size: int,
    scale_factor: float = 1.0,
) -> np.ndarray:
    """
    Fractional source coordinates for each target index along one axis.

    The target grid covers the centred region of the source: with
    ``scale_factor`` 1.0 one target cell is one source sample, larger
    factors mean one source sample spans ``scale_factor`` target cells.
    """
    offset = (source_dim - target_size / scale_factor) / 2.0
    return np.arange(target_size, dtype=np.float64) / scale_factor + offset


def registered_indices(
    image_dim: int,
    source_dim: int,
    target_size: int,
    scale_factor: float = 1.0,
) -> np.ndarray:
    """
    Nearest image index for each target index along one axis.

    The image is taken to cover the same ground as an elevation grid of
    ``source_dim`` samples, so target index i reads the image at the same
    fraction of its extent that ``resample`` reads from the elevation grid.
    """
    coords = source_coordinates(source_dim, target_size, scale_factor)
    idx = np.floor(coords * (image_dim / source_dim)).astype(np.int64)
    return np.clip(idx, 0, image_dim - 1)


def register_image(
    image,
    source_shape: Tuple[int, int],
    target_size: int,
    scale_factor: float = 1.0,
) -> np.ndarray:
    """
    Sample an image onto the terrain grid covered by ``resample``.

    Uses nearest-sample lookup, so every output pixel is an exact image
    color, and the layer map lines up cell for cell with the heightmap
    resampled from an elevation grid of ``source_shape``.

    Args:
        image: (H, W, 3) or (H, W, 4) image covering the elevation grid's area
        source_shape: (rows, cols) of the elevation grid
        target_size: Output dimension N
        scale_factor: Same factor passed to ``resample``

    Returns:
        (N, N, 4) uint8 array
    """
    target_size = validate_target_size(target_size)
    scale_factor = validate_positive(scale_factor, "Scale factor")
    rgba = validate_image(image)

    rows, cols = source_shape
    height, width = rgba.shape[:2]
    y_idx = registered_indices(height, rows, target_size, scale_factor)
    x_idx = registered_indices(width, cols, target_size, scale_factor)
    return rgba[np.ix_(y_idx, x_idx)]


def _neighbour_indices(coords: np.ndarray, dim: int) -> Tuple[np.ndarray, np.ndarray]:
    """Clamped 4-neighbour indices and fractional parts for each coordinate."""
    base = np.floor(coords)
    frac = coords - base
    idx = base.astype(np.int64)[:, None] + _PATCH_OFFSETS[None, :]
    return np.clip(idx, 0, dim - 1), frac


def resample(grid, target_size: int, scale_factor: float = 1.0) -> np.ndarray:
    """
    Resample an elevation grid to a ``target_size`` x ``target_size`` heightmap.

    Each target cell maps to a fractional source position inside the centred
    region of the source grid. The 4x4 source neighbourhood around it is
    gathered with coordinates clamped to the grid edges, so the resampler
    never wraps around or reads out of bounds.

    Args:
        grid: 2D array of elevation samples (rows, cols)
        target_size: Output dimension N
        scale_factor: Target cells per source sample (1.0 = centred crop)

    Returns:
        (N, N) float64 heightmap

    Raises:
        InvalidArgumentError: On a non-positive size or factor, or a bad grid
    """
    target_size = validate_target_size(target_size)
    scale_factor = validate_positive(scale_factor, "Scale factor")
    source = validate_grid(grid)

    rows, cols = source.shape
    logger.debug(
        "Resampling elevation grid",
        source_shape=(rows, cols),
        target_size=target_size,
        scale_factor=scale_factor,
    )

    x_idx, fx = _neighbour_indices(
        source_coordinates(cols, target_size, scale_factor), cols
    )
    y_idx, fy = _neighbour_indices(
        source_coordinates(rows, target_size, scale_factor), rows
    )

    heightmap = np.empty((target_size, target_size), dtype=np.float64)

    # One target row at a time keeps memory at O(N) patches
    for row in range(target_size):
        band = source[y_idx[row]]          # (4, cols)
        patches = band[:, x_idx]           # (4, N, 4)
        along_x = cubic_interpolate(
            patches[..., 0], patches[..., 1], patches[..., 2], patches[..., 3], fx
        )                                  # (4, N)
        heightmap[row] = cubic_interpolate(
            along_x[0], along_x[1], along_x[2], along_x[3], fy[row]
        )

    return heightmap
