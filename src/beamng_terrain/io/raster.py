"""
Raster Input Module

Decodes elevation rasters and imagery into the numpy arrays the core
pipeline works on. GeoTIFF support requires rasterio (optional).
"""

from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from io import BytesIO
from pathlib import Path
from typing import Iterator, Union

import numpy as np
from PIL import Image

from ..core.validation import InvalidArgumentError
from ..utils.log import get_logger

logger = get_logger(__name__)

try:
    import rasterio
    HAS_RASTERIO = True
except ImportError:
    HAS_RASTERIO = False

GEOTIFF_SUFFIXES = ('.tif', '.tiff')
ElevationSource = Union[str, Path, bytes]


def require_rasterio():
    if not HAS_RASTERIO:
        raise ImportError(
            "rasterio is required to read GeoTIFF elevation data. "
            "Install with: pip install rasterio"
        )


def _read_band(filepath: Path) -> np.ndarray:
    require_rasterio()
    with rasterio.open(filepath) as ds:
        band = ds.read(1, masked=True).astype(np.float64)
        if np.ma.is_masked(band):
            raise InvalidArgumentError(
                f"'{filepath}' contains {int(band.mask.sum()):,} nodata cell(s). "
                "Fill voids before exporting a terrain."
            )
        return np.ma.getdata(band)


@contextmanager
def open_elevation(source: ElevationSource) -> Iterator[np.ndarray]:
    """
    Open an elevation raster as a scoped resource.

    ``source`` is a file path or the raw bytes of a GeoTIFF (as returned by
    an elevation web service). Bytes are written to a temporary file that is
    removed when the block exits, whether or not reading succeeded.

    Yields:
        2D float64 array of band 1

    Example:
        with open_elevation(payload) as grid:
            heightmap = resample(grid, 1024)
    """
    if isinstance(source, (bytes, bytearray)):
        fd, tmp_name = tempfile.mkstemp(prefix="temp_dem_", suffix=".tif")
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(source)
            yield _read_band(Path(tmp_name))
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
                logger.debug("Removed temporary raster", path=tmp_name)
    else:
        yield load_elevation(source)


def load_elevation(filepath: Union[str, Path]) -> np.ndarray:
    """
    Load an elevation grid from file, auto-detecting format.

    Supported: GeoTIFF (``.tif``/``.tiff``, needs rasterio) and numpy
    ``.npy`` arrays.

    Returns:
        2D float64 array
    """
    filepath = Path(filepath)
    suffix = filepath.suffix.lower()

    if suffix in GEOTIFF_SUFFIXES:
        grid = _read_band(filepath)
    elif suffix == '.npy':
        grid = np.load(filepath, allow_pickle=False).astype(np.float64)
    else:
        raise ValueError(f"Unsupported elevation format: {suffix}")

    if grid.ndim != 2:
        raise InvalidArgumentError(
            f"'{filepath}' must hold a 2D elevation grid, got shape {grid.shape}"
        )

    logger.info("Loaded elevation grid", path=str(filepath), shape=grid.shape)
    return grid


def load_image(source: Union[str, Path, bytes]) -> np.ndarray:
    """
    Decode an image file (or encoded bytes) into an RGBA array.

    Returns:
        (H, W, 4) uint8 array
    """
    if isinstance(source, (bytes, bytearray)):
        source = BytesIO(source)

    with Image.open(source) as img:
        rgba = np.array(img.convert("RGBA"))

    logger.info("Loaded image", width=rgba.shape[1], height=rgba.shape[0])
    return rgba

