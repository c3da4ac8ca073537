"""
Terrain File Module

Reads and writes the binary ``.ter`` terrain container.

Layout (little-endian)::

    uint8    version (9)
    uint32   size N (grid is N x N)
    float32  terrainSize
    float32  squareSize
    float32  heightScale
    uint32   materialCount
    uint16[N*N]  heightmap, rows bottom-to-top, each row left-to-right
    uint8[N*N]   layer map, same row order
    uint8[N*N]   layer texture data (reserved, zeros)
    uint32   materialCount (repeated)
    repeated { uint8 length; ASCII bytes }  material names

The bottom-to-top row order follows the engine's texture-space convention.
It is undocumented upstream and has not been checked against a reference
loader.
"""

from __future__ import annotations

import os
import struct
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence, Union

import numpy as np

from ..core.validation import (
    InvalidArgumentError,
    TerrainFormatError,
    validate_matching_shape,
    validate_material_name,
    validate_output_path,
)
from ..utils.log import get_logger

logger = get_logger(__name__)

TERRAIN_FILE_VERSION = 9
DEFAULT_TERRAIN_SIZE = 1024.0
DEFAULT_SQUARE_SIZE = 1.0
DEFAULT_HEIGHT_SCALE = 255.0

# version, size, terrainSize, squareSize, heightScale, materialCount
_HEADER = struct.Struct('<BIfffI')
_COUNT = struct.Struct('<I')


@dataclass
class TerrainFile:
    """
    Contents of a ``.ter`` file.

    Grids are in top-to-bottom row order, the same order the writer
    accepts; the on-disk inversion is undone by ``read``.
    """
    size: int
    terrain_size: float
    square_size: float
    height_scale: float
    heightmap: np.ndarray = field(repr=False)
    layer_map: np.ndarray = field(repr=False)
    layer_texture_data: np.ndarray = field(repr=False)
    material_names: List[str] = field(default_factory=list)
    version: int = TERRAIN_FILE_VERSION

    @property
    def material_count(self) -> int:
        return len(self.material_names)

    def summary(self) -> str:
        """Return human-readable summary."""
        lines = [
            "=" * 50,
            "TERRAIN FILE",
            "=" * 50,
            f"Version:        {self.version}",
            f"Size:           {self.size} x {self.size}",
            f"Terrain size:   {self.terrain_size:g}",
            f"Square size:    {self.square_size:g}",
            f"Height scale:   {self.height_scale:g}",
            f"Height range:   {int(self.heightmap.min())} to {int(self.heightmap.max())}",
            f"",
            f"Materials ({self.material_count}):",
        ]
        used = np.bincount(self.layer_map.ravel(), minlength=self.material_count)
        total = self.layer_map.size
        for i, name in enumerate(self.material_names):
            pct = used[i] / total * 100 if total else 0.0
            lines.append(f"  [{i:3d}] {name:<24} {pct:5.1f}%")
        lines.append("=" * 50)
        return "\n".join(lines)


def _encode_names(material_names: Sequence[str]) -> bytes:
    parts = [_COUNT.pack(len(material_names))]
    for name in material_names:
        encoded = validate_material_name(name)
        parts.append(struct.pack('<B', len(encoded)))
        parts.append(encoded)
    return b"".join(parts)


def write(
    path: Union[str, Path],
    heightmap: np.ndarray,
    layer_map: np.ndarray,
    material_names: Sequence[str],
    terrain_size: float = DEFAULT_TERRAIN_SIZE,
    square_size: float = DEFAULT_SQUARE_SIZE,
    height_scale: float = DEFAULT_HEIGHT_SCALE,
) -> Path:
    """
    Write a terrain file.

    The file is written to a temporary name in the destination directory
    and renamed into place once complete, so readers never see a partial
    file. On failure the temporary file is removed and the error re-raised.

    Args:
        path: Destination ``.ter`` path
        heightmap: (N, N) uint16 heights, top row first
        layer_map: (N, N) uint8 material indices, top row first
        material_names: Names for each material index
        terrain_size: World-space size written to the header
        square_size: Grid spacing written to the header
        height_scale: Height scale written to the header

    Returns:
        The written path

    Raises:
        InvalidArgumentError: On malformed grids or names
        ShapeMismatchError: If the layer map does not match the heightmap
        FilePermissionError: If the destination directory is missing or
            not writable
    """
    heights = np.asarray(heightmap)
    layers = np.asarray(layer_map)

    if heights.ndim != 2 or heights.shape[0] != heights.shape[1] or heights.size == 0:
        raise InvalidArgumentError(
            f"Heightmap must be a non-empty square grid, got shape {heights.shape}"
        )
    if heights.dtype != np.uint16:
        if heights.size and (heights.min() < 0 or heights.max() > 65535):
            raise InvalidArgumentError("Heightmap values must fit in uint16")
        heights = heights.astype(np.uint16)

    validate_matching_shape(heights.shape, layers.shape, "Layer map")
    if layers.dtype != np.uint8:
        if layers.min() < 0 or layers.max() > 255:
            raise InvalidArgumentError("Layer map indices must fit in uint8")
        layers = layers.astype(np.uint8)

    if layers.max() >= len(material_names):
        raise InvalidArgumentError(
            f"Layer map references material {int(layers.max())} but only "
            f"{len(material_names)} material name(s) were given"
        )

    names_block = _encode_names(material_names)
    path = validate_output_path(path, "terrain file")
    size = heights.shape[0]

    header = _HEADER.pack(
        TERRAIN_FILE_VERSION,
        size,
        terrain_size,
        square_size,
        height_scale,
        len(material_names),
    )

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(header)
            f.write(np.flipud(heights).astype('<u2').tobytes())
            f.write(np.flipud(layers).tobytes())
            f.write(bytes(size * size))
            f.write(names_block)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise

    logger.info(
        "Wrote terrain file",
        path=str(path),
        size=size,
        materials=len(material_names),
    )
    return path


def read(path: Union[str, Path]) -> TerrainFile:
    """
    Read a terrain file written by ``write``.

    Raises:
        TerrainFormatError: If the version is unknown or the file is truncated
        FileNotFoundError: If the file does not exist
    """
    path = Path(path)
    data = path.read_bytes()

    if len(data) < _HEADER.size:
        raise TerrainFormatError(
            f"'{path}' is {len(data)} bytes, too short for a terrain header"
        )

    version, size, terrain_size, square_size, height_scale, count = _HEADER.unpack_from(data, 0)
    if version != TERRAIN_FILE_VERSION:
        raise TerrainFormatError(
            f"'{path}' has terrain version {version}, expected {TERRAIN_FILE_VERSION}"
        )

    cells = size * size
    offset = _HEADER.size
    grids_end = offset + 2 * cells + cells + cells
    if len(data) < grids_end + _COUNT.size:
        raise TerrainFormatError(
            f"'{path}' is truncated: a {size}x{size} terrain needs at least "
            f"{grids_end + _COUNT.size} bytes, found {len(data)}"
        )

    heights = np.frombuffer(data, dtype='<u2', count=cells, offset=offset)
    offset += 2 * cells
    layers = np.frombuffer(data, dtype=np.uint8, count=cells, offset=offset)
    offset += cells
    texture = np.frombuffer(data, dtype=np.uint8, count=cells, offset=offset)
    offset += cells

    (repeated,) = _COUNT.unpack_from(data, offset)
    offset += _COUNT.size
    if repeated != count:
        raise TerrainFormatError(
            f"'{path}' header lists {count} materials but the name table lists {repeated}"
        )

    names = []
    for _ in range(repeated):
        if offset >= len(data):
            raise TerrainFormatError(f"'{path}' is truncated inside the material table")
        length = data[offset]
        offset += 1
        raw = data[offset:offset + length]
        if len(raw) != length:
            raise TerrainFormatError(f"'{path}' is truncated inside the material table")
        try:
            names.append(raw.decode('ascii'))
        except UnicodeDecodeError as e:
            raise TerrainFormatError(f"'{path}' has a non-ASCII material name: {e}") from e
        offset += length

    return TerrainFile(
        size=size,
        terrain_size=terrain_size,
        square_size=square_size,
        height_scale=height_scale,
        heightmap=np.flipud(heights.reshape(size, size)).astype(np.uint16),
        layer_map=np.flipud(layers.reshape(size, size)).copy(),
        layer_texture_data=np.flipud(texture.reshape(size, size)).copy(),
        material_names=names,
        version=version,
    )
