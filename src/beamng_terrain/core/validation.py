"""
Input Validation Module

Provides validation functions and custom exceptions for the beamng_terrain package.
All validation functions provide clear, actionable error messages.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np


LARGE_TERRAIN_SIZE = 8192


class ValidationError(ValueError):
    """Base exception for validation errors with user-friendly messages."""
    pass


class InvalidArgumentError(ValidationError):
    """Argument is missing, malformed, or out of range."""
    pass


class ShapeMismatchError(ValidationError):
    """Two grids that must line up have different shapes."""
    pass


class TerrainIOError(OSError):
    """Base exception for file-system errors while reading or writing terrain data."""
    pass


class FilePermissionError(TerrainIOError):
    """Cannot write to specified path."""
    pass


class TerrainFormatError(TerrainIOError):
    """A terrain file does not follow the expected binary layout."""
    pass


def validate_target_size(target_size: int, context: str = "target size") -> int:
    """
    Validate a square grid dimension.

    Args:
        target_size: Requested N for an N x N grid
        context: Description of what this size is for (used in error messages)

    Returns:
        The validated size as an int

    Raises:
        InvalidArgumentError: If size is None, not an integer, or <= 0
    """
    if target_size is None:
        raise InvalidArgumentError(f"{context} cannot be None")

    if isinstance(target_size, bool) or not isinstance(target_size, (int, np.integer)):
        raise InvalidArgumentError(
            f"{context} must be an integer, got {type(target_size).__name__}"
        )

    if target_size <= 0:
        raise InvalidArgumentError(
            f"{context} must be positive, got {target_size}. "
            "Typical values are 1024, 2048 or 4096."
        )

    if target_size > LARGE_TERRAIN_SIZE:
        warnings.warn(
            f"{context} of {target_size} creates a very large terrain "
            f"({target_size}x{target_size} = {target_size * target_size:,} cells). "
            "Consider a smaller resolution to reduce memory usage.",
            UserWarning,
            stacklevel=2
        )

    return int(target_size)


def validate_positive(value: float, context: str) -> float:
    """
    Validate value is a positive number.

    Raises:
        InvalidArgumentError: If value is None, not a number, or <= 0
    """
    if value is None:
        raise InvalidArgumentError(f"{context} cannot be None")

    if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
        raise InvalidArgumentError(
            f"{context} must be a number, got {type(value).__name__}"
        )

    if not np.isfinite(value) or value <= 0:
        raise InvalidArgumentError(f"{context} must be positive, got {value}")

    return float(value)


def validate_palette_size(k: int) -> int:
    """
    Validate the maximum number of palette colors.

    Raises:
        InvalidArgumentError: If k is not a positive integer
    """
    if isinstance(k, bool) or not isinstance(k, (int, np.integer)):
        raise InvalidArgumentError(
            f"Palette size must be an integer, got {type(k).__name__}"
        )
    if k <= 0:
        raise InvalidArgumentError(
            f"Palette size must be greater than zero, got {k}"
        )
    return int(k)


def validate_seed(seed: Optional[int]) -> Optional[int]:
    """
    Validate a random seed; None means unseeded.

    Raises:
        InvalidArgumentError: If the seed is not a non-negative integer
    """
    if seed is None:
        return None
    if isinstance(seed, bool) or not isinstance(seed, (int, np.integer)):
        raise InvalidArgumentError(
            f"Seed must be an integer, got {type(seed).__name__}"
        )
    if seed < 0:
        raise InvalidArgumentError(f"Seed cannot be negative, got {seed}")
    return int(seed)


def validate_grid(grid, context: str = "elevation grid") -> np.ndarray:
    """
    Validate a 2D scalar grid and return it as a float64 array.

    Raises:
        InvalidArgumentError: If grid is None, not 2D, empty, or has non-finite values
    """
    if grid is None:
        raise InvalidArgumentError(f"{context} cannot be None")

    arr = np.asarray(grid, dtype=np.float64)

    if arr.ndim != 2:
        raise InvalidArgumentError(
            f"{context} must be a 2D array, got {arr.ndim} dimension(s)"
        )

    if arr.size == 0:
        raise InvalidArgumentError(f"{context} is empty (shape {arr.shape})")

    if not np.all(np.isfinite(arr)):
        bad = int(np.count_nonzero(~np.isfinite(arr)))
        raise InvalidArgumentError(
            f"{context} contains {bad:,} non-finite value(s). "
            "Fill nodata voids before resampling."
        )

    return arr


def validate_image(image, context: str = "image") -> np.ndarray:
    """
    Validate an RGB or RGBA image array.

    Returns:
        The image as an (H, W, 4) uint8 array; a missing alpha channel
        is filled with 255 (fully opaque).

    Raises:
        InvalidArgumentError: If image is None or not H x W x 3/4
    """
    if image is None:
        raise InvalidArgumentError(f"{context} cannot be None")

    arr = np.asarray(image)

    if arr.ndim != 3 or arr.shape[2] not in (3, 4):
        raise InvalidArgumentError(
            f"{context} must have shape (height, width, 3) or (height, width, 4), "
            f"got {arr.shape}"
        )

    if arr.shape[0] == 0 or arr.shape[1] == 0:
        raise InvalidArgumentError(f"{context} is empty (shape {arr.shape})")

    if arr.dtype != np.uint8:
        if np.issubdtype(arr.dtype, np.floating) and not np.all(np.isfinite(arr)):
            raise InvalidArgumentError(f"{context} contains non-finite values")
        if arr.min() < 0 or arr.max() > 255:
            raise InvalidArgumentError(
                f"{context} channel values must be in 0-255, "
                f"got range {arr.min()} to {arr.max()}"
            )
        arr = arr.astype(np.uint8)

    if arr.shape[2] == 3:
        alpha = np.full(arr.shape[:2] + (1,), 255, dtype=np.uint8)
        arr = np.concatenate([arr, alpha], axis=2)

    return arr


def validate_material_name(name: str) -> bytes:
    """
    Validate a material name for the length-prefixed ASCII table.

    Returns:
        The encoded name

    Raises:
        InvalidArgumentError: If name is empty, non-ASCII, or longer than 255 bytes
    """
    if not isinstance(name, str) or not name:
        raise InvalidArgumentError(f"Material name must be a non-empty string, got {name!r}")

    try:
        encoded = name.encode('ascii')
    except UnicodeEncodeError:
        raise InvalidArgumentError(f"Material name must be ASCII, got {name!r}")

    if len(encoded) > 255:
        raise InvalidArgumentError(
            f"Material name is {len(encoded)} bytes long; the limit is 255"
        )

    return encoded


def validate_map_name(name: str) -> str:
    """
    Validate a map name used to build file names.

    Raises:
        InvalidArgumentError: If name is empty or contains path separators
    """
    if not isinstance(name, str) or not name.strip():
        raise InvalidArgumentError("Map name cannot be empty")

    if any(sep in name for sep in ('/', '\\')) or name in ('.', '..'):
        raise InvalidArgumentError(
            f"Map name {name!r} must be a plain file name without path separators"
        )

    return name


def validate_output_dir(
    directory: Union[str, Path],
    context: str = "output directory",
    create: bool = False,
) -> Path:
    """
    Validate an output directory exists (optionally creating it) and is writable.

    Raises:
        FilePermissionError: If directory doesn't exist or isn't writable
    """
    path = Path(directory)

    if not path.exists() and create:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilePermissionError(f"Cannot create {context} '{path}': {e}") from e

    if not path.is_dir():
        raise FilePermissionError(
            f"Cannot write {context}: directory '{path}' does not exist. "
            "Create the directory first or specify a different path."
        )

    if not os.access(path, os.W_OK):
        raise FilePermissionError(
            f"Cannot write {context}: no write permission for directory '{path}'."
        )

    return path


def validate_output_path(filepath: Union[str, Path], context: str = "output file") -> Path:
    """
    Validate output path is writable before attempting to write.

    Args:
        filepath: The path to validate
        context: Description of what will be written (used in error messages)

    Returns:
        The validated path as a Path object

    Raises:
        FilePermissionError: If directory doesn't exist or isn't writable
    """
    path = Path(filepath)
    parent = path.parent

    # Handle empty parent (current directory)
    if str(parent) == '.':
        parent = Path.cwd()

    validate_output_dir(parent, context)

    # Check if file exists and is writable (for overwrites)
    if path.exists() and not os.access(path, os.W_OK):
        raise FilePermissionError(
            f"Cannot overwrite {context}: file '{path}' exists but is not writable."
        )

    return path


def validate_matching_shape(
    expected: Tuple[int, ...],
    actual: Tuple[int, ...],
    context: str,
    expected_name: Optional[str] = "heightmap",
) -> None:
    """
    Validate that a grid has the same shape as a reference grid.

    Raises:
        ShapeMismatchError: If the shapes differ
    """
    if tuple(expected) != tuple(actual):
        raise ShapeMismatchError(
            f"{context} has shape {tuple(actual)} but the {expected_name} is "
            f"{tuple(expected)}. Both grids must cover the same N x N cells."
        )
