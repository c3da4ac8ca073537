"""
Palette Extraction Module

Reduces an image to a bounded, ordered set of representative colors.
The palette order defines material indices, so one Palette value is meant
to be extracted once and then passed to every later export step.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple

import numpy as np

from .layers import nearest_palette_index
from .validation import (
    InvalidArgumentError,
    validate_image,
    validate_palette_size,
    validate_seed,
)
from ..utils.log import get_logger

logger = get_logger(__name__)

MATERIAL_NAME_PREFIX = "generated_"


class PaletteMode(str, Enum):
    """Strategies for choosing palette colors."""
    FREQUENCY = "frequency"  # Most common exact colors (fast, deterministic)
    KMEANS = "kmeans"        # Cluster centroids (better coverage, seeded)


def material_name(index: int) -> str:
    """Material name for a palette position."""
    return f"{MATERIAL_NAME_PREFIX}{index}"


@dataclass(frozen=True, eq=False)
class Palette:
    """
    Ordered set of distinct RGB colors.

    Attributes:
        colors: (K, 3) uint8 array; row i is the color of material i
        mode: Strategy that produced the palette
    """
    colors: np.ndarray = field(repr=False)
    mode: PaletteMode = PaletteMode.FREQUENCY

    def __post_init__(self):
        colors = np.asarray(self.colors)
        if colors.size == 0:
            colors = colors.reshape(0, 3)
        if colors.ndim != 2 or colors.shape[1] != 3:
            raise InvalidArgumentError(
                f"Palette colors must have shape (K, 3), got {colors.shape}"
            )
        if colors.dtype != np.uint8 and colors.size:
            if np.issubdtype(colors.dtype, np.floating) and not np.all(np.isfinite(colors)):
                raise InvalidArgumentError("Palette colors contain non-finite values")
            if colors.min() < 0 or colors.max() > 255:
                raise InvalidArgumentError(
                    f"Palette channel values must be in 0-255, "
                    f"got range {colors.min()} to {colors.max()}"
                )
        colors = colors.astype(np.uint8)
        colors.setflags(write=False)
        object.__setattr__(self, "colors", colors)

    def __len__(self) -> int:
        return len(self.colors)

    def __iter__(self) -> Iterator[Tuple[int, int, int]]:
        for r, g, b in self.colors:
            yield (int(r), int(g), int(b))

    def __getitem__(self, index: int) -> Tuple[int, int, int]:
        r, g, b = self.colors[index]
        return (int(r), int(g), int(b))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Palette):
            return NotImplemented
        return self.mode == other.mode and np.array_equal(self.colors, other.colors)

    def __repr__(self) -> str:
        return f"Palette(mode={self.mode.value!r}, colors={self.to_list()!r})"

    def material_names(self) -> List[str]:
        """One ``generated_<i>`` name per color, in palette order."""
        return [material_name(i) for i in range(len(self))]

    def to_list(self) -> List[Tuple[int, int, int]]:
        return list(self)

    def to_hex(self) -> List[str]:
        return [f"#{r:02x}{g:02x}{b:02x}" for r, g, b in self]


def visible_pixels(image, alpha_threshold: float = 0.5) -> np.ndarray:
    """
    RGB values of the pixels that count toward a palette.

    A pixel is skipped when its alpha is at or below
    ``alpha_threshold`` of the maximum (255).

    Returns:
        (P, 3) uint8 array in row-major scan order
    """
    if not 0.0 <= alpha_threshold < 1.0:
        raise InvalidArgumentError(
            f"Alpha threshold must be in [0, 1), got {alpha_threshold}"
        )

    rgba = validate_image(image)
    flat = rgba.reshape(-1, 4)
    mask = flat[:, 3].astype(np.float64) > alpha_threshold * 255.0
    return flat[mask, :3]


def extract_frequency(pixels: np.ndarray, k: int) -> np.ndarray:
    """
    Top ``k`` exact colors by pixel count.

    Ties are broken by the position where each color first appears.
    """
    if len(pixels) == 0:
        return np.empty((0, 3), dtype=np.uint8)

    packed = (
        (pixels[:, 0].astype(np.uint32) << 16)
        | (pixels[:, 1].astype(np.uint32) << 8)
        | pixels[:, 2].astype(np.uint32)
    )
    unique, first_seen, counts = np.unique(
        packed, return_index=True, return_counts=True
    )

    # lexsort: last key is primary -> count descending, then first position
    order = np.lexsort((first_seen, -counts))[:k]
    return pixels[first_seen[order]].astype(np.uint8)


def extract_kmeans(
    pixels: np.ndarray,
    k: int,
    max_iterations: int = 100,
    seed: Optional[int] = None,
) -> np.ndarray:
    """
    K-means cluster centroids of the pixel colors.

    Centroids start from ``k`` distinct pixels sampled uniformly without
    replacement and are refined for exactly ``max_iterations`` rounds.
    A cluster that loses all its pixels keeps its previous centroid.

    Returns:
        (K', 3) uint8 array of rounded centroids in cluster order, with
        duplicates after rounding dropped (K' <= k)
    """
    if max_iterations < 0:
        raise InvalidArgumentError(
            f"Iteration count cannot be negative, got {max_iterations}"
        )
    seed = validate_seed(seed)

    if len(pixels) == 0:
        return np.empty((0, 3), dtype=np.uint8)

    data = pixels.astype(np.float64)
    k = min(k, len(data))

    rng = np.random.default_rng(seed)
    centroids = data[rng.choice(len(data), size=k, replace=False)].copy()

    for _ in range(max_iterations):
        labels = nearest_palette_index(data, centroids)

        sums = np.zeros_like(centroids)
        np.add.at(sums, labels, data)
        counts = np.bincount(labels, minlength=k)

        populated = counts > 0
        centroids[populated] = sums[populated] / counts[populated, None]

    rounded = np.clip(np.rint(centroids), 0, 255).astype(np.uint8)
    _, first = np.unique(rounded, axis=0, return_index=True)
    return rounded[np.sort(first)]


def extract(
    image,
    k: int = 16,
    mode: PaletteMode = PaletteMode.FREQUENCY,
    max_iterations: int = 100,
    seed: Optional[int] = None,
    alpha_threshold: float = 0.5,
) -> Palette:
    """
    Extract a palette of at most ``k`` colors from an image.

    Args:
        image: (H, W, 3) or (H, W, 4) uint8 image
        k: Maximum number of colors
        mode: PaletteMode.FREQUENCY or PaletteMode.KMEANS
        max_iterations: K-means rounds (kmeans mode only)
        seed: Random seed for k-means initialization (kmeans mode only)
        alpha_threshold: Fraction of full alpha at or below which a
            pixel is ignored

    Returns:
        Palette; empty when every pixel is transparent

    Raises:
        InvalidArgumentError: If k <= 0, the mode is unknown, the seed is
            negative, or the image is malformed
    """
    k = validate_palette_size(k)
    seed = validate_seed(seed)

    try:
        mode = PaletteMode(mode)
    except ValueError:
        choices = ", ".join(m.value for m in PaletteMode)
        raise InvalidArgumentError(f"Unknown palette mode {mode!r} (choose from {choices})")

    pixels = visible_pixels(image, alpha_threshold)

    if mode == PaletteMode.KMEANS:
        colors = extract_kmeans(pixels, k, max_iterations=max_iterations, seed=seed)
    else:
        colors = extract_frequency(pixels, k)

    if len(colors) == 0:
        logger.warning("No visible pixels, palette is empty", mode=mode.value)
    else:
        logger.info(
            "Extracted palette",
            mode=mode.value,
            colors=len(colors),
            requested=k,
            pixels=len(pixels),
        )

    return Palette(colors=colors, mode=mode)
