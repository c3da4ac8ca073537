"""
Terrain Export Pipeline

Runs the full conversion from an elevation grid and an image to an export
directory:

    elevation -> resample -> normalize ----------------\
                                                        +-> .ter, JSON, swatches
    image -> extract palette -> classify -> layer map -/

The palette is extracted once, in ``prepare``, and the same Palette value
is used for classification, material names, materials.json and the terrain
descriptor.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np

from .config import ExportSettings
from .core.heightmap import elevation_range, normalize
from .core.interpolation import register_image, resample
from .core.layers import classify
from .core.palette import Palette, extract
from .core.validation import (
    InvalidArgumentError,
    validate_grid,
    validate_image,
    validate_map_name,
    validate_output_dir,
)
from .io import descriptors, terrain_file
from .utils.log import get_logger

logger = get_logger(__name__)


@dataclass
class PreparedTerrain:
    """
    In-memory result of the compute stages of one pipeline run.

    Attributes:
        heightmap: (N, N) uint16 normalized heights
        layer_map: (N, N) uint8 palette indices
        palette: Palette the layer map indexes into
        elevation_min: Lowest resampled elevation
        elevation_max: Highest resampled elevation
    """
    heightmap: np.ndarray = field(repr=False)
    layer_map: np.ndarray = field(repr=False)
    palette: Palette
    elevation_min: float
    elevation_max: float

    @property
    def resolution(self) -> int:
        return self.heightmap.shape[0]

    @property
    def material_names(self) -> List[str]:
        return self.palette.material_names()

    @property
    def is_flat(self) -> bool:
        return self.elevation_min == self.elevation_max


@dataclass
class ExportResult:
    """Files and statistics of a completed export."""
    output_dir: Path
    map_name: str
    resolution: int
    palette: Palette
    elevation_min: float
    elevation_max: float
    terrain_file: Path
    terrain_descriptor: Path
    level_descriptor: Path
    materials_file: Path
    swatches: List[Path] = field(default_factory=list)

    @property
    def material_names(self) -> List[str]:
        return self.palette.material_names()

    def summary(self) -> str:
        """Return human-readable summary."""
        lines = [
            "=" * 50,
            "TERRAIN EXPORT SUMMARY",
            "=" * 50,
            f"Map:               {self.map_name}",
            f"Output:            {self.output_dir}",
            f"Resolution:        {self.resolution} x {self.resolution}",
            f"Elevation range:   {self.elevation_min:.2f} to {self.elevation_max:.2f}",
            f"",
            f"Palette ({self.palette.mode.value}, {len(self.palette)} colors):",
        ]
        for name, hex_color in zip(self.material_names, self.palette.to_hex()):
            lines.append(f"  {name:<16} {hex_color}")

        lines.extend([
            f"",
            f"Files:",
            f"  {self.terrain_file.name}",
            f"  {self.terrain_descriptor.name}",
            f"  {self.level_descriptor.name}",
            f"  {self.materials_file.name}",
            f"  {len(self.swatches)} swatch texture(s)",
            "=" * 50,
        ])
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "map_name": self.map_name,
            "output_dir": str(self.output_dir),
            "resolution": self.resolution,
            "elevation_min": self.elevation_min,
            "elevation_max": self.elevation_max,
            "palette_mode": self.palette.mode.value,
            "palette": [list(c) for c in self.palette],
            "materials": self.material_names,
            "files": {
                "terrain": str(self.terrain_file),
                "terrain_descriptor": str(self.terrain_descriptor),
                "level_descriptor": str(self.level_descriptor),
                "materials": str(self.materials_file),
                "swatches": [str(p) for p in self.swatches],
            },
        }


class TerrainExporter:
    """
    Converts elevation and imagery into a terrain export directory.

    Example:
        exporter = TerrainExporter(ExportSettings(resolution=512))
        result = exporter.export(dem, image, "out/")
        print(result.summary())
    """

    def __init__(self, settings: Optional[ExportSettings] = None):
        self.settings = settings or ExportSettings()

    def extract_palette(self, image) -> Palette:
        """Extract a palette from an image with the configured strategy."""
        s = self.settings
        return extract(
            image,
            k=s.palette_size,
            mode=s.palette_mode,
            max_iterations=s.kmeans_iterations,
            seed=s.kmeans_seed,
            alpha_threshold=s.alpha_threshold,
        )

    def fit_image(self, image, source_shape: Tuple[int, int]) -> np.ndarray:
        """
        Return the image as an (N, N) RGBA array over the heightmap's cells.

        The image is assumed to cover the same area as the elevation grid of
        ``source_shape``; it is sampled at the centred window ``resample``
        takes from that grid.
        """
        s = self.settings
        rgba = validate_image(image)
        if rgba.shape[:2] != tuple(source_shape):
            logger.info(
                "Imagery and elevation grids differ in size, sampling imagery to match",
                image_shape=rgba.shape[:2],
                elevation_shape=tuple(source_shape),
            )
        return register_image(rgba, source_shape, s.resolution, scale_factor=s.scale_factor)

    def prepare(
        self,
        elevation,
        image,
        palette: Optional[Palette] = None,
    ) -> PreparedTerrain:
        """
        Run the compute stages: resample, normalize, palette, classify.

        Args:
            elevation: 2D elevation grid of any size
            image: RGB(A) imagery covering the same area
            palette: A palette extracted earlier (e.g. for a preview) to
                reuse instead of extracting a new one

        Raises:
            InvalidArgumentError: On invalid inputs, or if the imagery has
                no visible pixels to build a palette from
        """
        s = self.settings

        logger.info("Resampling elevation", target_size=s.resolution)
        source = validate_grid(elevation)
        heights = resample(source, s.resolution, scale_factor=s.scale_factor)
        lo, hi = elevation_range(heights)
        normalized = normalize(heights)

        # The palette comes from the full image, as a standalone preview would
        if palette is None:
            palette = self.extract_palette(image)
        if len(palette) == 0:
            raise InvalidArgumentError(
                "Imagery has no visible pixels; cannot build a material palette"
            )

        fitted = self.fit_image(image, source.shape)
        logger.info("Classifying layers", materials=len(palette))
        layer_map = classify(fitted, palette)

        return PreparedTerrain(
            heightmap=normalized,
            layer_map=layer_map,
            palette=palette,
            elevation_min=lo,
            elevation_max=hi,
        )

    def write(
        self,
        prepared: PreparedTerrain,
        output_dir: Union[str, Path],
        map_name: Optional[str] = None,
    ) -> ExportResult:
        """
        Write a prepared terrain to ``output_dir`` (created if missing).

        Raises:
            FilePermissionError: If the directory cannot be created or written
        """
        s = self.settings
        map_name = validate_map_name(map_name or s.map_name)
        output_dir = validate_output_dir(output_dir, create=True)
        names = prepared.material_names

        ter_path = terrain_file.write(
            output_dir / f"{map_name}.ter",
            prepared.heightmap,
            prepared.layer_map,
            names,
            terrain_size=s.terrain_size,
            square_size=s.square_size,
            height_scale=s.height_scale,
        )
        materials_path, swatches = descriptors.write_materials(
            output_dir, prepared.palette, swatch_size=s.swatch_size
        )
        terrain_json, level_json = descriptors.write_descriptors(
            output_dir, map_name, prepared.resolution, names
        )

        logger.info("Export complete", output_dir=str(output_dir), map_name=map_name)

        return ExportResult(
            output_dir=output_dir,
            map_name=map_name,
            resolution=prepared.resolution,
            palette=prepared.palette,
            elevation_min=prepared.elevation_min,
            elevation_max=prepared.elevation_max,
            terrain_file=ter_path,
            terrain_descriptor=terrain_json,
            level_descriptor=level_json,
            materials_file=materials_path,
            swatches=swatches,
        )

    def export(
        self,
        elevation,
        image,
        output_dir: Union[str, Path],
        map_name: Optional[str] = None,
        palette: Optional[Palette] = None,
    ) -> ExportResult:
        """Prepare and write in one call."""
        prepared = self.prepare(elevation, image, palette=palette)
        return self.write(prepared, output_dir, map_name=map_name)
