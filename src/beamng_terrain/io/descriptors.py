"""
Descriptor Export Module

JSON documents and swatch textures that accompany a ``.ter`` file:

- ``<map>.terrain.json`` describes the terrain asset and its materials
- ``main.level.json`` places a TerrainBlock referencing it
- ``materials.json`` plus ``art/terrain/<name>_basecolor.png`` swatches
  describe one material per palette color
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Tuple, Union

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..core.validation import validate_map_name, validate_output_dir
from ..utils.log import get_logger

if TYPE_CHECKING:
    from ..core.palette import Palette

logger = get_logger(__name__)

LEVEL_FILENAME = "main.level.json"
MATERIALS_FILENAME = "materials.json"
TEXTURE_DIR = Path("art") / "terrain"
MIN_ROUGHNESS = 0.2
MAX_ROUGHNESS = 1.0


class _Descriptor(BaseModel):
    """Base for JSON documents; fields serialize under their camelCase aliases."""
    model_config = ConfigDict(populate_by_name=True, extra='forbid')

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode='json')

    def write(self, filepath: Union[str, Path], indent: int = 2) -> Path:
        filepath = Path(filepath)
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=indent)
        return filepath


class TerrainDescriptor(_Descriptor):
    """``<map>.terrain.json``"""
    name: str
    terrain_asset: str = Field(alias="terrainAsset")
    size: Tuple[int, int]
    square_size: int = Field(default=1, alias="squareSize")
    materials: List[str] = Field(default_factory=list)

    @field_validator('size')
    @classmethod
    def _square_positive(cls, v):
        if v[0] != v[1] or v[0] <= 0:
            raise ValueError(f"size must be [N, N] with N > 0, got {list(v)}")
        return v

    @field_validator('terrain_asset')
    @classmethod
    def _ter_asset(cls, v):
        if not v.endswith('.ter'):
            raise ValueError(f"terrainAsset must name a .ter file, got {v!r}")
        return v

    @classmethod
    def for_map(cls, map_name: str, resolution: int, material_names: List[str]) -> TerrainDescriptor:
        return cls(
            name=map_name,
            terrain_asset=f"{map_name}.ter",
            size=(resolution, resolution),
            materials=list(material_names),
        )


class LevelObject(_Descriptor):
    class_name: str = Field(default="TerrainBlock", alias="className")
    data: str
    position: Tuple[float, float, float] = (0, 0, 0)


class LevelDescriptor(_Descriptor):
    """``main.level.json``"""
    name: str
    objects: List[LevelObject]

    @classmethod
    def for_map(cls, map_name: str) -> LevelDescriptor:
        return cls(
            name=map_name,
            objects=[LevelObject(data=f"{map_name}.terrain.json")],
        )


class MaterialMaps(_Descriptor):
    base_color: str = Field(alias="baseColor")


class MaterialParams(_Descriptor):
    roughness: float = Field(ge=MIN_ROUGHNESS, le=MAX_ROUGHNESS)


class MaterialEntry(_Descriptor):
    """One entry of ``materials.json``."""
    name: str
    maps: MaterialMaps
    params: MaterialParams

    @model_validator(mode='after')
    def _texture_matches_name(self):
        expected = texture_path(self.name)
        if self.maps.base_color != expected:
            raise ValueError(
                f"baseColor for {self.name!r} must be {expected!r}, "
                f"got {self.maps.base_color!r}"
            )
        return self

    @classmethod
    def from_color(cls, name: str, color: Tuple[int, int, int]) -> MaterialEntry:
        return cls(
            name=name,
            maps=MaterialMaps(base_color=texture_path(name)),
            params=MaterialParams(roughness=roughness_for(color)),
        )


def texture_path(material_name: str) -> str:
    """Relative, forward-slash path of a material's base color swatch."""
    return (TEXTURE_DIR / f"{material_name}_basecolor.png").as_posix()


def roughness_for(color: Tuple[int, int, int]) -> float:
    """Darker colors are rougher: 1 - brightness, clamped to [0.2, 1.0]."""
    r, g, b = color
    brightness = (r + g + b) / 3.0 / 255.0
    return min(max(1.0 - brightness, MIN_ROUGHNESS), MAX_ROUGHNESS)


def write_descriptors(
    output_dir: Union[str, Path],
    map_name: str,
    resolution: int,
    material_names: List[str],
) -> Tuple[Path, Path]:
    """
    Write ``<map>.terrain.json`` and ``main.level.json``.

    Returns:
        (terrain descriptor path, level descriptor path)
    """
    map_name = validate_map_name(map_name)
    output_dir = validate_output_dir(output_dir)

    terrain_path = TerrainDescriptor.for_map(map_name, resolution, material_names).write(
        output_dir / f"{map_name}.terrain.json"
    )
    level_path = LevelDescriptor.for_map(map_name).write(output_dir / LEVEL_FILENAME)

    logger.info("Wrote descriptors", terrain=str(terrain_path), level=str(level_path))
    return terrain_path, level_path


def build_materials(palette: 'Palette') -> Dict[str, MaterialEntry]:
    """Material entries keyed by name, in palette order."""
    return {
        name: MaterialEntry.from_color(name, color)
        for name, color in zip(palette.material_names(), palette)
    }


def write_materials(
    output_dir: Union[str, Path],
    palette: 'Palette',
    swatch_size: int = 16,
) -> Tuple[Path, List[Path]]:
    """
    Write ``materials.json`` and one flat-color swatch PNG per material.

    Returns:
        (materials.json path, swatch paths in palette order)
    """
    output_dir = validate_output_dir(output_dir)
    texture_dir = output_dir / TEXTURE_DIR
    texture_dir.mkdir(parents=True, exist_ok=True)

    materials = build_materials(palette)

    swatches = []
    for (name, entry), color in zip(materials.items(), palette):
        swatch_path = output_dir / entry.maps.base_color
        Image.new("RGB", (swatch_size, swatch_size), color).save(swatch_path)
        swatches.append(swatch_path)

    materials_path = output_dir / MATERIALS_FILENAME
    with open(materials_path, 'w', encoding='utf-8') as f:
        json.dump(
            {name: entry.to_dict() for name, entry in materials.items()},
            f,
            indent=2,
        )

    logger.info("Wrote materials", path=str(materials_path), materials=len(materials))
    return materials_path, swatches
