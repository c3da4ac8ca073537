"""
Command Line Interface for BeamNG Terrain Export

Usage:
    beamng-terrain export <dem> <imagery> --output <dir>
    beamng-terrain palette <imagery>
    beamng-terrain info <terrain.ter>
    beamng-terrain generate-sample --output <dir>
"""

import json
import sys
from pathlib import Path
from typing import Optional

import click
import numpy as np

from . import __version__
from .config import load_settings
from .core.palette import PaletteMode, extract
from .core.validation import validate_output_path
from .io import terrain_file
from .io.raster import load_elevation, load_image
from .io.samples import generate_sample_elevation, generate_sample_imagery
from .pipeline import TerrainExporter
from .utils.log import configure_logging

MODE_CHOICES = [m.value for m in PaletteMode]


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', '-v', is_flag=True, help='Show debug logging')
@click.option('--log-json', is_flag=True, help='Emit log records as JSON lines')
@click.pass_context
def main(ctx, verbose: bool, log_json: bool):
    """BeamNG Terrain Export Tool

    Convert elevation rasters and satellite imagery into a BeamNG
    terrain package (.ter heightmap, layer map and material files).
    """
    ctx.obj = {"verbose": verbose, "log_json": log_json}
    configure_logging("DEBUG" if verbose else "WARNING", json_output=log_json)


@main.command()
@click.argument('dem_file', type=click.Path(exists=True))
@click.argument('imagery_file', type=click.Path(exists=True))
@click.option('--output', '-o', required=True, type=click.Path(), help='Export directory')
@click.option('--name', '-n', default=None, help='Map name (default: YourMap)')
@click.option('--resolution', '-r', type=int, default=None, help='Terrain size N (default: 1024)')
@click.option('--palette-size', '-k', type=int, default=None, help='Maximum materials (default: 16)')
@click.option('--mode', '-m', type=click.Choice(MODE_CHOICES), default=None,
              help='Palette strategy (default: frequency)')
@click.option('--seed', type=int, default=None, help='K-means random seed')
@click.option('--iterations', type=int, default=None, help='K-means iterations (default: 100)')
@click.option('--scale-factor', type=float, default=None,
              help='Terrain cells per DEM sample (default: 1.0)')
@click.option('--config', 'config_file', type=click.Path(exists=True),
              help='JSON file with export settings')
@click.option('--summary-json', type=click.Path(), help='Write the export summary as JSON')
@click.pass_context
def export(
    ctx,
    dem_file: str,
    imagery_file: str,
    output: str,
    name: Optional[str],
    resolution: Optional[int],
    palette_size: Optional[int],
    mode: Optional[str],
    seed: Optional[int],
    iterations: Optional[int],
    scale_factor: Optional[float],
    config_file: Optional[str],
    summary_json: Optional[str],
):
    """Export a terrain package from a DEM and satellite imagery.

    Examples:

        # 1024x1024 terrain with a 16 color frequency palette
        beamng-terrain export dem.tif imagery.png -o levels/my_map

        # k-means palette with a fixed seed
        beamng-terrain export dem.npy imagery.png -o out -m kmeans --seed 7 -k 8
    """
    try:
        settings = load_settings(
            config_file,
            map_name=name,
            resolution=resolution,
            palette_size=palette_size,
            palette_mode=mode,
            kmeans_seed=seed,
            kmeans_iterations=iterations,
            scale_factor=scale_factor,
        )
    except ValueError as e:
        click.echo(f"Error: invalid settings: {e}", err=True)
        sys.exit(1)

    # --verbose wins over the configured level
    if not ctx.obj["verbose"]:
        configure_logging(settings.log_level, json_output=ctx.obj["log_json"])

    click.echo(f"Loading elevation: {dem_file}")
    try:
        elevation = load_elevation(dem_file)
        click.echo(f"  Grid size: {elevation.shape[0]} x {elevation.shape[1]}")
    except Exception as e:
        click.echo(f"Error loading elevation: {e}", err=True)
        sys.exit(1)

    click.echo(f"Loading imagery: {imagery_file}")
    try:
        image = load_image(imagery_file)
        click.echo(f"  Image size: {image.shape[1]} x {image.shape[0]}")
    except Exception as e:
        click.echo(f"Error loading imagery: {e}", err=True)
        sys.exit(1)

    click.echo(
        f"Exporting {settings.resolution}x{settings.resolution} terrain "
        f"({settings.palette_mode.value} palette, k={settings.palette_size})..."
    )
    try:
        result = TerrainExporter(settings).export(elevation, image, output)
    except (ValueError, OSError) as e:
        click.echo(f"Error exporting terrain: {e}", err=True)
        sys.exit(1)

    click.echo("\n" + result.summary())

    if summary_json:
        try:
            summary_path = validate_output_path(summary_json, "summary JSON file")
            with open(summary_path, 'w', encoding='utf-8') as f:
                json.dump(result.to_dict(), f, indent=2)
            click.echo(f"\nSummary saved to: {summary_json}")
        except Exception as e:
            click.echo(f"Error saving summary: {e}", err=True)
            sys.exit(1)


@main.command()
@click.argument('imagery_file', type=click.Path(exists=True))
@click.option('--palette-size', '-k', default=16, help='Maximum colors (default: 16)')
@click.option('--mode', '-m', type=click.Choice(MODE_CHOICES), default='frequency',
              help='Palette strategy')
@click.option('--seed', type=int, default=None, help='K-means random seed')
@click.option('--iterations', default=100, help='K-means iterations (default: 100)')
def palette(
    imagery_file: str,
    palette_size: int,
    mode: str,
    seed: Optional[int],
    iterations: int,
):
    """Show the material palette an image would produce."""
    try:
        image = load_image(imagery_file)
        pal = extract(
            image,
            k=palette_size,
            mode=PaletteMode(mode),
            max_iterations=iterations,
            seed=seed,
        )
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Generated Color Palette ({len(pal)} colors, {mode}):")
    for name, (r, g, b), hex_color in zip(pal.material_names(), pal, pal.to_hex()):
        click.echo(f"  {name:<16} RGB({r:3d}, {g:3d}, {b:3d})  {hex_color}")


@main.command()
@click.argument('ter_file', type=click.Path(exists=True))
def info(ter_file: str):
    """Display the header and material table of a .ter file."""
    try:
        ter = terrain_file.read(ter_file)
    except Exception as e:
        click.echo(f"Error reading terrain file: {e}", err=True)
        sys.exit(1)

    click.echo(f"File:           {ter_file}")
    click.echo(ter.summary())


@main.command()
@click.option('--output', '-o', required=True, type=click.Path(),
              help='Directory for dem.npy and imagery.png')
@click.option('--size', default="128,128", help='Grid size as "rows,cols" (default: 128,128)')
@click.option('--base-elevation', default=100.0, help='Base elevation (default: 100)')
@click.option('--hill-height', default=40.0, help='Maximum hill height (default: 40)')
@click.option('--seed', default=42, help='Random seed (default: 42)')
def generate_sample(
    output: str,
    size: str,
    base_elevation: float,
    hill_height: float,
    seed: int,
):
    """Generate a sample DEM and matching imagery for testing.

    Example:
        beamng-terrain generate-sample -o sample --size 256,256
    """
    from PIL import Image

    try:
        rows, cols = [int(x) for x in size.split(',')]
        if rows <= 0 or cols <= 0:
            raise ValueError
    except ValueError:
        click.echo("Error: Size must be 'rows,cols' with positive integers", err=True)
        sys.exit(1)

    out_dir = Path(output)
    out_dir.mkdir(parents=True, exist_ok=True)

    click.echo(f"Generating sample terrain...")
    click.echo(f"  Size: {rows} x {cols}")
    click.echo(f"  Base elevation: {base_elevation}")

    elevation = generate_sample_elevation(
        size=(rows, cols),
        base_elevation=base_elevation,
        hill_height=hill_height,
        seed=seed,
    )
    imagery = generate_sample_imagery(elevation)

    dem_path = out_dir / "dem.npy"
    imagery_path = out_dir / "imagery.png"
    np.save(dem_path, elevation)
    Image.fromarray(imagery).save(imagery_path)

    click.echo(f"Saved to: {dem_path}")
    click.echo(f"Saved to: {imagery_path}")


if __name__ == '__main__':
    main()
