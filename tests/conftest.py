"""
Shared pytest fixtures and configuration for beamng_terrain tests.
"""

import numpy as np
import pytest


RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "requires_rasterio: requires rasterio for GeoTIFF tests"
    )


def pytest_collection_modifyitems(config, items):
    """Auto-skip tests based on missing dependencies."""
    try:
        import rasterio
        rasterio_available = True
    except ImportError:
        rasterio_available = False

    for item in items:
        if "requires_rasterio" in item.keywords and not rasterio_available:
            item.add_marker(pytest.mark.skip(reason="rasterio not installed"))


@pytest.fixture
def sample_elevation():
    """A small synthetic elevation grid for fast tests."""
    from beamng_terrain.io.samples import generate_sample_elevation

    return generate_sample_elevation(size=(40, 48), seed=42)


@pytest.fixture
def sample_image(sample_elevation):
    """Fake imagery matching the sample elevation grid."""
    from beamng_terrain.io.samples import generate_sample_imagery

    return generate_sample_imagery(sample_elevation)


@pytest.fixture
def rgb_image():
    """2x2 image: red, red / blue, green."""
    return np.array([[RED, RED], [BLUE, GREEN]], dtype=np.uint8)


@pytest.fixture
def settings():
    """Small, deterministic export settings."""
    from beamng_terrain.config import ExportSettings

    return ExportSettings(resolution=16, palette_size=4, map_name="TestMap")


@pytest.fixture
def sample_files(tmp_path, sample_elevation, sample_image):
    """Sample DEM (.npy) and imagery (.png) written to disk."""
    from PIL import Image

    dem_path = tmp_path / "dem.npy"
    imagery_path = tmp_path / "imagery.png"
    np.save(dem_path, sample_elevation)
    Image.fromarray(sample_image).save(imagery_path)
    return dem_path, imagery_path


@pytest.fixture
def tmp_output_dir(tmp_path):
    """Temporary directory for test outputs."""
    out = tmp_path / "out"
    out.mkdir()
    return out


@pytest.fixture
def cli_runner():
    """Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
