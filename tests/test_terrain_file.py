"""
Tests for the binary terrain file writer and reader.
"""

import os
import struct

import numpy as np
import pytest

from beamng_terrain.core.validation import (
    FilePermissionError,
    InvalidArgumentError,
    ShapeMismatchError,
    TerrainFormatError,
)
from beamng_terrain.io import terrain_file
from beamng_terrain.io.terrain_file import TERRAIN_FILE_VERSION, TerrainFile


HEIGHTS = np.array([[1, 2], [3, 4]], dtype=np.uint16)
LAYERS = np.array([[0, 1], [1, 0]], dtype=np.uint8)
NAMES = ["generated_0", "generated_1"]


@pytest.fixture
def written(tmp_output_dir):
    """A 2x2 terrain file written with non-default header values."""
    path = terrain_file.write(
        tmp_output_dir / "Small.ter",
        HEIGHTS,
        LAYERS,
        NAMES,
        terrain_size=512.0,
        square_size=2.0,
        height_scale=100.0,
    )
    return path


class TestByteLayout:
    """The exact on-disk layout."""

    def test_header_fields(self, written):
        data = written.read_bytes()

        assert data[0] == TERRAIN_FILE_VERSION == 9
        assert struct.unpack_from('<I', data, 1) == (2,)
        assert struct.unpack_from('<f', data, 5) == (512.0,)
        assert struct.unpack_from('<f', data, 9) == (2.0,)
        assert struct.unpack_from('<f', data, 13) == (100.0,)
        assert struct.unpack_from('<I', data, 17) == (2,)

    def test_heights_are_stored_bottom_row_first(self, written):
        data = written.read_bytes()

        assert struct.unpack_from('<4H', data, 21) == (3, 4, 1, 2)

    def test_layer_map_follows_heights(self, written):
        data = written.read_bytes()

        assert tuple(data[29:33]) == (1, 0, 0, 1)

    def test_texture_section_is_zeroed(self, written):
        data = written.read_bytes()

        assert data[33:37] == bytes(4)

    def test_material_table(self, written):
        data = written.read_bytes()

        assert struct.unpack_from('<I', data, 37) == (2,)
        assert data[41:] == b"\x0bgenerated_0\x0bgenerated_1"

    def test_total_length(self, written):
        # header + 2*4 heights + 4 layers + 4 texture + count + names
        assert written.stat().st_size == 21 + 8 + 4 + 4 + 4 + 2 * 12

    def test_defaults(self, tmp_output_dir):
        path = terrain_file.write(tmp_output_dir / "d.ter", HEIGHTS, LAYERS, NAMES)
        data = path.read_bytes()

        assert struct.unpack_from('<3f', data, 5) == (1024.0, 1.0, 255.0)


class TestWrite:

    def test_returns_path(self, written, tmp_output_dir):
        assert written == tmp_output_dir / "Small.ter"
        assert written.exists()

    def test_no_temporary_files_left(self, written, tmp_output_dir):
        assert sorted(os.listdir(tmp_output_dir)) == ["Small.ter"]

    def test_overwrites_existing_file(self, written):
        terrain_file.write(written, np.zeros((1, 1), dtype=np.uint16),
                           np.zeros((1, 1), dtype=np.uint8), ["only"])

        assert terrain_file.read(written).size == 1

    def test_accepts_wider_integer_dtypes(self, tmp_output_dir):
        path = terrain_file.write(
            tmp_output_dir / "i.ter",
            HEIGHTS.astype(np.int64),
            LAYERS.astype(np.int32),
            NAMES,
        )
        np.testing.assert_array_equal(terrain_file.read(path).heightmap, HEIGHTS)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FilePermissionError, match="does not exist"):
            terrain_file.write(tmp_path / "nope" / "x.ter", HEIGHTS, LAYERS, NAMES)

    def test_shape_mismatch(self, tmp_output_dir):
        with pytest.raises(ShapeMismatchError):
            terrain_file.write(
                tmp_output_dir / "x.ter", HEIGHTS, np.zeros((3, 3), dtype=np.uint8), NAMES
            )

    def test_non_square_heightmap(self, tmp_output_dir):
        with pytest.raises(InvalidArgumentError, match="square"):
            terrain_file.write(
                tmp_output_dir / "x.ter",
                np.zeros((2, 3), dtype=np.uint16),
                np.zeros((2, 3), dtype=np.uint8),
                NAMES,
            )

    def test_layer_index_without_name(self, tmp_output_dir):
        with pytest.raises(InvalidArgumentError, match="references material 1"):
            terrain_file.write(tmp_output_dir / "x.ter", HEIGHTS, LAYERS, ["one"])

    def test_non_ascii_name(self, tmp_output_dir):
        with pytest.raises(InvalidArgumentError, match="ASCII"):
            terrain_file.write(tmp_output_dir / "x.ter", HEIGHTS, LAYERS, ["a", "grün"])

    def test_long_name(self, tmp_output_dir):
        with pytest.raises(InvalidArgumentError, match="255"):
            terrain_file.write(tmp_output_dir / "x.ter", HEIGHTS, LAYERS, ["a", "x" * 256])

    def test_failed_write_leaves_nothing_behind(self, tmp_output_dir):
        with pytest.raises(InvalidArgumentError):
            terrain_file.write(tmp_output_dir / "x.ter", HEIGHTS, LAYERS, [])

        assert os.listdir(tmp_output_dir) == []


class TestRead:

    def test_round_trip(self, written):
        terrain = terrain_file.read(written)

        assert isinstance(terrain, TerrainFile)
        assert terrain.size == 2
        assert terrain.terrain_size == 512.0
        assert terrain.square_size == 2.0
        assert terrain.height_scale == 100.0
        assert terrain.material_names == NAMES
        np.testing.assert_array_equal(terrain.heightmap, HEIGHTS)
        np.testing.assert_array_equal(terrain.layer_map, LAYERS)
        np.testing.assert_array_equal(terrain.layer_texture_data, 0)

    def test_summary(self, written):
        text = terrain_file.read(written).summary()

        assert "TERRAIN FILE" in text
        assert "2 x 2" in text
        assert "generated_1" in text
        assert "50.0%" in text

    def test_short_file(self, tmp_path):
        path = tmp_path / "short.ter"
        path.write_bytes(b"\x09\x00")

        with pytest.raises(TerrainFormatError, match="too short"):
            terrain_file.read(path)

    def test_wrong_version(self, written):
        data = bytearray(written.read_bytes())
        data[0] = 7
        written.write_bytes(bytes(data))

        with pytest.raises(TerrainFormatError, match="version 7"):
            terrain_file.read(written)

    def test_truncated_grids(self, written):
        written.write_bytes(written.read_bytes()[:30])

        with pytest.raises(TerrainFormatError, match="truncated"):
            terrain_file.read(written)

    def test_truncated_names(self, written):
        written.write_bytes(written.read_bytes()[:-3])

        with pytest.raises(TerrainFormatError, match="material table"):
            terrain_file.read(written)

    def test_count_mismatch(self, written):
        data = bytearray(written.read_bytes())
        struct.pack_into('<I', data, 37, 5)
        written.write_bytes(bytes(data))

        with pytest.raises(TerrainFormatError, match="lists 2 materials"):
            terrain_file.read(written)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            terrain_file.read(tmp_path / "missing.ter")
