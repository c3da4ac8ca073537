"""
CLI command tests using Click's test runner.
"""

import json
import logging

import numpy as np
import pytest

from beamng_terrain import __version__
from beamng_terrain.cli import main
from beamng_terrain.io import terrain_file


class TestCLIExport:
    """Test 'export' command."""

    def test_export_sample(self, cli_runner, sample_files, tmp_path):
        """Export writes the terrain package and prints a summary."""
        dem_path, imagery_path = sample_files
        out = tmp_path / "export"

        result = cli_runner.invoke(main, [
            'export', str(dem_path), str(imagery_path),
            '--output', str(out),
            '--name', 'Sample',
            '--resolution', '16',
            '--palette-size', '4',
        ])

        assert result.exit_code == 0, result.output
        assert 'TERRAIN EXPORT SUMMARY' in result.output
        assert (out / 'Sample.ter').exists()
        assert (out / 'Sample.terrain.json').exists()
        assert (out / 'main.level.json').exists()
        assert (out / 'materials.json').exists()
        assert terrain_file.read(out / 'Sample.ter').size == 16

    def test_export_kmeans_with_summary_json(self, cli_runner, sample_files, tmp_path):
        dem_path, imagery_path = sample_files
        out = tmp_path / "export"
        summary = tmp_path / "summary.json"

        result = cli_runner.invoke(main, [
            'export', str(dem_path), str(imagery_path),
            '-o', str(out), '-r', '8', '-k', '3',
            '--mode', 'kmeans', '--seed', '7', '--iterations', '5',
            '--summary-json', str(summary),
        ])

        assert result.exit_code == 0, result.output
        assert 'Summary saved to:' in result.output
        data = json.loads(summary.read_text())
        assert data['palette_mode'] == 'kmeans'
        assert data['resolution'] == 8
        assert len(data['materials']) <= 3

    def test_export_config_file(self, cli_runner, sample_files, tmp_path):
        """Settings come from --config unless overridden on the command line."""
        dem_path, imagery_path = sample_files
        config = tmp_path / "settings.json"
        config.write_text(json.dumps({"map_name": "FromConfig", "resolution": 8}))
        out = tmp_path / "export"

        result = cli_runner.invoke(main, [
            'export', str(dem_path), str(imagery_path),
            '-o', str(out), '--config', str(config), '-k', '2',
        ])

        assert result.exit_code == 0, result.output
        assert terrain_file.read(out / 'FromConfig.ter').size == 8

    def test_export_invalid_resolution(self, cli_runner, sample_files, tmp_path):
        dem_path, imagery_path = sample_files

        result = cli_runner.invoke(main, [
            'export', str(dem_path), str(imagery_path),
            '-o', str(tmp_path / 'out'), '--resolution', '0',
        ])

        assert result.exit_code == 1
        assert 'invalid settings' in result.output

    def test_export_unsupported_dem(self, cli_runner, sample_files, tmp_path):
        _, imagery_path = sample_files
        bad_dem = tmp_path / "dem.xyz"
        bad_dem.write_text("1 2 3")

        result = cli_runner.invoke(main, [
            'export', str(bad_dem), str(imagery_path), '-o', str(tmp_path / 'out'),
        ])

        assert result.exit_code == 1
        assert 'Error loading elevation' in result.output

    def test_export_transparent_imagery(self, cli_runner, sample_files, tmp_path):
        from PIL import Image

        dem_path, _ = sample_files
        clear = tmp_path / "clear.png"
        Image.new("RGBA", (8, 8), (0, 0, 0, 0)).save(clear)

        result = cli_runner.invoke(main, [
            'export', str(dem_path), str(clear), '-o', str(tmp_path / 'out'), '-r', '8',
        ])

        assert result.exit_code == 1
        assert 'Error exporting terrain' in result.output

    def test_export_missing_dem(self, cli_runner, sample_files, tmp_path):
        _, imagery_path = sample_files

        result = cli_runner.invoke(main, [
            'export', 'nonexistent.npy', str(imagery_path), '-o', str(tmp_path),
        ])

        assert result.exit_code != 0


class TestCLIPalette:
    """Test 'palette' command."""

    def test_palette_frequency(self, cli_runner, sample_files):
        _, imagery_path = sample_files

        result = cli_runner.invoke(main, ['palette', str(imagery_path), '-k', '3'])

        assert result.exit_code == 0, result.output
        assert 'Generated Color Palette (3 colors, frequency):' in result.output
        assert 'generated_0' in result.output
        assert '#' in result.output

    def test_palette_kmeans(self, cli_runner, sample_files):
        _, imagery_path = sample_files

        result = cli_runner.invoke(main, [
            'palette', str(imagery_path), '-m', 'kmeans', '--seed', '1', '--iterations', '3',
        ])

        assert result.exit_code == 0, result.output
        assert 'kmeans' in result.output

    def test_palette_invalid_size(self, cli_runner, sample_files):
        _, imagery_path = sample_files

        result = cli_runner.invoke(main, ['palette', str(imagery_path), '-k', '0'])

        assert result.exit_code == 1
        assert 'greater than zero' in result.output

    def test_palette_invalid_mode(self, cli_runner, sample_files):
        _, imagery_path = sample_files

        result = cli_runner.invoke(main, ['palette', str(imagery_path), '-m', 'median'])

        assert result.exit_code != 0


class TestCLIInfo:
    """Test 'info' command."""

    def test_info(self, cli_runner, tmp_output_dir):
        path = terrain_file.write(
            tmp_output_dir / 'Tiny.ter',
            np.array([[0, 65535], [100, 200]], dtype=np.uint16),
            np.zeros((2, 2), dtype=np.uint8),
            ['generated_0'],
        )

        result = cli_runner.invoke(main, ['info', str(path)])

        assert result.exit_code == 0, result.output
        assert 'TERRAIN FILE' in result.output
        assert '2 x 2' in result.output
        assert 'generated_0' in result.output

    def test_info_not_a_terrain_file(self, cli_runner, tmp_path):
        bogus = tmp_path / 'bogus.ter'
        bogus.write_bytes(b'\x01\x02\x03')

        result = cli_runner.invoke(main, ['info', str(bogus)])

        assert result.exit_code == 1
        assert 'Error reading terrain file' in result.output

    def test_info_missing_file(self, cli_runner):
        result = cli_runner.invoke(main, ['info', 'nonexistent.ter'])

        assert result.exit_code != 0


class TestCLIGenerateSample:
    """Test 'generate-sample' command."""

    def test_generate_sample(self, cli_runner, tmp_path):
        out = tmp_path / 'sample'

        result = cli_runner.invoke(main, [
            'generate-sample', '-o', str(out), '--size', '20,30', '--seed', '1',
        ])

        assert result.exit_code == 0, result.output
        assert np.load(out / 'dem.npy').shape == (20, 30)
        assert (out / 'imagery.png').exists()

    @pytest.mark.parametrize('size', ['20', '0,10', 'a,b'])
    def test_generate_sample_bad_size(self, cli_runner, tmp_path, size):
        result = cli_runner.invoke(main, [
            'generate-sample', '-o', str(tmp_path / 'x'), '--size', size,
        ])

        assert result.exit_code == 1
        assert 'rows,cols' in result.output


class TestCLIGlobalOptions:

    def test_version(self, cli_runner):
        result = cli_runner.invoke(main, ['--version'])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, cli_runner):
        result = cli_runner.invoke(main, ['--help'])

        assert result.exit_code == 0
        for command in ('export', 'palette', 'info', 'generate-sample'):
            assert command in result.output

    def test_verbose_json_logging(self, cli_runner, sample_files):
        _, imagery_path = sample_files

        result = cli_runner.invoke(main, ['-v', '--log-json', 'palette', str(imagery_path)])

        assert result.exit_code == 0, result.output


class TestCLILogLevel:
    """The export command honours the configured log level."""

    def run_export(self, cli_runner, sample_files, tmp_path, *extra, env=None):
        dem_path, imagery_path = sample_files
        args = list(extra) + [
            'export', str(dem_path), str(imagery_path),
            '-o', str(tmp_path / 'out'), '-r', '8', '-k', '2',
        ]
        return cli_runner.invoke(main, args, env=env)

    def test_level_from_environment(self, cli_runner, sample_files, tmp_path):
        result = self.run_export(
            cli_runner, sample_files, tmp_path, env={'BEAMNG_TERRAIN_LOG_LEVEL': 'ERROR'}
        )

        assert result.exit_code == 0, result.output
        assert logging.getLogger().level == logging.ERROR

    def test_level_from_config_file(self, cli_runner, sample_files, tmp_path):
        config = tmp_path / 'settings.json'
        config.write_text(json.dumps({'log_level': 'info'}))

        result = self.run_export(cli_runner, sample_files, tmp_path, env=None)
        assert result.exit_code == 0, result.output
        assert logging.getLogger().level == logging.WARNING

        dem_path, imagery_path = sample_files
        result = cli_runner.invoke(main, [
            'export', str(dem_path), str(imagery_path),
            '-o', str(tmp_path / 'out'), '-r', '8', '--config', str(config),
        ])

        assert result.exit_code == 0, result.output
        assert logging.getLogger().level == logging.INFO

    def test_verbose_overrides_configured_level(self, cli_runner, sample_files, tmp_path):
        result = self.run_export(
            cli_runner, sample_files, tmp_path, '--verbose',
            env={'BEAMNG_TERRAIN_LOG_LEVEL': 'ERROR'},
        )

        assert result.exit_code == 0, result.output
        assert logging.getLogger().level == logging.DEBUG
