"""Test the command-line interface."""

import csv

import pytest
from click.testing import CliRunner

from collectr.cli import main
from collectr.config.settings import (
    ArchiveEntry,
    CollectrConfig,
    ConfigManager,
    MovieItem,
    load_config,
)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(temp_dir, test_config, library_root, make_file):
    """A saved configuration with one found and one missing movie."""
    make_file(library_root / "movies" / "The Matrix (1999)" / "matrix.mkv", 2048)
    test_config.catalog.movies = [
        MovieItem(name="The Matrix (1999)"),
        MovieItem(name="Missing Film"),
    ]
    path = temp_dir / "collectr.yaml"
    ConfigManager(path).save(test_config)
    return path


class TestAnalyzeCommand:
    """Test the analyze command."""

    def test_writes_csv_and_summary(self, runner, config_file, temp_dir):
        output_dir = temp_dir / "out"

        result = runner.invoke(
            main, ["analyze", "--config", str(config_file), "--output-dir", str(output_dir)]
        )

        assert result.exit_code == 0, result.output
        assert "COLLECTION ANALYSIS SUMMARY" in result.output
        assert "Found: 1" in result.output
        assert "Missing: 1" in result.output
        assert "CSV report saved to" in result.output

        with open(output_dir / "collection.csv", newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert [row["Name"] for row in rows] == ["The Matrix (1999)", "Missing Film"]

    def test_custom_csv_name(self, runner, config_file, temp_dir):
        result = runner.invoke(
            main,
            [
                "analyze", "--config", str(config_file),
                "--output-dir", str(temp_dir / "out"), "--csv-name", "plan.csv",
            ],
        )

        assert result.exit_code == 0, result.output
        assert (temp_dir / "out" / "plan.csv").exists()

    def test_missing_config_file(self, runner, temp_dir):
        result = runner.invoke(main, ["analyze", "--config", str(temp_dir / "absent.yaml")])

        assert result.exit_code != 0
        assert "Error" in result.output

    def test_invalid_config(self, runner, temp_dir):
        bad = temp_dir / "bad.yaml"
        bad.write_text("drive:\n  size_gb: -5\n")

        result = runner.invoke(main, ["analyze", "--config", str(bad)])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


class TestFindCommand:
    """Test the find command."""

    def test_finds_movie(self, runner, config_file):
        result = runner.invoke(
            main, ["find", "matrix", "--config", str(config_file), "--category", "movies"]
        )

        assert result.exit_code == 0, result.output
        assert "Matches for 'matrix':" in result.output
        assert "[movies] The Matrix (1999)" in result.output

    def test_no_matches(self, runner, config_file):
        result = runner.invoke(main, ["find", "Qwxyz Plorg", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "No matches for 'Qwxyz Plorg'" in result.output

    def test_library_path_override(self, runner, temp_dir, make_file):
        other_library = temp_dir / "elsewhere"
        make_file(other_library / "tv" / "Firefly" / "e01.mkv", 10)
        config_path = temp_dir / "plain.yaml"
        ConfigManager(config_path).save(CollectrConfig())

        result = runner.invoke(
            main,
            ["find", "Firefly", "--config", str(config_path), "--library-path", str(other_library)],
        )

        assert result.exit_code == 0, result.output
        assert "[tv] Firefly" in result.output


class TestCacheCommands:
    """Test cache stats and clear."""

    def test_stats_and_clear_after_analysis(self, runner, config_file, temp_dir):
        runner.invoke(main, ["analyze", "--config", str(config_file), "--output-dir", str(temp_dir / "out")])

        stats = runner.invoke(main, ["cache", "stats", "--config", str(config_file)])
        assert stats.exit_code == 0, stats.output
        assert "Cache statistics" in stats.output
        assert "Total entries: 0" not in stats.output

        cleared = runner.invoke(main, ["cache", "clear", "--config", str(config_file)])
        assert cleared.exit_code == 0, cleared.output
        assert "Cache cleared" in cleared.output

        stats = runner.invoke(main, ["cache", "stats", "--config", str(config_file)])
        assert "Total entries: 0" in stats.output

    def test_cache_disabled(self, runner, temp_dir, test_config):
        test_config.cache.enabled = False
        path = temp_dir / "nocache.yaml"
        ConfigManager(path).save(test_config)

        result = runner.invoke(main, ["cache", "stats", "--config", str(path)])

        assert result.exit_code == 0
        assert "Cache is disabled" in result.output


class TestArchivesCommand:
    """Test the archives command."""

    def test_reports_missing_archive(self, runner, temp_dir, test_config):
        test_config.catalog.archives = [
            ArchiveEntry(name="wikipedia", expected_size_gb=7.5, category="reference")
        ]
        path = temp_dir / "archives.yaml"
        ConfigManager(path).save(test_config)

        result = runner.invoke(main, ["archives", "--config", str(path)])

        assert result.exit_code == 0, result.output
        assert "[NOT DOWNLOADED] wikipedia" in result.output
        assert "not downloaded: 1" in result.output

    def test_no_archives(self, runner, config_file):
        result = runner.invoke(main, ["archives", "--config", str(config_file)])

        assert result.exit_code == 0
        assert "No archives configured" in result.output


class TestSampleConfigCommand:
    """Test sample configuration generation."""

    def test_writes_loadable_sample(self, runner, temp_dir):
        output = temp_dir / "sample.yaml"

        result = runner.invoke(main, ["sample-config", "--output", str(output)])

        assert result.exit_code == 0, result.output
        config = load_config(output)
        assert config.catalog.movies[0].name == "The Matrix (1999)"
        assert config.catalog.series[0].seasons == [1, 2]
        assert config.webtv_selection.reserved_space_gb == 500

    def test_refuses_to_overwrite_without_force(self, runner, temp_dir):
        output = temp_dir / "sample.yaml"
        output.write_text("keep: me\n")

        result = runner.invoke(main, ["sample-config", "--output", str(output)])

        assert result.exit_code == 1
        assert "already exists" in result.output
        assert output.read_text() == "keep: me\n"

        forced = runner.invoke(main, ["sample-config", "--output", str(output), "--force"])
        assert forced.exit_code == 0
        assert "library_paths" in output.read_text()