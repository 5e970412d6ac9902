"""Test configuration management functionality."""

import pytest
import yaml

from collectr.config.settings import (
    ArchiveEntry,
    ChannelEntry,
    CollectrConfig,
    ConfigError,
    ConfigManager,
    MovieItem,
    OtherItem,
    Priority,
    SelectionStrategy,
    load_config,
)


class TestConfigManager:
    """Test configuration manager functionality."""

    def test_missing_config_raises(self, temp_dir):
        """A missing configuration file is a fatal error."""
        manager = ConfigManager(temp_dir / "missing.yaml")

        with pytest.raises(ConfigError, match="not found"):
            manager.load()

    def test_save_and_load_config(self, temp_dir):
        """Test saving and loading configuration."""
        config_path = temp_dir / "collectr.yaml"
        manager = ConfigManager(config_path)

        config = CollectrConfig()
        config.drive.size_gb = 500
        config.catalog.movies = [MovieItem(name="Alien (1979)")]

        manager.save(config)
        assert config_path.exists()

        loaded = manager.load()
        assert loaded.drive.size_gb == 500
        assert loaded.catalog.movies[0].name == "Alien (1979)"

    def test_load_existing_config(self, temp_dir):
        """Test loading from existing YAML file."""
        config_path = temp_dir / "existing.yaml"
        config_data = {
            "library_paths": {"base": "/srv/media", "movies": "/srv/media/films"},
            "catalog": {
                "series": [{"name": "Firefly", "seasons": [1]}],
                "webtv_channels": [{"name": "Nature", "priority": "required"}],
                "archives": [{"name": "wikipedia", "expected_size_gb": 7.5, "category": "reference"}],
            },
            "webtv_selection": {"reserved_space_gb": 250, "random_seed": 7},
        }
        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = ConfigManager(config_path).load()

        assert config.library_paths.movies == "/srv/media/films"
        assert config.catalog.series[0].seasons == [1]
        assert config.catalog.webtv_channels[0].priority == Priority.REQUIRED
        assert config.catalog.archives[0].priority == Priority.REQUIRED
        assert config.webtv_selection.reserved_space_gb == 250
        assert config.webtv_selection.selection_strategy == SelectionStrategy.FILL_TO_TARGET
        assert config.webtv_selection.allow_partial_channels is True

    def test_invalid_yaml_raises(self, temp_dir):
        """Unparseable YAML is reported as a configuration error."""
        config_path = temp_dir / "invalid.yaml"
        config_path.write_text("invalid: yaml: content: [")

        with pytest.raises(ConfigError):
            ConfigManager(config_path).load()

    def test_non_mapping_raises(self, temp_dir):
        config_path = temp_dir / "list.yaml"
        config_path.write_text("- one\n- two\n")

        with pytest.raises(ConfigError, match="mapping"):
            ConfigManager(config_path).load()

    def test_non_positive_budget_raises(self, temp_dir):
        """A zero WebTV budget fails validation."""
        config_path = temp_dir / "budget.yaml"
        with open(config_path, "w") as f:
            yaml.dump({"webtv_selection": {"reserved_space_gb": 0}}, f)

        with pytest.raises(ConfigError, match="reserved_space_gb"):
            load_config(config_path)

    def test_empty_file_gives_defaults(self, temp_dir):
        config_path = temp_dir / "empty.yaml"
        config_path.write_text("")

        config = ConfigManager(config_path).load()

        assert config.drive.size_gb == 2000
        assert config.webtv_selection is None

    def test_get_config_loads_once(self, temp_dir):
        config_path = temp_dir / "collectr.yaml"
        config_path.write_text("log_level: DEBUG\n")
        manager = ConfigManager(config_path)

        first = manager.get_config()
        assert first.log_level == "DEBUG"
        assert manager.get_config() is first

    def test_create_sample_config(self, temp_dir):
        """The sample configuration is commented and loads cleanly."""
        output_path = temp_dir / "sample.yaml"
        manager = ConfigManager(output_path)

        assert manager.create_sample_config(output_path) == output_path

        content = output_path.read_text()
        assert "# collectr Configuration File" in content
        assert "webtv_selection:" in content

        config = manager.load()
        assert config.catalog.series[0].seasons == [1, 2]
        assert config.webtv_selection.reserved_space_gb == 500
        assert isinstance(config.catalog.other[0], OtherItem)
        assert config.catalog.other[0].type == "games"


class TestCatalogConfig:
    """Test catalog model validation."""

    def test_default_config_creation(self):
        config = CollectrConfig()

        assert config.analysis.max_workers == 4
        assert config.analysis.match_threshold == 0.6
        assert config.cache.enabled is True
        assert ".ts" in config.media_extensions

    def test_channel_defaults_to_optional(self):
        channel = ChannelEntry(name="Space")

        assert channel.priority == Priority.OPTIONAL
        assert not channel.is_required

    def test_other_items_are_dispatched_by_type(self):
        config = CollectrConfig(catalog={
            "other": [
                {"name": "Retro", "type": "games"},
                {"name": "Nature", "type": "webtv"},
                {"name": "wiki", "type": "archive", "expected_size_gb": 1, "category": "ref"},
            ]
        })

        library = config.catalog.library_items()
        assert [item.name for item in library] == ["Retro", "Nature"]
        assert isinstance(library[1], ChannelEntry)
        assert [item.name for item in config.catalog.archive_items()] == ["wiki"]
        assert isinstance(config.catalog.archive_items()[0], ArchiveEntry)

    def test_invalid_season_rejected(self):
        with pytest.raises(ValueError):
            CollectrConfig(catalog={"series": [{"name": "Show", "seasons": [0]}]})

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            CollectrConfig(catalog={"movies": [{"name": ""}]})

    def test_rebase_library_paths(self, temp_dir):
        config = CollectrConfig()

        paths = config.library_paths.rebase(temp_dir)

        assert paths.base == str(temp_dir.resolve())
        assert paths.tv == str(temp_dir.resolve() / "tv")
        assert paths.webtv == str(temp_dir.resolve() / "webtv")
