"""Configuration management for collectr."""

import logging
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when the configuration cannot be loaded or is invalid."""


class Priority(str, Enum):
    """Channel and archive priority tiers."""

    REQUIRED = "required"
    OPTIONAL = "optional"


class SelectionStrategy(str, Enum):
    """WebTV selection strategies."""

    FILL_TO_TARGET = "fill_to_target"
    EXACT_CHANNELS = "exact_channels"


class _CatalogBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)


class MovieItem(_CatalogBase):
    """A single movie directory."""
    type: Literal["movie"] = "movie"
    reserved_space_gb: float | None = Field(default=None, gt=0)


class SeriesItem(_CatalogBase):
    """A TV series, optionally limited to a subset of seasons."""
    type: Literal["series"] = "series"
    seasons: list[Annotated[int, Field(gt=0)]] | None = None
    episodes: int | None = Field(default=None, gt=0)
    reserved_space_gb: float | None = Field(default=None, gt=0)


class ChannelEntry(_CatalogBase):
    """A bulk WebTV channel."""
    type: Literal["webtv"] = "webtv"
    priority: Priority = Priority.OPTIONAL
    max_size_gb: float | None = Field(default=None, gt=0)
    reserved_space_gb: float | None = Field(default=None, gt=0)

    @property
    def is_required(self) -> bool:
        return self.priority == Priority.REQUIRED


class ArchiveEntry(_CatalogBase):
    """A large reference archive (ZIM file) with a known expected size."""
    type: Literal["archive"] = "archive"
    priority: Priority = Priority.REQUIRED
    expected_size_gb: float = Field(gt=0)
    category: str = Field(min_length=1)
    description: str | None = None


class OtherItem(_CatalogBase):
    """Games and anything else stored under the library."""
    type: Literal["games", "other"] = "other"
    reserved_space_gb: float | None = Field(default=None, gt=0)


CatalogItem = Annotated[
    Union[MovieItem, SeriesItem, ChannelEntry, ArchiveEntry, OtherItem],
    Field(discriminator="type"),
]


class CatalogConfig(BaseModel):
    """The operator-authored catalog, grouped by category."""
    movies: list[MovieItem] = Field(default_factory=list)
    series: list[SeriesItem] = Field(default_factory=list)
    webtv_channels: list[ChannelEntry] = Field(default_factory=list)
    archives: list[ArchiveEntry] = Field(default_factory=list)
    other: list[CatalogItem] = Field(default_factory=list)

    def library_items(self) -> list[CatalogItem]:
        """All items that live on the media library (everything but archives)."""
        extra = [item for item in self.other if not isinstance(item, ArchiveEntry)]
        return [*self.movies, *self.series, *self.webtv_channels, *extra]

    def archive_items(self) -> list[ArchiveEntry]:
        extra = [item for item in self.other if isinstance(item, ArchiveEntry)]
        return [*self.archives, *extra]


class LibraryPathsConfig(BaseModel):
    """Paths of the remote media library."""
    base: str = "/mnt/nfs/media"
    movies: str = "/mnt/nfs/media/movies"
    tv: str = "/mnt/nfs/media/tv"
    games: str = "/mnt/nfs/media/games"
    webtv: str = "/mnt/nfs/media/webtv"

    def rebase(self, base: Path) -> "LibraryPathsConfig":
        """Return paths pointing at the standard subdirectories of another base."""
        base = base.resolve()
        return LibraryPathsConfig(
            base=str(base),
            movies=str(base / "movies"),
            tv=str(base / "tv"),
            games=str(base / "games"),
            webtv=str(base / "webtv"),
        )


class DriveConfig(BaseModel):
    """Destination drive capacity and usage thresholds."""
    size_gb: float = Field(default=2000.0, gt=0)
    recommended_max_usage: float = Field(default=0.9, ge=0.0, le=1.0)
    safe_usage_threshold: float = Field(default=0.8, ge=0.0, le=1.0)


class OutputConfig(BaseModel):
    """Report output settings."""
    default_destination: str = "/media/portable"
    default_csv_name: str = "collection.csv"


class WebTVSelectionConfig(BaseModel):
    """Space budget and strategy for bulk channel selection."""
    reserved_space_gb: float = Field(gt=0)
    selection_strategy: SelectionStrategy = SelectionStrategy.FILL_TO_TARGET
    allow_partial_channels: bool = True
    random_seed: int | None = None


class ArchivesConfig(BaseModel):
    """Where reference archives are stored locally."""
    download_path: str = "/content/kiwix"
    filename_map: dict[str, str] = Field(default_factory=dict)


class CacheConfig(BaseModel):
    """Metadata cache settings."""
    enabled: bool = True
    cache_dir: str | None = None
    preload: bool = False
    preload_batch_size: int = Field(default=20, ge=1)
    preload_concurrency: int = Field(default=3, ge=1, le=8)


class AnalysisConfig(BaseModel):
    """Analyzer settings."""
    max_workers: int = Field(default=4, ge=1, le=32)
    match_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    min_channel_size_gb: float = Field(default=0.1, ge=0.0)


class CollectrConfig(BaseModel):
    """Main collectr configuration."""
    library_paths: LibraryPathsConfig = Field(default_factory=LibraryPathsConfig)
    drive: DriveConfig = Field(default_factory=DriveConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    webtv_selection: WebTVSelectionConfig | None = None
    archives: ArchivesConfig = Field(default_factory=ArchivesConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)

    media_extensions: list[str] = Field(default_factory=lambda: [
        ".mp4", ".mkv", ".avi", ".mov", ".wmv", ".flv", ".webm", ".m4v", ".mpg", ".mpeg", ".ts"
    ])

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None


class ConfigManager:
    """Manages configuration loading and saving."""

    DEFAULT_CONFIG_NAME = "collectr.yaml"

    def __init__(self, config_path: Path | None = None):
        """Initialize config manager."""
        self.config_path = config_path or self._get_default_config_path()
        self._config: CollectrConfig | None = None

    def load(self) -> CollectrConfig:
        """Load and validate configuration from file."""
        if not self.config_path.exists():
            raise ConfigError(
                f"Configuration file not found: {self.config_path}. "
                f"Run 'collectr sample-config' to create one."
            )

        try:
            with open(self.config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read configuration from {self.config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration in {self.config_path} must be a mapping")

        try:
            self._config = CollectrConfig(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration in {self.config_path}:\n{e}") from e

        logger.debug(f"Loaded configuration from {self.config_path}")
        return self._config

    def save(self, config: CollectrConfig | None = None) -> None:
        """Save configuration to file."""
        config_to_save = config or self._config
        if config_to_save is None:
            raise ValueError("No configuration to save")

        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        data = config_to_save.model_dump(mode="json")
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, indent=2, sort_keys=False)

        logger.info(f"Configuration saved to {self.config_path}")

    def get_config(self) -> CollectrConfig:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self.load()
        return self._config

    def _get_default_config_path(self) -> Path:
        """Get default configuration file path."""
        # Look for config in current directory first, then user config dir
        current_dir = Path.cwd() / self.DEFAULT_CONFIG_NAME
        if current_dir.exists():
            return current_dir

        config_dir = Path.home() / ".config" / "collectr"
        return config_dir / self.DEFAULT_CONFIG_NAME

    def create_sample_config(self, output_path: Path | None = None) -> Path:
        """Create a sample configuration file with comments."""
        output_path = output_path or (Path.cwd() / "collectr_sample.yaml")

        sample_yaml = """# collectr Configuration File
# Edit this file to describe your library and the content you want to carry

# Where the remote media library is mounted
library_paths:
  base: /mnt/nfs/media
  movies: /mnt/nfs/media/movies
  tv: /mnt/nfs/media/tv
  games: /mnt/nfs/media/games
  webtv: /mnt/nfs/media/webtv

# Destination drive
drive:
  size_gb: 2000                 # Nominal size, used when the destination is not mounted
  recommended_max_usage: 0.9    # Warn above this fraction of capacity
  safe_usage_threshold: 0.8     # Caution above this fraction of capacity

output:
  default_destination: /media/portable
  default_csv_name: collection.csv

# What you want on the drive
catalog:
  movies:
    - name: "The Matrix (1999)"
  series:
    - name: "Breaking Bad"
      seasons: [1, 2]           # Only these seasons count towards the size
  webtv_channels:
    - name: "Nature Documentaries"
      priority: required        # Always copied entirely when found
    - name: "Space Marathons"
      priority: optional        # Competes for the remaining budget
      max_size_gb: 200
  archives:
    - name: wikipedia_en_top_maxi
      expected_size_gb: 7.5
      category: reference
  other:
    - name: "Retro Games"
      type: games

# Space budget for WebTV channels (remove to copy every catalogued channel)
webtv_selection:
  reserved_space_gb: 500
  selection_strategy: fill_to_target
  allow_partial_channels: true  # Pick a random subset of videos per optional channel
  random_seed: null             # Set an integer for reproducible selections

archives:
  download_path: /content/kiwix
  filename_map: {}

cache:
  enabled: true
  cache_dir: null               # Defaults to the current directory
  preload: false                # Re-scan missed paths in the background

analysis:
  max_workers: 4                # Concurrent directory scans
  match_threshold: 0.6          # Minimum similarity for a fuzzy name match
  min_channel_size_gb: 0.1      # Ignore WebTV directories smaller than this

media_extensions: [".mp4", ".mkv", ".avi", ".mov", ".wmv", ".flv", ".webm", ".m4v", ".mpg", ".mpeg", ".ts"]

# Logging
log_level: "INFO"
log_file: null  # Set to file path for file logging
"""

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(sample_yaml)

        logger.info(f"Sample configuration created at {output_path}")
        return output_path


def load_config(config_path: Path | None = None) -> CollectrConfig:
    """Load configuration from a specific path or the default location."""
    return ConfigManager(config_path).load()
