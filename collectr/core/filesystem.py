"""Filesystem survey primitives for the media library."""

import logging
import os
import re
import shutil
from pathlib import Path

from .models import GIB, DirectorySummary, SeasonDirectory

logger = logging.getLogger(__name__)


class MediaFilesystem:
    """Sizes, counts and lists directories of the media library."""

    MEDIA_EXTENSIONS = {
        ".mp4",
        ".mkv",
        ".avi",
        ".mov",
        ".wmv",
        ".flv",
        ".webm",
        ".m4v",
        ".mpg",
        ".mpeg",
        ".ts",
    }

    SEASON_PATTERNS = [
        re.compile(r"^Season\s+(\d+)$", re.IGNORECASE),  # "Season 01", "Season 1"
        re.compile(r"^S(\d+)$", re.IGNORECASE),  # "S01", "S1"
        re.compile(r"^(\d+)$"),  # "01", "1"
        re.compile(r"^Season\s*(\d+)$", re.IGNORECASE),  # "Season01"
    ]

    def __init__(self, media_extensions: list[str] | None = None):
        """Initialize with the configured media extensions or defaults."""
        if media_extensions:
            self.media_extensions = {
                ext.lower() if ext.startswith(".") else f".{ext.lower()}"
                for ext in media_extensions
            }
        else:
            self.media_extensions = set(self.MEDIA_EXTENSIONS)

    def get_directory_size(self, path: str | Path) -> int:
        """Total size in bytes of all regular files below path."""
        total = 0
        for file_path in self._iter_files(Path(path)):
            total += self.get_file_size(file_path)
        return total

    def count_files(self, path: str | Path) -> int:
        """Count all regular files below path."""
        return sum(1 for _ in self._iter_files(Path(path)))

    def count_media_files(self, path: str | Path) -> int:
        """Count media files below path, filtered by extension."""
        return sum(1 for f in self._iter_files(Path(path)) if self._is_media_file(f))

    def find_media_files(self, path: str | Path) -> list[Path]:
        """Recursively find media files, sorted by path."""
        return sorted(f for f in self._iter_files(Path(path)) if self._is_media_file(f))

    def list_directories(self, path: str | Path) -> list[str]:
        """Names of the immediate subdirectories of path, sorted."""
        base = Path(path)
        if not base.is_dir():
            return []

        try:
            return sorted(entry.name for entry in base.iterdir() if entry.is_dir())
        except OSError as e:
            logger.warning(f"Could not list directories in {base}: {e}")
            return []

    def list_season_directories(self, show_path: str | Path) -> list[SeasonDirectory]:
        """Season subdirectories of a show, ordered by season number."""
        seasons = []
        for name in self.list_directories(show_path):
            season_number = self.extract_season_number(name)
            if season_number is not None:
                seasons.append(
                    SeasonDirectory(
                        season_number=season_number,
                        path=str(Path(show_path) / name),
                        name=name,
                    )
                )
        return sorted(seasons, key=lambda s: s.season_number)

    def extract_season_number(self, dir_name: str) -> int | None:
        """Parse names like "Season 01", "S01" or "01"."""
        for pattern in self.SEASON_PATTERNS:
            match = pattern.match(dir_name)
            if match:
                return int(match.group(1))
        return None

    def get_file_size(self, path: str | Path) -> int:
        """Size of a file in bytes, 0 when it cannot be read."""
        try:
            return Path(path).stat().st_size
        except OSError as e:
            logger.warning(f"Could not get file size for {path}: {e}")
            return 0

    def get_filesystem_capacity(self, path: str | Path, fallback_gb: float) -> float:
        """Capacity in GB of the filesystem holding path, or the nominal size."""
        target = Path(path)
        if target.exists():
            try:
                capacity = shutil.disk_usage(target).total / GIB
                if capacity > 0:
                    logger.info(f"Using actual filesystem capacity: {capacity:.0f}GB (destination: {target})")
                    return capacity
            except OSError as e:
                logger.warning(f"Could not get filesystem capacity for {target}: {e}")

        logger.info(f"Using configured drive size: {fallback_gb}GB")
        return fallback_gb

    def summarize(self, path: str | Path) -> DirectorySummary:
        """Survey a directory: size, file count and media file count."""
        directory = Path(path)
        if not directory.exists():
            return DirectorySummary.absent(str(directory))

        size_bytes = 0
        file_count = 0
        media_count = 0
        for file_path in self._iter_files(directory):
            file_count += 1
            size_bytes += self.get_file_size(file_path)
            if self._is_media_file(file_path):
                media_count += 1

        return DirectorySummary(
            path=str(directory),
            exists=True,
            size_bytes=size_bytes,
            file_count=file_count,
            media_file_count=media_count,
            is_empty=file_count == 0,
        )

    def _iter_files(self, directory: Path):
        """Yield regular files below directory without following symlinks."""
        if not directory.is_dir():
            return

        def on_error(error: OSError) -> None:
            logger.warning(f"Could not read {error.filename}: {error.strerror}")

        for root, _dirs, files in os.walk(directory, onerror=on_error):
            for name in files:
                file_path = Path(root) / name
                if file_path.is_symlink():
                    continue
                yield file_path

    def _is_media_file(self, file_path: Path) -> bool:
        """Check if file is a media file based on extension."""
        return file_path.suffix.lower() in self.media_extensions
