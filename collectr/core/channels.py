"""Discovery of WebTV channel directories and their videos."""

import logging
import os
from collections.abc import Callable
from pathlib import Path

from .filesystem import MediaFilesystem
from .models import GIB, ChannelCandidate, ChannelItem, DirectorySummary

logger = logging.getLogger(__name__)


class ChannelScanner:
    """Lists channel candidates below the WebTV library path."""

    def __init__(
        self,
        filesystem: MediaFilesystem,
        summarize: Callable[[str], DirectorySummary] | None = None,
        min_channel_size_gb: float = 0.1,
    ):
        """Initialize scanner.

        Args:
            filesystem: Filesystem collaborator used for listing and sizing
            summarize: Summary provider, typically cache-backed; defaults to
                ``filesystem.summarize``
            min_channel_size_gb: Directories smaller than this are ignored
        """
        self.filesystem = filesystem
        self.summarize = summarize or filesystem.summarize
        self.min_channel_size_gb = min_channel_size_gb

    def scan_channels(self, webtv_path: str | Path) -> list[ChannelCandidate]:
        """Channel candidates below webtv_path, largest first."""
        names = self.filesystem.list_directories(webtv_path)
        logger.info(f"Found {len(names)} directories in {webtv_path}")

        channels = []
        for name in names:
            summary = self.summarize(str(Path(webtv_path) / name))
            if summary.is_empty or summary.size_gb < self.min_channel_size_gb:
                # Usually metadata-only directories
                logger.debug(f"Skipping {name} (empty or too small: {summary.size_gb:.2f}GB)")
                continue

            channels.append(ChannelCandidate(
                name=name,
                path=summary.path,
                size_gb=summary.size_gb,
                file_count=summary.file_count,
                media_file_count=summary.media_file_count,
            ))

        channels.sort(key=lambda c: c.size_gb, reverse=True)
        total = sum(c.size_gb for c in channels)
        logger.info(f"Scanned {len(channels)} channels, total size: {total:.1f}GB")
        return channels

    def list_channel_items(self, candidate: ChannelCandidate) -> list[ChannelItem]:
        """Media files of a channel, largest first."""
        items = []
        for file_path in self.filesystem.find_media_files(candidate.path):
            items.append(ChannelItem(
                name=os.path.relpath(file_path, candidate.path),
                path=str(file_path),
                size_gb=self.filesystem.get_file_size(file_path) / GIB,
            ))

        items.sort(key=lambda i: i.size_gb, reverse=True)
        return items
