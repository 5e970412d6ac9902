"""Status of offline reference archives (ZIM files) on local storage."""

import logging
from dataclasses import dataclass
from pathlib import Path

from ..config.settings import ArchiveEntry, ArchivesConfig
from .models import GIB, ArchiveInfo, CollectionAnalysis, ItemStatus

logger = logging.getLogger(__name__)

EMPTY_ARCHIVE_GB = 0.01
UPDATE_TOLERANCE_GB = 0.1


@dataclass
class ArchiveFileInfo:
    """What is on disk for one configured archive."""

    name: str
    filename: str
    local_path: str
    exists: bool
    size_gb: float
    expected_size_gb: float
    needs_update: bool


class ArchiveAnalyzer:
    """Compares configured reference archives with the files on disk."""

    def __init__(self, config: ArchivesConfig):
        self.download_path = Path(config.download_path)
        self.filename_map = dict(config.filename_map)

    def file_info(self, entry: ArchiveEntry) -> ArchiveFileInfo:
        """Locate and size the archive file for entry."""
        filename = self.filename_map.get(entry.name, f"{entry.name}.zim")
        local_path = self.download_path / filename

        exists = False
        size_gb = 0.0
        needs_update = False
        try:
            if local_path.is_file():
                size_gb = local_path.stat().st_size / GIB
                exists = True
                needs_update = abs(size_gb - entry.expected_size_gb) > UPDATE_TOLERANCE_GB
        except OSError as e:
            logger.warning(f"Archive not accessible: {local_path}: {e}")

        return ArchiveFileInfo(
            name=entry.name,
            filename=filename,
            local_path=str(local_path),
            exists=exists,
            size_gb=size_gb if exists else 0.0,
            expected_size_gb=entry.expected_size_gb,
            needs_update=needs_update,
        )

    def analyze_archive(self, entry: ArchiveEntry) -> CollectionAnalysis:
        info = self.file_info(entry)

        if not info.exists:
            # Sized at the expected size for planning
            status = ItemStatus.MISSING
            size_gb = entry.expected_size_gb
        elif info.size_gb < EMPTY_ARCHIVE_GB:
            status = ItemStatus.EMPTY
            size_gb = info.size_gb
        else:
            status = ItemStatus.FOUND
            size_gb = info.size_gb

        warnings = []
        if info.needs_update:
            warnings.append(
                f"Archive size {info.size_gb:.2f}GB differs from expected {entry.expected_size_gb}GB"
            )

        logger.debug(f"Archive {entry.name} -> {status.value} ({size_gb:.1f}GB)")
        return CollectionAnalysis(
            name=entry.name,
            content_type=entry.type,
            status=status,
            path=info.local_path,
            size_gb=size_gb,
            episodes=1,
            file_count=1 if info.exists else 0,
            media_file_count=1 if info.exists else 0,
            actual_name=entry.description,
            archive_info=ArchiveInfo(
                filename=info.filename,
                category=entry.category,
                priority=entry.priority.value,
                expected_size_gb=entry.expected_size_gb,
                needs_update=info.needs_update,
                description=entry.description,
            ),
            warnings=warnings,
        )

    def analyze_archives(self, entries: list[ArchiveEntry]) -> list[CollectionAnalysis]:
        """Analyze every configured archive."""
        if not entries:
            return []
        analyses = [self.analyze_archive(entry) for entry in entries]
        logger.info(f"Archive analysis complete: {len(analyses)} items analyzed")
        return analyses

    def check_for_updates(self, entries: list[ArchiveEntry]) -> list[ArchiveFileInfo]:
        infos = []
        for entry in entries:
            info = self.file_info(entry)
            if not info.exists:
                state = "not downloaded"
            elif info.needs_update:
                state = "update needed"
            else:
                state = "up to date"
            logger.info(f"{entry.name}: {state} ({info.size_gb:.1f}GB / {entry.expected_size_gb}GB expected)")
            infos.append(info)
        return infos

    def archive_stats(self, entries: list[ArchiveEntry]) -> dict:
        """Counts of downloaded, missing and outdated archives."""
        infos = self.check_for_updates(entries)
        return {
            "total_items": len(entries),
            "downloaded_items": sum(1 for i in infos if i.exists and not i.needs_update),
            "missing_items": sum(1 for i in infos if not i.exists),
            "outdated_items": sum(1 for i in infos if i.exists and i.needs_update),
            "total_size_gb": sum(i.size_gb for i in infos),
            "expected_size_gb": sum(e.expected_size_gb for e in entries),
        }
