"""CSV export of collection analyses."""

import csv
import logging
from pathlib import Path

from .models import CollectionAnalysis, ItemStatus

logger = logging.getLogger(__name__)


class CSVExporter:
    """Writes one row per analyzed catalog item."""

    HEADERS = [
        "Name",
        "Type",
        "Status",
        "Actual Name",
        "Size (GB)",
        "Episodes",
        "File Count",
        "Media File Count",
        "Match Score",
        "Path",
        "Seasons",
        "Reserved Space (GB)",
        "Size per Media File (GB)",
        "Percentage of Total",
        "WebTV Copy Mode",
        "WebTV Total Size (GB)",
        "WebTV Selected Videos",
        "Archive Category",
        "Archive Priority",
        "Archive Expected Size (GB)",
    ]

    def export(self, analyses: list[CollectionAnalysis], output_path: Path) -> Path:
        """Write analyses to output_path and return it."""
        found_total = sum(a.size_gb for a in analyses if a.status == ItemStatus.FOUND)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(self.HEADERS)
            for analysis in analyses:
                writer.writerow(self.to_row(analysis, found_total))

        logger.info(f"Exported {len(analyses)} rows to {output_path}")
        return output_path

    def to_row(self, analysis: CollectionAnalysis, found_total: float) -> list[str]:
        if analysis.media_file_count > 0:
            per_media_file = f"{analysis.size_gb / analysis.media_file_count:.3f}"
        else:
            per_media_file = "0.000"

        percentage = f"{analysis.size_gb / found_total * 100:.2f}" if found_total > 0 else "0.00"

        channel = analysis.channel_info
        archive = analysis.archive_info

        return [
            analysis.name,
            analysis.content_type,
            analysis.status.value,
            analysis.actual_name or "",
            f"{analysis.size_gb:.3f}",
            str(analysis.episodes),
            str(analysis.file_count),
            str(analysis.media_file_count),
            f"{analysis.match_score:.3f}" if analysis.match_score is not None else "",
            analysis.path,
            ", ".join(str(s) for s in analysis.seasons) if analysis.seasons else "",
            f"{analysis.reserved_space_gb:g}" if analysis.reserved_space_gb else "",
            per_media_file,
            percentage,
            channel.copy_mode.value if channel else "",
            f"{channel.total_channel_size_gb:.3f}" if channel else "",
            str(len(channel.selected_items)) if channel and channel.selected_items else "",
            archive.category if archive else "",
            archive.priority if archive else "",
            f"{archive.expected_size_gb:.3f}" if archive else "",
        ]
