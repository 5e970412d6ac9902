"""End-to-end collection analysis."""

import asyncio
import logging
from pathlib import Path

from ..config.settings import (
    CatalogItem,
    ChannelEntry,
    CollectrConfig,
    SeriesItem,
)
from .allocator import SpaceAllocator
from .archives import ArchiveAnalyzer
from .cache import MetadataCache
from .channels import ChannelScanner
from .filesystem import MediaFilesystem
from .matcher import ContentMatcher
from .models import (
    CATEGORY_BY_TYPE,
    AvailableContent,
    ChannelCandidate,
    ChannelInfo,
    CollectionAnalysis,
    CollectionReport,
    CollectionStats,
    ContentTypeStats,
    CopyMode,
    DirectorySummary,
    ItemStatus,
    MatchResult,
    SeasonInfo,
    SeasonSize,
    SelectionResult,
    SpaceAllocationBreakdown,
    SpaceWarnings,
)

logger = logging.getLogger(__name__)

LARGEST_ITEMS_LIMIT = 10


class CollectionAnalyzer:
    """Resolves the catalog against the library and sizes what it finds.

    One call to :meth:`analyze_collection` discovers library directories,
    runs the WebTV space allocation when configured, matches every catalog
    item, surveys matched directories through the metadata cache and
    aggregates the results against the destination drive.
    """

    def __init__(
        self,
        config: CollectrConfig,
        filesystem: MediaFilesystem | None = None,
        cache: MetadataCache | None = None,
    ):
        self.config = config
        self.filesystem = filesystem or MediaFilesystem(config.media_extensions)
        self.matcher = ContentMatcher()

        if cache is None and config.cache.enabled:
            cache_dir = Path(config.cache.cache_dir) if config.cache.cache_dir else None
            cache = MetadataCache(
                cache_dir=cache_dir,
                loader=self.filesystem.summarize if config.cache.preload else None,
                preload_batch_size=config.cache.preload_batch_size,
                preload_concurrency=config.cache.preload_concurrency,
            )
        self.cache = cache

        self.channel_scanner = ChannelScanner(
            self.filesystem,
            summarize=self.get_summary,
            min_channel_size_gb=config.analysis.min_channel_size_gb,
        )
        self.archive_analyzer = ArchiveAnalyzer(config.archives)
        self.selection: SelectionResult | None = None

    def initialize(self) -> None:
        """Load the persisted cache and drop expired entries."""
        if self.cache is None:
            return
        self.cache.load()
        self.cache.invalidate_expired()
        if self.config.cache.preload:
            self.cache.refresh_expiring_soon(wait=False)

    async def analyze_collection(self) -> CollectionReport:
        """Run one full analysis pass."""
        logger.info("Starting collection analysis...")
        catalog = self.config.catalog

        available = await asyncio.to_thread(self.discover_content)
        logger.info(
            f"Found content: {len(available.movies)} movies, {len(available.tv)} TV shows, "
            f"{len(available.games)} games, {len(available.webtv)} WebTV"
        )

        channels = [item for item in catalog.library_items() if isinstance(item, ChannelEntry)]
        self.selection = None
        if self.config.webtv_selection is not None and channels:
            self.selection = await self.select_channels(channels)

        items = [
            item for item in catalog.library_items()
            if not isinstance(item, ChannelEntry)
            or self.selection is None
            or self.selection.selection_for(item.name) is not None
        ]
        logger.info(f"Analyzing {len(items)} items from collection...")

        matches = self.matcher.find_batch_matches(
            items, available, self.config.analysis.match_threshold
        )

        semaphore = asyncio.Semaphore(self.config.analysis.max_workers)
        analyses = list(await asyncio.gather(*(
            self._analyze_item_bounded(item, match, semaphore)
            for item, match in zip(items, matches)
        )))

        archives = catalog.archive_items()
        analyses.extend(await asyncio.to_thread(self.archive_analyzer.analyze_archives, archives))

        drive_size_gb = await asyncio.to_thread(
            self.filesystem.get_filesystem_capacity,
            self.config.output.default_destination,
            self.config.drive.size_gb,
        )
        stats = self.calculate_stats(analyses, [*items, *archives], drive_size_gb)

        if self.cache is not None:
            await asyncio.to_thread(self.cache.save)

        logger.info("Collection analysis complete")
        return CollectionReport(
            analyses=analyses,
            stats=stats,
            selection=self.selection,
            drive_size_gb=drive_size_gb,
        )

    def discover_content(self) -> AvailableContent:
        """Directory names available in each library category."""
        paths = self.config.library_paths
        return AvailableContent(
            movies=self.filesystem.list_directories(paths.movies),
            tv=self.filesystem.list_directories(paths.tv),
            games=self.filesystem.list_directories(paths.games),
            webtv=self.filesystem.list_directories(paths.webtv),
        )

    async def select_channels(self, channels: list[ChannelEntry]) -> SelectionResult:
        """Scan channel candidates and run the space allocation."""
        selection_config = self.config.webtv_selection
        logger.info("Performing WebTV smart selection...")

        candidates = await asyncio.to_thread(
            self.channel_scanner.scan_channels, self.config.library_paths.webtv
        )

        if selection_config.allow_partial_channels:
            await self._prelist_channel_items(channels, candidates)

        allocator = SpaceAllocator(
            matcher=self.matcher,
            item_loader=self.channel_scanner.list_channel_items,
            random_seed=selection_config.random_seed,
            match_threshold=self.config.analysis.match_threshold,
        )
        selection = allocator.select(
            channels,
            candidates,
            selection_config.reserved_space_gb,
            allow_partial=selection_config.allow_partial_channels,
            strategy=selection_config.selection_strategy,
        )

        for warning in selection.warnings:
            logger.warning(warning)
        logger.info(
            f"WebTV selection complete: {len(selection.selected)} channels selected, "
            f"{len(selection.excluded)} excluded"
        )
        return selection

    def get_summary(self, path: str | Path) -> DirectorySummary:
        """Summary of a directory, served from the cache when still valid."""
        if self.cache is not None:
            cached = self.cache.get(path)
            if cached is not None:
                return cached

        summary = self.filesystem.summarize(path)
        if self.cache is not None and summary.exists:
            self.cache.set(path, summary)
        return summary

    def cache_stats(self) -> dict | None:
        if self.cache is None:
            return None
        return self.cache.stats()

    def clear_cache(self) -> int:
        """Drop all cache entries, on disk too."""
        if self.cache is None:
            return 0
        removed = self.cache.clear()
        self.cache.save()
        return removed

    # ------------------------------------------------------------------
    # Per-item analysis
    # ------------------------------------------------------------------

    async def _prelist_channel_items(
        self, channels: list[ChannelEntry], candidates: list[ChannelCandidate]
    ) -> None:
        """List videos of the optional channels' candidates in parallel."""
        by_name = {c.name: c for c in candidates}
        wanted = []
        for channel in channels:
            if channel.is_required:
                continue
            match = self.matcher.find_best_match(
                channel.name, list(by_name), self.config.analysis.match_threshold
            )
            if match is not None and by_name[match.matched_name] not in wanted:
                wanted.append(by_name[match.matched_name])

        semaphore = asyncio.Semaphore(self.config.analysis.max_workers)

        async def list_items(candidate: ChannelCandidate) -> None:
            async with semaphore:
                candidate.items = await asyncio.to_thread(
                    self.channel_scanner.list_channel_items, candidate
                )

        await asyncio.gather(*(list_items(c) for c in wanted))

    async def _analyze_item_bounded(
        self,
        item: CatalogItem,
        match: MatchResult | None,
        semaphore: asyncio.Semaphore,
    ) -> CollectionAnalysis:
        async with semaphore:
            try:
                return await asyncio.to_thread(self.analyze_item, item, match)
            except Exception as e:
                logger.error(f"Failed to analyze {item.name}: {e}", exc_info=True)
                return CollectionAnalysis(
                    name=item.name,
                    content_type=item.type,
                    status=ItemStatus.EMPTY,
                    path=str(Path(self._base_path(item.type)) / item.name),
                    size_gb=0.0,
                    warnings=[f"Analysis failed: {e}"],
                )

    def analyze_item(self, item: CatalogItem, match: MatchResult | None) -> CollectionAnalysis:
        """Analyze a single catalog item against its filesystem match."""
        base_path = Path(self._base_path(item.type))
        seasons = getattr(item, "seasons", None)
        reserved = getattr(item, "reserved_space_gb", None)

        channel_selection = None
        if isinstance(item, ChannelEntry) and self.selection is not None:
            channel_selection = self.selection.selection_for(item.name)

        if channel_selection is not None:
            # The allocator's resolution is authoritative for selected channels
            actual_path = channel_selection.candidate.path
            matched_name = channel_selection.candidate.name
            match_score = channel_selection.match_score
        elif match is not None:
            if match.category is not None:
                base_path = Path(self._category_path(match.category))
            actual_path = str(base_path / match.matched_name)
            matched_name = match.matched_name
            match_score = match.score
        else:
            return self._missing_analysis(item, str(base_path / item.name))

        summary = self.get_summary(actual_path)
        if not summary.exists:
            analysis = self._missing_analysis(item, actual_path)
            analysis.warnings.append(f"Matched directory disappeared: {actual_path}")
            return analysis

        analysis = CollectionAnalysis(
            name=item.name,
            content_type=item.type,
            status=ItemStatus.EMPTY if summary.is_empty else ItemStatus.FOUND,
            path=actual_path,
            size_gb=summary.size_gb,
            episodes=1 if item.type == "movie" else summary.media_file_count,
            file_count=summary.file_count,
            media_file_count=summary.media_file_count,
            actual_name=matched_name if matched_name != item.name else None,
            match_score=match_score,
            seasons=list(seasons) if seasons else None,
            reserved_space_gb=reserved,
        )

        if isinstance(item, SeriesItem) and item.seasons:
            season_info = self.season_info(actual_path, item.seasons)
            analysis.season_info = season_info
            analysis.size_gb = season_info.total_size_gb
            if not season_info.has_all_seasons:
                missing = ", ".join(str(s) for s in season_info.missing_seasons)
                analysis.warnings.append(f"Seasons not found: {missing}")

        if channel_selection is not None:
            analysis.channel_info = ChannelInfo(
                copy_mode=channel_selection.copy_mode,
                is_required=channel_selection.is_required,
                total_channel_size_gb=channel_selection.candidate.size_gb,
                selected_size_gb=channel_selection.selected_size_gb,
                selected_items=list(channel_selection.selected_items),
            )
            analysis.size_gb = channel_selection.selected_size_gb
            if channel_selection.copy_mode == CopyMode.PARTIAL:
                analysis.episodes = len(channel_selection.selected_items)

        logger.debug(f"{item.name} -> {analysis.status.value} ({analysis.size_gb:.1f}GB)")
        return analysis

    def season_info(self, show_path: str, seasons: list[int]) -> SeasonInfo:
        """Size only the requested seasons of a show."""
        by_number = {}
        for season_dir in self.filesystem.list_season_directories(show_path):
            by_number.setdefault(season_dir.season_number, season_dir)

        requested = list(dict.fromkeys(seasons))
        season_sizes = [
            SeasonSize(
                season=number,
                size_gb=self.get_summary(by_number[number].path).size_gb,
                path=by_number[number].path,
            )
            for number in requested
            if number in by_number
        ]
        missing = [number for number in requested if number not in by_number]

        return SeasonInfo(
            selected_seasons=requested,
            season_sizes=season_sizes,
            has_all_seasons=not missing,
            missing_seasons=missing,
        )

    def _missing_analysis(self, item: CatalogItem, path: str) -> CollectionAnalysis:
        seasons = getattr(item, "seasons", None)
        reserved = getattr(item, "reserved_space_gb", None)
        return CollectionAnalysis(
            name=item.name,
            content_type=item.type,
            status=ItemStatus.MISSING,
            path=path,
            size_gb=reserved or 0.0,
            episodes=getattr(item, "episodes", None) or 0,
            seasons=list(seasons) if seasons else None,
            reserved_space_gb=reserved,
        )

    def _base_path(self, content_type: str) -> str:
        category = CATEGORY_BY_TYPE.get(content_type)
        if category is None:
            return self.config.library_paths.base
        return self._category_path(category)

    def _category_path(self, category: str) -> str:
        """Library path of a discovery category (movies, tv, games, webtv)."""
        return getattr(self.config.library_paths, category)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def calculate_stats(
        self,
        analyses: list[CollectionAnalysis],
        items: list[CatalogItem],
        drive_size_gb: float,
    ) -> CollectionStats:
        """Aggregate analyses; items must be aligned with analyses."""
        found = [a for a in analyses if a.status == ItemStatus.FOUND]
        total_size_gb = sum(a.size_gb for a in found)
        allocation = self.space_allocation(analyses)

        return CollectionStats(
            total_items=len(analyses),
            found_items=len(found),
            missing_items=sum(1 for a in analyses if a.status == ItemStatus.MISSING),
            empty_items=sum(1 for a in analyses if a.status == ItemStatus.EMPTY),
            total_size_gb=total_size_gb,
            drive_usage_percent=total_size_gb / drive_size_gb * 100 if drive_size_gb > 0 else 0.0,
            movies_count=allocation.movies.count,
            series_count=allocation.series.count,
            webtv_channels_count=allocation.webtv_channels.count,
            archives_count=allocation.archives.count,
            other_count=allocation.other.count,
            largest_items=sorted(found, key=lambda a: a.size_gb, reverse=True)[:LARGEST_ITEMS_LIMIT],
            missing_items_list=[
                item for item, analysis in zip(items, analyses)
                if analysis.status == ItemStatus.MISSING
            ],
            space_allocation=allocation,
            space_warnings=self.space_warnings(allocation.totals.total_size_gb, drive_size_gb),
        )

    def space_allocation(self, analyses: list[CollectionAnalysis]) -> SpaceAllocationBreakdown:
        groups: dict[str, list[CollectionAnalysis]] = {
            "movie": [], "series": [], "webtv": [], "archive": [], "other": [],
        }
        for analysis in analyses:
            key = analysis.content_type if analysis.content_type in groups else "other"
            groups[key].append(analysis)

        movies = _type_stats(groups["movie"])
        series = _type_stats(groups["series"])
        webtv = _type_stats(groups["webtv"])
        archives = _type_stats(groups["archive"])
        other = _type_stats(groups["other"])

        return SpaceAllocationBreakdown(
            movies=movies,
            series=series,
            webtv_channels=webtv,
            archives=archives,
            other=other,
            totals=movies + series + webtv + archives + other,
        )

    def space_warnings(self, total_required_gb: float, drive_size_gb: float) -> SpaceWarnings:
        """Compare required space with the drive's usage thresholds."""
        drive = self.config.drive
        recommended_max_gb = drive_size_gb * drive.recommended_max_usage
        safe_threshold_gb = drive_size_gb * drive.safe_usage_threshold

        exceeds_capacity = total_required_gb > drive_size_gb
        exceeds_recommended = total_required_gb > recommended_max_gb
        exceeds_safe = total_required_gb > safe_threshold_gb
        usage_percent = total_required_gb / drive_size_gb * 100 if drive_size_gb > 0 else 0.0

        recommendations = []
        if exceeds_capacity:
            recommendations.append(
                f"Collection requires {total_required_gb:.1f}GB but drive is only {drive_size_gb:.1f}GB. "
                f"Need {total_required_gb - drive_size_gb:.1f}GB more capacity."
            )
            recommendations.append(
                "Consider upgrading to a larger drive or removing some content from the collection."
            )
        elif exceeds_recommended:
            recommendations.append(
                f"Collection will use {usage_percent:.1f}% of drive capacity "
                f"({total_required_gb:.1f}GB of {drive_size_gb:.1f}GB)."
            )
            recommendations.append(
                f"This exceeds the recommended maximum of {drive.recommended_max_usage * 100:.0f}% "
                f"by {total_required_gb - recommended_max_gb:.1f}GB."
            )
            recommendations.append("Consider reducing collection size to maintain optimal drive performance.")
        elif exceeds_safe:
            recommendations.append(
                f"Collection will use {usage_percent:.1f}% of drive capacity, approaching the safe threshold."
            )
            recommendations.append(
                "Monitor drive space closely and consider removing less important content if needed."
            )
        else:
            recommendations.append(
                f"Collection fits comfortably within drive capacity ({usage_percent:.1f}% usage)."
            )
            recommendations.append(
                f"{drive_size_gb - total_required_gb:.1f}GB of space will remain available."
            )

        return SpaceWarnings(
            exceeds_capacity=exceeds_capacity,
            exceeds_recommended=exceeds_recommended,
            exceeds_safe_threshold=exceeds_safe,
            total_required_gb=total_required_gb,
            available_space_gb=max(0.0, drive_size_gb - total_required_gb),
            recommendations=recommendations,
        )


def _type_stats(analyses: list[CollectionAnalysis]) -> ContentTypeStats:
    found = [a for a in analyses if a.status == ItemStatus.FOUND]
    missing = [a for a in analyses if a.status == ItemStatus.MISSING]
    found_size = sum(a.size_gb for a in found)
    missing_size = sum(a.size_gb for a in missing)
    return ContentTypeStats(
        count=len(analyses),
        found_count=len(found),
        missing_count=len(missing),
        empty_count=sum(1 for a in analyses if a.status == ItemStatus.EMPTY),
        total_size_gb=found_size + missing_size,
        found_size_gb=found_size,
        missing_size_gb=missing_size,
        required_download_size_gb=missing_size,
    )
