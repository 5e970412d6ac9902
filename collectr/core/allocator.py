"""Space allocation across required and optional WebTV channels."""

import logging
import random
from collections.abc import Callable

from ..config.settings import ChannelEntry, SelectionStrategy
from .matcher import ContentMatcher
from .models import (
    ChannelCandidate,
    ChannelItem,
    ChannelSelection,
    CopyMode,
    SelectionPreview,
    SelectionResult,
)

logger = logging.getLogger(__name__)

# A channel may exceed its fair share by this much, once, after one admission
OVERAGE_TOLERANCE_GB = 1.0


class SpaceAllocator:
    """Selects which channels, and which of their videos, fit a space budget.

    Required channels are always included whole. The budget they leave is
    split equally between the optional channels, each filling its share with
    a random sample of its own videos. With partial selection disabled,
    optional channels are instead admitted whole in order of a composite score
    favouring large average video sizes.
    """

    def __init__(
        self,
        matcher: ContentMatcher | None = None,
        item_loader: Callable[[ChannelCandidate], list[ChannelItem]] | None = None,
        random_seed: int | None = None,
        match_threshold: float = ContentMatcher.DEFAULT_THRESHOLD,
    ):
        self.matcher = matcher or ContentMatcher()
        self.item_loader = item_loader
        self.random_seed = random_seed
        self.match_threshold = match_threshold

    def select(
        self,
        requests: list[ChannelEntry],
        candidates: list[ChannelCandidate],
        budget_gb: float,
        allow_partial: bool = True,
        strategy: SelectionStrategy | str = SelectionStrategy.FILL_TO_TARGET,
    ) -> SelectionResult:
        """Run both allocation phases and return the full selection."""
        logger.info(f"Starting WebTV selection for {budget_gb}GB target")
        strategy = SelectionStrategy(strategy)
        rng = random.Random(self.random_seed)

        warnings: list[str] = []
        missing: list[str] = []
        all_required_included = True
        required: list[ChannelSelection] = []
        optional_pool: list[tuple[ChannelEntry, ChannelCandidate, float]] = []

        for request, candidate, score in self._match_requests(requests, candidates, missing):
            if candidate is None:
                if request.is_required:
                    all_required_included = False
                    warnings.append(f"Required channel not found: {request.name}")
                continue

            if request.max_size_gb is not None and candidate.size_gb > request.max_size_gb:
                warnings.append(
                    f"Channel {request.name} ({candidate.size_gb:.1f}GB) exceeds max size limit "
                    f"({request.max_size_gb}GB) - using full size"
                )

            if request.is_required:
                required.append(ChannelSelection(
                    requested_name=request.name,
                    candidate=candidate,
                    is_required=True,
                    copy_mode=CopyMode.ENTIRE,
                    selected_size_gb=candidate.size_gb,
                    match_score=score,
                ))
            else:
                optional_pool.append((request, candidate, score))

        logger.info(f"Found {len(required)} required and {len(optional_pool)} optional channels")

        required_size = sum(s.selected_size_gb for s in required)
        for selection in required:
            logger.info(f"Added required: {selection.name} ({selection.selected_size_gb:.1f}GB, entire channel)")

        if required_size > budget_gb:
            warnings.append(
                f"Required channels ({required_size:.1f}GB) exceed target space ({budget_gb}GB)"
            )
            return SelectionResult(
                selected=list(required),
                total_size_gb=required_size,
                remaining_space_gb=budget_gb - required_size,
                all_required_included=all_required_included,
                required_overflow=True,
                selection_strategy=strategy.value,
                warnings=warnings,
                required=required,
                optional=[],
                excluded=[candidate for _, candidate, _ in optional_pool],
                missing=missing,
            )

        remaining = budget_gb - required_size
        logger.info(f"{remaining:.1f}GB remaining for optional channels")

        if remaining > 0 and optional_pool:
            if allow_partial:
                optional = self._select_partial(optional_pool, remaining, rng)
            else:
                optional = self._select_whole(optional_pool, remaining)
        else:
            optional = []

        chosen = {id(s.candidate) for s in optional}
        excluded = [candidate for _, candidate, _ in optional_pool if id(candidate) not in chosen]

        selected = [*required, *optional]
        total = sum(s.selected_size_gb for s in selected)
        logger.info(f"Selection complete: {len(selected)} channels, {total:.1f}GB total")

        return SelectionResult(
            selected=selected,
            total_size_gb=total,
            remaining_space_gb=budget_gb - total,
            all_required_included=all_required_included,
            required_overflow=False,
            selection_strategy=strategy.value,
            warnings=warnings,
            required=required,
            optional=optional,
            excluded=excluded,
            missing=missing,
        )

    def preview(
        self, requests: list[ChannelEntry], candidates: list[ChannelCandidate]
    ) -> SelectionPreview:
        """Estimate the required part of a selection without selecting."""
        missing: list[str] = []
        estimated = 0.0
        count = 0
        for request, candidate, _ in self._match_requests(requests, candidates, missing):
            if candidate is not None and request.is_required:
                estimated += candidate.size_gb
                count += 1

        return SelectionPreview(
            estimated_size_gb=estimated, channel_count=count, missing_channels=missing
        )

    def _match_requests(self, requests, candidates, missing):
        """Yield (request, candidate or None, score) in request order."""
        by_name = {c.name: c for c in candidates}
        names = list(by_name)
        claimed: dict[str, str] = {}

        for request in requests:
            match = self.matcher.find_best_match(request.name, names, self.match_threshold)
            if match is None:
                logger.info(f"No match found for channel: {request.name}")
                missing.append(request.name)
                yield request, None, None
                continue

            if match.matched_name in claimed:
                # Two catalog entries resolving to one directory would count it twice
                logger.warning(
                    f"Channel {request.name} resolves to {match.matched_name}, "
                    f"already selected for {claimed[match.matched_name]}"
                )
                missing.append(request.name)
                yield request, None, None
                continue

            claimed[match.matched_name] = request.name
            logger.debug(f"Found match: '{request.name}' -> '{match.matched_name}' (score: {match.score:.2f})")
            yield request, by_name[match.matched_name], match.score

    def _items_for(self, candidate: ChannelCandidate) -> list[ChannelItem]:
        if candidate.items is None and self.item_loader is not None:
            candidate.items = self.item_loader(candidate)
        return list(candidate.items or [])

    def _select_partial(self, pool, remaining: float, rng: random.Random) -> list[ChannelSelection]:
        """Split remaining equally and fill each share with shuffled videos."""
        per_channel = remaining / len(pool)
        logger.info(f"Fair allocation: {per_channel:.1f}GB per channel ({len(pool)} channels)")

        selected = []
        for request, candidate, score in pool:
            items = self._items_for(candidate)
            if not items:
                logger.info(f"No videos found in {candidate.name}, skipping")
                continue

            rng.shuffle(items)
            chosen: list[ChannelItem] = []
            used = 0.0
            for item in items:
                if used + item.size_gb <= per_channel:
                    chosen.append(item)
                    used += item.size_gb
                    continue

                overage = used + item.size_gb - per_channel
                if overage <= OVERAGE_TOLERANCE_GB and chosen:
                    chosen.append(item)
                    used += item.size_gb
                    logger.debug(f"Selected {candidate.name}/{item.name} with {overage:.1f}GB overage")
                    break

            if not chosen:
                logger.info(f"No videos selected for {candidate.name}, all too large for allocation")
                continue

            selected.append(ChannelSelection(
                requested_name=request.name,
                candidate=candidate,
                is_required=False,
                copy_mode=CopyMode.PARTIAL,
                selected_items=chosen,
                selected_size_gb=used,
                match_score=score,
            ))
            logger.info(
                f"Added optional (partial): {candidate.name} ({len(chosen)} videos, "
                f"{used:.1f}GB of {candidate.size_gb:.1f}GB total)"
            )

        return selected

    def _select_whole(self, pool, remaining: float) -> list[ChannelSelection]:
        """Admit whole channels by descending composite score while they fit."""

        def composite(entry) -> float:
            candidate = entry[1]
            return (
                candidate.avg_item_size_gb * 10
                + candidate.size_gb / max(candidate.media_file_count, 1) * 2
                + candidate.size_gb * 0.1
            )

        selected = []
        used = 0.0
        for request, candidate, score in sorted(pool, key=composite, reverse=True):
            if used + candidate.size_gb > remaining:
                logger.info(f"Skipped channel: {candidate.name} ({candidate.size_gb:.1f}GB) - would exceed space limit")
                continue

            used += candidate.size_gb
            selected.append(ChannelSelection(
                requested_name=request.name,
                candidate=candidate,
                is_required=False,
                copy_mode=CopyMode.ENTIRE,
                selected_size_gb=candidate.size_gb,
                match_score=score,
            ))
            logger.info(f"Selected entire channel: {candidate.name} ({candidate.size_gb:.1f}GB)")

        return selected
