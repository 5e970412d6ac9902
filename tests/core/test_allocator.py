"""Test WebTV space allocation."""

import random

import pytest

from collectr.config.settings import ChannelEntry, Priority
from collectr.core.allocator import OVERAGE_TOLERANCE_GB, SpaceAllocator
from collectr.core.models import ChannelCandidate, CopyMode


def required(name, **kwargs):
    return ChannelEntry(name=name, priority=Priority.REQUIRED, **kwargs)


def optional(name, **kwargs):
    return ChannelEntry(name=name, priority=Priority.OPTIONAL, **kwargs)


class TestRequiredChannels:
    """Phase one: required channels are included whole."""

    def test_required_only_with_missing_channel(self, make_channel):
        """Budget 100GB, one 40GB required channel found, one required channel absent."""
        nature = make_channel("Nature Documentaries", [10, 10, 10, 10])
        allocator = SpaceAllocator()

        result = allocator.select(
            [required("Nature Documentaries"), required("Cooking Marathon")],
            [nature],
            budget_gb=100,
        )

        assert [s.name for s in result.selected] == ["Nature Documentaries"]
        assert result.selected[0].copy_mode == CopyMode.ENTIRE
        assert result.selected[0].selected_size_gb == pytest.approx(40)
        assert result.all_required_included is False
        assert result.warnings == ["Required channel not found: Cooking Marathon"]
        assert result.missing == ["Cooking Marathon"]
        assert result.total_size_gb == pytest.approx(40)
        assert result.remaining_space_gb == pytest.approx(60)
        assert not result.required_overflow

    def test_required_overflow_excludes_optional(self, make_channel):
        big = make_channel("Space Marathons", [40, 40])
        bigger = make_channel("Ocean Deep", [25, 25])
        extra = make_channel("Cooking", [1, 1])
        allocator = SpaceAllocator()

        result = allocator.select(
            [required("Space Marathons"), required("Ocean Deep"), optional("Cooking")],
            [big, bigger, extra],
            budget_gb=100,
        )

        assert result.required_overflow
        assert result.total_size_gb == pytest.approx(130)
        assert result.remaining_space_gb == pytest.approx(-30)
        assert result.optional == []
        assert result.excluded == [extra]
        assert any("exceed target space" in w for w in result.warnings)
        assert result.all_required_included

    def test_max_size_warns_but_uses_full_size(self, make_channel):
        channel = make_channel("Nature", [20, 20])
        allocator = SpaceAllocator()

        result = allocator.select([required("Nature", max_size_gb=30)], [channel], budget_gb=100)

        assert result.selected[0].selected_size_gb == pytest.approx(40)
        assert "exceeds max size limit" in result.warnings[0]

    def test_fuzzy_channel_name(self, make_channel):
        channel = make_channel("Nature Documentaries HD", [5])
        allocator = SpaceAllocator()

        result = allocator.select([required("Nature Documentaries")], [channel], budget_gb=10)

        selection = result.selection_for("Nature Documentaries")
        assert selection.candidate is channel
        assert selection.match_score < 1.0

    def test_same_directory_not_selected_twice(self, make_channel):
        channel = make_channel("Nature", [5])
        allocator = SpaceAllocator()

        result = allocator.select(
            [required("Nature"), required("nature")], [channel], budget_gb=100
        )

        assert len(result.selected) == 1
        assert result.total_size_gb == pytest.approx(5)
        assert result.missing == ["nature"]
        assert result.all_required_included is False


class TestPartialSelection:
    """Phase two with partial selection enabled."""

    def test_fair_partial_split(self, make_channel):
        """60GB for two channels of five 20GB videos: one video each."""
        first = make_channel("Ocean Life", [20] * 5)
        second = make_channel("Mountain Trails", [20] * 5)
        allocator = SpaceAllocator(random_seed=1)

        result = allocator.select(
            [optional("Ocean Life"), optional("Mountain Trails")],
            [first, second],
            budget_gb=60,
        )

        assert len(result.optional) == 2
        for selection in result.optional:
            assert selection.copy_mode == CopyMode.PARTIAL
            assert len(selection.selected_items) == 1
            assert selection.selected_size_gb == pytest.approx(20)
        assert result.total_size_gb == pytest.approx(40)
        assert result.remaining_space_gb == pytest.approx(20)
        assert result.excluded == []

    def test_budget_left_by_required_is_split(self, make_channel):
        nature = make_channel("Nature", [30])
        first = make_channel("Ocean Life", [5] * 10)
        second = make_channel("Mountain Trails", [5] * 10)
        allocator = SpaceAllocator(random_seed=3)

        result = allocator.select(
            [required("Nature"), optional("Ocean Life"), optional("Mountain Trails")],
            [nature, first, second],
            budget_gb=70,
        )

        assert [s.name for s in result.required] == ["Nature"]
        assert [s.selected_size_gb for s in result.optional] == [pytest.approx(20), pytest.approx(20)]
        assert result.total_size_gb == pytest.approx(70)
        assert result.remaining_space_gb == pytest.approx(0)

    def test_single_overage_admission(self, make_channel):
        channel = make_channel("Ocean Life", [20, 10.8])
        allocator = SpaceAllocator(random_seed=5)

        result = allocator.select([optional("Ocean Life")], [channel], budget_gb=30)

        selection = result.optional[0]
        assert len(selection.selected_items) == 2
        assert selection.selected_size_gb == pytest.approx(30.8)
        assert result.remaining_space_gb == pytest.approx(-0.8)

    def test_no_overage_without_prior_admission(self, make_channel):
        channel = make_channel("Ocean Life", [30.5])
        allocator = SpaceAllocator()

        result = allocator.select([optional("Ocean Life")], [channel], budget_gb=30)

        assert result.optional == []
        assert result.excluded == [channel]
        assert result.total_size_gb == 0

    def test_channel_with_oversized_videos_excluded(self, make_channel):
        small = make_channel("Shorts", [1, 1, 1])
        huge = make_channel("Marathons", [50, 60])
        allocator = SpaceAllocator(random_seed=2)

        result = allocator.select(
            [optional("Shorts"), optional("Marathons")], [small, huge], budget_gb=20
        )

        assert [s.name for s in result.optional] == ["Shorts"]
        assert result.excluded == [huge]

    def test_fairness_bound(self, make_channel):
        """No selected channel exceeds its fair share by more than the overage tolerance."""
        rng = random.Random(42)
        channels = [
            make_channel(f"Channel {letter}", [rng.uniform(0.2, 4.0) for _ in range(25)])
            for letter in "ABCDE"
        ]
        allocator = SpaceAllocator(random_seed=42)
        budget = 50

        result = allocator.select(
            [optional(c.name) for c in channels], channels, budget_gb=budget
        )

        fair_share = budget / len(channels)
        for selection in result.optional:
            assert selection.selected_size_gb <= fair_share + OVERAGE_TOLERANCE_GB
        assert result.total_size_gb == pytest.approx(sum(s.selected_size_gb for s in result.selected))
        assert result.remaining_space_gb == pytest.approx(budget - result.total_size_gb)

    def test_seed_makes_selection_reproducible(self, make_channel):
        def run():
            channel = make_channel("Ocean Life", [float(i % 7 + 1) for i in range(30)])
            return SpaceAllocator(random_seed=99).select(
                [optional("Ocean Life")], [channel], budget_gb=25
            )

        first, second = run(), run()

        assert [i.name for i in first.optional[0].selected_items] == [
            i.name for i in second.optional[0].selected_items
        ]

    def test_items_loaded_lazily(self, make_channel):
        channel = make_channel("Ocean Life", [2, 2])
        loaded_items = channel.items
        channel.items = None
        calls = []

        def loader(candidate):
            calls.append(candidate.name)
            return loaded_items

        allocator = SpaceAllocator(item_loader=loader)
        result = allocator.select([optional("Ocean Life")], [channel], budget_gb=10)

        assert calls == ["Ocean Life"]
        assert result.optional[0].selected_size_gb == pytest.approx(4)

    def test_no_remaining_budget_excludes_optional(self, make_channel):
        nature = make_channel("Nature", [50])
        extra = make_channel("Ocean Life", [1])
        allocator = SpaceAllocator()

        result = allocator.select(
            [required("Nature"), optional("Ocean Life")], [nature, extra], budget_gb=50
        )

        assert result.optional == []
        assert result.excluded == [extra]
        assert result.remaining_space_gb == pytest.approx(0)


class TestWholeChannelSelection:
    """Phase two with partial selection disabled."""

    def test_prefers_large_average_videos(self):
        long_form = ChannelCandidate("Marathons", "/webtv/Marathons", 50.0, 5, 5)
        clips = ChannelCandidate("Clips", "/webtv/Clips", 40.0, 40, 40)
        shorts = ChannelCandidate("Shorts", "/webtv/Shorts", 5.0, 5, 5)
        allocator = SpaceAllocator()

        result = allocator.select(
            [optional("Clips"), optional("Shorts"), optional("Marathons")],
            [long_form, clips, shorts],
            budget_gb=60,
            allow_partial=False,
        )

        assert [s.name for s in result.optional] == ["Marathons", "Shorts"]
        assert all(s.copy_mode == CopyMode.ENTIRE for s in result.optional)
        assert result.excluded == [clips]
        assert result.total_size_gb == pytest.approx(55)

    def test_strategy_is_recorded(self, make_channel):
        result = SpaceAllocator().select(
            [optional("Shorts")], [make_channel("Shorts", [1])], budget_gb=5,
            strategy="exact_channels",
        )

        assert result.selection_strategy == "exact_channels"


class TestPreview:
    def test_preview_counts_required_only(self, make_channel):
        nature = make_channel("Nature", [10, 5])
        ocean = make_channel("Ocean Life", [7])
        allocator = SpaceAllocator()

        preview = allocator.preview(
            [required("Nature"), optional("Ocean Life"), required("Cooking Marathon")],
            [nature, ocean],
        )

        assert preview.estimated_size_gb == pytest.approx(15)
        assert preview.channel_count == 1
        assert preview.missing_channels == ["Cooking Marathon"]
