"""Core data models for collection analysis."""

from dataclasses import dataclass, field
from enum import Enum

from ..config.settings import CatalogItem

GIB = 1024 ** 3

CATEGORIES = ("movies", "tv", "games", "webtv")
CATEGORY_BY_TYPE = {
    "movie": "movies",
    "series": "tv",
    "games": "games",
    "webtv": "webtv",
}


class ItemStatus(Enum):
    """Resolution status of a catalog item."""

    FOUND = "found"
    MISSING = "missing"
    EMPTY = "empty"


class CopyMode(Enum):
    """How a selected channel is copied."""

    ENTIRE = "entire"
    PARTIAL = "partial"


@dataclass
class DirectorySummary:
    """Result of surveying one filesystem path."""

    path: str
    exists: bool
    size_bytes: int
    file_count: int
    media_file_count: int
    is_empty: bool

    @property
    def size_gb(self) -> float:
        return self.size_bytes / GIB

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "exists": self.exists,
            "size_bytes": self.size_bytes,
            "file_count": self.file_count,
            "media_file_count": self.media_file_count,
            "is_empty": self.is_empty,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DirectorySummary":
        return cls(
            path=data["path"],
            exists=bool(data["exists"]),
            size_bytes=int(data["size_bytes"]),
            file_count=int(data["file_count"]),
            media_file_count=int(data["media_file_count"]),
            is_empty=bool(data["is_empty"]),
        )

    @classmethod
    def absent(cls, path: str) -> "DirectorySummary":
        """Summary for a path that does not exist."""
        return cls(
            path=path, exists=False, size_bytes=0, file_count=0, media_file_count=0, is_empty=True
        )


@dataclass
class CacheEntry:
    """A cached directory summary with its invalidation data."""

    summary: DirectorySummary
    last_modified: float  # directory mtime observed at scan time
    cached_at: float  # wall-clock insertion time


@dataclass
class MatchResult:
    """Best filesystem match for a catalog name."""

    matched_name: str
    score: float
    is_exact_match: bool
    category: str | None = None  # library category holding matched_name


@dataclass
class SeasonDirectory:
    """A season subdirectory of a series."""

    season_number: int
    path: str
    name: str


@dataclass
class ChannelItem:
    """A single video inside a WebTV channel."""

    name: str  # path relative to the channel root
    path: str
    size_gb: float


@dataclass
class ChannelCandidate:
    """A discovered WebTV channel directory."""

    name: str
    path: str
    size_gb: float
    file_count: int
    media_file_count: int
    items: list[ChannelItem] | None = None  # listed lazily

    @property
    def avg_item_size_gb(self) -> float:
        if self.media_file_count <= 0:
            return 0.0
        return self.size_gb / self.media_file_count


@dataclass
class ChannelSelection:
    """Allocation decision for one configured channel."""

    requested_name: str
    candidate: ChannelCandidate
    is_required: bool
    copy_mode: CopyMode
    selected_items: list[ChannelItem] = field(default_factory=list)
    selected_size_gb: float = 0.0
    match_score: float | None = None

    @property
    def name(self) -> str:
        return self.candidate.name


@dataclass(frozen=True)
class SelectionResult:
    """Outcome of one WebTV allocation run."""

    selected: list[ChannelSelection]
    total_size_gb: float
    remaining_space_gb: float
    all_required_included: bool
    required_overflow: bool
    selection_strategy: str
    warnings: list[str]
    required: list[ChannelSelection]
    optional: list[ChannelSelection]
    excluded: list[ChannelCandidate]
    missing: list[str]

    def selection_for(self, requested_name: str) -> ChannelSelection | None:
        """Selected channel for a configured name, if any."""
        for selection in self.selected:
            if selection.requested_name == requested_name:
                return selection
        return None


@dataclass
class SelectionPreview:
    """Cheap estimate of the required part of a selection."""

    estimated_size_gb: float
    channel_count: int
    missing_channels: list[str]


@dataclass
class SeasonSize:
    season: int
    size_gb: float
    path: str


@dataclass
class SeasonInfo:
    """Season-scoped sizing of a series."""

    selected_seasons: list[int]
    season_sizes: list[SeasonSize]
    has_all_seasons: bool
    missing_seasons: list[int] = field(default_factory=list)

    @property
    def total_size_gb(self) -> float:
        return sum(s.size_gb for s in self.season_sizes)


@dataclass
class ChannelInfo:
    """WebTV selection details attached to a channel analysis."""

    copy_mode: CopyMode
    is_required: bool
    total_channel_size_gb: float
    selected_size_gb: float
    selected_items: list[ChannelItem] = field(default_factory=list)


@dataclass
class ArchiveInfo:
    """Reference archive details attached to an archive analysis."""

    filename: str
    category: str
    priority: str
    expected_size_gb: float
    needs_update: bool
    description: str | None = None


@dataclass
class CollectionAnalysis:
    """Analysis of one catalog item."""

    name: str
    content_type: str
    status: ItemStatus
    path: str
    size_gb: float
    episodes: int = 0
    file_count: int = 0
    media_file_count: int = 0
    actual_name: str | None = None
    match_score: float | None = None
    seasons: list[int] | None = None
    season_info: SeasonInfo | None = None
    reserved_space_gb: float | None = None
    channel_info: ChannelInfo | None = None
    archive_info: ArchiveInfo | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class ContentTypeStats:
    """Space accounting for one content category."""

    count: int = 0
    found_count: int = 0
    missing_count: int = 0
    empty_count: int = 0
    total_size_gb: float = 0.0
    found_size_gb: float = 0.0
    missing_size_gb: float = 0.0
    required_download_size_gb: float = 0.0

    def __add__(self, other: "ContentTypeStats") -> "ContentTypeStats":
        return ContentTypeStats(
            count=self.count + other.count,
            found_count=self.found_count + other.found_count,
            missing_count=self.missing_count + other.missing_count,
            empty_count=self.empty_count + other.empty_count,
            total_size_gb=self.total_size_gb + other.total_size_gb,
            found_size_gb=self.found_size_gb + other.found_size_gb,
            missing_size_gb=self.missing_size_gb + other.missing_size_gb,
            required_download_size_gb=self.required_download_size_gb + other.required_download_size_gb,
        )


@dataclass
class SpaceAllocationBreakdown:
    movies: ContentTypeStats
    series: ContentTypeStats
    webtv_channels: ContentTypeStats
    archives: ContentTypeStats
    other: ContentTypeStats
    totals: ContentTypeStats


@dataclass
class SpaceWarnings:
    """Capacity checks against the destination drive."""

    exceeds_capacity: bool
    exceeds_recommended: bool
    exceeds_safe_threshold: bool
    total_required_gb: float
    available_space_gb: float
    recommendations: list[str]


@dataclass
class CollectionStats:
    """Aggregate statistics of one analysis pass."""

    total_items: int
    found_items: int
    missing_items: int
    empty_items: int
    total_size_gb: float
    drive_usage_percent: float
    movies_count: int
    series_count: int
    webtv_channels_count: int
    archives_count: int
    other_count: int
    largest_items: list[CollectionAnalysis]
    missing_items_list: list[CatalogItem]
    space_allocation: SpaceAllocationBreakdown
    space_warnings: SpaceWarnings


@dataclass
class AvailableContent:
    """Directory names discovered per library category."""

    movies: list[str] = field(default_factory=list)
    tv: list[str] = field(default_factory=list)
    games: list[str] = field(default_factory=list)
    webtv: list[str] = field(default_factory=list)

    def for_type(self, content_type: str) -> list[str]:
        """Candidate pool for a catalog content type."""
        category = CATEGORY_BY_TYPE.get(content_type)
        if category is not None:
            return getattr(self, category)
        return [*self.movies, *self.tv, *self.games, *self.webtv]

    def category_of(self, content_type: str, name: str) -> str | None:
        """Library category a directory name was found in for content_type."""
        category = CATEGORY_BY_TYPE.get(content_type)
        if category is not None:
            return category
        for category in CATEGORIES:
            if name in getattr(self, category):
                return category
        return None


@dataclass
class CollectionReport:
    """Everything produced by one analysis pass."""

    analyses: list[CollectionAnalysis]
    stats: CollectionStats
    selection: SelectionResult | None
    drive_size_gb: float
