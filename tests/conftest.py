"""Pytest configuration and fixtures."""

import shutil
import tempfile
from pathlib import Path

import pytest

from collectr.config.settings import CollectrConfig
from collectr.core.models import ChannelCandidate, ChannelItem


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def make_file():
    """Create a (sparse) file of the given size in bytes, creating parents."""

    def _make_file(path: Path, size: int = 0) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            f.truncate(size)
        return path

    return _make_file


@pytest.fixture
def library_root(temp_dir):
    """An empty library with the standard category directories."""
    root = temp_dir / "library"
    for category in ("movies", "tv", "games", "webtv"):
        (root / category).mkdir(parents=True)
    return root


@pytest.fixture
def test_config(temp_dir, library_root):
    """Create a test configuration pointing at the temporary library."""
    config = CollectrConfig()
    config.library_paths = config.library_paths.rebase(library_root)
    config.cache.cache_dir = str(temp_dir / "cache")
    config.output.default_destination = str(temp_dir / "not-mounted")
    config.archives.download_path = str(temp_dir / "kiwix")
    config.analysis.min_channel_size_gb = 0.0
    return config


@pytest.fixture
def make_channel():
    """Build an in-memory channel candidate from a list of item sizes in GB."""

    def _make_channel(name: str, item_sizes_gb: list[float]) -> ChannelCandidate:
        items = [
            ChannelItem(name=f"video_{i:02d}.mp4", path=f"/webtv/{name}/video_{i:02d}.mp4", size_gb=size)
            for i, size in enumerate(item_sizes_gb)
        ]
        return ChannelCandidate(
            name=name,
            path=f"/webtv/{name}",
            size_gb=sum(item_sizes_gb),
            file_count=len(items),
            media_file_count=len(items),
            items=items,
        )

    return _make_channel
