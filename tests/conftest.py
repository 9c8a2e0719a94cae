"""
Shared fixtures for YT Notifier tests.

Provides common test fixtures for use across all test modules.
"""

from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from yt_notifier.config import AppConfig, ChannelConfig, DefaultsConfig, StorageConfig
from yt_notifier.detector import FeedItem, LiveStatus
from yt_notifier.storage import StateStore


# Path to test fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make sure overrides from the developer's shell do not leak into tests."""
    monkeypatch.delenv("POLL_INTERVAL_MS", raising=False)
    monkeypatch.delenv("DISCORD_PING", raising=False)


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to fixtures directory."""
    return FIXTURES_DIR


@pytest.fixture
def sample_config_path(fixtures_dir: Path) -> Path:
    """Return path to sample YAML config file."""
    return fixtures_dir / "sample_config.yaml"


@pytest.fixture
def channels_json_path(fixtures_dir: Path) -> Path:
    """Return path to a legacy channels.json file."""
    return fixtures_dir / "channels.json"


@pytest.fixture
def sample_feed_content(fixtures_dir: Path) -> str:
    """Return contents of a YouTube feed with two videos."""
    return (fixtures_dir / "sample_feed.xml").read_text()


@pytest.fixture
def empty_feed_content(fixtures_dir: Path) -> str:
    """Return contents of a YouTube feed without entries."""
    return (fixtures_dir / "empty_feed.xml").read_text()


@pytest.fixture
def live_feed_content(fixtures_dir: Path) -> str:
    """Return contents of a feed with a live and an upcoming broadcast."""
    return (fixtures_dir / "live_feed.xml").read_text()


@pytest.fixture
def channel_a() -> ChannelConfig:
    """Create a channel configuration."""
    return ChannelConfig(
        channel_id="UCchannelA",
        webhook="https://discord.example.com/api/webhooks/1/token-a",
    )


@pytest.fixture
def channel_b() -> ChannelConfig:
    """Create a second channel configuration."""
    return ChannelConfig(
        channel_id="UCchannelB",
        webhook="https://discord.example.com/api/webhooks/2/token-b",
    )


@pytest.fixture
def minimal_config_dict() -> dict[str, Any]:
    """
    Create a minimal valid configuration dictionary.

    Returns
    -------
    dict
        Configuration dictionary that can be used to create AppConfig.
    """
    return {
        "channels": [
            {
                "channelId": "UCchannelA",
                "webhook": "https://discord.example.com/api/webhooks/1/token-a",
            }
        ],
    }


@pytest.fixture
def app_config(
    tmp_path: Path, channel_a: ChannelConfig, channel_b: ChannelConfig
) -> AppConfig:
    """Create an app configuration with two channels and a temp state file."""
    return AppConfig(
        defaults=DefaultsConfig(poll_interval_ms=1000),
        storage=StorageConfig(state_path=str(tmp_path / "state" / "store.json")),
        channels=[channel_a, channel_b],
    )


@pytest.fixture
def state_path(tmp_path: Path) -> Path:
    """Return a path for a state document that does not exist yet."""
    return tmp_path / "data" / "store.json"


@pytest_asyncio.fixture
async def store(state_path: Path) -> AsyncGenerator[StateStore, None]:
    """
    Create an initialized state store in a temp directory.

    Yields
    ------
    StateStore
        An initialized store backed by a temp file.
    """
    state_store = StateStore(state_path)
    await state_store.initialize()
    yield state_store
    await state_store.close()


@pytest.fixture
def video_item() -> FeedItem:
    """Create a regular upload item."""
    return FeedItem(item_id="xyz", title="Newest Upload", live_status=LiveStatus.NONE)


@pytest.fixture
def mock_fetcher() -> MagicMock:
    """
    Create a mock feed fetcher.

    Returns
    -------
    MagicMock
        A fetcher whose ``fetch`` returns no items by default.
    """
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(return_value=[])
    fetcher.close = AsyncMock()
    return fetcher


@pytest.fixture
def mock_notifier() -> MagicMock:
    """
    Create a mock notifier.

    Returns
    -------
    MagicMock
        A notifier whose ``send`` succeeds by default.
    """
    notifier = MagicMock()
    notifier.send = AsyncMock(return_value=None)
    notifier.close = AsyncMock()
    return notifier
