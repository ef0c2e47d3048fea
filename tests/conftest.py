"""测试公共夹具"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from fluxdigest.infrastructure.clients.miniflux import MinifluxError
from fluxdigest.services.digest_store import DigestStore
from fluxdigest.services.preference_store import PreferenceStore


class FixedClock:
    """可手动调整的时钟"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def make_entry(
    entry_id: int,
    title: str,
    feed_id: int = 1,
    feed_title: str = "示例订阅源",
    content: str = "<p>正文内容</p>",
    category: Optional[str] = None,
) -> Dict[str, Any]:
    feed: Dict[str, Any] = {"id": feed_id, "title": feed_title}
    if category:
        feed["category"] = {"id": 9, "title": category}
    return {
        "id": entry_id,
        "title": title,
        "content": content,
        "url": f"https://example.com/{entry_id}",
        "published_at": "2026-03-01T08:00:00Z",
        "feed_id": feed_id,
        "feed": feed,
    }


def make_miniflux(
    feeds: Optional[List[Dict[str, Any]]] = None,
    categories: Optional[List[Dict[str, Any]]] = None,
    entries: Optional[List[Dict[str, Any]]] = None,
    missing_feed: bool = False,
) -> MagicMock:
    """模拟 MinifluxClient"""
    client = MagicMock()
    client.get_feeds = AsyncMock(return_value=feeds or [])
    client.get_categories = AsyncMock(return_value=categories or [])
    client.get_entries = AsyncMock(return_value={"entries": entries or []})
    if missing_feed:
        client.get_feed = AsyncMock(side_effect=MinifluxError("Miniflux API Error: 404 Not Found", status_code=404))
    else:
        client.get_feed = AsyncMock(return_value={"id": 1, "title": "示例订阅源"})
    return client


AI_PREFS = {
    "ai_config": {
        "apiUrl": "https://ai.example.com/v1",
        "apiKey": "sk-test",
        "model": "test-model",
    }
}


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 3, 1, 4, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def digest_store(tmp_path, clock):
    return DigestStore(tmp_path / "digests", clock=clock)


@pytest.fixture
def preference_store(tmp_path):
    return PreferenceStore(tmp_path / "preferences")
