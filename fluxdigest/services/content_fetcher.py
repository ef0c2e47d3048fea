"""从 Miniflux 拉取简报候选文章"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from ..domain.digest.models import DigestScope
from ..infrastructure.clients.miniflux import MinifluxClient

DEFAULT_LIMIT = 500


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ContentFetcher:
    """
    按时间窗口和范围查询文章，最新的在前。

    hours 为 0 表示不限时间。接口错误原样抛出，重试由 MinifluxClient 负责。
    """

    def __init__(self, clock: Callable[[], datetime] = _utc_now):
        self.clock = clock

    def build_params(
        self,
        hours: int,
        scope: DigestScope,
        unread_only: bool = True,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "order": "published_at",
            "direction": "desc",
            "limit": limit or DEFAULT_LIMIT,
        }
        if hours > 0:
            params["after"] = int((self.clock() - timedelta(hours=hours)).timestamp())
        if unread_only:
            params["status"] = "unread"
        if scope.feed_id is not None:
            params["feed_id"] = scope.feed_id
        if scope.group_id is not None:
            params["category_id"] = scope.group_id
        return params

    async def fetch(
        self,
        client: MinifluxClient,
        hours: int = 12,
        scope: Optional[DigestScope] = None,
        unread_only: bool = True,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        params = self.build_params(hours, scope or DigestScope.all(), unread_only, limit)
        logger.debug(
            f"[简报生成] 拉取文章: limit={params['limit']}, after={params.get('after', 'all')}, "
            f"hours={hours}, unread_only={unread_only}, scope={scope}"
        )
        response = await client.get_entries(params)
        return (response or {}).get("entries") or []
