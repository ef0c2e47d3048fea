"""简报领域模型"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ScopeKind(str, Enum):
    ALL = "all"
    FEED = "feed"
    GROUP = "group"


@dataclass(frozen=True)
class DigestScope:
    """简报范围：全部订阅、单个订阅源或单个分组"""

    kind: ScopeKind = ScopeKind.ALL
    target_id: Optional[int] = None

    def __post_init__(self):
        if self.kind is ScopeKind.ALL:
            if self.target_id is not None:
                raise ValueError("scope 'all' takes no target id")
        elif self.target_id is None:
            raise ValueError(f"scope {self.kind.value!r} requires a target id")

    @classmethod
    def all(cls) -> "DigestScope":
        return cls(ScopeKind.ALL)

    @classmethod
    def feed(cls, feed_id: int) -> "DigestScope":
        return cls(ScopeKind.FEED, int(feed_id))

    @classmethod
    def group(cls, group_id: int) -> "DigestScope":
        return cls(ScopeKind.GROUP, int(group_id))

    @classmethod
    def parse(cls, scope: Optional[str], scope_id: Any = None) -> "DigestScope":
        """
        从 scope / scopeId 字段解析

        Raises:
            ValueError: scope 未知，或 feed/group 缺少合法的数字 ID
        """
        kind = ScopeKind(scope or "all")
        if kind is ScopeKind.ALL:
            return cls.all()
        if scope_id is None or scope_id == "":
            raise ValueError(f"scope {kind.value!r} requires a target id")
        try:
            target = int(scope_id)
        except (TypeError, ValueError):
            raise ValueError(f"invalid {kind.value} id: {scope_id!r}") from None
        return cls(kind, target)

    @property
    def feed_id(self) -> Optional[int]:
        return self.target_id if self.kind is ScopeKind.FEED else None

    @property
    def group_id(self) -> Optional[int]:
        return self.target_id if self.kind is ScopeKind.GROUP else None

    def __str__(self) -> str:
        if self.kind is ScopeKind.ALL:
            return "all"
        return f"{self.kind.value}:{self.target_id}"


@dataclass
class Digest:
    """
    一份 AI 生成的简报。

    id 形如 digest_<epochMillis>_<随机后缀>，其中的时间戳决定分片文件；
    未落盘的“无文章”占位简报 id 为 None。持久化时使用 camelCase 字段名。
    """

    id: Optional[str]
    scope: str
    scope_id: Optional[int]
    scope_name: str
    title: str
    content: str
    article_count: int
    hours: int
    generated_at: str
    is_read: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "digest",
            "scope": self.scope,
            "scopeId": self.scope_id,
            "scopeName": self.scope_name,
            "title": self.title,
            "content": self.content,
            "articleCount": self.article_count,
            "hours": self.hours,
            "generatedAt": self.generated_at,
            "isRead": self.is_read,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Digest":
        return cls(
            id=data.get("id"),
            scope=data.get("scope") or "all",
            scope_id=data.get("scopeId"),
            scope_name=data.get("scopeName") or "",
            title=data.get("title") or "",
            content=data.get("content") or "",
            article_count=int(data.get("articleCount") or 0),
            hours=int(data.get("hours") or 0),
            generated_at=data.get("generatedAt") or "",
            is_read=bool(data.get("isRead", False)),
        )

    def to_article(self) -> Dict[str, Any]:
        """转换为文章列表中的条目格式"""
        return {
            "id": self.id,
            "type": "digest",
            "feed_id": None,
            "title": self.title,
            "content": self.content,
            "published_at": self.generated_at,
            "is_read": 1 if self.is_read else 0,
            "is_favorited": 0,
            "thumbnail_url": None,
            "feed_title": self.scope_name,
            "author": "AI",
            "url": None,
            "digest_scope": self.scope,
            "digest_scope_id": self.scope_id,
            "article_count": self.article_count,
        }
