"""简报生成：拉取文章 -> 构建提示词 -> 调用 AI -> 保存"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from loguru import logger

from ..domain.clock import compact_stamp
from ..domain.digest import i18n
from ..domain.digest.models import Digest, DigestScope, ScopeKind
from ..domain.digest.prompt import PreparedArticle, build_digest_prompt, prepare_articles
from ..domain.schedules.models import AIConfig
from ..infrastructure.clients.ai import AIClient
from ..infrastructure.clients.miniflux import MinifluxClient
from .content_fetcher import ContentFetcher
from .digest_store import DigestStore, to_iso


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DigestOptions:
    """一次简报生成的参数"""

    ai_config: AIConfig
    scope: DigestScope = field(default_factory=DigestScope.all)
    hours: int = 12
    target_lang: str = "Simplified Chinese"
    custom_prompt: Optional[str] = None
    unread_only: bool = True
    timezone: str = ""


@dataclass
class GenerationResult:
    success: bool
    digest: Digest

    def to_dict(self) -> Dict:
        return {"success": self.success, "digest": self.digest.to_dict()}


def feed_sources_appendix(articles: List[PreparedArticle], english: bool) -> str:
    """简报末尾的订阅源清单，有 ID 的订阅源渲染为站内链接"""
    seen: Dict[object, PreparedArticle] = {}
    for article in articles:
        key = article.feed_id if article.feed_id is not None else article.feed_title
        if key in (None, "") or key in seen:
            continue
        seen[key] = article

    fallback_title = i18n.label("feed", english)
    linked = []
    plain = []
    for article in seen.values():
        title = article.feed_title or fallback_title
        if article.feed_id is not None:
            escaped = title.replace("]", "\\]")
            linked.append(f"- [{escaped}](#/feed/{article.feed_id})")
        else:
            plain.append(f"- {title}")

    lines = linked + plain
    if not lines:
        return ""
    return f"## {i18n.label('feed_sources', english)}\n\n" + "\n".join(lines)


class DigestGenerator:
    """
    生成并保存一份简报

    没有候选文章时返回未保存的占位简报（id 为 None），不调用 AI。
    """

    def __init__(
        self,
        store: DigestStore,
        fetcher: Optional[ContentFetcher] = None,
        ai_client_factory: Callable[[AIConfig], AIClient] = AIClient,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.store = store
        self.fetcher = fetcher or ContentFetcher(clock=clock)
        self.ai_client_factory = ai_client_factory
        self.clock = clock

    async def resolve_scope_name(self, client: MinifluxClient, scope: DigestScope, english: bool) -> str:
        """
        查询订阅源 / 分组的当前名称

        目标已不存在时使用通用名称，不视为错误；接口本身的错误照常抛出。
        """
        if scope.kind is ScopeKind.FEED:
            feeds = await client.get_feeds()
            feed = next((f for f in feeds if f.get("id") == scope.target_id), None)
            return feed.get("title") if feed and feed.get("title") else i18n.label("feed", english)
        if scope.kind is ScopeKind.GROUP:
            categories = await client.get_categories()
            category = next((c for c in categories if c.get("id") == scope.target_id), None)
            return category.get("title") if category and category.get("title") else i18n.label("group", english)
        return i18n.label("all", english)

    async def generate(self, client: MinifluxClient, user_id: str, options: DigestOptions) -> GenerationResult:
        """
        生成简报

        Args:
            client: Miniflux 客户端
            user_id: 用户ID
            options: 生成参数

        Returns:
            GenerationResult，success 恒为 True；失败以异常形式抛出

        Raises:
            AIError: AI 未配置或调用失败
            MinifluxError: 拉取订阅源信息或文章失败
        """
        english = i18n.is_english(options.target_lang)
        scope = options.scope
        scope_name = await self.resolve_scope_name(client, scope, english)

        entries = await self.fetcher.fetch(
            client,
            hours=options.hours,
            scope=scope,
            unread_only=options.unread_only,
        )

        now = self.clock()
        title = f"{scope_name} · {i18n.label('digest', english)} {compact_stamp(now, options.timezone)}"

        if not entries:
            logger.info(f"[简报生成] 用户 {user_id} 范围 {scope} 过去 {options.hours} 小时没有文章")
            placeholder = Digest(
                id=None,
                scope=scope.kind.value,
                scope_id=scope.target_id,
                scope_name=scope_name,
                title=title,
                content=i18n.no_articles_message(options.hours, options.unread_only, english),
                article_count=0,
                hours=options.hours,
                generated_at=to_iso(now),
            )
            return GenerationResult(success=True, digest=placeholder)

        articles = prepare_articles(entries)
        prompt = build_digest_prompt(
            articles,
            target_lang=options.target_lang,
            scope_label=scope_name,
            custom_template=options.custom_prompt,
        )
        logger.info(f"[简报生成] 用户 {user_id} 范围 {scope}: {len(articles)} 篇文章，开始调用 AI")

        content = await self.ai_client_factory(options.ai_config).complete(prompt)

        appendix = feed_sources_appendix(articles, english)
        if appendix:
            content = (content.rstrip() + "\n\n---\n\n" + appendix).strip()

        digest = self.store.add(
            user_id,
            scope=scope.kind.value,
            scope_id=scope.target_id,
            scope_name=scope_name,
            title=title,
            content=content,
            article_count=len(articles),
            hours=options.hours,
            generated_at=now,
        )
        logger.info(f"[简报生成] 用户 {user_id} 简报已生成: {digest.id}")
        return GenerationResult(success=True, digest=digest)
