"""按需生成简报（HTTP 接口使用），与定时任务的后台路径相互独立"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from loguru import logger

from ..domain.digest.models import DigestScope
from ..domain.digest.prompt import prepare_articles
from ..domain.schedules.models import AIConfig, resolve_target_lang, user_timezone
from ..infrastructure.clients.ai import AI_NOT_CONFIGURED, AIError
from ..infrastructure.clients.miniflux import MinifluxClient
from .digest_generator import DigestGenerator, DigestOptions, GenerationResult
from .preference_store import PreferenceStore

PREVIEW_ARTICLES = 10


@dataclass
class DigestRequest:
    """调用方指定的生成参数，未指定的语言和提示词取自用户的 AI 配置"""

    scope: DigestScope = field(default_factory=DigestScope.all)
    hours: int = 12
    target_lang: Optional[str] = None
    custom_prompt: Optional[str] = None
    unread_only: bool = True


class DigestService:
    """推送服务之外的简报入口：立即生成、预览"""

    def __init__(self, generator: DigestGenerator, preferences: PreferenceStore):
        self.generator = generator
        self.preferences = preferences

    def options_for(self, user_id: str, request: DigestRequest) -> DigestOptions:
        """
        合并请求参数与用户偏好

        Raises:
            AIError: 用户未配置 AI
        """
        prefs = self.preferences.get(user_id)
        ai_config = AIConfig.from_prefs(prefs)
        if not ai_config.is_configured:
            raise AIError(AI_NOT_CONFIGURED)

        custom_prompt = request.custom_prompt
        if custom_prompt is None:
            custom_prompt = ai_config.digest_prompt or None
        return DigestOptions(
            ai_config=ai_config,
            scope=request.scope,
            hours=request.hours,
            target_lang=request.target_lang or resolve_target_lang(ai_config),
            custom_prompt=custom_prompt,
            unread_only=request.unread_only,
            timezone=user_timezone(prefs) or "",
        )

    async def generate(self, client: MinifluxClient, user_id: str, request: DigestRequest) -> GenerationResult:
        """立即生成一份简报；错误直接抛给调用方"""
        options = self.options_for(user_id, request)
        logger.info(f"[简报生成] 用户 {user_id} 手动生成简报: 范围 {request.scope}, {request.hours} 小时")
        return await self.generator.generate(client, user_id, options)

    async def preview(self, client: MinifluxClient, request: DigestRequest) -> Dict[str, Any]:
        """返回候选文章数与前几篇整理后的文章，不调用 AI"""
        entries = await self.generator.fetcher.fetch(
            client,
            hours=request.hours,
            scope=request.scope,
            unread_only=request.unread_only,
        )
        prepared = prepare_articles(entries[:PREVIEW_ARTICLES])
        return {
            "articleCount": len(entries),
            "articles": [a.to_dict() for a in prepared],
        }
