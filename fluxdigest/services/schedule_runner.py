"""执行单个定时简报任务（定时触发与“立即执行”共用）"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from loguru import logger

from ..domain.digest.models import Digest, ScopeKind
from ..domain.schedules.models import (
    AIConfig,
    PushConfig,
    ScheduledTask,
    resolve_target_lang,
    user_timezone,
)
from ..infrastructure.clients.miniflux import MinifluxClient, MinifluxError, get_miniflux_client
from ..infrastructure.notifiers.webhook import PushDispatcher
from .digest_generator import DigestGenerator, DigestOptions

AI_NOT_CONFIGURED = "AI not configured"
MINIFLUX_UNAVAILABLE = "Miniflux unavailable"
FEED_NOT_FOUND = "Feed not found"
GROUP_NOT_FOUND = "Group not found"
TARGET_NOT_FOUND_ERRORS = frozenset({FEED_NOT_FOUND, GROUP_NOT_FOUND})


@dataclass
class PushResult:
    """推送结果，与简报生成是否成功相互独立"""

    attempted: bool = False
    success: bool = False
    status: Optional[Union[int, str]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempted": self.attempted,
            "success": self.success,
            "status": self.status,
            "error": self.error,
        }


@dataclass
class TaskResult:
    success: bool
    digest: Optional[Digest] = None
    push: Optional[PushResult] = None
    error: Optional[str] = None

    @property
    def target_missing(self) -> bool:
        """任务指向的订阅源 / 分组已不存在"""
        return not self.success and self.error in TARGET_NOT_FOUND_ERRORS

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success}
        if self.digest is not None:
            data["digest"] = self.digest.to_dict()
        if self.push is not None:
            data["push"] = self.push.to_dict()
        if self.error is not None:
            data["error"] = self.error
        return data


class ScheduleRunner:
    """
    校验配置与目标是否存在，生成简报，并按需推送。

    所有失败都以 TaskResult 返回，不抛出异常；是否因目标缺失而停用任务由调用方决定。
    """

    def __init__(
        self,
        generator: DigestGenerator,
        dispatcher: PushDispatcher,
        client_provider: Callable[[], Optional[MinifluxClient]] = get_miniflux_client,
    ):
        self.generator = generator
        self.dispatcher = dispatcher
        self.client_provider = client_provider

    async def _check_target(self, client: MinifluxClient, task: ScheduledTask) -> Optional[str]:
        """返回目标缺失的错误文案；目标存在时返回 None。其他接口错误照常抛出。"""
        scope = task.scope
        if scope.kind is ScopeKind.FEED:
            try:
                await client.get_feed(scope.target_id)
            except MinifluxError as e:
                if e.is_not_found:
                    return FEED_NOT_FOUND
                raise
        elif scope.kind is ScopeKind.GROUP:
            categories = await client.get_categories()
            if not any(c.get("id") == scope.target_id for c in categories):
                return GROUP_NOT_FOUND
        return None

    async def _push(self, user_id: str, config: PushConfig, digest: Digest) -> PushResult:
        try:
            resp = await self.dispatcher.send(config, digest.title, digest.content, user_id)
        except Exception as e:  # noqa: BLE001
            logger.error(f"[简报推送] 用户 {user_id} 推送失败: {e}")
            return PushResult(attempted=True, success=False, status="ERR", error=str(e))
        return PushResult(
            attempted=True,
            success=resp.ok,
            status=resp.status,
            error=None if resp.ok else f"HTTP {resp.status}",
        )

    async def run_task(
        self,
        user_id: str,
        task: ScheduledTask,
        prefs: Dict[str, Any],
        force: bool = False,
        force_push: bool = False,
    ) -> TaskResult:
        """
        执行一个任务

        Args:
            user_id: 用户ID
            task: 规范化后的任务
            prefs: 用户偏好（ai_config / digest_push_config / digest_timezone）
            force: 目标不存在时仍然执行（手动“立即执行”）
            force_push: 忽略任务的 pushEnabled，只要配置了推送地址就推送

        Returns:
            TaskResult
        """
        ai_config = AIConfig.from_prefs(prefs)
        if not ai_config.is_configured:
            return TaskResult(success=False, error=AI_NOT_CONFIGURED)

        client = self.client_provider()
        if client is None:
            return TaskResult(success=False, error=MINIFLUX_UNAVAILABLE)

        try:
            missing = await self._check_target(client, task)
        except Exception as e:  # noqa: BLE001
            if not force:
                logger.error(f"[简报任务] 用户 {user_id} 任务 {task.id} 校验目标失败: {e}")
                return TaskResult(success=False, error=str(e))
            missing = None
        if missing and not force:
            logger.warning(f"[简报任务] 用户 {user_id} 任务 {task.id}: {missing} ({task.scope})")
            return TaskResult(success=False, error=missing)

        options = DigestOptions(
            ai_config=ai_config,
            scope=task.scope,
            hours=task.hours,
            target_lang=resolve_target_lang(ai_config),
            custom_prompt=ai_config.digest_prompt or None,
            unread_only=task.unread_only,
            timezone=user_timezone(prefs) or "",
        )

        try:
            result = await self.generator.generate(client, user_id, options)
        except Exception as e:  # noqa: BLE001
            logger.error(f"[简报任务] 用户 {user_id} 任务 {task.id} 生成失败: {e}")
            return TaskResult(success=False, error=str(e))

        digest = result.digest
        push: Optional[PushResult] = None
        push_config = PushConfig.from_prefs(prefs)
        if (task.push_enabled or force_push) and push_config.is_configured:
            push = await self._push(user_id, push_config, digest)

        logger.info(
            f"[简报任务] 用户 {user_id} 任务 {task.id} 完成: digest={digest.id}, "
            f"articles={digest.article_count}, push={push.to_dict() if push else None}"
        )
        return TaskResult(success=True, digest=digest, push=push)
