from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from loguru import logger
from pydantic import BaseModel

from ...container import Services
from ...domain.digest.models import DigestScope
from ...domain.schedules.migration import load_schedules, migrate_schedules
from ...infrastructure.clients.ai import AI_NOT_CONFIGURED, AIError
from ...infrastructure.clients.miniflux import MinifluxClient
from ...services.digest_service import DigestRequest
from ...services.preference_store import PreferenceStore, is_valid_user_id

router = APIRouter()


class GenerateRequest(BaseModel):
    scope: str = "all"
    scopeId: Optional[int] = None
    hours: int = 12
    targetLang: Optional[str] = None
    prompt: Optional[str] = None
    unreadOnly: bool = True


class RunTaskRequest(BaseModel):
    forcePush: bool = False


def _services(request: Request) -> Services:
    return request.app.state.services


def _require_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_name: Optional[str] = Header(default=None),
) -> str:
    """
    当前用户。

    登录与鉴权由前置网关处理。优先读取 X-User-Id；只有 X-User-Name 时，
    由用户名换算出用户ID。用户ID会拼进数据文件名，格式不符直接拒绝。
    """
    if x_user_id:
        if not is_valid_user_id(x_user_id):
            raise HTTPException(status_code=400, detail="非法的用户标识")
        return x_user_id
    if x_user_name:
        return PreferenceStore.user_id_for(x_user_name)
    raise HTTPException(status_code=401, detail="缺少用户标识")


def _parse_scope(scope: Optional[str], scope_id) -> DigestScope:
    try:
        return DigestScope.parse(scope, scope_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _require_client(services: Services) -> MinifluxClient:
    client = services.client_provider()
    if client is None:
        raise HTTPException(status_code=503, detail="Miniflux 未配置或不可用")
    return client


@router.get("/list")
async def list_digests(
    scope: Optional[str] = None,
    scope_id: Optional[str] = Query(default=None, alias="scopeId"),
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    before: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=500),
    user_id: str = Depends(_require_user),
    services: Services = Depends(_services),
):
    """文章列表中展示的简报（置顶 + 普通）"""
    return services.store.get_for_article_list(
        user_id,
        scope=scope,
        scope_id=scope_id,
        unread_only=unread_only,
        before=before,
        limit=limit,
    )


@router.get("/preview")
async def preview_digest(
    scope: str = "all",
    scope_id: Optional[str] = Query(default=None, alias="scopeId"),
    hours: int = Query(default=12, ge=0),
    unread_only: bool = Query(default=True, alias="unreadOnly"),
    user_id: str = Depends(_require_user),
    services: Services = Depends(_services),
):
    """
    预览将要参与总结的文章（不调用 AI）。
    """
    request = DigestRequest(scope=_parse_scope(scope, scope_id), hours=hours, unread_only=unread_only)
    client = _require_client(services)
    try:
        return await services.digest_service.preview(client, request)
    except Exception as e:  # noqa: BLE001
        logger.error(f"[简报生成] 用户 {user_id} 预览失败: {e}")
        raise HTTPException(status_code=502, detail=str(e))


@router.post("/generate")
async def generate_digest(
    body: GenerateRequest,
    user_id: str = Depends(_require_user),
    services: Services = Depends(_services),
):
    """立即生成一份简报并返回"""
    request = DigestRequest(
        scope=_parse_scope(body.scope, body.scopeId),
        hours=body.hours,
        target_lang=body.targetLang,
        custom_prompt=body.prompt,
        unread_only=body.unreadOnly,
    )
    try:
        services.digest_service.options_for(user_id, request)
    except AIError:
        raise HTTPException(status_code=400, detail=AI_NOT_CONFIGURED)
    client = _require_client(services)

    try:
        result = await services.digest_service.generate(client, user_id, request)
    except Exception as e:  # noqa: BLE001
        logger.error(f"[简报生成] 用户 {user_id} 生成失败: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return result.to_dict()


@router.get("/schedules")
async def list_schedules(
    user_id: str = Depends(_require_user),
    services: Services = Depends(_services),
):
    """用户的定时任务（规范格式）"""
    prefs = services.preferences.get(user_id)
    if migrate_schedules(prefs):
        services.preferences.save(user_id, prefs)
    return {"schedules": [t.to_dict() for t in load_schedules(prefs)]}


@router.post("/schedules/{task_id}/run")
async def run_schedule_now(
    task_id: str,
    body: Optional[RunTaskRequest] = None,
    user_id: str = Depends(_require_user),
    services: Services = Depends(_services),
):
    """
    立即执行一个定时任务，即使目标订阅源 / 分组已不存在。
    """
    prefs = services.preferences.get(user_id)
    if migrate_schedules(prefs):
        services.preferences.save(user_id, prefs)
    task = next((t for t in load_schedules(prefs) if t.id == task_id), None)
    if task is None:
        raise HTTPException(status_code=404, detail="任务不存在")

    force_push = body.forcePush if body is not None else False
    result = await services.runner.run_task(user_id, task, prefs, force=True, force_push=force_push)
    return result.to_dict()


@router.get("/{digest_id}")
async def get_digest(
    digest_id: str,
    user_id: str = Depends(_require_user),
    services: Services = Depends(_services),
):
    digest = services.store.get(user_id, digest_id)
    if digest is None:
        raise HTTPException(status_code=404, detail="简报不存在")
    return digest.to_dict()


@router.post("/{digest_id}/read")
async def mark_read(
    digest_id: str,
    user_id: str = Depends(_require_user),
    services: Services = Depends(_services),
):
    if not services.store.mark_as_read(user_id, digest_id):
        raise HTTPException(status_code=404, detail="简报不存在")
    return {"success": True}


@router.delete("/{digest_id}/read")
async def mark_unread(
    digest_id: str,
    user_id: str = Depends(_require_user),
    services: Services = Depends(_services),
):
    if not services.store.mark_as_unread(user_id, digest_id):
        raise HTTPException(status_code=404, detail="简报不存在")
    return {"success": True}


@router.delete("/{digest_id}")
async def delete_digest(
    digest_id: str,
    user_id: str = Depends(_require_user),
    services: Services = Depends(_services),
):
    if not services.store.delete(user_id, digest_id):
        raise HTTPException(status_code=404, detail="简报不存在")
    return {"success": True}
