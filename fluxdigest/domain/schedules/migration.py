"""
定时任务配置的读取与旧格式迁移

所有旧字段形态（单个 digest_schedule 对象、feedId / groupId 别名、缺少 id 的任务）
都只在这里处理；之后的业务代码只看到规范的 ScheduledTask。
"""

import uuid
from typing import Any, Dict, List

from loguru import logger

from .models import ScheduledTask

LEGACY_KEY = "digest_schedule"
SCHEDULES_KEY = "digest_schedules"
LEGACY_TASK_ID = "default"

_SCOPE_ALIASES = {"feed": "feedId", "group": "groupId"}


def _canonicalize_task(task: Dict[str, Any]) -> bool:
    changed = False
    if not task.get("id"):
        task["id"] = str(uuid.uuid4())
        changed = True

    alias = _SCOPE_ALIASES.get(task.get("scope"))
    if alias and task.get("scopeId") in (None, "") and task.get(alias) not in (None, ""):
        task["scopeId"] = task[alias]
        changed = True
    return changed


def migrate_schedules(prefs: Dict[str, Any]) -> bool:
    """
    就地把偏好设置迁移为规范的任务数组

    - 旧的 digest_schedule 对象（包括空对象）包装为 [{"id": "default", ...}] 并删除旧键；
      已经存在 digest_schedules 时直接丢弃旧键
    - 为缺少 id 的任务生成 UUID
    - feedId / groupId 复制到 scopeId（原字段保留）

    重复执行是无操作。

    Args:
        prefs: 用户偏好字典（会被修改）

    Returns:
        是否有改动，调用方据此决定是否写回
    """
    changed = False

    if LEGACY_KEY in prefs:
        legacy = prefs.pop(LEGACY_KEY)
        changed = True
        if not isinstance(prefs.get(SCHEDULES_KEY), list) and isinstance(legacy, dict):
            prefs[SCHEDULES_KEY] = [{"id": LEGACY_TASK_ID, **legacy}]
            logger.info("[简报调度] 已将旧版 digest_schedule 迁移为 digest_schedules")

    tasks = prefs.get(SCHEDULES_KEY)
    if tasks is None:
        return changed
    if not isinstance(tasks, list):
        logger.warning(f"[简报调度] digest_schedules 不是数组，已忽略: {type(tasks).__name__}")
        return changed

    for task in tasks:
        if isinstance(task, dict) and _canonicalize_task(task):
            changed = True
    return changed


def load_schedules(prefs: Dict[str, Any]) -> List[ScheduledTask]:
    """
    读取（已迁移的）任务数组，无法解析的任务记录警告后跳过
    """
    tasks = prefs.get(SCHEDULES_KEY)
    if not isinstance(tasks, list):
        return []

    result: List[ScheduledTask] = []
    for raw in tasks:
        if not isinstance(raw, dict):
            continue
        try:
            result.append(ScheduledTask.from_dict(raw))
        except ValueError as e:
            logger.warning(f"[简报调度] 跳过无效任务 {raw.get('id')!r}: {e}")
    return result


def set_task_enabled(prefs: Dict[str, Any], task_id: str, enabled: bool) -> bool:
    """修改指定任务的 enabled，找不到任务时返回 False"""
    tasks = prefs.get(SCHEDULES_KEY)
    if not isinstance(tasks, list):
        return False
    for task in tasks:
        if isinstance(task, dict) and task.get("id") == task_id:
            task["enabled"] = enabled
            return True
    return False
