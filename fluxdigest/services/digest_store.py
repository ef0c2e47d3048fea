"""
简报存储：按用户、按天分片的 JSON 文件

文件名为 {userId}_{YYYY-MM-DD}.json，日期取自简报 ID 中的毫秒时间戳（服务器本地日期）。
每个分片是一个按生成时间倒序排列的数组，写入时整体重写，并持有该分片的文件锁。
"""

import json
import os
import random
import re
import string
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from loguru import logger

from ..config_loader import data_dir
from ..domain.digest.models import Digest
from ..infrastructure.file_lock import FileLock
from .preference_store import check_user_id

_ID_RE = re.compile(r"^digest_(\d+)_")
_ID_ALPHABET = string.digits + string.ascii_lowercase

DEFAULT_SCOPE_NAME = "全部订阅"
DEFAULT_HOURS = 12
# get() 在 ID 对应分片中找不到时，回退扫描的最近简报数
FALLBACK_SCAN_LIMIT = 200

BeforeType = Union[str, datetime, None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_digest_id(ms: int) -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"digest_{ms}_{suffix}"


def id_timestamp_ms(digest_id: Optional[str]) -> Optional[int]:
    """解析简报 ID 中的毫秒时间戳，格式不符时返回 None"""
    if not digest_id:
        return None
    match = _ID_RE.match(digest_id)
    return int(match.group(1)) if match else None


def local_date_str(moment: datetime) -> str:
    """服务器本地日期 YYYY-MM-DD"""
    return moment.astimezone().strftime("%Y-%m-%d")


def shard_date_for_ms(ms: int) -> str:
    return local_date_str(datetime.fromtimestamp(ms / 1000, tz=timezone.utc))


def to_iso(moment: datetime) -> str:
    """UTC、毫秒精度、以 Z 结尾的 ISO-8601 字符串"""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """解析 ISO-8601 时间，无时区信息时按服务器本地时间处理"""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    return parsed.astimezone() if parsed.tzinfo is None else parsed


_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)


def _sort_key(item: Dict[str, Any]) -> datetime:
    return parse_iso(item.get("generatedAt")) or _EPOCH


class DigestStore:
    """简报的持久化与查询，所有方法按 user_id 隔离"""

    def __init__(
        self,
        base_dir: Optional[Path] = None,
        clock: Callable[[], datetime] = _utc_now,
        lock_timeout: float = 5.0,
    ):
        self.base_dir = Path(base_dir) if base_dir is not None else data_dir() / "digests"
        self.clock = clock
        self.lock_timeout = lock_timeout

    # ------------------------------------------------------------------
    # 分片文件
    # ------------------------------------------------------------------

    def shard_path(self, user_id: str, date_str: str) -> Path:
        return self.base_dir / f"{check_user_id(user_id)}_{date_str}.json"

    def _lock(self, user_id: str, date_str: str) -> FileLock:
        return FileLock(
            self.base_dir / ".locks",
            f"{check_user_id(user_id)}_{date_str}.lock",
            timeout=self.lock_timeout,
        )

    def _load_shard(self, path: Path) -> List[Dict[str, Any]]:
        if not path.exists():
            return []
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except Exception as exc:  # noqa: BLE001
            logger.error(f"[简报存储] 读取分片失败 {path.name}: {exc}")
            return []
        if not isinstance(data, list):
            logger.warning(f"[简报存储] 分片不是数组，已忽略: {path.name}")
            return []
        return [item for item in data if isinstance(item, dict)]

    def _save_shard(self, path: Path, items: List[Dict[str, Any]]) -> bool:
        tmp_path = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(items, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
            return True
        except Exception as exc:  # noqa: BLE001
            logger.error(f"[简报存储] 写入分片失败 {path.name}: {exc}")
            return False

    def _user_shards(self, user_id: str) -> List[Tuple[str, Path]]:
        """用户的所有分片，按日期倒序"""
        check_user_id(user_id)
        if not self.base_dir.exists():
            return []
        pattern = re.compile(rf"^{re.escape(user_id)}_(\d{{4}}-\d{{2}}-\d{{2}})\.json$")
        shards = []
        for path in self.base_dir.glob(f"{user_id}_*.json"):
            match = pattern.match(path.name)
            if match:
                shards.append((match.group(1), path))
        shards.sort(key=lambda s: s[0], reverse=True)
        return shards

    def _coerce_before(self, before: BeforeType) -> datetime:
        if before is None or before == "":
            return self.clock() + timedelta(seconds=1)
        if isinstance(before, datetime):
            return before if before.tzinfo else before.astimezone()
        parsed = parse_iso(before)
        if parsed is None:
            logger.warning(f"[简报存储] 无效的 before 参数 {before!r}，按当前时间处理")
            return self.clock()
        return parsed

    # ------------------------------------------------------------------
    # 写入
    # ------------------------------------------------------------------

    def add(
        self,
        user_id: str,
        *,
        scope: str = "all",
        scope_id: Optional[int] = None,
        scope_name: Optional[str] = None,
        title: Optional[str] = None,
        content: str = "",
        article_count: int = 0,
        hours: Optional[int] = None,
        generated_at: Optional[datetime] = None,
    ) -> Digest:
        """
        保存一份新简报，插入到对应分片的最前面

        ID 与 generatedAt 使用同一个时间点生成，保证分片日期与 ID 一致。

        Args:
            user_id: 用户ID
            scope: all / feed / group
            scope_id: 订阅源或分组 ID
            scope_name: 范围名称，默认“全部订阅”
            title: 标题，默认由范围名称和时间组成
            content: 简报正文
            article_count: 参与总结的文章数
            hours: 时间窗口（小时）
            generated_at: 生成时间，默认当前时间

        Returns:
            保存后的 Digest
        """
        moment = generated_at or self.clock()
        if moment.tzinfo is None:
            moment = moment.astimezone()
        ms = int(moment.timestamp() * 1000)
        moment = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)

        name = scope_name or DEFAULT_SCOPE_NAME
        if not title:
            title = f"{scope_name or '全部'} · 简报 {moment.astimezone().strftime('%m-%d-%H:%M')}"

        digest = Digest(
            id=generate_digest_id(ms),
            scope=scope or "all",
            scope_id=scope_id,
            scope_name=name,
            title=title,
            content=content,
            article_count=article_count,
            hours=DEFAULT_HOURS if hours is None else hours,
            generated_at=to_iso(moment),
            is_read=False,
        )

        date_str = shard_date_for_ms(ms)
        path = self.shard_path(user_id, date_str)
        with self._lock(user_id, date_str):
            items = self._load_shard(path)
            items.insert(0, digest.to_dict())
            self._save_shard(path, items)
        logger.info(f"[简报存储] 已保存简报 {digest.id} -> {path.name}")
        return digest

    def _update(self, user_id: str, digest_id: str, mutate: Callable[[List[Dict[str, Any]], int], None]) -> bool:
        ms = id_timestamp_ms(digest_id)
        if ms is None:
            return False
        date_str = shard_date_for_ms(ms)
        path = self.shard_path(user_id, date_str)
        if not path.exists():
            return False
        with self._lock(user_id, date_str):
            items = self._load_shard(path)
            index = next((i for i, item in enumerate(items) if item.get("id") == digest_id), None)
            if index is None:
                return False
            mutate(items, index)
            return self._save_shard(path, items)

    def mark_as_read(self, user_id: str, digest_id: str) -> bool:
        def _mutate(items, i):
            items[i]["isRead"] = True
        return self._update(user_id, digest_id, _mutate)

    def mark_as_unread(self, user_id: str, digest_id: str) -> bool:
        def _mutate(items, i):
            items[i]["isRead"] = False
        return self._update(user_id, digest_id, _mutate)

    def delete(self, user_id: str, digest_id: str) -> bool:
        def _mutate(items, i):
            items.pop(i)
        return self._update(user_id, digest_id, _mutate)

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def get(self, user_id: str, digest_id: str) -> Optional[Digest]:
        """按 ID 查找：先查 ID 对应的分片，找不到再扫描最近的简报"""
        ms = id_timestamp_ms(digest_id)
        if ms is not None:
            for item in self._load_shard(self.shard_path(user_id, shard_date_for_ms(ms))):
                if item.get("id") == digest_id:
                    return Digest.from_dict(item)

        logger.warning(f"[简报存储] 简报 {digest_id} 不在预期分片中，回退扫描最近 {FALLBACK_SCAN_LIMIT} 条")
        for item in self._load_recent(user_id, FALLBACK_SCAN_LIMIT):
            if item.get("id") == digest_id:
                return Digest.from_dict(item)
        return None

    def _load_recent(
        self,
        user_id: str,
        limit: int,
        before: BeforeType = None,
        predicate: Optional[Callable[[Dict[str, Any]], bool]] = None,
    ) -> List[Dict[str, Any]]:
        """
        从最新的分片开始读取，凑够 limit 条后按 generatedAt 倒序截取

        晚于 before 所在日期的分片整体跳过；只有 before 当天的分片需要按时间过滤。
        """
        cutoff = self._coerce_before(before)
        cutoff_date = local_date_str(cutoff)

        results: List[Dict[str, Any]] = []
        for date_str, path in self._user_shards(user_id):
            if date_str > cutoff_date:
                continue
            items = self._load_shard(path)
            if date_str == cutoff_date:
                items = [it for it in items if _sort_key(it) < cutoff]
            if predicate is not None:
                items = [it for it in items if predicate(it)]
            results.extend(items)
            if len(results) >= limit:
                break

        results.sort(key=_sort_key, reverse=True)
        return results[:limit]

    def get_all(
        self,
        user_id: str,
        scope: Optional[str] = None,
        scope_id: Any = None,
        unread_only: bool = False,
        limit: int = 100,
        before: BeforeType = None,
    ) -> List[Digest]:
        """
        分页查询简报，按 generatedAt 倒序

        Args:
            user_id: 用户ID
            scope: 与 scope_id 同时提供时按范围过滤；单独传 "all" 时只返回全部订阅的简报
            scope_id: 订阅源或分组 ID（按字符串比较）
            unread_only: 只返回未读
            limit: 最多返回条数
            before: 只返回早于该时间的简报，用于翻页；默认当前时间 + 1 秒
        """
        def _match(item: Dict[str, Any]) -> bool:
            if scope and scope_id not in (None, ""):
                if item.get("scope") != scope or str(item.get("scopeId")) != str(scope_id):
                    return False
            elif scope == "all" and item.get("scope") != "all":
                return False
            if unread_only and item.get("isRead"):
                return False
            return True

        items = self._load_recent(user_id, limit, before=before, predicate=_match)
        return [Digest.from_dict(item) for item in items]

    def get_for_article_list(
        self,
        user_id: str,
        scope: Optional[str] = None,
        scope_id: Any = None,
        unread_only: bool = False,
        before: BeforeType = None,
        limit: int = 100,
    ) -> Dict[str, List[Dict[str, Any]]]:
        """
        文章列表中展示的简报，拆分为置顶和普通两组

        置顶：今天（服务器本地日期）生成且未读，且不是在翻看历史（未传 before）。
        其余为普通，unread_only 时只保留未读。两组都转换为文章条目格式。
        """
        digests = self.get_all(
            user_id,
            scope=scope,
            scope_id=scope_id,
            unread_only=unread_only,
            limit=limit,
            before=before,
        )

        today_start = self.clock().astimezone().replace(hour=0, minute=0, second=0, microsecond=0)
        pinned: List[Dict[str, Any]] = []
        normal: List[Dict[str, Any]] = []
        for digest in digests:
            generated = parse_iso(digest.generated_at)
            is_today = generated is not None and generated >= today_start
            if not before and is_today and not digest.is_read:
                pinned.append(digest.to_article())
            elif not unread_only or not digest.is_read:
                normal.append(digest.to_article())
        return {"pinned": pinned, "normal": normal}
