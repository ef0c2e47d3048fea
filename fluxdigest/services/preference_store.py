"""用户偏好存储：data/preferences/{userId}.json"""

import base64
import json
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from ..config_loader import data_dir

_USER_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def is_valid_user_id(user_id: Optional[str]) -> bool:
    """用户ID会拼进文件名，只允许字母、数字、下划线和连字符"""
    return bool(user_id) and _USER_ID_RE.match(user_id) is not None


def check_user_id(user_id: str) -> str:
    if not is_valid_user_id(user_id):
        raise ValueError(f"非法的用户ID: {user_id!r}")
    return user_id


class PreferenceStore:
    """按用户保存的偏好设置（一个 JSON 对象一个文件）"""

    def __init__(self, base_dir: Optional[Path] = None):
        self.base_dir = Path(base_dir) if base_dir is not None else data_dir() / "preferences"

    @staticmethod
    def user_id_for(username: str) -> str:
        """由用户名生成可用作文件名的用户ID"""
        raw = base64.urlsafe_b64encode(username.encode("utf-8")).decode("ascii")
        return raw.rstrip("=")

    def _path(self, user_id: str) -> Path:
        return self.base_dir / f"{check_user_id(user_id)}.json"

    def get(self, user_id: str) -> Dict[str, Any]:
        """读取偏好，不存在或损坏时返回空字典"""
        path = self._path(user_id)
        if not path.exists():
            return {}
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except Exception as exc:  # noqa: BLE001
            logger.error(f"[简报存储] 读取用户偏好失败 {user_id}: {exc}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"[简报存储] 用户偏好不是 JSON 对象，已忽略: {user_id}")
            return {}
        return data

    def save(self, user_id: str, prefs: Dict[str, Any]) -> bool:
        path = self._path(user_id)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(prefs, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
            return True
        except Exception as exc:  # noqa: BLE001
            logger.error(f"[简报存储] 保存用户偏好失败 {user_id}: {exc}")
            return False

    def get_all_user_ids(self) -> List[str]:
        if not self.base_dir.exists():
            return []
        return sorted(
            p.stem for p in self.base_dir.glob("*.json") if p.is_file() and is_valid_user_id(p.stem)
        )
