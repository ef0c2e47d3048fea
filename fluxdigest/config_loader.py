import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import dotenv_values
from loguru import logger


def _project_root() -> Path:
    # fluxdigest/config_loader.py -> project_root
    return Path(__file__).resolve().parents[1]


def _env_file_path() -> Path:
    return _project_root() / ".env"


def load_env_var(key: str, default: str = "") -> str:
    """读取环境变量，进程环境优先，其次读取项目根目录的 .env 文件"""
    value = os.getenv(key)
    if value:
        return value

    env_path = _env_file_path()
    if env_path.exists():
        try:
            value = dotenv_values(env_path).get(key)
        except Exception as exc:  # noqa: BLE001
            logger.error(f"Failed to read .env file: {exc}")
            value = None
    return value or default


def data_dir() -> Path:
    """数据根目录：FLUXDIGEST_DATA_DIR 或 <project_root>/data"""
    override = load_env_var("FLUXDIGEST_DATA_DIR")
    if override:
        return Path(override)
    return _project_root() / "data"


@dataclass
class SchedulerSettings:
    """
    定时简报调度配置（config/digest_scheduler.json）。

    {
      "enabled": true,
      "initial_delay_seconds": 10,
      "check_offset_seconds": 5,
      "max_concurrency": 3,
      "timezone": "Asia/Shanghai"
    }

    timezone 只作用于 APScheduler 实例本身；每个用户的任务时间按其
    digest_timezone 偏好计算。
    """

    enabled: bool = True
    initial_delay_seconds: int = 10
    check_offset_seconds: int = 5
    max_concurrency: int = 3
    timezone: str = "Asia/Shanghai"


def _scheduler_settings_path() -> Path:
    return _project_root() / "config" / "digest_scheduler.json"


def load_scheduler_settings(path: Optional[Path] = None) -> SchedulerSettings:
    path = path or _scheduler_settings_path()
    default = SchedulerSettings()

    if not path.exists():
        logger.warning(f"Digest scheduler config not found at {path}, using defaults: {default}.")
        return default

    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except Exception as exc:  # noqa: BLE001
        logger.error(f"Failed to load digest scheduler config: {exc}, using defaults: {default}.")
        return default

    if not isinstance(data, dict):
        logger.warning(f"Digest scheduler config must be a JSON object, using defaults: {default}.")
        return default

    def _get_int(name: str, fallback: int, minimum: int = 0) -> int:
        raw = data.get(name)
        if raw is None:
            return fallback
        try:
            value = int(raw)
        except (TypeError, ValueError):
            logger.warning(f"Invalid value for digest scheduler {name}={raw!r}, fallback to {fallback}.")
            return fallback
        if value < minimum:
            logger.warning(f"Digest scheduler {name}={value} below {minimum}, fallback to {fallback}.")
            return fallback
        return value

    timezone = data.get("timezone")
    if not isinstance(timezone, str) or not timezone.strip():
        timezone = default.timezone

    return SchedulerSettings(
        enabled=bool(data.get("enabled", default.enabled)),
        initial_delay_seconds=_get_int("initial_delay_seconds", default.initial_delay_seconds),
        check_offset_seconds=_get_int("check_offset_seconds", default.check_offset_seconds),
        max_concurrency=_get_int("max_concurrency", default.max_concurrency, minimum=1),
        timezone=timezone.strip(),
    )


@dataclass
class MinifluxSettings:
    """Miniflux 连接配置"""

    url: str = ""
    api_key: str = ""
    username: str = ""
    password: str = ""

    @property
    def is_configured(self) -> bool:
        if not self.url:
            return False
        return bool(self.api_key) or bool(self.username and self.password)


def _miniflux_config_path() -> Path:
    return data_dir() / "miniflux-config.json"


def load_miniflux_settings() -> MinifluxSettings:
    """
    Load Miniflux connection settings.

    Environment variables win (MINIFLUX_URL plus MINIFLUX_API_KEY or
    MINIFLUX_USERNAME / MINIFLUX_PASSWORD); otherwise data/miniflux-config.json
    is used when present.
    """
    from_env = MinifluxSettings(
        url=load_env_var("MINIFLUX_URL"),
        api_key=load_env_var("MINIFLUX_API_KEY"),
        username=load_env_var("MINIFLUX_USERNAME"),
        password=load_env_var("MINIFLUX_PASSWORD"),
    )
    if from_env.is_configured:
        return from_env

    path = _miniflux_config_path()
    if not path.exists():
        return from_env

    try:
        with path.open("r", encoding="utf-8") as f:
            data: Dict[str, Any] = json.load(f)
    except Exception as exc:  # noqa: BLE001
        logger.error(f"Failed to load Miniflux config: {exc}.")
        return from_env

    return MinifluxSettings(
        url=str(data.get("url") or ""),
        api_key=str(data.get("apiKey") or data.get("api_key") or ""),
        username=str(data.get("username") or ""),
        password=str(data.get("password") or ""),
    )
