"""定时任务、AI 配置与推送配置的数据结构"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..digest.models import DigestScope

DEFAULT_MODEL = "gpt-4.1-mini"
DEFAULT_TARGET_LANG = "zh-CN"


@dataclass
class AIConfig:
    """prefs['ai_config'] 中与简报相关的部分"""

    api_url: str = ""
    api_key: str = ""
    model: str = DEFAULT_MODEL
    temperature: float = 1
    target_lang: str = ""
    digest_prompt: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    @classmethod
    def from_prefs(cls, prefs: Dict[str, Any]) -> "AIConfig":
        raw = prefs.get("ai_config") or {}
        if not isinstance(raw, dict):
            raw = {}
        temperature = raw.get("temperature")
        try:
            temperature = float(temperature) if temperature is not None else 1
        except (TypeError, ValueError):
            temperature = 1
        return cls(
            api_url=str(raw.get("apiUrl") or ""),
            api_key=str(raw.get("apiKey") or ""),
            model=str(raw.get("model") or DEFAULT_MODEL),
            temperature=temperature,
            target_lang=str(raw.get("targetLang") or raw.get("summarizeLang") or ""),
            digest_prompt=str(raw.get("digestPrompt") or ""),
        )


@dataclass
class PushConfig:
    """
    Webhook 推送配置。

    url/body 中可使用 {{title}} 与 {{digest_content}} 占位符；POST 模式下
    body 为空时按 URL 的主机名自动选择模板。
    """

    url: str = ""
    method: str = "POST"
    body: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.url)

    @classmethod
    def from_prefs(cls, prefs: Dict[str, Any]) -> "PushConfig":
        raw = prefs.get("digest_push_config") or {}
        if not isinstance(raw, dict):
            raw = {}
        return cls(
            url=str(raw.get("url") or "").strip(),
            method=str(raw.get("method") or "POST").upper(),
            body=str(raw.get("body") or ""),
        )


@dataclass
class ScheduledTask:
    """
    一个定时简报任务。

    同一 scope 可以有多个任务（例如每天两次），它们是互相独立的实体。
    from_dict 只接受迁移后的规范字段（scopeId），见 migration.migrate_schedules。
    """

    id: str
    scope: DigestScope = field(default_factory=DigestScope.all)
    time: str = ""
    enabled: bool = False
    hours: int = 24
    unread_only: bool = True
    push_enabled: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduledTask":
        """
        Raises:
            ValueError: scope 或 scopeId 无法解析
        """
        hours = data.get("hours")
        try:
            hours = int(hours) if hours is not None else 24
        except (TypeError, ValueError):
            hours = 24
        return cls(
            id=str(data.get("id") or ""),
            scope=DigestScope.parse(data.get("scope"), data.get("scopeId")),
            time=str(data.get("time") or "").strip(),
            enabled=bool(data.get("enabled", False)),
            hours=hours,
            unread_only=data.get("unreadOnly") is not False,
            push_enabled=bool(data.get("pushEnabled", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "scope": self.scope.kind.value,
            "scopeId": self.scope.target_id,
            "time": self.time,
            "enabled": self.enabled,
            "hours": self.hours,
            "unreadOnly": self.unread_only,
            "pushEnabled": self.push_enabled,
        }


def resolve_target_lang(ai_config: AIConfig) -> str:
    return ai_config.target_lang or DEFAULT_TARGET_LANG


def user_timezone(prefs: Dict[str, Any]) -> Optional[str]:
    tz = prefs.get("digest_timezone")
    if isinstance(tz, str) and tz.strip():
        return tz.strip()
    return None
