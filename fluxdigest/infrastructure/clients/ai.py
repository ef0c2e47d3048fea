"""OpenAI 兼容的 chat/completions 客户端"""

from typing import Optional

import httpx
from loguru import logger

from ...domain.schedules.models import AIConfig

AI_NOT_CONFIGURED = "AI 未配置，请先在设置中配置 AI API"


class AIError(Exception):
    """AI 接口调用失败"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def completions_url(api_url: str) -> str:
    """把用户填写的 API 地址规范化为 .../chat/completions"""
    url = api_url.strip().rstrip("/")
    if url.endswith("chat/completions"):
        return url
    return url + "/chat/completions"


class AIClient:
    """非流式单轮对话调用"""

    def __init__(
        self,
        config: AIConfig,
        timeout: float = 600.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.timeout = timeout
        self._transport = transport

    async def complete(self, prompt: str) -> str:
        """
        发送单条 user 消息并返回模型回复

        Args:
            prompt: 完整提示词

        Returns:
            choices[0].message.content，缺失时为空字符串

        Raises:
            AIError: 未配置，或接口返回非 2xx
        """
        cfg = self.config
        if not cfg.api_url or not cfg.api_key:
            raise AIError(AI_NOT_CONFIGURED)

        payload = {
            "model": cfg.model,
            "temperature": cfg.temperature,
            "messages": [{"role": "user", "content": prompt}],
            "stream": False,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {cfg.api_key}",
        }

        url = completions_url(cfg.api_url)
        logger.info(f"[简报生成] 调用 AI 接口: model={cfg.model}, prompt 长度={len(prompt)}")
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.post(url, json=payload, headers=headers)

        if not resp.is_success:
            message = ""
            try:
                message = (resp.json().get("error") or {}).get("message") or ""
            except Exception:  # noqa: BLE001
                message = ""
            raise AIError(message or f"AI API 错误: {resp.status_code}", status_code=resp.status_code)

        data = resp.json()
        choices = data.get("choices") or []
        if not choices:
            return ""
        return ((choices[0] or {}).get("message") or {}).get("content") or ""
