"""
Webhook push for generated digests.

Supports a GET mode (placeholders URL-encoded into the URL) and a POST mode
(JSON body template). In POST mode the body template is auto-filled from the
webhook host when left empty, and long content is split into several
requests for services with a known per-message length limit.
"""

import asyncio
import json
import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import quote, urlparse

import httpx
from loguru import logger

from ...domain.schedules.models import PushConfig

TITLE_PLACEHOLDER = "{{title}}"
CONTENT_PLACEHOLDER = "{{digest_content}}"
_PLACEHOLDER_RE = re.compile(r"\{\{(title|digest_content)\}\}")
_NEWLINES_RE = re.compile(r"[\r\n]+")

# 与 encodeURIComponent 保持一致的安全字符
_URI_SAFE = "-_.!~*'()"

DISCORD_TEMPLATE = '{"content": "{{title}}\\n\\n{{digest_content}}"}'
TELEGRAM_TEMPLATE = '{"chat_id": "YOUR_CHAT_ID", "text": "{{title}}\\n\\n{{digest_content}}"}'
WECOM_TEMPLATE = '{"msgtype": "text", "text": {"content": "{{title}}\\n\\n{{digest_content}}"}}'
FEISHU_TEMPLATE = '{"msg_type": "text", "content": {"text": "{{title}}\\n\\n{{digest_content}}"}}'
GENERIC_TEMPLATE = '{"title": "{{title}}", "content": "{{digest_content}}"}'

DISCORD_LIMIT = 2000
TELEGRAM_LIMIT = 4096
WECOM_LIMIT = 2048

# 拆分点早于 maxLen 的这个比例时放弃该拆分点
MIN_SPLIT_RATIO = 0.3
MIN_CHUNK_SPACE = 100


@dataclass
class PushResponse:
    status: int
    ok: bool


def _host(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


def _host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


def _is_discord(host: str) -> bool:
    return _host_matches(host, "discord.com") or _host_matches(host, "discordapp.com")


def _is_telegram(host: str) -> bool:
    return host == "api.telegram.org"


def _is_wecom(host: str) -> bool:
    return host == "qyapi.weixin.qq.com"


def _is_feishu(host: str) -> bool:
    return host in ("open.feishu.cn", "open.larksuite.com")


def body_template(config: PushConfig) -> str:
    """Configured POST body template, or the auto-filled one, with newlines removed."""
    template = config.body if config.body.strip() else default_body_template(config.url)
    return _NEWLINES_RE.sub("", template)


def default_body_template(url: str) -> str:
    """Pick a POST body template for a webhook URL."""
    host = _host(url)
    if _is_discord(host):
        return DISCORD_TEMPLATE
    if _is_telegram(host):
        return TELEGRAM_TEMPLATE
    if _is_wecom(host):
        return WECOM_TEMPLATE
    if _is_feishu(host):
        return FEISHU_TEMPLATE
    return GENERIC_TEMPLATE


def field_limit_for(url: str) -> int:
    """Known message length limit for the webhook host, 0 when unknown."""
    host = _host(url)
    if _is_discord(host):
        return DISCORD_LIMIT
    if _is_telegram(host):
        return TELEGRAM_LIMIT
    if _is_wecom(host):
        return WECOM_LIMIT
    return 0


def split_text(text: str, max_len: int) -> List[str]:
    """
    Split text into chunks of at most ``max_len`` characters.

    Prefers the last blank line, then the last newline; a break point earlier
    than 30% of ``max_len`` is rejected in favour of the next fallback, ending
    with a hard cut. Newlines at the start of each following chunk are dropped.
    """
    if len(text) <= max_len:
        return [text]

    chunks: List[str] = []
    remaining = text
    floor = max_len * MIN_SPLIT_RATIO
    while remaining:
        if len(remaining) <= max_len:
            chunks.append(remaining)
            break

        split_pos = remaining.rfind("\n\n", 0, max_len + 2)
        if split_pos < floor:
            split_pos = remaining.rfind("\n", 0, max_len + 1)
        if split_pos < floor:
            split_pos = max_len

        chunks.append(remaining[:split_pos])
        remaining = remaining[split_pos:].lstrip("\n")
    return chunks


def _json_fragment(value: str) -> str:
    """JSON-escape a string for substitution inside a JSON string literal."""
    return json.dumps(value, ensure_ascii=False)[1:-1]


def render_template(template: str, title: str, content: str) -> str:
    values = {"title": title, "digest_content": content}
    return _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], template)


class PushDispatcher:
    """Sends a digest to the user's configured webhook."""

    def __init__(
        self,
        timeout: float = 30.0,
        chunk_delay: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.chunk_delay = chunk_delay
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def plan_chunks(self, config: PushConfig, title: str, content: str) -> List[str]:
        """Content chunks that a POST send would deliver, in order."""
        template = body_template(config)
        limit = field_limit_for(config.url)
        if limit <= 0 or len(content) <= limit:
            return [content]

        overhead = len(render_template(template, title, ""))
        available = int(limit - min(overhead, limit * MIN_SPLIT_RATIO))
        if available <= MIN_CHUNK_SPACE:
            return [content]
        return split_text(content, available)

    async def send(self, config: PushConfig, title: str, content: str, user_id: str = "") -> PushResponse:
        """
        Push a digest.

        Non-2xx responses are logged and reported through the returned
        PushResponse; network errors propagate.

        Returns:
            status of the last request sent
        """
        if config.method == "GET":
            return await self._send_get(config, title, content, user_id)
        return await self._send_post(config, title, content, user_id)

    async def _send_get(self, config: PushConfig, title: str, content: str, user_id: str) -> PushResponse:
        url = config.url.replace(TITLE_PLACEHOLDER, quote(title, safe=_URI_SAFE)).replace(
            CONTENT_PLACEHOLDER, quote(content, safe=_URI_SAFE)
        )
        async with self._client() as client:
            resp = await client.get(url)
        logger.info(f"[简报推送] 用户 {user_id} GET 推送完成: {resp.status_code}")
        if not resp.is_success:
            logger.error(f"[简报推送] 推送返回错误 {resp.status_code}: {resp.text[:500]}")
        return PushResponse(status=resp.status_code, ok=resp.is_success)

    async def _send_post(self, config: PushConfig, title: str, content: str, user_id: str) -> PushResponse:
        if not config.body.strip():
            logger.info(f"[简报推送] 用户 {user_id} 未配置推送模板，按 URL 自动选择: {config.url[:50]}")
        template = body_template(config)
        chunks = self.plan_chunks(config, title, content)
        if len(chunks) > 1:
            logger.info(f"[简报推送] 内容超出 {field_limit_for(config.url)} 字符限制，拆分为 {len(chunks)} 段")

        async with self._client() as client:
            last = await self._post_chunk(client, config.url, template, title, chunks, 0, user_id)
            for i in range(1, len(chunks)):
                if self.chunk_delay > 0:
                    await asyncio.sleep(self.chunk_delay)
                last = await self._post_chunk(client, config.url, template, title, chunks, i, user_id)
        return last

    async def _post_chunk(
        self,
        client: httpx.AsyncClient,
        url: str,
        template: str,
        title: str,
        chunks: List[str],
        i: int,
        user_id: str,
    ) -> PushResponse:
        # 标题只随第一段发送
        body = render_template(
            template,
            _json_fragment(title if i == 0 else ""),
            _json_fragment(chunks[i]),
        )
        label = f" ({i + 1}/{len(chunks)})" if len(chunks) > 1 else ""
        resp = await client.post(
            url,
            content=body.encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )
        logger.info(f"[简报推送] 用户 {user_id} POST 推送{label}: {resp.status_code}, body_length={len(body)}")
        if not resp.is_success:
            logger.error(f"[简报推送] 推送返回错误 {resp.status_code}: {resp.text[:500]}")
        return PushResponse(status=resp.status_code, ok=resp.is_success)
