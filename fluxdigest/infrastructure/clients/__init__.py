"""外部 HTTP 接口客户端"""
from .ai import AIClient, AIError
from .miniflux import MinifluxClient, MinifluxError, get_miniflux_client

__all__ = ["AIClient", "AIError", "MinifluxClient", "MinifluxError", "get_miniflux_client"]
