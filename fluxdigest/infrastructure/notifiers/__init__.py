"""通知服务模块"""
from .webhook import PushDispatcher, PushResponse, split_text

__all__ = ["PushDispatcher", "PushResponse", "split_text"]
