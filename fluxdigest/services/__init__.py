"""服务层：简报的生成、存储、定时执行"""

from .content_fetcher import ContentFetcher
from .digest_generator import DigestGenerator, DigestOptions, GenerationResult
from .digest_scheduler import DigestScheduler
from .digest_service import DigestRequest, DigestService
from .digest_store import DigestStore
from .preference_store import PreferenceStore
from .schedule_runner import PushResult, ScheduleRunner, TaskResult

__all__ = [
    "ContentFetcher",
    "DigestGenerator",
    "DigestOptions",
    "GenerationResult",
    "DigestScheduler",
    "DigestRequest",
    "DigestService",
    "DigestStore",
    "PreferenceStore",
    "PushResult",
    "ScheduleRunner",
    "TaskResult",
]
