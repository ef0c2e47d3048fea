"""基础设施层：日志、文件锁、调度器、任务池等底层组件"""

from .logging import setup_logging
from .file_lock import FileLock
from .scheduler import SchedulerManager
from .task_pool import TaskPool

__all__ = ["setup_logging", "FileLock", "SchedulerManager", "TaskPool"]
