"""定时简报任务配置"""
from .migration import load_schedules, migrate_schedules
from .models import AIConfig, PushConfig, ScheduledTask

__all__ = ["AIConfig", "PushConfig", "ScheduledTask", "load_schedules", "migrate_schedules"]
