"""日志配置模块"""

from pathlib import Path
from typing import Optional

from loguru import logger

# 写入 scheduler 日志文件的前缀
SCHEDULER_PREFIXES = (
    "[简报调度]",
    "[简报任务]",
    "[简报推送]",
    "[调度器]",
)

_LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"


def scheduler_filter(record) -> bool:
    """只保留定时简报相关的日志"""
    message = record["message"]
    return any(prefix in message for prefix in SCHEDULER_PREFIXES)


def setup_logging(logs_dir: Optional[Path] = None):
    """
    配置日志系统，将日志保存到文件

    Args:
        logs_dir: 日志目录，默认为项目根目录下的 logs/
    """
    if logs_dir is None:
        project_root = Path(__file__).resolve().parent.parent.parent
        logs_dir = project_root / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)

    # 主日志：按天轮转，保留30天
    logger.add(
        logs_dir / "app_{time:YYYY-MM-DD}.log",
        rotation="00:00",
        retention="30 days",
        compression="zip",
        encoding="utf-8",
        level="INFO",
        format=_LOG_FORMAT,
        enqueue=True,
    )

    logger.add(
        logs_dir / "error_{time:YYYY-MM-DD}.log",
        rotation="00:00",
        retention="90 days",
        compression="zip",
        encoding="utf-8",
        level="ERROR",
        format=_LOG_FORMAT,
        enqueue=True,
    )

    # 后台定时任务的结果只体现在日志中，单独保留一份
    logger.add(
        logs_dir / "scheduler_{time:YYYY-MM-DD}.log",
        rotation="00:00",
        retention="90 days",
        compression="zip",
        encoding="utf-8",
        level="INFO",
        filter=scheduler_filter,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {message}",
        enqueue=True,
    )

    logger.info(f"日志系统已配置，日志文件保存在 {logs_dir}")
