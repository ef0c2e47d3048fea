"""APScheduler 封装：只使用一次性的 date 任务，由调用方在任务结束时自行续期"""

from datetime import datetime
from typing import Any, Callable, Optional

from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger


class SchedulerManager:
    """持有一个 AsyncIOScheduler 实例，负责创建、启停和任务增删"""

    def __init__(self, timezone: str = "Asia/Shanghai"):
        """
        Args:
            timezone: 调度器时区，仅影响日志中显示的执行时间
        """
        self.timezone = timezone
        self.scheduler: Optional[AsyncIOScheduler] = None

    def _require(self) -> AsyncIOScheduler:
        if self.scheduler is None:
            raise RuntimeError("调度器未初始化，请先调用 create_scheduler()")
        return self.scheduler

    def create_scheduler(self) -> AsyncIOScheduler:
        """创建新的调度器实例，旧实例仍在运行时先关闭"""
        old = self.scheduler
        if old is not None and old.running:
            logger.warning("[调度器] 旧的调度器仍在运行，先行关闭")
            try:
                old.shutdown(wait=False)
            except Exception as e:  # noqa: BLE001
                logger.warning(f"[调度器] 关闭旧调度器失败: {e}")

        self.scheduler = AsyncIOScheduler(timezone=self.timezone)
        logger.info(f"[调度器] 调度器实例已创建 ({self.timezone})")
        return self.scheduler

    def add_date_job(self, func: Callable, run_date: datetime, job_id: str, **kwargs: Any) -> Job:
        """
        在 run_date 执行一次 func

        同一 job_id 只保留一个待执行实例。不设 misfire 宽限期，事件循环繁忙导致
        迟到时仍会执行，自我续期的检查链因此不会中断。

        Args:
            func: 要执行的函数（可为协程函数）
            run_date: 执行时间（带时区）
            job_id: 任务ID
            **kwargs: 透传给 add_job，例如 args / kwargs

        Returns:
            APScheduler 的 Job
        """
        job = self._require().add_job(
            func,
            "date",
            run_date=run_date,
            id=job_id,
            replace_existing=True,
            misfire_grace_time=None,
            **kwargs,
        )
        logger.debug(f"[调度器] 已安排 {job_id}: {run_date}")
        return job

    def remove_job(self, job_id: str) -> bool:
        """移除待执行的任务，任务不存在时返回 False"""
        if self.scheduler is None or self.scheduler.get_job(job_id) is None:
            return False
        self.scheduler.remove_job(job_id)
        logger.info(f"[调度器] 已移除任务: {job_id}")
        return True

    def start(self) -> None:
        scheduler = self._require()
        scheduler.start()
        jobs = scheduler.get_jobs()
        logger.info(f"[调度器] 调度器已启动，待执行任务 {len(jobs)} 个")
        for job in jobs:
            logger.info(f"[调度器]   - {job.id}: {job.next_run_time}")

    def shutdown(self, wait: bool = True) -> None:
        """关闭并丢弃调度器实例"""
        scheduler, self.scheduler = self.scheduler, None
        if scheduler is None or not scheduler.running:
            return
        try:
            scheduler.shutdown(wait=wait)
            logger.info("[调度器] 调度器已关闭")
        except Exception as e:  # noqa: BLE001
            logger.error(f"[调度器] 关闭调度器时出错: {e}")

    def get_job(self, job_id: str) -> Optional[Job]:
        return self.scheduler.get_job(job_id) if self.scheduler is not None else None

    @property
    def running(self) -> bool:
        return bool(self.scheduler and self.scheduler.running)
