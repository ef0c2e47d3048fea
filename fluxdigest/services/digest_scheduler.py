"""定时简报调度：每分钟检查一次所有用户的任务"""

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from loguru import logger

from ..config_loader import SchedulerSettings
from ..domain.clock import hhmm
from ..domain.schedules.migration import load_schedules, migrate_schedules, set_task_enabled
from ..domain.schedules.models import AIConfig, ScheduledTask, user_timezone
from ..infrastructure.scheduler import SchedulerManager
from ..infrastructure.task_pool import TaskPool
from .preference_store import PreferenceStore
from .schedule_runner import ScheduleRunner

CHECK_JOB_ID = "digest_schedule_check"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def next_check_time(now: datetime, offset_seconds: int = 5) -> datetime:
    """下一分钟开始后 offset_seconds 秒"""
    minute_start = now.replace(second=0, microsecond=0)
    return minute_start + timedelta(minutes=1, seconds=offset_seconds)


class DigestScheduler:
    """
    定时简报调度器

    启动后延迟 initial_delay_seconds 做第一次检查，之后每次检查结束才安排下一次
    （下一分钟第 check_offset_seconds 秒），检查之间不会重叠。

    任务时间与当前时间（用户时区的 "HH:MM"）必须完全相等才会触发；进程停机或检查
    过慢错过的分钟不会补跑。到期任务交给有界的 TaskPool 在后台执行，检查本身不等待。
    """

    def __init__(
        self,
        preferences: PreferenceStore,
        runner: ScheduleRunner,
        scheduler_manager: Optional[SchedulerManager] = None,
        pool: Optional[TaskPool] = None,
        settings: Optional[SchedulerSettings] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.settings = settings or SchedulerSettings()
        self.preferences = preferences
        self.runner = runner
        self.scheduler_manager = scheduler_manager or SchedulerManager(timezone=self.settings.timezone)
        self.pool = pool or TaskPool(self.settings.max_concurrency, name="简报任务")
        self.clock = clock
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------

    def start(self) -> None:
        """启动调度器（需在事件循环中调用）"""
        if self._running:
            logger.warning("[简报调度] 调度器已在运行，忽略重复启动")
            return

        self.scheduler_manager.create_scheduler()
        first_run = self.clock() + timedelta(seconds=self.settings.initial_delay_seconds)
        self.scheduler_manager.add_date_job(self._tick, run_date=first_run, job_id=CHECK_JOB_ID)
        self.scheduler_manager.start()
        self._running = True
        logger.info(f"[简报调度] 调度器已启动，首次检查时间: {first_run}")

    def stop(self) -> None:
        """停止调度，不再安排新的检查；已提交的任务继续执行"""
        if not self._running:
            return
        self._running = False
        self.scheduler_manager.remove_job(CHECK_JOB_ID)
        self.scheduler_manager.shutdown(wait=False)
        logger.info("[简报调度] 调度器已停止")

    async def shutdown(self) -> None:
        """停止调度并取消仍在执行的后台任务"""
        self.stop()
        if self.pool.pending:
            logger.info(f"[简报调度] 取消 {self.pool.pending} 个未完成的简报任务")
        await self.pool.cancel_all()

    async def wait_idle(self) -> None:
        """等待所有已提交的简报任务结束"""
        await self.pool.join()

    async def _tick(self) -> None:
        if not self._running:
            return
        try:
            await self.run_check()
        except Exception as e:  # noqa: BLE001
            logger.error(f"[简报调度] 检查失败: {e}")
        finally:
            if self._running:
                self._schedule_next()

    def _schedule_next(self) -> None:
        run_date = next_check_time(self.clock(), self.settings.check_offset_seconds)
        self.scheduler_manager.add_date_job(self._tick, run_date=run_date, job_id=CHECK_JOB_ID)

    # ------------------------------------------------------------------
    # 检查
    # ------------------------------------------------------------------

    async def run_check(self) -> int:
        """
        检查所有用户的任务，提交到期的任务

        单个用户出错只记录日志，不影响其他用户。

        Returns:
            本次提交的任务数
        """
        now = self.clock()
        dispatched = 0
        for user_id in self.preferences.get_all_user_ids():
            try:
                dispatched += self._check_user(user_id, now)
            except Exception as e:  # noqa: BLE001
                logger.error(f"[简报调度] 用户 {user_id} 检查失败: {e}")
        if dispatched:
            logger.info(f"[简报调度] 本次检查提交 {dispatched} 个简报任务")
        return dispatched

    def _check_user(self, user_id: str, now: datetime) -> int:
        prefs = self.preferences.get(user_id)
        if migrate_schedules(prefs):
            self.preferences.save(user_id, prefs)
            logger.info(f"[简报调度] 用户 {user_id} 的任务配置已迁移并保存")

        tasks = load_schedules(prefs)
        if not tasks:
            return 0

        current_time = hhmm(now, user_timezone(prefs))
        due = [t for t in tasks if t.enabled and t.time == current_time]
        if not due:
            return 0

        if not AIConfig.from_prefs(prefs).is_configured:
            logger.warning(f"[简报调度] 用户 {user_id} 有 {len(due)} 个到期任务，但未配置 AI，跳过")
            return 0
        if self.runner.client_provider() is None:
            logger.warning(f"[简报调度] 用户 {user_id} 有 {len(due)} 个到期任务，但 Miniflux 不可用，跳过")
            return 0

        for task in due:
            logger.info(f"[简报调度] 触发任务: 用户 {user_id}, 任务 {task.id}, 范围 {task.scope}, 时间 {task.time}")
            self.pool.submit(
                lambda t=task: self._run_task(user_id, t, prefs),
                label=f"{user_id}/{task.id}",
            )
        return len(due)

    async def _run_task(self, user_id: str, task: ScheduledTask, prefs: Dict[str, Any]) -> None:
        result = await self.runner.run_task(user_id, task, prefs)
        if result.success:
            logger.info(f"[简报调度] 任务完成: 用户 {user_id}, 任务 {task.id}, 简报 {result.digest.id if result.digest else None}")
            if result.push is not None and not result.push.success:
                logger.warning(f"[简报调度] 任务 {task.id} 推送失败: status={result.push.status}, error={result.push.error}")
            return
        if result.target_missing:
            self._disable_task(user_id, task.id, result.error)
            return
        logger.error(f"[简报调度] 任务失败: 用户 {user_id}, 任务 {task.id}: {result.error}")

    def _disable_task(self, user_id: str, task_id: str, reason: Optional[str]) -> None:
        prefs = self.preferences.get(user_id)
        if set_task_enabled(prefs, task_id, False) and self.preferences.save(user_id, prefs):
            logger.warning(f"[简报调度] 用户 {user_id} 任务 {task_id} 的目标已不存在（{reason}），已自动停用")
        else:
            logger.error(f"[简报调度] 用户 {user_id} 任务 {task_id} 的目标已不存在（{reason}），但停用失败")
