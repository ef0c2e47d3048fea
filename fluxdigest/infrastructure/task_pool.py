"""有界并发的后台任务池"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Set

from loguru import logger


class TaskPool:
    """
    在当前事件循环上运行后台协程，最多同时执行 max_concurrency 个。

    submit() 立即返回，不等待任务完成；join() 等待所有已提交的任务结束，
    供关闭流程和测试使用。
    """

    def __init__(self, max_concurrency: int = 3, name: str = "pool"):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.max_concurrency = max_concurrency
        self.name = name
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._tasks: Set[asyncio.Task] = set()

    def _get_semaphore(self) -> asyncio.Semaphore:
        # 延迟创建，保证绑定到实际运行的事件循环
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrency)
        return self._semaphore

    async def _run(self, factory: Callable[[], Awaitable[Any]], label: str) -> Any:
        async with self._get_semaphore():
            try:
                return await factory()
            except asyncio.CancelledError:
                raise
            except Exception as e:  # noqa: BLE001
                logger.error(f"[{self.name}] 后台任务失败: {label}: {e}")
                return None

    def submit(self, factory: Callable[[], Awaitable[Any]], label: str = "") -> asyncio.Task:
        """
        提交一个后台任务

        Args:
            factory: 无参可调用对象，返回要执行的协程；在获得并发名额后才调用
            label: 日志中使用的任务标识

        Returns:
            对应的 asyncio.Task
        """
        task = asyncio.get_running_loop().create_task(self._run(factory, label))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        """尚未结束的任务数"""
        return len(self._tasks)

    async def join(self) -> None:
        """等待所有已提交（包括等待期间新提交）的任务结束"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.join()
