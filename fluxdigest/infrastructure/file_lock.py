"""文件锁模块，用于串行化简报分片文件的读改写"""

import os
import sys
import time
from pathlib import Path
from typing import Optional

if sys.platform == "win32":
    import msvcrt
else:
    import fcntl

from loguru import logger


class FileLock:
    """跨进程文件锁（建议锁）"""

    def __init__(self, lock_dir: Path, lock_name: str, timeout: float = 5.0, poll_interval: float = 0.05):
        """
        初始化文件锁

        Args:
            lock_dir: 锁文件所在目录
            lock_name: 锁文件名
            timeout: with 语句获取锁的超时时间（秒）
            poll_interval: 获取锁失败后的重试间隔（秒）
        """
        self.lock_name = lock_name
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._lock_file_path = Path(lock_dir) / lock_name
        self._lock_fd: Optional[int] = None

    @property
    def path(self) -> Path:
        return self._lock_file_path

    def _try_lock(self) -> bool:
        self._lock_file_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock_fd = os.open(str(self._lock_file_path), os.O_CREAT | os.O_WRONLY)
        try:
            if sys.platform == "win32":
                msvcrt.locking(self._lock_fd, msvcrt.LK_NBLCK, 1)
            else:
                fcntl.flock(self._lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            return True
        except OSError:
            os.close(self._lock_fd)
            self._lock_fd = None
            return False

    def acquire(self, timeout: Optional[float] = None) -> bool:
        """
        获取文件锁，在超时前轮询重试

        Args:
            timeout: 超时时间（秒），0 表示只尝试一次，None 时使用构造参数

        Returns:
            True 如果成功获取锁，False 如果超时仍被其他进程占用
        """
        if timeout is None:
            timeout = self.timeout
        deadline = time.monotonic() + timeout
        while True:
            try:
                if self._try_lock():
                    return True
            except OSError as e:
                logger.warning(f"[简报存储] 获取文件锁失败: {self.lock_name}: {e}")
                return False
            if time.monotonic() >= deadline:
                return False
            time.sleep(self.poll_interval)

    def release(self):
        """释放文件锁，锁文件保留"""
        if self._lock_fd is None:
            return
        try:
            if sys.platform == "win32":
                msvcrt.locking(self._lock_fd, msvcrt.LK_UNLCK, 1)
            else:
                fcntl.flock(self._lock_fd, fcntl.LOCK_UN)
        except OSError as e:
            logger.warning(f"[简报存储] 释放文件锁失败: {self.lock_name}: {e}")
        finally:
            os.close(self._lock_fd)
            self._lock_fd = None

    @property
    def locked(self) -> bool:
        return self._lock_fd is not None

    def __enter__(self):
        if not self.acquire():
            raise RuntimeError(f"无法获取文件锁: {self.lock_name} ({self.timeout}s)")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
