"""
Service lock - only one ScrollGuard service may own the session state.

Two services writing state.json would each overwrite the other's timing,
so `main.py serve` takes an OS file lock on startup:
- Unix (macOS/Linux): fcntl.flock()
- Windows: msvcrt.locking()

The OS drops the lock when the process dies, so a crash never leaves the
state permanently claimed.
"""

import atexit
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import config

logger = logging.getLogger(__name__)

# Bytes locked on Windows (msvcrt needs a non-empty region)
_LOCK_REGION = 32


def _default_lock_path() -> Path:
    return config.USER_DATA_DIR / ".scrollguard_service.lock"


class ServiceLock:
    """
    Exclusive, non-blocking lock on a file holding the owner's PID.

    Usage:
        lock = ServiceLock()
        if not lock.acquire():
            sys.exit("ScrollGuard is already running")
    """

    def __init__(self, lock_file: Optional[Path] = None):
        self.lock_file = lock_file or _default_lock_path()
        self._handle = None

    @property
    def is_acquired(self) -> bool:
        return self._handle is not None

    def acquire(self) -> bool:
        """
        Try to take the lock.

        Returns:
            True if this process now owns the session state.
        """
        if self._handle is not None:
            return True
        try:
            self.lock_file.parent.mkdir(parents=True, exist_ok=True)
            handle = open(self.lock_file, 'a+b')
        except OSError as e:
            logger.error(f"Cannot open lock file {self.lock_file}: {e}")
            return False

        try:
            if sys.platform == 'win32':
                import msvcrt
                handle.seek(0)
                msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, _LOCK_REGION)
            else:
                import fcntl
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            handle.close()
            logger.debug("Service lock held by another process")
            return False

        handle.seek(0)
        handle.truncate()
        handle.write(str(os.getpid()).encode('utf-8').ljust(_LOCK_REGION, b' '))
        handle.flush()
        self._handle = handle
        logger.debug(f"Service lock acquired (PID: {os.getpid()})")
        return True

    def release(self) -> None:
        """Drop the lock; also happens automatically at process exit."""
        if self._handle is None:
            return
        try:
            if sys.platform == 'win32':
                import msvcrt
                self._handle.seek(0)
                msvcrt.locking(self._handle.fileno(), msvcrt.LK_UNLCK, _LOCK_REGION)
        except OSError as e:
            logger.debug(f"Unlock failed: {e}")
        finally:
            self._handle.close()
            self._handle = None
        logger.debug("Service lock released")

    def owner_pid(self) -> Optional[int]:
        """PID recorded by the current owner, if readable."""
        try:
            content = self.lock_file.read_text().strip()
        except OSError:
            return None
        return int(content) if content.isdigit() else None

    def __enter__(self):
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


def acquire_service_lock(lock_file: Optional[Path] = None) -> Optional[ServiceLock]:
    """
    Take the service lock for the lifetime of the process.

    Returns:
        The held lock, or None if another service is running.
    """
    lock = ServiceLock(lock_file)
    if not lock.acquire():
        return None
    atexit.register(lock.release)
    return lock
