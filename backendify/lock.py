"""Lock acquisition with a deadline."""

from __future__ import annotations

import threading


def try_lock(lock: threading.Lock, timeout: float) -> bool:
    """Acquire ``lock`` within ``timeout`` seconds; return whether it was acquired."""
    return lock.acquire(timeout=max(0.0, timeout))