import threading
import time

from backendify.lock import try_lock


def test_acquires_free_lock():
    lock = threading.Lock()
    assert try_lock(lock, 0.1) is True
    assert lock.locked()


def test_times_out_on_held_lock():
    lock = threading.Lock()
    lock.acquire()
    start = time.monotonic()
    assert try_lock(lock, 0.1) is False
    assert time.monotonic() - start >= 0.09


def test_acquires_when_released_in_time():
    lock = threading.Lock()
    lock.acquire()
    timer = threading.Timer(0.05, lock.release)
    timer.start()
    try:
        assert try_lock(lock, 2.0) is True
    finally:
        timer.join()
    assert lock.locked()


def test_negative_timeout_does_not_block():
    lock = threading.Lock()
    lock.acquire()
    assert try_lock(lock, -1) is False