"""
Khóa dùng chung cho tầng application.

- KeyedLocks: mỗi khóa (id chứng từ, dãy số chứng từ) một Lock riêng, tự
  dọn khi không còn ai giữ hoặc chờ.
- CommitGate: commit chứng từ giữ phía dùng chung nên chạy song song với
  nhau; khóa/mở khóa kỳ và các lần đọc toàn cục giữ phía độc quyền.
"""

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager


class KeyedLocks:

    def __init__(self):
        self._registry_lock = threading.Lock()
        self._locks: dict[Hashable, threading.Lock] = {}
        self._holders: dict[Hashable, int] = {}

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            self._holders[key] = self._holders.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._registry_lock:
                self._holders[key] -= 1
                if not self._holders[key]:
                    del self._holders[key]
                    del self._locks[key]


class CommitGate:
    """
    Khóa đọc/ghi ưu tiên phía độc quyền: khi có người chờ độc quyền thì
    không nhận thêm người dùng chung, tránh khóa kỳ bị chặn mãi.
    Không reentrant.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._shared = 0
        self._exclusive = False
        self._waiting_exclusive = 0

    @contextmanager
    def shared(self) -> Iterator[None]:
        with self._cond:
            while self._exclusive or self._waiting_exclusive:
                self._cond.wait()
            self._shared += 1
        try:
            yield
        finally:
            with self._cond:
                self._shared -= 1
                if not self._shared:
                    self._cond.notify_all()

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        with self._cond:
            self._waiting_exclusive += 1
            try:
                while self._exclusive or self._shared:
                    self._cond.wait()
            finally:
                self._waiting_exclusive -= 1
            self._exclusive = True
        try:
            yield
        finally:
            with self._cond:
                self._exclusive = False
                self._cond.notify_all()
