"""
Unit tests - Khóa theo khóa và cổng commit dùng chung/độc quyền.
"""

import threading

import pytest

from ledger_integrity.application.locking import CommitGate, KeyedLocks


class TestKeyedLocks:

    def test_entry_removed_after_release(self):
        locks = KeyedLocks()
        with locks.hold("doc-1"):
            assert len(locks) == 1
        assert len(locks) == 0

    def test_entry_removed_after_error(self):
        locks = KeyedLocks()
        with pytest.raises(KeyError):
            with locks.hold("doc-1"):
                raise KeyError("doc-1")
        assert len(locks) == 0

    def test_same_key_serialized(self):
        locks = KeyedLocks()
        done = []

        def second():
            with locks.hold("doc-1"):
                done.append("second")

        with locks.hold("doc-1"):
            worker = threading.Thread(target=second)
            worker.start()
            worker.join(timeout=0.2)
            assert worker.is_alive()
        worker.join()
        assert done == ["second"]
        assert len(locks) == 0

    def test_different_keys_independent(self):
        locks = KeyedLocks()
        done = []

        def other():
            with locks.hold("doc-2"):
                done.append("doc-2")

        with locks.hold("doc-1"):
            worker = threading.Thread(target=other)
            worker.start()
            worker.join(timeout=2)
            assert not worker.is_alive()
        assert done == ["doc-2"]


class TestCommitGate:

    def test_shared_holders_do_not_block_each_other(self):
        gate = CommitGate()
        done = []

        def commit():
            with gate.shared():
                done.append("commit")

        with gate.shared():
            worker = threading.Thread(target=commit)
            worker.start()
            worker.join(timeout=2)
            assert not worker.is_alive()
        assert done == ["commit"]

    def test_exclusive_waits_for_shared(self):
        gate = CommitGate()
        order = []

        def lock_period():
            with gate.exclusive():
                order.append("exclusive")

        with gate.shared():
            worker = threading.Thread(target=lock_period)
            worker.start()
            worker.join(timeout=0.2)
            assert worker.is_alive()
            order.append("shared done")
        worker.join()
        assert order == ["shared done", "exclusive"]

    def test_waiting_exclusive_holds_back_new_shared(self):
        gate = CommitGate()
        order = []

        def exclusive():
            with gate.exclusive():
                order.append("exclusive")

        def shared():
            with gate.shared():
                order.append("late shared")

        with gate.shared():
            writer = threading.Thread(target=exclusive)
            writer.start()
            writer.join(timeout=0.2)
            reader = threading.Thread(target=shared)
            reader.start()
            reader.join(timeout=0.2)
            assert reader.is_alive()
        writer.join()
        reader.join()
        assert order == ["exclusive", "late shared"]
