import threading
import time

from qbank_ingest.core import locks
from qbank_ingest.core.locks import lock_key, question_bank_lock


def test_lock_key():
    assert lock_key("bank-1") == "qbank:bulk:bank-1"


def test_same_bank_is_serialized():
    events = []

    def worker(name):
        with question_bank_lock("bank-serial", "local"):
            events.append(f"{name}-in")
            time.sleep(0.05)
            events.append(f"{name}-out")

    threads = [threading.Thread(target=worker, args=(n,)) for n in ("a", "b")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert events[0][0] == events[1][0]
    assert events[2][0] == events[3][0]


def test_different_banks_do_not_block():
    with question_bank_lock("bank-x", "local"):
        acquired = threading.Event()

        def other():
            with question_bank_lock("bank-y", "local"):
                acquired.set()

        t = threading.Thread(target=other)
        t.start()
        assert acquired.wait(timeout=1)
        t.join()


def test_redis_backend_uses_bank_key(monkeypatch):
    calls = []

    class FakeLock:
        def __enter__(self):
            calls.append("acquire")
            return self

        def __exit__(self, *exc):
            calls.append("release")
            return False

    class FakeRedis:
        def lock(self, name, timeout=None):
            calls.append((name, timeout))
            return FakeLock()

    monkeypatch.setattr(locks, "_get_redis", lambda: FakeRedis())
    with question_bank_lock("bank-1", "redis"):
        calls.append("body")
    assert calls == [("qbank:bulk:bank-1", 600), "acquire", "body", "release"]
