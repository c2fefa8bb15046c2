from conftest import RecordingInvalidator
from unjobs.services.cache import NullInvalidator, RedisInvalidator, invalidate_quietly


class FakeRedis:
    def __init__(self, keys):
        self.keys = set(keys)
        self.scans = []

    def scan_iter(self, match=None, count=None):
        self.scans.append((match, count))
        prefix = match.rstrip("*")
        return iter(sorted(k for k in self.keys if k.startswith(prefix)))

    def delete(self, *keys):
        removed = len(self.keys & set(keys))
        self.keys -= set(keys)
        return removed


def test_redis_invalidator_removes_only_prefixed_keys() -> None:
    client = FakeRedis(["jobs:list:1", "jobs:detail:42", "celery-task-meta-1", "session:abc"])

    removed = RedisInvalidator(client=client).invalidate("jobs:")

    assert removed == 2
    assert client.keys == {"celery-task-meta-1", "session:abc"}
    assert client.scans == [("jobs:*", 500)]


def test_redis_invalidator_with_nothing_cached() -> None:
    client = FakeRedis(["session:abc"])
    assert RedisInvalidator(client=client).invalidate("jobs:") == 0


def test_invalidate_quietly_swallows_cache_outages(caplog) -> None:
    broken = RecordingInvalidator(error=ConnectionError("Connection refused"))

    assert invalidate_quietly(broken, "jobs:") is None
    assert "Connection refused" in caplog.text
    assert invalidate_quietly(RecordingInvalidator(removed=7), "jobs:") == 7
    assert invalidate_quietly(NullInvalidator(), "jobs:") == 0
