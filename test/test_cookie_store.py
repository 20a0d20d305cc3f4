from datetime import datetime, timedelta, timezone

import pytest

from cookie_relay.cookie_store import CookieRecordStore, InMemoryCookieRecords
from cookie_relay.domain_index import InMemoryDomainIndex
from cookie_relay.errors import NotFound, StorageFailure, ValidationError


class FlakyRecords(InMemoryCookieRecords):
    """In-memory records that fail writes/deletes for chosen record ids."""

    def __init__(self, fail_put=(), fail_delete=()):
        super().__init__()
        self.fail_put = set(fail_put)
        self.fail_delete = set(fail_delete)

    def put(self, row):
        if row["id"] in self.fail_put:
            raise RuntimeError("connection reset by peer")
        super().put(row)

    def delete(self, rec_id):
        if rec_id in self.fail_delete:
            raise RuntimeError("permission denied for table cookie_records")
        super().delete(rec_id)


class BrokenIndex(InMemoryDomainIndex):

    def add(self, user_id, domain):
        raise RuntimeError("index unavailable")

    def remove(self, user_id, domain):
        raise RuntimeError("index unavailable")


class TickingClock:

    def __init__(self):
        self.now = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(minutes=5)
        return self.now


SESSION = {
    "name": "sessionid",
    "value": "abc",
    "domain": ".example.com",
    "path": "/",
    "expires": 1767225600.0,
    "httpOnly": True,
    "secure": True,
    "sameSite": "Lax",
}


@pytest.fixture
def index():
    return InMemoryDomainIndex()


@pytest.fixture
def store(index):
    return CookieRecordStore(InMemoryCookieRecords(), index, clock=TickingClock())


def test_upsert_then_fetch_returns_same_cookies(store):
    extra = {**SESSION, "name": "csrftoken", "hostOnly": False, "storeId": "0"}
    record = store.upsert("u1", "example.com", [SESSION, extra])

    fetched = store.fetch("u1", "example.com")
    assert fetched.cookie_count == 2 == len(fetched.cookies)
    assert [c.model_dump(mode='json') for c in fetched.cookies] == [
        SESSION,
        {**SESSION, "name": "csrftoken"},
    ]
    assert fetched.id == record.id == "u1_example.com"
    assert fetched.user_id == "u1"


def test_empty_cookie_set_is_a_real_record(store):
    store.upsert("u1", "example.com", [])

    fetched = store.fetch("u1", "example.com")
    assert fetched.cookies == []
    assert fetched.cookie_count == 0
    assert store.domains("u1") == ["example.com"]


def test_saved_at_is_kept_and_updated_at_moves(store):
    first = store.upsert("u1", "example.com", [SESSION])
    second = store.upsert("u1", "example.com", [])

    assert second.saved_at == first.saved_at
    assert second.updated_at > first.updated_at
    assert store.fetch("u1", "example.com").saved_at == first.saved_at


def test_domain_is_normalized_for_key_and_index(store):
    store.upsert("u1", "  Example.COM. ", [SESSION])

    assert store.fetch("u1", "example.com").domain == "example.com"
    assert store.domains("u1") == ["example.com"]


def test_upsert_validates_input(store, index):
    with pytest.raises(ValidationError):
        store.upsert("u1", "", [SESSION])
    with pytest.raises(ValidationError):
        store.upsert("u1", "example.com", "not-a-list")
    assert index.list_domains("u1") == []


def test_fetch_missing_record_is_not_found(store):
    with pytest.raises(NotFound) as exc:
        store.fetch("u1", "nowhere.com")
    assert exc.value.message == "No cookies found for nowhere.com"


def test_delete_then_list(store):
    store.upsert("u1", "a.com", [SESSION])
    store.upsert("u1", "b.com", [SESSION])

    store.remove("u1", "a.com")

    assert "a.com" not in store.domains("u1")
    with pytest.raises(NotFound):
        store.fetch("u1", "a.com")


def test_failed_write_raises_and_leaves_index_alone(index):
    store = CookieRecordStore(FlakyRecords(fail_put={"u1_bad.com"}), index)

    with pytest.raises(StorageFailure) as exc:
        store.upsert("u1", "bad.com", [SESSION])

    assert exc.value.message == "Failed to save cookies"
    assert "connection reset" in exc.value.detail
    assert index.list_domains("u1") == []


def test_failed_delete_raises_and_keeps_index_entry(index):
    store = CookieRecordStore(FlakyRecords(fail_delete={"u1_a.com"}), index)
    store.upsert("u1", "a.com", [SESSION])

    with pytest.raises(StorageFailure):
        store.remove("u1", "a.com")

    assert index.list_domains("u1") == ["a.com"]
    assert store.fetch("u1", "a.com").cookie_count == 1


def test_index_failure_is_counted_not_raised():
    store = CookieRecordStore(InMemoryCookieRecords(), BrokenIndex())

    record = store.upsert("u1", "example.com", [SESSION])
    store.remove("u1", "example.com")

    assert record.cookie_count == 1
    assert store.index_failures == 2


def test_stats_with_no_records_is_zero(store):
    stats = store.stats_for("u1")
    assert stats.total_domains == 0
    assert stats.total_cookies == 0
    assert stats.per_domain_summary == []


def test_stats_aggregates_cookie_counts(store):
    store.upsert("u1", "b.com", [SESSION, {**SESSION, "name": "other"}])
    store.upsert("u1", "a.com", [SESSION])
    store.upsert("u2", "c.com", [SESSION])

    stats = store.stats_for("u1")
    assert stats.total_domains == 2
    assert stats.total_cookies == 3
    assert [(s.domain, s.cookie_count) for s in stats.per_domain_summary] == [("a.com", 1), ("b.com", 2)]
    assert all(s.saved_at is not None for s in stats.per_domain_summary)


def test_repair_index_adds_missing_and_drops_orphans(store, index):
    store.upsert("u1", "kept.com", [SESSION])
    store.upsert("u1", "lost.com", [SESSION])
    index.remove("u1", "lost.com")
    index.add("u1", "orphan.com")

    report = store.repair_index("u1")

    assert report.added == ["lost.com"]
    assert report.removed == ["orphan.com"]
    assert index.list_domains("u1") == ["kept.com", "lost.com"]
    assert not store.repair_index("u1").changed
