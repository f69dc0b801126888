import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeout

from mindmate.errors import InvalidInput, NotFound, StoreUnavailable
from mindmate.store import EntryStore


class ExplodingCache:
    def get_connection(self):
        raise AssertionError("store must not be reached")


class UnavailableCache:
    def get_connection(self):
        raise StoreUnavailable()


def _never_classify(text):
    raise AssertionError("classifier must not be reached")


def test_short_content_never_reaches_classifier_or_store():
    store = EntryStore(ExplodingCache(), classifier=_never_classify)
    with pytest.raises(InvalidInput):
        store.create_entry("too short")
    with pytest.raises(InvalidInput):
        store.create_entry("   padded    ")
    with pytest.raises(InvalidInput):
        store.create_entry(None)


def test_create_assigns_id_mood_and_timestamp(store):
    entry = store.create_entry("Today was a wonderful and uplifting day!")
    assert entry["id"]
    assert entry["mood"] in ("Positive", "Slightly Positive")
    assert entry["createdAt"].endswith("Z")
    assert store.get_entry(entry["id"]) == entry


def test_list_is_newest_first(store):
    first = store.create_entry("First entry of the week")
    second = store.create_entry("Second entry of the week")
    third = store.create_entry("Third entry of the week")

    ids = [e["id"] for e in store.list_entries()]
    assert ids == [third["id"], second["id"], first["id"]]


def test_missing_entry_is_not_found(store):
    with pytest.raises(NotFound):
        store.get_entry("nope")
    with pytest.raises(NotFound):
        store.update_entry("nope", {"mood": "Neutral"})
    with pytest.raises(NotFound):
        store.delete_entry("nope")


def test_partial_update_keeps_identity(store):
    entry = store.create_entry("Plain day at the office")
    updated = store.update_entry(
        entry["id"],
        {"mood": "Calm", "id": "hijack", "createdAt": "1999-01-01T00:00:00Z", "extra": 1},
    )
    assert updated["id"] == entry["id"]
    assert updated["createdAt"] == entry["createdAt"]
    assert updated["mood"] == "Calm"
    assert updated["content"] == entry["content"]


def test_update_rejects_non_string_values(store):
    entry = store.create_entry("Plain day at the office")
    with pytest.raises(InvalidInput):
        store.update_entry(entry["id"], {"content": 12})


def test_delete_removes_entry(store):
    entry = store.create_entry("Something worth deleting")
    store.delete_entry(entry["id"])
    with pytest.raises(NotFound):
        store.get_entry(entry["id"])
    assert store.list_entries() == []


def test_mood_records_bypass_classifier(cache, clock):
    store = EntryStore(cache, classifier=_never_classify, clock=clock)
    store.create_mood("grateful")
    latest = store.create_mood("😄 ecstatic")
    moods = store.list_moods()
    assert [m["mood"] for m in moods] == ["😄 ecstatic", "grateful"]
    assert moods[0]["id"] == latest["id"]


def test_empty_mood_is_rejected(store):
    with pytest.raises(InvalidInput):
        store.create_mood("")


def test_store_unavailable_propagates():
    store = EntryStore(UnavailableCache())
    with pytest.raises(StoreUnavailable):
        store.list_entries()


class BrokenSession:
    def __init__(self, error):
        self.error = error

    def scalars(self, statement):
        raise self.error

    def rollback(self):
        pass

    def close(self):
        pass


class RecordingCache:
    def __init__(self, error):
        self.handle = self
        self.error = error
        self.invalidated = []

    def get_connection(self):
        return self.handle

    def session(self):
        return BrokenSession(self.error)

    def invalidate(self, handle=None):
        self.invalidated.append(handle)


@pytest.mark.parametrize(
    "error",
    [
        OperationalError("SELECT", {}, Exception("server closed the connection")),
        InterfaceError("SELECT", {}, Exception("connection already closed"), connection_invalidated=True),
        DBAPIError("SELECT", {}, Exception("connection reset"), connection_invalidated=True),
    ],
)
def test_connection_error_invalidates_handle(error):
    cache = RecordingCache(error)
    store = EntryStore(cache)
    with pytest.raises(StoreUnavailable) as exc_info:
        store.list_entries()
    assert exc_info.value.__cause__ is error
    assert cache.invalidated == [cache.handle]


def test_pool_timeout_is_unavailable_but_keeps_handle():
    cache = RecordingCache(PoolTimeout("QueuePool limit of size 5 overflow 10 reached"))
    store = EntryStore(cache)
    with pytest.raises(StoreUnavailable):
        store.list_entries()
    assert cache.invalidated == []


def test_data_errors_are_not_store_unavailable():
    error = IntegrityError("INSERT", {}, Exception("constraint failed"))
    cache = RecordingCache(error)
    store = EntryStore(cache)
    with pytest.raises(IntegrityError):
        store.list_entries()
    assert cache.invalidated == []


def test_update_rejects_short_content(store):
    entry = store.create_entry("Plain day at the office")
    with pytest.raises(InvalidInput):
        store.update_entry(entry["id"], {"content": ""})
    assert store.get_entry(entry["id"])["content"] == "Plain day at the office"
