from unittest.mock import MagicMock

from pymongo.errors import ServerSelectionTimeoutError

from config import Settings
from database import MemoryKVStore, MongoKVStore, create_kv_store


def test_memory_store_round_trip():
    store = MemoryKVStore()
    assert store.get("missing") is None

    store.set("subscriptions:ada@example.com", [{"id": "1"}])
    assert store.get("subscriptions:ada@example.com") == [{"id": "1"}]

    store.delete("subscriptions:ada@example.com")
    assert store.get("subscriptions:ada@example.com") is None
    store.delete("subscriptions:ada@example.com")


def test_memory_store_returns_copies():
    store = MemoryKVStore()
    value = [{"id": "1"}]
    store.set("k", value)
    value.append({"id": "2"})
    store.get("k").append({"id": "3"})
    assert store.get("k") == [{"id": "1"}]


def make_mongo_store():
    client = MagicMock()
    store = MongoKVStore(client, "subsentry", "kv_store")
    return client, store


def test_mongo_store_get():
    _, store = make_mongo_store()
    store.collection.find_one.return_value = {"_id": "user:ada@example.com", "value": {"name": "Ada"}}
    assert store.get("user:ada@example.com") == {"name": "Ada"}
    store.collection.find_one.assert_called_once_with({"_id": "user:ada@example.com"})

    store.collection.find_one.return_value = None
    assert store.get("user:ghost@example.com") is None


def test_mongo_store_set_replaces_whole_value():
    _, store = make_mongo_store()
    store.set("subscriptions:ada@example.com", [])

    args, kwargs = store.collection.replace_one.call_args
    assert args[0] == {"_id": "subscriptions:ada@example.com"}
    assert args[1]["value"] == []
    assert kwargs == {"upsert": True}


def test_mongo_store_delete():
    _, store = make_mongo_store()
    store.delete("user:ada@example.com")
    store.collection.delete_one.assert_called_once_with({"_id": "user:ada@example.com"})


def test_mongo_store_status_reports_ping_failure():
    client, store = make_mongo_store()
    client.admin.command.side_effect = ServerSelectionTimeoutError("no servers")
    status = store.status()
    assert status["backend"] == "mongodb"
    assert status["connection_status"].startswith("Error")


def test_create_kv_store_without_url_uses_memory():
    assert isinstance(create_kv_store(Settings()), MemoryKVStore)
