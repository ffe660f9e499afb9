"""Tests for the simulated asset store."""

import json

from asset_inventory.persistence import InMemoryAssetStore


def test_upsert_by_device_id():
    store = InMemoryAssetStore()
    store.save_all([{"deviceId": "D1", "name": "Pump"}, {"deviceId": "D2", "name": "Valve"}])
    store.save_all([{"deviceId": "D1", "name": "Pump 2"}])

    assert len(store) == 2
    assert store.exists("D1")
    assert store.get("D1") == {"deviceId": "D1", "name": "Pump 2"}


def test_numeric_keys_match_their_text():
    store = InMemoryAssetStore()
    store.save_all([{"deviceId": 42}])
    assert store.exists("42")
    assert store.exists(42)


def test_records_without_key_are_skipped():
    store = InMemoryAssetStore()
    store.save_all([{"name": "Orphan"}])
    assert len(store) == 0
    assert not store.exists(None)


def test_stored_records_are_copies():
    store = InMemoryAssetStore()
    record = {"deviceId": "D1", "hardware": {"vendor": "ABB"}}
    store.save_all([record])
    record["hardware"]["vendor"] = "Changed"

    fetched = store.get("D1")
    assert fetched["hardware"]["vendor"] == "ABB"
    fetched["hardware"]["vendor"] = "Also changed"
    assert store.get("D1")["hardware"]["vendor"] == "ABB"


def test_custom_key_path():
    store = InMemoryAssetStore(key_path="hardware.serial")
    store.save_all([{"hardware": {"serial": "S1"}}])
    assert store.exists("S1")


def test_dump_json(tmp_path):
    store = InMemoryAssetStore()
    store.save_all([{"deviceId": "D1", "name": "Pömp"}])
    path = store.dump_json(tmp_path / "out" / "assets.json")

    assert json.loads(path.read_text(encoding="utf-8")) == [{"deviceId": "D1", "name": "Pömp"}]
