"""Tests for the JSON key-value storage."""

import logging


class TestKeyValueStore:
    def test_round_trip(self, storage):
        assert storage.set("characterSheet", {"categories": {"a": {"name": "Ä"}}})
        assert storage.get("characterSheet") == {"categories": {"a": {"name": "Ä"}}}

    def test_missing_key_is_none(self, storage):
        assert storage.get("activityLog") is None

    def test_one_file_per_key(self, storage):
        storage.set("activityLog", [])
        assert storage.path_for("activityLog").endswith("activityLog.json")

    def test_corrupt_file_logged_and_swallowed(self, storage, caplog):
        storage.set("decaySettings", {})
        with open(storage.path_for("decaySettings"), "w", encoding="utf-8") as f:
            f.write("{ not json")
        with caplog.at_level(logging.ERROR, logger="StatKeeperTest"):
            assert storage.get("decaySettings") is None
        assert "STORE read failed key=decaySettings" in caplog.text

    def test_write_failure_returns_false(self, tmp_path, logger, caplog):
        from stat_keeper.storage import KeyValueStore

        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        store = KeyValueStore(str(blocker), logger)
        with caplog.at_level(logging.ERROR, logger="StatKeeperTest"):
            assert store.set("characterSheet", {}) is False
        assert "STORE write failed" in caplog.text
