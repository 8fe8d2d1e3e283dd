"""Tests for the JSONL event client."""

import json

import pytest

from scriptsync.event_client import (
    EVENT_TYPES,
    SCRIPT_ACTIVATED,
    SCRIPT_FAILED,
    SCRIPT_RETIRED,
    SYNC_COMPLETED,
    SYNC_FAILED,
    EventClient,
)


class TestEventClient:
    """Tests for EventClient."""

    def test_creates_parent_directory(self, tmp_path):
        log_path = tmp_path / "nested" / "events.jsonl"
        EventClient(log_path)
        assert log_path.parent.is_dir()

    def test_appends_events(self, tmp_path):
        log_path = tmp_path / "events.jsonl"
        client = EventClient(log_path)

        client.log_event(SCRIPT_ACTIVATED, "cid-1", "succeeded", payload={"key": "a"})
        client.log_event(SCRIPT_FAILED, "cid-1", "failed", error_message="bad syntax")

        lines = log_path.read_text().splitlines()
        assert len(lines) == 2
        first, second = (json.loads(line) for line in lines)
        assert first["event_type"] == "script.activated"
        assert first["payload"] == {"key": "a"}
        assert "error_message" not in first
        assert second["error_message"] == "bad syntax"
        assert "payload" not in second
        assert first["timestamp"]

    def test_event_type_values(self):
        assert EVENT_TYPES == {
            "script.activated",
            "script.retired",
            "script.failed",
            "sync.completed",
            "sync.failed",
        }
        assert {SCRIPT_RETIRED, SYNC_COMPLETED, SYNC_FAILED} <= EVENT_TYPES

    def test_unknown_event_type_rejected(self, tmp_path):
        log_path = tmp_path / "events.jsonl"
        client = EventClient(log_path)

        with pytest.raises(ValueError, match="Unknown event type"):
            client.log_event("script.started", "cid-1", "succeeded")

        assert not log_path.exists()
