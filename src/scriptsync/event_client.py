# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""JSONL event log for script sync activity.

One line per event. Every event of a sync cycle shares the cycle's
correlation id.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Event types emitted by the sync engine
SCRIPT_ACTIVATED = "script.activated"
SCRIPT_RETIRED = "script.retired"
SCRIPT_FAILED = "script.failed"
SYNC_COMPLETED = "sync.completed"
SYNC_FAILED = "sync.failed"

EVENT_TYPES = frozenset(
    {SCRIPT_ACTIVATED, SCRIPT_RETIRED, SCRIPT_FAILED, SYNC_COMPLETED, SYNC_FAILED}
)


class EventClient:
    """Append-only JSONL log of sync events."""

    def __init__(self, log_path: Path):
        self.log_path = log_path
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def log_event(
        self,
        event_type: str,
        correlation_id: str,
        status: str,
        payload: Optional[Dict[str, Any]] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """Append one event.

        Raises:
            ValueError: If event_type is not one of EVENT_TYPES.
        """
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type: {event_type}")

        event = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event_type": event_type,
            "correlation_id": correlation_id,
            "status": status,
        }
        if payload:
            event["payload"] = payload
        if error_message:
            event["error_message"] = error_message

        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(event) + "\n")

