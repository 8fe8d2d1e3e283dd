# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Feed-backed script loader.

Reads script records from a YAML feed file:

    scripts:
      - key: greeter
        name: greeter
        status: active
        updated_at: 1735689600000
        content: |
          class Greeter:
              def __call__(self, who):
                  return f"hello {who}"

JSON feeds work too, since JSON is a subset of YAML.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import yaml

from scriptsync.event_client import EventClient
from scriptsync.loader import (
    ScriptLoader,
    ScriptRecord,
    ScriptStatus,
    ScriptValidationError,
    SourceQueryError,
    from_millis,
    record_from_dict,
    to_millis,
)

logger = logging.getLogger(__name__)

REMOVED_STATUSES = {ScriptStatus.OBSOLETE, ScriptStatus.DELETED}


def read_feed(feed_path: Path) -> List[ScriptRecord]:
    """Parse all valid records from a feed file.

    Invalid entries are logged and skipped.

    Raises:
        SourceQueryError: If the feed cannot be read or is not a mapping
            with a ``scripts`` list.
    """
    try:
        data = yaml.safe_load(feed_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise SourceQueryError(f"cannot read feed {feed_path}: {e}") from e
    except yaml.YAMLError as e:
        raise SourceQueryError(f"invalid YAML in feed {feed_path}: {e}") from e

    if data is None:
        return []
    if not isinstance(data, dict) or not isinstance(data.get("scripts", []), list):
        raise SourceQueryError(
            f"feed {feed_path} must contain a mapping with a 'scripts' list"
        )

    records = []
    for i, entry in enumerate(data.get("scripts") or []):
        try:
            records.append(record_from_dict(entry))
        except ScriptValidationError as e:
            logger.warning(f"Skipping invalid feed entry #{i} in {feed_path}: {e}")
    return records


class FeedScriptLoader(ScriptLoader[Any, ScriptRecord]):
    """ScriptLoader whose source is a local YAML feed file."""

    def __init__(
        self,
        feed_path: Union[str, Path],
        script_dir: Union[str, Path],
        poll_interval_ms: int,
        clean: bool = False,
        event_client: Optional[EventClient] = None,
    ):
        self.feed_path = Path(feed_path).expanduser()
        super().__init__(script_dir, poll_interval_ms, clean=clean, event_client=event_client)

    async def get_updated_scripts(self, anchor: datetime) -> List[ScriptRecord]:
        anchor_ms = to_millis(anchor)
        records = [r for r in read_feed(self.feed_path) if r.updated_at > anchor_ms]
        # sorted() is stable, so same-timestamp records keep feed order
        return sorted(records, key=lambda r: r.updated_at)

    def get_next_anchor(self, records: Sequence[ScriptRecord]) -> datetime:
        latest = max(r.updated_at for r in records)
        return max(from_millis(latest), self.anchor)

    def is_active_script(self, record: ScriptRecord) -> bool:
        return record.status == ScriptStatus.ACTIVE and bool(record.content.strip())

    def is_obsoleted_script(self, record: ScriptRecord) -> bool:
        if record.status in REMOVED_STATUSES:
            return True
        # An active record without content has nothing left to load
        return record.status == ScriptStatus.ACTIVE and not record.content.strip()

    def get_file_name(self, record: ScriptRecord) -> str:
        return record.name

    def get_script_key(self, record: ScriptRecord) -> str:
        return record.key

    def get_script_text(self, record: ScriptRecord) -> str:
        return record.content
