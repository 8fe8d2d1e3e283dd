"""Script sync engine.

Polls a script source for changes since the last anchor, activates or
retires each changed script, and persists the new anchor.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

import asyncio
import logging
import shutil
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Generic, List, Optional, Sequence, Set, TypeVar, Union

from scriptsync.event_client import (
    SCRIPT_ACTIVATED,
    SCRIPT_FAILED,
    SCRIPT_RETIRED,
    SYNC_COMPLETED,
    SYNC_FAILED,
    EventClient,
)
from scriptsync.loader.anchor import ANCHOR_FILENAME, AnchorStore
from scriptsync.loader.materializer import LoadError, Materializer

T = TypeVar("T")
K = TypeVar("K")

PLUGINS_DIRNAME = "plugins"


class SourceQueryError(Exception):
    """Raised when the script source cannot be queried."""

    pass


@dataclass
class ScriptInstance(Generic[T, K]):
    """A cached script: the record it came from and its live instance."""

    metadata: K
    instance: T


@dataclass
class SyncResult:
    """Outcome of one sync cycle."""

    correlation_id: str
    anchor: datetime
    fetched: int = 0
    activated: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ScriptLoader(ABC, Generic[T, K]):
    """Keeps an in-memory cache of script instances in step with a source.

    Subclasses supply the source query and the record accessors. Only one
    sync cycle runs at a time; a trigger arriving mid-cycle is dropped.

    Layout under ``script_dir``:
    - .last_update_timestamp: persisted anchor
    - plugins/<file name>.py: one artifact per active script
    """

    def __init__(
        self,
        script_dir: Union[str, Path],
        poll_interval_ms: int,
        clean: bool = False,
        event_client: Optional[EventClient] = None,
    ):
        """
        Initialize the loader.

        Args:
            script_dir: Directory holding the anchor file and plugins.
            poll_interval_ms: Interval between timer-driven cycles.
            clean: Wipe existing plugins and start from the epoch.
            event_client: Optional JSONL event log.
        """
        if poll_interval_ms <= 0:
            raise ValueError(f"poll_interval_ms must be positive, got: {poll_interval_ms}")

        self.logger = logging.getLogger(f"{__name__}.{type(self).__name__}")
        self.script_dir = Path(script_dir).expanduser().resolve()
        self.plugins_dir = self.script_dir / PLUGINS_DIRNAME
        self.poll_interval_ms = poll_interval_ms
        self.event_client = event_client
        self.logger.debug(f"Creating script loader, script dir: {self.script_dir}")

        self._cache: Dict[str, ScriptInstance[T, K]] = {}
        self._is_loading = False
        self._watch_task: Optional[asyncio.Task] = None
        self._cycle_tasks: Set[asyncio.Task] = set()

        self._ensure_plugins_directory(clean)
        self.materializer = Materializer(self.plugins_dir)
        self.anchor_store = AnchorStore(self.script_dir / ANCHOR_FILENAME)
        self._anchor = self.anchor_store.load(reset=clean)

    # =========================================================================
    # Host hooks
    # =========================================================================

    @abstractmethod
    async def get_updated_scripts(self, anchor: datetime) -> Sequence[K]:
        """Return records changed strictly after ``anchor``, in apply order.

        Raise SourceQueryError (or any exception) to abort the cycle.
        """

    @abstractmethod
    def get_next_anchor(self, records: Sequence[K]) -> datetime:
        """Return the anchor covering every record in the batch."""

    @abstractmethod
    def is_active_script(self, record: K) -> bool:
        """True if the record should be loaded or reloaded."""

    @abstractmethod
    def is_obsoleted_script(self, record: K) -> bool:
        """True if the record should be removed."""

    @abstractmethod
    def get_file_name(self, record: K) -> str:
        """Artifact file name for the record, without suffix."""

    @abstractmethod
    def get_script_key(self, record: K) -> str:
        """Unique cache key for the record."""

    @abstractmethod
    def get_script_text(self, record: K) -> str:
        """Script source text for the record."""

    # =========================================================================
    # Public API
    # =========================================================================

    @property
    def anchor(self) -> datetime:
        """Last fully processed point."""
        return self._anchor

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def is_watching(self) -> bool:
        return self._watch_task is not None

    def get(self, key: str) -> Optional[T]:
        """Get the live instance for a key, or None."""
        entry = self._cache.get(key)
        return entry.instance if entry else None

    def get_entry(self, key: str) -> Optional[ScriptInstance[T, K]]:
        """Get the cache entry (record and instance) for a key, or None."""
        return self._cache.get(key)

    def keys(self) -> List[str]:
        """Keys of all cached scripts."""
        return list(self._cache)

    async def check_for_updates(self) -> Optional[SyncResult]:
        """Run one sync cycle now, outside the timer cadence.

        Returns:
            The cycle's SyncResult, or None if no cycle ran (another cycle
            was in progress, the source query failed, or nothing changed).
        """
        self.logger.info("Manually checking for script updates...")
        return await self._load_latest_scripts()

    def start_watching(self) -> None:
        """Start timer-driven cycles on the running event loop.

        Raises:
            RuntimeError: If called outside a running event loop.
        """
        loop = asyncio.get_running_loop()
        if self._watch_task is not None:
            self._watch_task.cancel()
        self._watch_task = loop.create_task(self._watch_loop())
        self.logger.info(
            f"Started watching for script changes every {self.poll_interval_ms}ms"
        )

    def stop_watching(self) -> None:
        """Stop future timer-driven cycles.

        A cycle already in flight runs to completion.
        """
        if self._watch_task is not None:
            self._watch_task.cancel()
            self._watch_task = None
            self.logger.info("Stopped watching for script changes")

    async def aclose(self) -> None:
        """Stop watching and wait for in-flight cycles to finish."""
        watch_task = self._watch_task
        self.stop_watching()
        pending = list(self._cycle_tasks)
        if watch_task is not None:
            pending.append(watch_task)
        if pending:
            await asyncio.wait(pending)

    async def __aenter__(self) -> "ScriptLoader[T, K]":
        self.start_watching()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # =========================================================================
    # Sync cycle
    # =========================================================================

    async def _watch_loop(self) -> None:
        interval = self.poll_interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            # Each tick runs in its own task so stop_watching never
            # cancels a cycle halfway through
            task = asyncio.get_running_loop().create_task(self._watch_tick())
            self._cycle_tasks.add(task)
            task.add_done_callback(self._cycle_tasks.discard)

    async def _watch_tick(self) -> None:
        try:
            await self._load_latest_scripts()
        except Exception as e:
            self.logger.error(f"Error in watch interval: {e}", exc_info=True)

    async def _load_latest_scripts(self) -> Optional[SyncResult]:
        if self._is_loading:
            self.logger.debug("Script loading already in progress, skipping...")
            return None

        self._is_loading = True
        try:
            return await self._run_cycle()
        finally:
            self._is_loading = False

    async def _run_cycle(self) -> Optional[SyncResult]:
        correlation_id = str(uuid.uuid4())

        try:
            records = list(await self.get_updated_scripts(self._anchor))
        except Exception as e:
            self.logger.error(
                f"Error fetching scripts updated after {self._anchor.isoformat()}: {e}",
                exc_info=True,
            )
            self._emit(
                SYNC_FAILED,
                correlation_id,
                "failed",
                payload={"anchor": self._anchor.isoformat()},
                error_message=str(e),
            )
            return None

        if not records:
            return None

        result = SyncResult(
            correlation_id=correlation_id,
            anchor=self._anchor,
            fetched=len(records),
        )
        for record in records:
            try:
                self._process_script_update(record, result)
            except Exception as e:
                # One bad record never aborts the batch
                self.logger.error(f"Error processing script update: {e}", exc_info=True)
                result.failed.append(self._safe_key(record))

        try:
            next_anchor = _as_utc(self.get_next_anchor(records))
        except Exception as e:
            self.logger.error(f"Error computing next anchor: {e}", exc_info=True)
            return result

        if next_anchor < self._anchor:
            self.logger.warning(
                f"Next anchor {next_anchor.isoformat()} is before current anchor "
                f"{self._anchor.isoformat()}, keeping current"
            )
            next_anchor = self._anchor

        self._anchor = next_anchor
        self.anchor_store.save(next_anchor)
        result.anchor = next_anchor

        self._emit(
            SYNC_COMPLETED,
            correlation_id,
            "succeeded" if not result.failed else "partial",
            payload={
                "anchor": next_anchor.isoformat(),
                "fetched": result.fetched,
                "activated": result.activated,
                "removed": result.removed,
                "skipped": result.skipped,
                "failed": result.failed,
            },
        )
        return result

    def _process_script_update(self, record: K, result: SyncResult) -> None:
        if self.is_active_script(record):
            self._load_or_update_script(record, result)
        elif self.is_obsoleted_script(record):
            self._remove_script(record, result)
        else:
            key = self.get_script_key(record)
            self.logger.debug(f"Script {key} is neither active nor obsolete, skipping")
            result.skipped.append(key)

    def _load_or_update_script(self, record: K, result: SyncResult) -> None:
        file_name = self.get_file_name(record)
        key = self.get_script_key(record)
        try:
            instance = self.materializer.activate(file_name, self.get_script_text(record))
        except LoadError as e:
            # Keep whatever instance was cached before
            self.logger.error(f"Failed to load/update script {key}: {e}")
            result.failed.append(key)
            self._emit(
                SCRIPT_FAILED,
                result.correlation_id,
                "failed",
                payload={"key": key, "file_name": file_name},
                error_message=str(e),
            )
            return

        self._cache[key] = ScriptInstance(metadata=record, instance=instance)
        result.activated.append(key)
        self._emit(
            SCRIPT_ACTIVATED,
            result.correlation_id,
            "succeeded",
            payload={"key": key, "file_name": file_name},
        )

    def _remove_script(self, record: K, result: SyncResult) -> None:
        file_name = self.get_file_name(record)
        key = self.get_script_key(record)
        self.materializer.retire(file_name)
        if self._cache.pop(key, None) is not None:
            self.logger.info(f"Script {key} removed from cache")
        result.removed.append(key)
        self._emit(
            SCRIPT_RETIRED,
            result.correlation_id,
            "succeeded",
            payload={"key": key, "file_name": file_name},
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _ensure_plugins_directory(self, clean: bool) -> None:
        if clean and self.plugins_dir.exists():
            self.logger.info(f"Cleaning plugins directory {self.plugins_dir}")
            shutil.rmtree(self.plugins_dir, ignore_errors=True)
        if not self.plugins_dir.exists():
            self.plugins_dir.mkdir(parents=True, exist_ok=True)
            self.logger.info(f"Created plugins directory: {self.plugins_dir}")

    def _safe_key(self, record: K) -> str:
        try:
            return self.get_script_key(record)
        except Exception:
            return repr(record)

    def _emit(
        self,
        event_type: str,
        correlation_id: str,
        status: str,
        payload: Optional[Dict[str, Any]] = None,
        error_message: Optional[str] = None,
    ) -> None:
        if self.event_client is None:
            return
        try:
            self.event_client.log_event(
                event_type=event_type,
                correlation_id=correlation_id,
                status=status,
                payload=payload,
                error_message=error_message,
            )
        except OSError as e:
            self.logger.warning(f"Failed to write event {event_type}: {e}")
