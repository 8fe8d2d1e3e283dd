"""Anchor persistence.

Tracks the high-water mark of processed script updates so a restart
resumes where the previous process left off.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

ANCHOR_FILENAME = ".last_update_timestamp"

# Domain minimum: nothing has been processed yet
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_ONE_MS = timedelta(milliseconds=1)

# Persisted format: plain ASCII decimal digits
_ANCHOR_PATTERN = re.compile(r"^[0-9]+$")


def to_millis(anchor: datetime) -> int:
    """Convert an anchor to integer milliseconds since the epoch.

    Naive datetimes are taken to be UTC.
    """
    if anchor.tzinfo is None:
        anchor = anchor.replace(tzinfo=timezone.utc)
    return (anchor - EPOCH) // _ONE_MS


def from_millis(millis: int) -> datetime:
    """Convert integer milliseconds since the epoch to a UTC datetime."""
    return EPOCH + timedelta(milliseconds=millis)


# Largest anchor a datetime can hold
MAX_MILLIS = to_millis(datetime.max.replace(tzinfo=timezone.utc))


class AnchorStore:
    """Reads and writes the anchor file under the script directory.

    The file holds a single line: the anchor as a decimal integer of
    milliseconds since the epoch.
    """

    def __init__(self, path: Path):
        self.path = path

    def load(self, reset: bool = False) -> datetime:
        """Load the persisted anchor.

        Args:
            reset: Ignore any persisted value and start from the epoch.

        Returns:
            The persisted anchor, or EPOCH if it is missing, unreadable,
            non-numeric, not positive or out of range.
        """
        if reset:
            logger.debug("Anchor reset requested, using epoch")
            return EPOCH

        if not self.path.exists():
            logger.debug("No anchor file at %s, using epoch", self.path)
            return EPOCH

        try:
            raw = self.path.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as e:
            logger.error("Failed to read anchor file %s: %s", self.path, e)
            return EPOCH

        if not _ANCHOR_PATTERN.match(raw):
            logger.warning("Invalid anchor format in %s: %r", self.path, raw)
            return EPOCH

        try:
            millis = int(raw)
        except ValueError:
            # More digits than int() will parse
            logger.warning("Anchor out of range in %s", self.path)
            return EPOCH

        if millis <= 0:
            logger.warning("Non-positive anchor in %s: %d", self.path, millis)
            return EPOCH

        if millis > MAX_MILLIS:
            logger.warning("Anchor out of range in %s: %d", self.path, millis)
            return EPOCH

        anchor = from_millis(millis)
        logger.debug("Loaded anchor: %s", anchor.isoformat())
        return anchor

    def save(self, anchor: datetime) -> bool:
        """Persist the anchor, replacing the previous value.

        A failed write is logged and reported through the return value;
        the caller keeps its in-memory anchor either way.

        Returns:
            True if the anchor was written.
        """
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(str(to_millis(anchor)), encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as e:
            logger.error("Failed to save anchor file %s: %s", self.path, e)
            return False

        logger.debug("Saved anchor: %s", anchor.isoformat())
        return True
