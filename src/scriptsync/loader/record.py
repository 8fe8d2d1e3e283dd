"""Script record parsing and validation.

Handles script name validation and feed entry parsing.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict

from scriptsync.loader.anchor import MAX_MILLIS


class ScriptValidationError(Exception):
    """Raised when script validation fails."""

    pass


# Script name pattern: lowercase alphanumeric with hyphens and underscores
NAME_PATTERN = re.compile(r"^[a-z0-9_-]+$")


class ScriptStatus(Enum):
    """Lifecycle status of a script in the source feed.

    active: Should be loaded (or reloaded)
    obsolete: Superseded, should be removed
    deleted: Removed upstream, should be removed
    draft: Not yet published, neither loaded nor removed
    """

    ACTIVE = "active"
    OBSOLETE = "obsolete"
    DELETED = "deleted"
    DRAFT = "draft"


@dataclass
class ScriptRecord:
    """A single script entry from the source feed.

    Fields:
    - key: Unique identity of the script
    - name: File name stem for the artifact
    - content: Script source text
    - status: Lifecycle status
    - updated_at: Last modification, milliseconds since the epoch
    """

    key: str
    name: str
    content: str
    status: ScriptStatus
    updated_at: int

    def validate(self) -> None:
        """Validate record fields.

        Raises:
            ScriptValidationError: If validation fails.
        """
        if not self.key or not self.key.strip():
            raise ScriptValidationError("key is required and cannot be empty")

        validate_name(self.name)

        if self.updated_at <= 0:
            raise ScriptValidationError(
                f"updated_at must be positive, got: {self.updated_at}"
            )

        if self.updated_at > MAX_MILLIS:
            raise ScriptValidationError(
                f"updated_at is out of range (max {MAX_MILLIS}), got: {self.updated_at}"
            )


def validate_name(name: str) -> None:
    """Validate script name.

    Script names must be:
    - Lowercase alphanumeric with hyphens or underscores: [a-z0-9_-]+
    - No path separators (/, \\)
    - No dots (.)
    - No .. or path traversal attempts

    Args:
        name: Script name to validate.

    Raises:
        ScriptValidationError: If name is invalid.
    """
    if not name:
        raise ScriptValidationError("script name cannot be empty")

    # Check for path traversal attempts
    if ".." in name:
        raise ScriptValidationError(f"path traversal not allowed in script name: {name}")

    # Check for path separators
    if "/" in name or "\\" in name:
        raise ScriptValidationError(f"path separators not allowed in script name: {name}")

    # Dots would collide with the module namespace
    if "." in name:
        raise ScriptValidationError(f"dots not allowed in script name: {name}")

    if not NAME_PATTERN.match(name):
        raise ScriptValidationError(
            f"script name must be lowercase alphanumeric with hyphens or underscores "
            f"([a-z0-9_-]+), got: {name}"
        )


def record_from_dict(data: Dict[str, Any]) -> ScriptRecord:
    """Build a validated ScriptRecord from a feed entry.

    Args:
        data: Mapping with key, name, content, status and updated_at.

    Returns:
        The parsed record.

    Raises:
        ScriptValidationError: If the entry is malformed.
    """
    if not isinstance(data, dict):
        raise ScriptValidationError(f"script entry must be a mapping, got: {data!r}")

    try:
        status_raw = data.get("status", ScriptStatus.ACTIVE.value)
        status = ScriptStatus(str(status_raw).lower())
    except ValueError:
        valid = ", ".join(s.value for s in ScriptStatus)
        raise ScriptValidationError(
            f"status must be one of {valid}, got: {data.get('status')}"
        )

    updated_at = data.get("updated_at")
    if isinstance(updated_at, bool) or not isinstance(updated_at, int):
        raise ScriptValidationError(
            f"updated_at must be an integer (ms since epoch), got: {updated_at!r}"
        )

    content = data.get("content")
    if content is None:
        content = ""
    elif not isinstance(content, str):
        raise ScriptValidationError(f"content must be a string, got: {type(content).__name__}")

    key = data.get("key")
    record = ScriptRecord(
        key=str(key) if key is not None else "",
        name=str(data.get("name") or key or ""),
        content=content,
        status=status,
        updated_at=updated_at,
    )
    record.validate()
    return record
