"""Hot-swap script loader.

Keeps live script instances in step with an external source of script
definitions, persisting an anchor so restarts resume where they left off.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

from scriptsync.loader.anchor import (
    ANCHOR_FILENAME,
    EPOCH,
    MAX_MILLIS,
    AnchorStore,
    from_millis,
    to_millis,
)
from scriptsync.loader.engine import (
    PLUGINS_DIRNAME,
    ScriptInstance,
    ScriptLoader,
    SourceQueryError,
    SyncResult,
)
from scriptsync.loader.materializer import (
    LoadError,
    Materializer,
)
from scriptsync.loader.record import (
    ScriptRecord,
    ScriptStatus,
    ScriptValidationError,
    record_from_dict,
    validate_name,
)

__all__ = [
    "ANCHOR_FILENAME",
    "EPOCH",
    "MAX_MILLIS",
    "AnchorStore",
    "from_millis",
    "to_millis",
    "PLUGINS_DIRNAME",
    "ScriptInstance",
    "ScriptLoader",
    "SourceQueryError",
    "SyncResult",
    "LoadError",
    "Materializer",
    "ScriptRecord",
    "ScriptStatus",
    "ScriptValidationError",
    "record_from_dict",
    "validate_name",
]
