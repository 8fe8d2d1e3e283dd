"""Script materialization.

Writes script source to the plugins directory and turns it into a live
instance, dropping any previously imported version first.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

import hashlib
import importlib
import importlib.util
import inspect
import logging
import sys
from pathlib import Path
from types import ModuleType
from typing import Any

logger = logging.getLogger(__name__)

# Name of the module attribute that marks the entry point explicitly
ENTRY_POINT_ATTR = "default"


class LoadError(Exception):
    """Raised when a script cannot be turned into a live instance."""

    pass


class Materializer:
    """Owns the artifact files under a plugins directory.

    Each script is addressed by its file name (without suffix). Modules
    are registered in sys.modules under a name namespaced by the plugins
    directory, so separate directories never share a slot.
    """

    def __init__(self, plugins_dir: Path, suffix: str = ".py"):
        self.plugins_dir = plugins_dir
        self.suffix = suffix
        digest = hashlib.sha256(str(plugins_dir).encode()).hexdigest()[:12]
        self._namespace = f"_scriptsync_plugins_{digest}"

    def artifact_path(self, file_name: str) -> Path:
        """Get the artifact path for a script file name."""
        return self.plugins_dir / f"{file_name}{self.suffix}"

    def module_name(self, file_name: str) -> str:
        """Get the sys.modules key used for a script file name."""
        return f"{self._namespace}.{file_name}"

    def activate(self, file_name: str, text: str) -> Any:
        """Write, reload and instantiate a script.

        Args:
            file_name: Artifact file name without suffix.
            text: Script source.

        Returns:
            A new instance of the script's entry point.

        Raises:
            LoadError: If the file cannot be written, the module fails to
                execute, no callable entry point is found, or construction
                fails.
        """
        path = self.artifact_path(file_name)
        is_new = not path.exists()

        try:
            path.write_text(text, encoding="utf-8")
        except OSError as e:
            raise LoadError(f"Failed to write script file {path}: {e}") from e
        logger.info("Script file %s: %s", "created" if is_new else "updated", path)

        self.invalidate(file_name)
        module = self._load_module(file_name, path)
        entry_point = _find_entry_point(module, path)

        try:
            return entry_point()
        except Exception as e:
            raise LoadError(f"Failed to instantiate script {path}: {e}") from e

    def retire(self, file_name: str) -> bool:
        """Delete a script's artifact and drop its loaded module.

        A missing artifact is not an error.

        Returns:
            False if the artifact exists but could not be deleted.
        """
        path = self.artifact_path(file_name)
        removed = True
        if path.exists():
            try:
                path.unlink()
                logger.info("Script file deleted: %s", path)
            except OSError as e:
                logger.error("Failed to delete script file %s: %s", path, e)
                removed = False
        else:
            logger.info("Script file not found: %s", path)

        self.invalidate(file_name)
        return removed

    def invalidate(self, file_name: str) -> None:
        """Forget any loaded module and cached bytecode for a script."""
        name = self.module_name(file_name)
        if sys.modules.pop(name, None) is not None:
            logger.debug("Module cache cleared for: %s", name)

        cached = Path(importlib.util.cache_from_source(str(self.artifact_path(file_name))))
        try:
            cached.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to delete cached bytecode %s: %s", cached, e)

        importlib.invalidate_caches()

    def _load_module(self, file_name: str, path: Path) -> ModuleType:
        """Execute the artifact as a fresh module."""
        name = self.module_name(file_name)
        spec = importlib.util.spec_from_file_location(name, path)
        if spec is None or spec.loader is None:
            raise LoadError(f"Cannot create import spec for {path}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(name, None)
            raise LoadError(f"Failed to execute script module {path}: {e}") from e
        return module


def _find_entry_point(module: ModuleType, path: Path) -> Any:
    """Pick the constructor a script module exports.

    Order:
    1. A module attribute named ``default``
    2. The only class defined in the module itself

    Raises:
        LoadError: If no entry point is found or it is not callable.
    """
    if hasattr(module, ENTRY_POINT_ATTR):
        entry_point = getattr(module, ENTRY_POINT_ATTR)
    else:
        classes = [
            obj
            for obj in vars(module).values()
            if inspect.isclass(obj) and obj.__module__ == module.__name__
        ]
        if len(classes) != 1:
            found = ", ".join(sorted(c.__name__ for c in classes)) or "none"
            raise LoadError(
                f"Script module does not export a constructor: {path} "
                f"(define '{ENTRY_POINT_ATTR}' or exactly one class; found: {found})"
            )
        entry_point = classes[0]

    if not callable(entry_point):
        raise LoadError(f"Script module does not export a constructor: {path}")
    return entry_point
