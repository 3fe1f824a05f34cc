"""A process-wide registry of package descriptors keyed by full path."""

from __future__ import annotations

import logging
from typing import Any, Optional

_log = logging.getLogger(__name__)

_registry: dict[str, Any] = {}


class DuplicatePackageError(ValueError):
    """Raised when a package path is registered twice."""


def register_package(descr: Any) -> None:
    """Register a package descriptor under its ``full_path``."""
    path = descr.full_path
    _log.debug("runtime registered: %s", path)
    if path in _registry:
        raise DuplicatePackageError(f"cannot register {path!r} twice")
    _registry[path] = descr


def package_descr(path: str) -> Optional[Any]:
    """Return the descriptor registered for ``path``, or None."""
    _log.debug("runtime fetch: %s", path)
    return _registry.get(path)