"""Input sanitizer — key, path and value validation for the value tree.

Every read and write path of a Store goes through here. The sanitizer holds
no state beyond its depth ceiling; rejections are logged and reported as a
boolean or a degraded value, never raised.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

logger = logging.getLogger("treeflux.sanitize")

RESERVED_KEYS = frozenset({"__proto__", "constructor", "prototype"})

WILDCARD = "*"


class Sanitizer:
    """Pure validation functions parameterized by a depth ceiling."""

    __slots__ = ("max_depth",)

    def __init__(self, max_depth: int = 50) -> None:
        self.max_depth = max_depth

    def validate_key(self, key: object) -> bool:
        """A key is usable if it is a non-blank string outside the reserved set."""
        if not isinstance(key, str) or not key.strip():
            return False
        return key not in RESERVED_KEYS

    def validate_path(self, path: object) -> bool:
        if not isinstance(path, str):
            logger.error("State path must be a string, got %s", type(path).__name__)
            return False
        if not path.strip():
            logger.error("Empty state path provided")
            return False
        depth = path.count(".") + 1
        if depth > self.max_depth:
            logger.warning(
                "State path too deep (%d > %d): %s", depth, self.max_depth, path
            )
            return False
        return True

    def split_path(self, path: object) -> list[str] | None:
        """Validate a path and all of its segments. Returns None when unusable."""
        if not self.validate_path(path):
            return None
        keys = path.split(".")
        for key in keys:
            if not self.validate_key(key):
                logger.warning("Blocked dangerous or blank key %r in path %r", key, path)
                return None
        return keys

    def sanitize_value(self, value: Any, depth: int = 0) -> Any:
        """Return a sanitized deep copy of value.

        Mappings lose reserved and blank keys. Containers found at or beyond
        the depth ceiling are replaced by an empty container of the same kind.
        """
        if isinstance(value, Mapping):
            if depth >= self.max_depth:
                logger.warning("Value nested deeper than %d; truncated", self.max_depth)
                return {}
            sanitized = {}
            for key, item in value.items():
                if not self.validate_key(key):
                    logger.warning("Blocked potentially dangerous key: %r", key)
                    continue
                sanitized[key] = self.sanitize_value(item, depth + 1)
            return sanitized
        if isinstance(value, (list, tuple)):
            container = list if isinstance(value, list) else tuple
            if depth >= self.max_depth:
                logger.warning("Value nested deeper than %d; truncated", self.max_depth)
                return container()
            return container(self.sanitize_value(item, depth + 1) for item in value)
        return value


def differs(old: Any, new: Any) -> bool:
    """Change test for stored values. 1, 1.0 and True differ: their types do."""
    if old is new:
        return False
    return type(old) is not type(new) or old != new
