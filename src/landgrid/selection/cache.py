"""Local convenience cache of the last uncommitted selection.

Stored as a JSON array of cell strings. The cache is never authoritative:
callers validate its contents against live ownership before use.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable

from landgrid.core.config import SelectionConfig

logger = logging.getLogger(__name__)


class SelectionCache:
    """Reads and writes the cached selection file."""

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path else Path(SelectionConfig().cache_path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[str]:
        """Return the cached cells, or an empty list if missing or unreadable."""
        if not self._path.exists():
            return []
        try:
            with open(self._path) as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable selection cache %s: %s", self._path, exc)
            return []
        if not isinstance(data, list):
            logger.warning("Ignoring selection cache %s: not a JSON array", self._path)
            return []
        return [item for item in data if isinstance(item, str)]

    def save(self, cells: Iterable[str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w") as fh:
            json.dump(sorted(cells), fh)

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
