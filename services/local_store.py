"""
Local fallback storage for leaves.

Keeps a JSON key-value file (the desktop counterpart of browser localStorage)
with the full leaf collection stored under a single key.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import List, Sequence

from services.exceptions import LocalPersistenceError
from services.leaf import Leaf, MalformedLeaf

logger = logging.getLogger(__name__)

STORAGE_KEY = 'gratitudeLeaves'


class LocalFallbackStore:
    def __init__(self, path, key: str = STORAGE_KEY):
        self.path = Path(path)
        self.key = key

    def _read_items(self) -> dict:
        try:
            with open(self.path, encoding='utf-8') as fh:
                items = json.load(fh)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.warning('Ignoring unreadable local storage %s: %s', self.path, exc)
            return {}
        if not isinstance(items, dict):
            logger.warning('Ignoring local storage %s: expected an object', self.path)
            return {}
        return items

    def load(self) -> List[Leaf]:
        snapshot = self._read_items().get(self.key)
        if snapshot is None:
            logger.info('No local snapshot found, starting with an empty tree')
            return []
        if not isinstance(snapshot, list):
            logger.warning('Discarding local snapshot: expected a list')
            return []
        try:
            leaves = [Leaf.from_dict(item) for item in snapshot]
        except MalformedLeaf as exc:
            logger.warning('Discarding local snapshot: %s', exc)
            return []
        logger.info('Loaded %s leaves from local storage', len(leaves))
        return leaves

    def _write_snapshot(self, leaves: Sequence[Leaf]) -> None:
        items = self._read_items()
        items[self.key] = [leaf.to_dict() for leaf in leaves]
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix='.local_storage', suffix='.tmp')
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                json.dump(items, fh, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as exc:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise LocalPersistenceError(f'Could not write {self.path}: {exc}') from exc

    def save(self, leaves: Sequence[Leaf]) -> bool:
        """Persist the whole collection. Failures are logged, never raised."""
        try:
            self._write_snapshot(leaves)
        except LocalPersistenceError as exc:
            logger.error('Local save failed: %s', exc)
            return False
        return True
