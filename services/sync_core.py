"""
Client-side state for the gratitude tree.

GratitudeTree owns the in-memory leaf collection (newest first) and decides,
per write, whether a leaf goes to the backend or to local storage:

  - initialize() probes the backend once. If it answers, the tree runs in
    REMOTE mode with the backend's leaves; otherwise it runs in LOCAL_FALLBACK
    mode with the last local snapshot.
  - add_leaf() in REMOTE mode tries the backend first and mirrors every
    successful write into local storage. A failed remote write is stored
    locally instead, but the mode stays REMOTE so the next write tries the
    backend again.
  - add_leaf() in LOCAL_FALLBACK mode never touches the backend.

Offline leaves are never pushed to the backend later.
"""

from __future__ import annotations

import enum
import logging
import random
import threading
from dataclasses import dataclass
from typing import List, Optional

from services.exceptions import RemoteUnavailable, ValidationError
from services.leaf import MAX_LEAVES, Leaf, LeafId, new_local_id, random_placement, utc_now_iso

logger = logging.getLogger(__name__)


class ConnectivityMode(enum.Enum):
    REMOTE = 'remote'
    LOCAL_FALLBACK = 'local_fallback'


@dataclass(frozen=True)
class TreeStats:
    total_leaves: int
    total_students: int
    total_teachers: int


class GratitudeTree:
    def __init__(self, remote, local, renderers=None, rng: Optional[random.Random] = None):
        self.remote = remote
        self.local = local
        self.renderers = list(renderers or [])
        self.rng = rng or random.Random()
        self.leaves: List[Leaf] = []
        self.mode = ConnectivityMode.LOCAL_FALLBACK
        self.unique_students = set()
        self.unique_teachers = set()
        self._lock = threading.Lock()

    @property
    def is_online(self) -> bool:
        return self.mode is ConnectivityMode.REMOTE

    def add_renderer(self, renderer) -> None:
        self.renderers.append(renderer)

    def initialize(self) -> ConnectivityMode:
        try:
            leaves = self.remote.list_recent()
        except RemoteUnavailable as exc:
            logger.warning('Backend unreachable, using local storage: %s', exc)
            leaves = self.local.load()
            mode = ConnectivityMode.LOCAL_FALLBACK
        else:
            logger.info('Connected to backend, loaded %s leaves', len(leaves))
            mode = ConnectivityMode.REMOTE

        with self._lock:
            self.mode = mode
            self.leaves = list(leaves[:MAX_LEAVES])
            self._recompute_unique_sets()

        for renderer in self.renderers:
            renderer.show_status(self.mode)
        self._render()
        return self.mode

    def add_leaf(self, student_name: str, teacher_name: str, message: str) -> Leaf:
        student_name = (student_name or '').strip()
        teacher_name = (teacher_name or '').strip()
        message = (message or '').strip()
        missing = [
            name for name, value in (
                ('student_name', student_name),
                ('teacher_name', teacher_name),
                ('message', message),
            ) if not value
        ]
        if missing:
            raise ValidationError('Please fill in every field!', missing)

        x, y, leaf_type, gradient = random_placement(self.rng)
        candidate = Leaf(
            id=None,
            student_name=student_name,
            teacher_name=teacher_name,
            message=message,
            x=x,
            y=y,
            leaf_type=leaf_type,
            gradient=gradient,
            created_at=utc_now_iso(),
        )

        if self.mode is ConnectivityMode.REMOTE:
            try:
                stored = self.remote.insert(candidate.fields())
            except RemoteUnavailable as exc:
                logger.warning('Remote save failed, storing leaf locally: %s', exc)
                stored = self._add_locally(candidate)
            else:
                self._prepend_and_persist(stored)
        else:
            stored = self._add_locally(candidate)

        self._render()
        return stored

    def _add_locally(self, candidate: Leaf) -> Leaf:
        candidate.id = new_local_id()
        self._prepend_and_persist(candidate)
        logger.info('Leaf %s stored in local storage', candidate.id)
        return candidate

    def _prepend_and_persist(self, leaf: Leaf) -> None:
        # Mutation and snapshot write happen together so concurrent writers
        # cannot overwrite each other's leaves.
        with self._lock:
            self.leaves.insert(0, leaf)
            self.unique_students.add(leaf.student_name)
            self.unique_teachers.add(leaf.teacher_name)
            self.local.save(self.leaves)

    def _recompute_unique_sets(self) -> None:
        self.unique_students = {leaf.student_name for leaf in self.leaves}
        self.unique_teachers = {leaf.teacher_name for leaf in self.leaves}

    def _render(self) -> None:
        snapshot = tuple(self.leaves)
        for renderer in self.renderers:
            renderer.render(snapshot)

    def stats(self) -> TreeStats:
        return TreeStats(
            total_leaves=len(self.leaves),
            total_students=len(self.unique_students),
            total_teachers=len(self.unique_teachers),
        )

    def server_stats(self):
        """Backend-wide counts, including leaves added in the last 24 hours."""
        return self.remote.aggregate_counts()

    def get_all_leaves(self) -> List[Leaf]:
        return list(self.leaves)

    def get_leaf(self, leaf_id: LeafId) -> Optional[Leaf]:
        for leaf in self.leaves:
            if leaf.id == leaf_id:
                return leaf
        return None

    def select_leaf(self, leaf_id: LeafId) -> Optional[Leaf]:
        leaf = self.get_leaf(leaf_id)
        if leaf is not None:
            for renderer in self.renderers:
                renderer.show_detail(leaf)
        return leaf
