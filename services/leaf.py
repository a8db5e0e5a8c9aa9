"""Leaf (gratitude note) model and its JSON wire format."""

from __future__ import annotations

import math
import random
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Union

LEAF_TYPES = ('heart', 'maple', 'willow', 'clover')
GRADIENTS = ('gradient-1', 'gradient-2', 'gradient-3', 'gradient-4')

# Inclusive canvas bounds for randomly placed leaves.
X_RANGE = (75, 524)
Y_RANGE = (100, 649)

# Values the backend applies when a client omits placement or styling.
DEFAULT_X = 200
DEFAULT_Y = 150
DEFAULT_TYPE = 'heart'
DEFAULT_GRADIENT = 'gradient-1'

LOCAL_ID_PREFIX = 'local-'

# Most recent leaves the backend returns and the client keeps.
MAX_LEAVES = 1000

LeafId = Union[int, str]


class MalformedLeaf(ValueError):
    """Raised when a payload cannot be turned into a Leaf."""


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_local_id() -> str:
    return f'{LOCAL_ID_PREFIX}{uuid.uuid4().hex}'


def is_local_id(leaf_id: LeafId) -> bool:
    return isinstance(leaf_id, str) and leaf_id.startswith(LOCAL_ID_PREFIX)


def random_placement(rng: Optional[random.Random] = None) -> tuple[int, int, str, str]:
    """Pick a random position, leaf shape and gradient for a new leaf."""
    rng = rng or random
    return (
        rng.randint(*X_RANGE),
        rng.randint(*Y_RANGE),
        rng.choice(LEAF_TYPES),
        rng.choice(GRADIENTS),
    )


def _coordinate(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedLeaf(f'{key} must be a number, got {value!r}')
    if isinstance(value, float) and not math.isfinite(value):
        raise MalformedLeaf(f'{key} must be finite, got {value!r}')
    return int(value)


@dataclass
class Leaf:
    id: Optional[LeafId]
    student_name: str
    teacher_name: str
    message: str
    x: int
    y: int
    leaf_type: str
    gradient: str
    created_at: Optional[str] = None

    def fields(self) -> dict[str, Any]:
        """Payload accepted by the add-leaf endpoint (no id, no timestamp)."""
        return {
            'name': self.student_name,
            'teacher': self.teacher_name,
            'message': self.message,
            'x': self.x,
            'y': self.y,
            'type': self.leaf_type,
            'gradient': self.gradient,
        }

    def to_dict(self) -> dict[str, Any]:
        data = {'id': self.id}
        data.update(self.fields())
        data['created_at'] = self.created_at
        return data

    @classmethod
    def from_dict(cls, data: Any) -> 'Leaf':
        if not isinstance(data, dict):
            raise MalformedLeaf(f'expected an object, got {type(data).__name__}')
        for key in ('id', 'name', 'teacher', 'message'):
            if data.get(key) in (None, ''):
                raise MalformedLeaf(f'missing {key}')
        leaf_id = data['id']
        if isinstance(leaf_id, bool) or not isinstance(leaf_id, (int, str)):
            raise MalformedLeaf(f'id must be an integer or string, got {leaf_id!r}')
        created_at = data.get('created_at')
        return cls(
            id=leaf_id,
            student_name=str(data['name']),
            teacher_name=str(data['teacher']),
            message=str(data['message']),
            x=_coordinate(data.get('x', DEFAULT_X), 'x'),
            y=_coordinate(data.get('y', DEFAULT_Y), 'y'),
            leaf_type=str(data.get('type') or DEFAULT_TYPE),
            gradient=str(data.get('gradient') or DEFAULT_GRADIENT),
            created_at=str(created_at) if created_at is not None else None,
        )
