"""
Render layer for the gratitude tree.

Renderers only read the leaf collection handed to them; the sync core owns it.
"""

from __future__ import annotations

import random
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, TextIO

from services.leaf import Leaf
from services.sync_core import ConnectivityMode

ANIMATION_STEP_S = 0.1


@dataclass
class LeafView:
    leaf_id: object
    left: int
    top: int
    css_class: str
    animation_delay_s: float
    rotation_deg: float
    label: str
    title: str


def leaf_views(leaves: Sequence[Leaf], rng: Optional[random.Random] = None) -> List[LeafView]:
    """One view per leaf, staggered by list position with a cosmetic rotation."""
    rng = rng or random
    return [
        LeafView(
            leaf_id=leaf.id,
            left=leaf.x,
            top=leaf.y,
            css_class=f'leaf {leaf.leaf_type} {leaf.gradient}',
            animation_delay_s=round(index * ANIMATION_STEP_S, 3),
            rotation_deg=rng.random() * 360,
            label=f'{leaf.student_name} → {leaf.teacher_name}',
            title=f'Click to read the note from {leaf.student_name}',
        )
        for index, leaf in enumerate(leaves)
    ]


def status_label(mode: ConnectivityMode) -> str:
    if mode is ConnectivityMode.REMOTE:
        return 'Connected to database'
    return 'Using local storage (offline)'


def _format_time(created_at: Optional[str]) -> str:
    if not created_at:
        return 'unknown time'
    try:
        stamp = datetime.fromisoformat(created_at.replace('Z', '+00:00'))
    except ValueError:
        return created_at
    return stamp.strftime('%d %B %Y %H:%M')


def format_detail(leaf: Leaf) -> str:
    return (
        f'Gratitude note:\n"{leaf.message}"\n\n'
        f'From: {leaf.student_name}\n'
        f'To: {leaf.teacher_name}\n'
        f'Date: {_format_time(leaf.created_at)}'
    )


def submission_message(total_leaves: int) -> str:
    if total_leaves == 1:
        return 'You added the first leaf to the tree!\n\nThank you for starting this gratitude tree!'
    return f'Your gratitude leaf has been added to the tree!\n\nThe tree now has {total_leaves} leaves.'


class LeafRenderer:
    """Interface for anything that displays the tree."""

    def render(self, leaves: Sequence[Leaf]) -> None:
        raise NotImplementedError

    def show_detail(self, leaf: Leaf) -> None:
        raise NotImplementedError

    def show_status(self, mode: ConnectivityMode) -> None:
        pass

    def show_message(self, text: str, is_error: bool = False) -> None:
        pass


class TextRenderer(LeafRenderer):
    """Plain-text renderer used by the command-line client."""

    def __init__(self, stream: Optional[TextIO] = None, rng: Optional[random.Random] = None):
        self.stream = stream or sys.stdout
        self.rng = rng

    def _write(self, text: str) -> None:
        self.stream.write(text + '\n')

    def render(self, leaves: Sequence[Leaf]) -> None:
        if not leaves:
            self._write('The tree has no leaves yet.')
            return
        for view in leaf_views(leaves, self.rng):
            self._write(f'[{view.leaf_id}] {view.label} ({view.css_class}, at {view.left},{view.top})')

    def show_detail(self, leaf: Leaf) -> None:
        self._write(format_detail(leaf))

    def show_status(self, mode: ConnectivityMode) -> None:
        self._write(status_label(mode))

    def show_message(self, text: str, is_error: bool = False) -> None:
        self._write(('Error: ' if is_error else '') + text)
