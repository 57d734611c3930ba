# MenuModel/menu.py
from __future__ import annotations

import copy
from typing import Iterator, List, Mapping, Optional, Tuple, Union

import numpy as np

from triggers import Channel
from .constraints import Constraint
from .registry import ChannelRegistry, default_registry


class Menu:
    """
    Ordered channels, each paired with exactly one Constraint.

    The menu owns copies of everything added to it. A fit writes converged
    thresholds back into these channels; mutating the menu from elsewhere
    while a fit is running is the caller's problem.
    """

    def __init__(self, registry: Optional[ChannelRegistry] = None):
        self._registry = registry
        self._channels: List[Channel] = []
        self._constraints: List[Constraint] = []

    @property
    def registry(self) -> ChannelRegistry:
        if self._registry is None:
            self._registry = default_registry()
        return self._registry

    def add_channel(self, channel: Union[Channel, str], version: Optional[int] = None) -> Channel:
        """Append a copy of ``channel`` (or a new one looked up by name) with no constraint."""
        if isinstance(channel, str):
            new = self.registry.create(channel, version)
        else:
            new = channel.copy()
        self._channels.append(new)
        self._constraints.append(Constraint.fixed_thresholds())
        return new

    def number_of_channels(self) -> int:
        return len(self._channels)

    def __len__(self):
        return len(self._channels)

    def channel(self, position: int) -> Channel:
        self._check(position)
        return self._channels[position]

    def constraint(self, position: int) -> Constraint:
        self._check(position)
        return self._constraints[position]

    def set_constraint(self, position: int, constraint: Constraint) -> None:
        self._check(position)
        self._constraints[position] = copy.deepcopy(constraint)

    def channels(self) -> List[Channel]:
        return list(self._channels)

    def __iter__(self) -> Iterator[Tuple[Channel, Constraint]]:
        return iter(zip(self._channels, self._constraints))

    def copy(self) -> "Menu":
        new = Menu(self._registry)
        new._channels = [c.copy() for c in self._channels]
        new._constraints = [copy.deepcopy(c) for c in self._constraints]
        return new

    def accept(self, columns: Mapping[str, np.ndarray]) -> np.ndarray:
        """Events accepted by at least one channel."""
        n = len(next(iter(columns.values()))) if columns else 0
        out = np.zeros(n, dtype=bool)
        for ch in self._channels:
            out |= ch.accept(columns)
        return out

    def _check(self, position: int) -> None:
        if not 0 <= position < len(self._channels):
            raise IndexError(f"menu has {len(self._channels)} channels, asked for position {position}")

    def __repr__(self):
        rows = ", ".join(f"{ch!r}:{c!r}" for ch, c in self)
        return f"Menu([{rows}])"
