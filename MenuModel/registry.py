# MenuModel/registry.py
# Channel factory and binning suggestions, passed explicitly to menus and fitters.
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Type

from triggers import BUILTIN_CHANNELS, Channel
from .errors import UnknownChannel


@dataclass(frozen=True)
class Binning:
    n_bins: int = 100
    lower_edge: float = 0.0
    upper_edge: float = 100.0


class ChannelRegistry:
    """Lookup of channel implementations by (name, version)."""

    def __init__(self):
        self._channels: Dict[Tuple[str, int], Type[Channel]] = {}
        self._binning: Dict[Tuple[str, str], Binning] = {}

    def register(self, channel_cls: Type[Channel]) -> None:
        self._channels[(channel_cls.NAME, int(channel_cls.VERSION))] = channel_cls
        for param, (n_bins, lo, hi) in channel_cls.SUGGESTED_BINNING.items():
            self.register_suggested_binning(channel_cls.NAME, param, n_bins, lo, hi)

    def create(self, name: str, version: Optional[int] = None) -> Channel:
        """New channel with default parameters; latest version if none given."""
        if version is None:
            versions = [v for (n, v) in self._channels if n == name]
            if not versions:
                known = sorted({n for n, _ in self.list_channels()})
                raise UnknownChannel(f"no channel registered with name '{name}', known: {', '.join(known)}")
            version = max(versions)
        try:
            cls = self._channels[(name, int(version))]
        except KeyError:
            raise UnknownChannel(f"no channel registered as '{name}' version {version}") from None
        return cls()

    def copy(self, channel: Channel) -> Channel:
        new = self.create(channel.name, channel.version)
        for k, v in channel.parameters().items():
            new.set_parameter(k, v)
        return new

    def list_channels(self) -> List[Tuple[str, int]]:
        return sorted(self._channels)

    def register_suggested_binning(
        self, name: str, parameter: str, n_bins: int, lower_edge: float, upper_edge: float
    ) -> None:
        if n_bins < 1 or not upper_edge > lower_edge:
            raise ValueError(f"bad binning for {name}/{parameter}: {n_bins}, [{lower_edge}, {upper_edge}]")
        self._binning[(name, parameter)] = Binning(int(n_bins), float(lower_edge), float(upper_edge))

    def suggested_binning(self, name: str, parameter: str) -> Optional[Binning]:
        return self._binning.get((name, parameter))

    def binning_for(self, name: str, parameter: str, default: Binning = Binning()) -> Binning:
        """Suggested binning, or ``default`` when nothing was registered."""
        suggestion = self.suggested_binning(name, parameter)
        return default if suggestion is None else suggestion


def default_registry() -> ChannelRegistry:
    """A fresh registry holding the built-in channels."""
    registry = ChannelRegistry()
    for cls in BUILTIN_CHANNELS:
        registry.register(cls)
    return registry
