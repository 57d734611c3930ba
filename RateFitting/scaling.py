# RateFitting/scaling.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

from triggers import Channel
from MenuModel.errors import UnknownParameter


def _ratio(value: float, main_value: float) -> float:
    # A zero main threshold gives no usable ratio; move in lockstep instead.
    if main_value == 0:
        return 1.0
    return value / main_value


@dataclass(frozen=True)
class ScalingGroup:
    """
    The primary threshold of a channel plus the fixed ratios by which its
    other thresholds follow it. Ratios are captured once and never updated.
    """

    main_parameter: str
    scalings: Tuple[Tuple[str, float], ...] = ()

    @classmethod
    def for_parameters(cls, channel: Channel, main_parameter: str, others: Iterable[str]) -> "ScalingGroup":
        """Group ``others`` around ``main_parameter`` using the channel's current values."""
        main_value = channel.parameter(main_parameter)
        scalings = tuple(
            (name, _ratio(channel.parameter(name), main_value))
            for name in others
            if name != main_parameter
        )
        return cls(main_parameter, scalings)

    @classmethod
    def from_channel(cls, channel: Channel) -> "ScalingGroup":
        """
        Primary is the first threshold. Other thresholds are co-scaled only
        when the channel says its thresholds are correlated; otherwise the
        extra thresholds keep whatever values they have.
        """
        names = channel.threshold_names()
        if not names:
            raise UnknownParameter(channel.name, "threshold")
        others = names[1:] if channel.thresholds_are_correlated() else ()
        return cls.for_parameters(channel, names[0], others)

    @property
    def parameter_names(self) -> Tuple[str, ...]:
        return (self.main_parameter,) + tuple(n for n, _ in self.scalings)

    def apply(self, channel: Channel, threshold: float) -> None:
        channel.set_parameter(self.main_parameter, threshold)
        for name, ratio in self.scalings:
            channel.set_parameter(name, threshold * ratio)

    def ratios_match(self, channel: Channel, rel_tol: float = 1e-6) -> bool:
        main_value = channel.parameter(self.main_parameter)
        for name, ratio in self.scalings:
            actual = _ratio(channel.parameter(name), main_value)
            if abs(actual - ratio) > rel_tol * max(1.0, abs(ratio)):
                return False
        return True
