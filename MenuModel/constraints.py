# MenuModel/constraints.py
# How a channel's thresholds may move when a menu is fitted to a total rate.
from __future__ import annotations

from enum import Enum

from .errors import InvalidConstraintValue


class ConstraintType(Enum):
    FIXED_THRESHOLDS = "fixed_thresholds"
    FIXED_RATE = "fixed_rate"
    FRACTION_OF_BANDWIDTH = "fraction_of_bandwidth"


class Constraint:
    """
    Tagged value attached to one channel of a menu.

    ``value`` is ignored for FIXED_THRESHOLDS, an absolute rate for
    FIXED_RATE and a fraction in [0, 1] of the total rate for
    FRACTION_OF_BANDWIDTH. Invalid values are rejected on assignment.
    """

    def __init__(self, type: ConstraintType = ConstraintType.FIXED_THRESHOLDS, value: float = 0.0):
        self._type = ConstraintType.FIXED_THRESHOLDS
        self._value = 0.0
        if type is ConstraintType.FRACTION_OF_BANDWIDTH:
            self.set_fraction_of_bandwidth(value)
        elif type is ConstraintType.FIXED_RATE:
            self.set_fixed_rate(value)
        elif type is not ConstraintType.FIXED_THRESHOLDS:
            raise InvalidConstraintValue(f"unknown constraint type {type!r}")

    @classmethod
    def fixed_thresholds(cls) -> "Constraint":
        return cls()

    @classmethod
    def fixed_rate(cls, rate: float) -> "Constraint":
        return cls(ConstraintType.FIXED_RATE, rate)

    @classmethod
    def fraction_of_bandwidth(cls, fraction: float) -> "Constraint":
        return cls(ConstraintType.FRACTION_OF_BANDWIDTH, fraction)

    @property
    def type(self) -> ConstraintType:
        return self._type

    @property
    def value(self) -> float:
        return self._value

    @property
    def is_fittable(self) -> bool:
        return self._type is not ConstraintType.FIXED_THRESHOLDS

    def set_fraction_of_bandwidth(self, fraction: float) -> None:
        fraction = float(fraction)
        if not 0.0 <= fraction <= 1.0:
            raise InvalidConstraintValue(
                f"fraction of total bandwidth can only be set between zero and one, got {fraction:g}"
            )
        self._type = ConstraintType.FRACTION_OF_BANDWIDTH
        self._value = fraction

    def set_fixed_rate(self, rate: float) -> None:
        rate = float(rate)
        if not rate >= 0.0:
            raise InvalidConstraintValue(f"fixed rate must be non-negative, got {rate:g}")
        self._type = ConstraintType.FIXED_RATE
        self._value = rate

    def lock_thresholds(self) -> None:
        self._type = ConstraintType.FIXED_THRESHOLDS
        self._value = 0.0

    def __eq__(self, other):
        if not isinstance(other, Constraint):
            return NotImplemented
        return self._type is other._type and self._value == other._value

    def __repr__(self):
        if self._type is ConstraintType.FIXED_THRESHOLDS:
            return "Constraint(FIXED_THRESHOLDS)"
        return f"Constraint({self._type.name}, {self._value:g})"
