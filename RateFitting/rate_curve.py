# RateFitting/rate_curve.py
"""
Rate versus threshold for one channel.

A curve is built once by scanning a sample: for each bin low edge the
channel's primary threshold is set to that edge (co-scaled thresholds follow
at their build-time ratios) and the weighted pass rate is recorded. The
result is a non-increasing step function that can be inverted to get the
threshold for a requested rate.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from triggers import Channel
from MenuModel.errors import ThresholdOutOfRange
from MenuModel.menu import Menu
from MenuModel.registry import Binning, ChannelRegistry
from .rates import binomial_fraction
from .sample import CHUNK_SIZE, Sample
from .scaling import ScalingGroup


@dataclass(frozen=True)
class ChannelDescription:
    """Name, version and parameter snapshot of the channel a curve was built with."""

    name: str
    version: int
    parameters: Tuple[Tuple[str, float], ...]

    @classmethod
    def from_channel(cls, channel: Channel) -> "ChannelDescription":
        return cls(channel.name, channel.version, tuple(channel.parameters().items()))


class RateCurve:
    def __init__(
        self,
        description: ChannelDescription,
        versus_parameter: str,
        scaled_parameters: Sequence[Tuple[str, float]],
        lower_edge: float,
        upper_edge: float,
        rates: np.ndarray,
        errors: Optional[np.ndarray] = None,
    ):
        rates = np.asarray(rates, dtype=np.float64)
        if rates.ndim != 1 or rates.size == 0:
            raise ValueError("a rate curve needs at least one bin")
        if not upper_edge > lower_edge:
            raise ValueError(f"upper edge {upper_edge} must be above lower edge {lower_edge}")
        self.description = description
        self.versus_parameter = versus_parameter
        self.scaled_parameters: Tuple[Tuple[str, float], ...] = tuple(
            (str(n), float(r)) for n, r in scaled_parameters
        )
        self.lower_edge = float(lower_edge)
        self.upper_edge = float(upper_edge)
        self.rates = rates
        self.errors = np.zeros_like(rates) if errors is None else np.asarray(errors, dtype=np.float64)
        if self.errors.shape != rates.shape:
            raise ValueError("rates and errors must have the same shape")

    # ------------------ construction ------------------

    @classmethod
    def build(
        cls,
        channel: Channel,
        versus_parameter: str,
        n_bins: int,
        lower_edge: float,
        upper_edge: float,
        scaled_parameters: Iterable[str],
        sample: Sample,
        chunk_size: int = CHUNK_SIZE,
    ) -> "RateCurve":
        group = ScalingGroup.for_parameters(channel, versus_parameter, scaled_parameters)
        work = channel.copy()
        thresholds = lower_edge + np.arange(n_bins) * (upper_edge - lower_edge) / n_bins

        sw_pass = np.zeros(n_bins)
        sw2_pass = np.zeros(n_bins)
        sw = sw2 = 0.0
        # per-bin sums add up across chunks in any order
        for chunk in sample.chunks(chunk_size):
            w = chunk.weights
            w2 = w * w
            sw += w.sum()
            sw2 += w2.sum()
            for k, t in enumerate(thresholds):
                group.apply(work, t)
                passed = chunk.accepted(work)
                sw_pass[k] += w[passed].sum()
                sw2_pass[k] += w2[passed].sum()

        eff, err = binomial_fraction(sw_pass, sw2_pass, sw, sw2)
        R = sample.event_rate
        return cls(
            ChannelDescription.from_channel(channel),
            versus_parameter,
            group.scalings,
            lower_edge,
            upper_edge,
            eff * R,
            err * R,
        )

    @classmethod
    def from_arrays(cls, description, versus_parameter, scaled_parameters, lower_edge, upper_edge, rates, errors=None):
        """Rebuild a previously computed curve without scanning a sample."""
        return cls(description, versus_parameter, scaled_parameters, lower_edge, upper_edge, rates, errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.description.name,
            "version": self.description.version,
            "parameters": dict(self.description.parameters),
            "versus_parameter": self.versus_parameter,
            "scaled_parameters": list(self.scaled_parameters),
            "lower_edge": self.lower_edge,
            "upper_edge": self.upper_edge,
            "rates": self.rates.copy(),
            "errors": self.errors.copy(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RateCurve":
        desc = ChannelDescription(str(d["name"]), int(d["version"]), tuple(
            (str(k), float(v)) for k, v in d["parameters"].items()
        ))
        return cls(desc, str(d["versus_parameter"]), d["scaled_parameters"],
                   d["lower_edge"], d["upper_edge"], d["rates"], d.get("errors"))

    # ------------------ binning ------------------

    @property
    def n_bins(self) -> int:
        return self.rates.size

    @property
    def bin_width(self) -> float:
        return (self.upper_edge - self.lower_edge) / self.n_bins

    @property
    def thresholds(self) -> np.ndarray:
        """Threshold each bin's rate was measured at (the bin low edges)."""
        return self.lower_edge + np.arange(self.n_bins) * self.bin_width

    @property
    def max_rate(self) -> float:
        return float(self.rates[0])

    @property
    def min_rate(self) -> float:
        return float(self.rates[-1])

    # ------------------ inversion ------------------

    def find_threshold(self, rate: float) -> float:
        """
        Lowest threshold giving a rate <= ``rate``, linearly interpolated
        between the two bins either side of the crossing. Asking for at
        least the rate of the first bin returns the lower edge.
        """
        below = np.nonzero(self.rates <= rate)[0]
        if below.size == 0:
            raise ThresholdOutOfRange(rate, self.min_rate, self.max_rate)
        k = int(below[0])
        if k == 0:
            return self.lower_edge
        r_hi, r_lo = self.rates[k - 1], self.rates[k]
        x_hi = self.lower_edge + (k - 1) * self.bin_width
        return float(x_hi + (r_hi - rate) / (r_hi - r_lo) * self.bin_width)

    def find_threshold_with_error(self, rate: float) -> Tuple[float, float]:
        """
        (low, high) threshold band for ``rate`` from the curve's statistical
        error. The rate has to lie inside the sampled range.
        """
        if not self.min_rate <= rate <= self.max_rate:
            raise ThresholdOutOfRange(rate, self.min_rate, self.max_rate)
        threshold = self.find_threshold(rate)
        err = self.error_at(threshold)
        low = self._clamped_threshold(rate + err)
        high = self._clamped_threshold(rate - err)
        return low, high

    def _clamped_threshold(self, rate: float) -> float:
        if rate < self.min_rate:
            return float(self.thresholds[-1])
        return self.find_threshold(rate)

    def rate_at(self, threshold: float) -> float:
        return float(np.interp(threshold, self.thresholds, self.rates))

    def error_at(self, threshold: float) -> float:
        return float(np.interp(threshold, self.thresholds, self.errors))

    # ------------------ matching ------------------

    def channel_matches(self, channel: Channel, rel_tol: float = 1e-6) -> bool:
        """
        True when ``channel`` is equivalent to the one this curve was built
        for: same name and version, same parameters apart from the scanned
        thresholds, and the same ratios between those thresholds.
        """
        desc = self.description
        if channel.name != desc.name or channel.version != desc.version:
            return False
        params = channel.parameters()
        if set(params) != {k for k, _ in desc.parameters}:
            return False
        scanned = {self.versus_parameter} | {n for n, _ in self.scaled_parameters}
        for k, v in desc.parameters:
            if k in scanned:
                continue
            if abs(params[k] - v) > rel_tol * max(1.0, abs(v)):
                return False
        group = ScalingGroup(self.versus_parameter, self.scaled_parameters)
        return group.ratios_match(channel, rel_tol)

    def __repr__(self):
        return (f"RateCurve({self.description.name}_v{self.description.version} vs {self.versus_parameter}, "
                f"{self.n_bins} bins [{self.lower_edge:g}, {self.upper_edge:g}])")


class MenuRateCurves:
    """Cache of rate curves, looked up by channel equivalence."""

    def __init__(self, curves: Iterable[RateCurve] = ()):
        self._curves: List[RateCurve] = list(curves)

    def add(self, curve: RateCurve) -> None:
        self._curves.append(curve)

    def find(self, channel: Channel) -> Optional[RateCurve]:
        for curve in self._curves:
            if curve.channel_matches(channel):
                return curve
        return None

    def __iter__(self) -> Iterator[RateCurve]:
        return iter(self._curves)

    def __len__(self):
        return len(self._curves)

    @classmethod
    def build_for_menu(
        cls,
        menu: Menu,
        sample: Sample,
        registry: Optional[ChannelRegistry] = None,
        default: Binning = Binning(),
    ) -> "MenuRateCurves":
        """One curve per channel of ``menu`` against its first threshold."""
        registry = registry or menu.registry
        out = cls()
        for channel, _ in menu:
            if not channel.threshold_names():
                continue
            group = ScalingGroup.from_channel(channel)
            b = registry.binning_for(channel.name, group.main_parameter, default)
            out.add(RateCurve.build(channel, group.main_parameter, b.n_bins, b.lower_edge,
                                    b.upper_edge, group.parameter_names, sample))
        return out
