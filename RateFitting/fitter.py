# RateFitting/fitter.py
"""
Fit the thresholds of a menu so that its correlated total rate hits a target.

Every channel with a FRACTION_OF_BANDWIDTH or FIXED_RATE constraint gets a
rate curve and a scaling group. The fit seeds each channel at its share of
the target, evaluates the correlated rate (overlaps make it come out low),
then repeatedly scales every share by target/total and re-inverts the curves
until the total is within tolerance.
"""
from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from triggers import Channel
from MenuModel.constraints import Constraint, ConstraintType
from MenuModel.errors import FitError, IterationLimitExceeded
from MenuModel.menu import Menu
from MenuModel.registry import Binning, ChannelRegistry
from .rate_curve import MenuRateCurves, RateCurve
from .rates import RateResult, format_rates
from .sample import CHUNK_SIZE, Sample
from .scaling import ScalingGroup


@dataclass
class FitConfig:
    max_iterations: int = 10
    # binning used when the registry has no suggestion
    n_bins: int = 100
    lower_edge: float = 0.0
    upper_edge: float = 100.0
    chunk_size: int = CHUNK_SIZE
    # FIXED_RATE channels keep their absolute rate unless this is set
    rescale_fixed_rate: bool = False
    verbose: bool = False

    @property
    def default_binning(self) -> Binning:
        return Binning(self.n_bins, self.lower_edge, self.upper_edge)


@dataclass
class FitStep:
    iteration: int
    thresholds: Dict[int, float] = field(default_factory=dict)
    total_rate: float = 0.0


@dataclass
class ScalableChannel:
    index: int
    constraint: Constraint
    curve: RateCurve
    group: ScalingGroup


class FitSession:
    """Working copy of the menu for one fit. Nothing reaches the real menu until commit."""

    def __init__(self, menu: Menu):
        self.menu = menu.copy()
        self.bandwidths: Dict[int, float] = {}
        self.iterations = 0

    def set_bandwidth(self, sc: ScalableChannel, bandwidth: float) -> float:
        self.bandwidths[sc.index] = bandwidth
        threshold = sc.curve.find_threshold(bandwidth)
        sc.group.apply(self.menu.channel(sc.index), threshold)
        return threshold

    def commit(self, menu: Menu, scalables: List[ScalableChannel]) -> None:
        for sc in scalables:
            src, dst = self.menu.channel(sc.index), menu.channel(sc.index)
            for name in sc.group.parameter_names:
                dst.set_parameter(name, src.parameter(name))


class MenuFitter:
    def __init__(
        self,
        sample: Sample,
        menu: Menu,
        curves: Optional[MenuRateCurves] = None,
        registry: Optional[ChannelRegistry] = None,
        config: Optional[FitConfig] = None,
    ):
        self.sample = sample
        self._menu = menu
        self.registry = registry or menu.registry
        self.config = config or FitConfig()
        self.rate_curves = MenuRateCurves(curves if curves is not None else ())
        self._scalable: List[ScalableChannel] = []
        self._log = io.StringIO()
        self._bandwidths: Dict[int, float] = {}
        self.trace: List[FitStep] = []
        self.iterations = 0

        for index, (_, constraint) in enumerate(menu):
            if constraint.is_fittable:
                self._register(index)

    @property
    def menu(self) -> Menu:
        return self._menu

    def add_channel(self, channel: Channel, constraint: Constraint) -> Channel:
        index = len(self._menu)
        added = self._menu.add_channel(channel)
        self._menu.set_constraint(index, constraint)
        if constraint.is_fittable:
            self._register(index)
        return added

    def rate_curve(self, index: int) -> RateCurve:
        for sc in self._scalable:
            if sc.index == index:
                return sc.curve
        raise LookupError(f"channel {index} has no rate curve; its thresholds are fixed")

    def current_bandwidth(self, index: int) -> float:
        """Rate requested from channel ``index`` in the last iteration of the last fit."""
        return self._bandwidths[index]

    def debug_log(self) -> str:
        return self._log.getvalue()

    def fit(self, target_rate: float, tolerance: float) -> RateResult:
        self._log = io.StringIO()
        self.trace = []
        session = FitSession(self._menu)
        try:
            result = self._converge(session, target_rate, tolerance)
        finally:
            self.iterations = session.iterations
            self._bandwidths = dict(session.bandwidths)
        session.commit(self._menu, self._scalable)
        return result

    # ------------------ internals ------------------

    def _converge(self, session: FitSession, target_rate: float, tolerance: float) -> RateResult:
        # Seed every channel at its own share; overlaps will pull the total below target.
        for sc in self._scalable:
            if sc.constraint.type is ConstraintType.FIXED_RATE:
                bandwidth = sc.constraint.value
            else:
                bandwidth = target_rate * sc.constraint.value
            threshold = session.set_bandwidth(sc, bandwidth)
            self._write(
                f"Initially setting threshold for {self._menu.channel(sc.index).name:>20} to "
                f"{threshold:>10.4g} to try and get a rate of {bandwidth:g}"
            )

        result = self._evaluate(session)
        while abs(result.total_rate - target_rate) > tolerance:
            if session.iterations > self.config.max_iterations:
                raise IterationLimitExceeded(session.iterations, result.total_rate, target_rate)
            if result.total_rate <= 0:
                raise FitError("menu has zero rate, cannot scale bandwidths towards the target")
            session.iterations += 1

            scale = target_rate / result.total_rate
            self._write(
                f"\nNew loop. Last iteration had a rate of {result.total_rate:g}. "
                f"Scaling all bandwidths by {scale:g} to try and get {target_rate:g}"
            )
            for sc in self._scalable:
                if not self._rescales(sc):
                    continue
                before = result.rate(sc.index)
                threshold = session.set_bandwidth(sc, session.bandwidths[sc.index] * scale)
                self._write(
                    f"Changing threshold for {self._menu.channel(sc.index).name:>20} to {threshold:>10.4g} "
                    f"to try and change the rate from {before:>10.4g} to {before * scale:g}"
                )
            result = self._evaluate(session)
        return result

    def _rescales(self, sc: ScalableChannel) -> bool:
        if sc.constraint.type is ConstraintType.FIXED_RATE:
            return self.config.rescale_fixed_rate
        return True

    def _evaluate(self, session: FitSession) -> RateResult:
        result = self.sample.rate(session.menu, self.config.chunk_size)
        self.trace.append(FitStep(
            session.iterations,
            {sc.index: session.menu.channel(sc.index).parameter(sc.group.main_parameter)
             for sc in self._scalable},
            result.total_rate,
        ))
        self._write(format_rates(result))
        return result

    def _register(self, index: int) -> None:
        channel = self._menu.channel(index)
        group = ScalingGroup.from_channel(channel)

        curve = self.rate_curves.find(channel)
        if curve is None or curve.versus_parameter != group.main_parameter:
            b = self.registry.binning_for(channel.name, group.main_parameter, self.config.default_binning)
            curve = RateCurve.build(
                channel, group.main_parameter, b.n_bins, b.lower_edge, b.upper_edge,
                group.parameter_names, self.sample, self.config.chunk_size,
            )
            self.rate_curves.add(curve)

        constraint = Constraint(self._menu.constraint(index).type, self._menu.constraint(index).value)
        self._scalable.append(ScalableChannel(index, constraint, curve, group))

    def _write(self, line: str) -> None:
        self._log.write(line if line.endswith("\n") else line + "\n")
        if self.config.verbose:
            print(line.rstrip("\n"))
