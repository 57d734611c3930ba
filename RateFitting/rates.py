# RateFitting/rates.py
# rate snapshots, weighted binomial errors, text dump of menu rates
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np


def binomial_fraction(sw_pass, sw2_pass, sw: float, sw2: float):
    """
    Weighted pass fraction and its binomial error.

    Works elementwise on arrays of pass sums. With unit weights this is the
    usual sqrt(eff * (1 - eff) / N).
    """
    if sw <= 0:
        z = np.zeros_like(np.asarray(sw_pass, dtype=np.float64))
        return z, z.copy()
    eff = np.asarray(sw_pass, dtype=np.float64) / sw
    sw2_pass = np.asarray(sw2_pass, dtype=np.float64)
    var = sw2_pass * (1.0 - eff) ** 2 + (sw2 - sw2_pass) * eff ** 2
    err = np.sqrt(np.clip(var, 0.0, None)) / sw
    return eff, err


@dataclass(frozen=True)
class ChannelRate:
    name: str
    version: int
    fraction: float
    rate: float
    rate_error: float
    pure_fraction: float
    pure_rate: float
    pure_rate_error: float


@dataclass(frozen=True)
class RateResult:
    """Correlated menu rate plus per-channel rates, in menu order."""

    total_fraction: float
    total_rate: float
    total_rate_error: float
    channel_rates: Tuple[ChannelRate, ...]

    def rate(self, position: int) -> float:
        return self.channel_rates[position].rate

    def pure_rate(self, position: int) -> float:
        return self.channel_rates[position].pure_rate

    def __len__(self):
        return len(self.channel_rates)


def format_rates(result: RateResult) -> str:
    lines = [
        f"{'Name':<20} {'Ver':>3} {'Fraction':>10} {'Rate':>12} {'Error':>10} {'PureRate':>12} {'PureError':>10}"
    ]
    for cr in result.channel_rates:
        lines.append(
            f"{cr.name:<20} {cr.version:>3} {cr.fraction:>10.5g} {cr.rate:>12.5g} "
            f"{cr.rate_error:>10.3g} {cr.pure_rate:>12.5g} {cr.pure_rate_error:>10.3g}"
        )
    lines.append(
        f"{'Total':<20} {'':>3} {result.total_fraction:>10.5g} {result.total_rate:>12.5g} "
        f"{result.total_rate_error:>10.3g}"
    )
    return "\n".join(lines) + "\n"
