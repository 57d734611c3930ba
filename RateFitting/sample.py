# RateFitting/sample.py
"""Weighted columnar event sample and correlated menu-rate evaluation."""
from __future__ import annotations

from typing import Dict, Iterator, Mapping, Optional

import numpy as np

from triggers import Channel
from MenuModel.menu import Menu
from .rates import ChannelRate, RateResult, binomial_fraction

CHUNK_SIZE = 50000


class Event(dict):
    """One event: column name -> value (scalar, or a row such as the jet pT list)."""

    def __init__(self, values, weight: float = 1.0):
        super().__init__(values)
        self.weight = float(weight)


class Sample:
    """
    Events stored column-wise, one row per event, with optional per-event
    weights. ``event_rate`` converts a weighted pass fraction into a physical
    rate (e.g. 40000 kHz for the bunch-crossing rate).
    """

    def __init__(
        self,
        columns: Mapping[str, np.ndarray],
        weights: Optional[np.ndarray] = None,
        event_rate: float = 1.0,
    ):
        self.columns: Dict[str, np.ndarray] = {k: np.asarray(v) for k, v in columns.items()}
        lengths = {k: v.shape[0] for k, v in self.columns.items()}
        if len(set(lengths.values())) > 1:
            raise ValueError(f"columns have different lengths: {lengths}")
        n = next(iter(lengths.values())) if lengths else 0
        if weights is None:
            weights = np.ones(n, dtype=np.float64)
        weights = np.asarray(weights, dtype=np.float64)
        if weights.shape != (n,):
            raise ValueError(f"weights shape {weights.shape} does not match {n} events")
        self.weights = weights
        self._event_rate = float(event_rate)

    def number_of_events(self) -> int:
        return self.weights.shape[0]

    def __len__(self):
        return self.number_of_events()

    def get_event(self, index: int) -> Event:
        if not -len(self) <= index < len(self):
            raise IndexError(f"event {index} out of range for {len(self)} events")
        return Event({k: v[index] for k, v in self.columns.items()}, self.weights[index])

    @property
    def event_rate(self) -> float:
        return self._event_rate

    def set_event_rate(self, rate: float) -> None:
        self._event_rate = float(rate)

    def sum_of_weights(self) -> float:
        return float(self.weights.sum())

    def chunks(self, chunk_size: int = CHUNK_SIZE) -> Iterator["Sample"]:
        """Consecutive sub-samples sharing this sample's event rate."""
        n = len(self)
        for start in range(0, n, max(1, int(chunk_size))):
            idx = slice(start, min(start + chunk_size, n))
            yield Sample({k: v[idx] for k, v in self.columns.items()}, self.weights[idx], self._event_rate)

    def accepted(self, channel: Channel) -> np.ndarray:
        return np.asarray(channel.accept(self.columns), dtype=bool)

    def rate(self, menu: Menu, chunk_size: int = CHUNK_SIZE) -> RateResult:
        """
        Correlated rate of ``menu``: an event counts once towards the total
        however many channels fire on it. Per-channel pure rates count events
        where that channel is the only one firing.
        """
        n_ch = len(menu)
        sw_pass = np.zeros(n_ch)
        sw2_pass = np.zeros(n_ch)
        sw_pure = np.zeros(n_ch)
        sw2_pure = np.zeros(n_ch)
        sw_any = sw2_any = 0.0
        sw = sw2 = 0.0

        channels = menu.channels()
        for chunk in self.chunks(chunk_size):
            w = chunk.weights
            w2 = w * w
            sw += w.sum()
            sw2 += w2.sum()
            if n_ch == 0:
                continue
            fired = np.stack([chunk.accepted(ch) for ch in channels])  # (n_ch, N)
            n_fired = fired.sum(axis=0)
            pure = (fired & (n_fired == 1)[None, :]).astype(np.float64)
            any_ = n_fired > 0
            fired = fired.astype(np.float64)

            sw_pass += fired @ w
            sw2_pass += fired @ w2
            sw_pure += pure @ w
            sw2_pure += pure @ w2
            sw_any += w[any_].sum()
            sw2_any += w2[any_].sum()

        R = self._event_rate
        eff, err = binomial_fraction(sw_pass, sw2_pass, sw, sw2)
        pure_eff, pure_err = binomial_fraction(sw_pure, sw2_pure, sw, sw2)
        tot_eff, tot_err = binomial_fraction(sw_any, sw2_any, sw, sw2)

        channel_rates = tuple(
            ChannelRate(
                name=ch.name,
                version=ch.version,
                fraction=float(eff[i]),
                rate=float(eff[i] * R),
                rate_error=float(err[i] * R),
                pure_fraction=float(pure_eff[i]),
                pure_rate=float(pure_eff[i] * R),
                pure_rate_error=float(pure_err[i] * R),
            )
            for i, ch in enumerate(channels)
        )
        return RateResult(
            total_fraction=float(tot_eff),
            total_rate=float(tot_eff * R),
            total_rate_error=float(tot_err * R),
            channel_rates=channel_rates,
        )
