"""Trigger channels: named, versioned selections over columnar event data.

Each channel decides, for a block of events, which of them it accepts. The
block is a mapping of column name -> array with one row per event, so every
decision is a vectorised numpy comparison like ``ht >= cut``.
"""
from __future__ import annotations

import copy
from typing import Dict, Iterable, List, Mapping, Tuple

import numpy as np

from MenuModel.errors import UnknownParameter


class Channel:
    """Base class for all trigger channels.

    Subclasses set ``NAME``, ``VERSION``, the ordered ``PARAMETERS`` defaults
    and implement ``accept``. The parameter set is fixed at construction.
    """

    NAME: str = ""
    VERSION: int = 0
    PARAMETERS: Tuple[Tuple[str, float], ...] = ()
    SUGGESTED_BINNING: Dict[str, Tuple[int, float, float]] = {}

    def __init__(self):
        self._params: Dict[str, float] = {k: float(v) for k, v in self.PARAMETERS}

    @property
    def name(self) -> str:
        return self.NAME

    @property
    def version(self) -> int:
        return self.VERSION

    def parameter_names(self) -> List[str]:
        return list(self._params)

    def threshold_names(self) -> List[str]:
        """Parameters that are thresholds, in declaration order."""
        return [k for k in self._params if "threshold" in k]

    def parameter(self, name: str) -> float:
        try:
            return self._params[name]
        except KeyError:
            raise UnknownParameter(self.NAME, name) from None

    def set_parameter(self, name: str, value: float) -> None:
        if name not in self._params:
            raise UnknownParameter(self.NAME, name)
        self._params[name] = float(value)

    def parameters(self) -> Dict[str, float]:
        return dict(self._params)

    def thresholds_are_correlated(self) -> bool:
        return False

    def accept(self, columns: Mapping[str, np.ndarray]) -> np.ndarray:
        raise NotImplementedError

    def fires(self, event: Mapping[str, object]) -> bool:
        """Decision for a single event (a mapping of column -> scalar/row)."""
        block = {k: np.asarray([v]) for k, v in event.items()}
        return bool(self.accept(block)[0])

    def copy(self) -> "Channel":
        return copy.deepcopy(self)

    def __repr__(self):
        params = ", ".join(f"{k}={v:g}" for k, v in self._params.items())
        return f"{self.NAME}_v{self.VERSION}({params})"


# ------------------ helpers ------------------

def _sorted_jet_pt(columns: Mapping[str, np.ndarray]) -> np.ndarray:
    """(N, n_jets) jet pT, leading jet first."""
    pt = np.asarray(columns["jet_pt"], dtype=np.float64)
    if pt.ndim == 1:
        pt = pt[:, None]
    return -np.sort(-pt, axis=1)


def _nth_jet_pt(pt: np.ndarray, n: int) -> np.ndarray:
    if pt.shape[1] <= n:
        return np.zeros(pt.shape[0])
    return pt[:, n]


# ------------------ channels ------------------

class HTT_v0(Channel):
    """Scalar HT sum above threshold."""

    NAME = "L1_HTT"
    VERSION = 0
    PARAMETERS = (("threshold1", 100.0),)
    SUGGESTED_BINNING = {"threshold1": (100, 0.0, 800.0)}

    def accept(self, columns):
        return np.asarray(columns["ht"]) >= self._params["threshold1"]


class HTT_v1(HTT_v0):
    """HT recomputed from the jets with pT >= ptCut, then cut on threshold1."""

    VERSION = 1
    PARAMETERS = (("threshold1", 100.0), ("ptCut", 0.0))

    def accept(self, columns):
        pt = np.asarray(columns["jet_pt"], dtype=np.float64)
        if pt.ndim == 1:
            pt = pt[:, None]
        ht = np.where(pt >= self._params["ptCut"], pt, 0.0).sum(axis=1)
        return ht >= self._params["threshold1"]


class SingleAD_v0(Channel):
    """Autoencoder anomaly score above threshold."""

    NAME = "L1_AD"
    VERSION = 0
    PARAMETERS = (("threshold1", 50.0),)

    def accept(self, columns):
        return np.asarray(columns["score"]) >= self._params["threshold1"]


class DoubleJet_v0(Channel):
    """Leading and sub-leading jet pT above their thresholds."""

    NAME = "L1_DoubleJet"
    VERSION = 0
    PARAMETERS = (("threshold1", 60.0), ("threshold2", 30.0))
    SUGGESTED_BINNING = {
        "threshold1": (300, 0.0, 300.0),
        "threshold2": (300, 0.0, 300.0),
    }

    def thresholds_are_correlated(self):
        return True

    def accept(self, columns):
        pt = _sorted_jet_pt(columns)
        return (_nth_jet_pt(pt, 0) >= self._params["threshold1"]) & (
            _nth_jet_pt(pt, 1) >= self._params["threshold2"]
        )


class HT_AD_v0(Channel):
    """Cross channel: HT leg and anomaly-score leg must both pass."""

    NAME = "L1_HT_AD"
    VERSION = 0
    PARAMETERS = (("leg1threshold1", 100.0), ("leg2threshold1", 20.0))
    SUGGESTED_BINNING = {
        "leg1threshold1": (100, 0.0, 800.0),
        "leg2threshold1": (100, 0.0, 100.0),
    }

    def accept(self, columns):
        return (np.asarray(columns["ht"]) >= self._params["leg1threshold1"]) & (
            np.asarray(columns["score"]) >= self._params["leg2threshold1"]
        )


BUILTIN_CHANNELS: Iterable[type] = (HTT_v0, HTT_v1, SingleAD_v0, DoubleJet_v0, HT_AD_v0)
