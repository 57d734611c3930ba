# RateFitting/rate_io.py
# HDF5 readers/writers: event samples in, rate-curve caches in and out
from __future__ import annotations

from pathlib import Path
from typing import Iterable, Mapping, Optional

import h5py
import hdf5plugin  # noqa: F401  (enables common HDF5 compressions)
import numpy as np

from .rate_curve import ChannelDescription, MenuRateCurves, RateCurve
from .sample import Sample

# trigger-food dataset names for the background sample
DEFAULT_COLUMNS = {
    "ht": "bkg_ht",
    "score": "bkg_score02",
    "npv": "bkg_Npv",
    "njets": "bkg_njet",
}


def load_sample(
    h5_path: str,
    columns: Optional[Mapping[str, str]] = None,
    weight_key: Optional[str] = None,
    event_rate: float = 1.0,
    start: int = 0,
    stop: Optional[int] = None,
) -> Sample:
    """Read column -> dataset into a Sample, optionally a [start:stop) slice of events."""
    columns = dict(DEFAULT_COLUMNS if columns is None else columns)
    out = {}
    with h5py.File(h5_path, "r") as f:
        keys = list(columns.values()) + ([weight_key] if weight_key else [])
        for k in keys:
            if k not in f:
                raise KeyError(f"{h5_path} missing dataset '{k}'")
        for name, key in columns.items():
            out[name] = f[key][start:stop]
        weights = f[weight_key][start:stop] if weight_key else None
    return Sample(out, weights=weights, event_rate=event_rate)


def save_rate_curves(out_path: str, curves: Iterable[RateCurve]) -> None:
    """One group per curve; parameters and co-scaling ratios kept as ordered attributes."""
    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    with h5py.File(out_path, "w") as f:
        for i, curve in enumerate(curves):
            g = f.create_group(f"curve{i:03d}", track_order=True)
            g.attrs["name"] = curve.description.name
            g.attrs["version"] = curve.description.version
            g.attrs["versus_parameter"] = curve.versus_parameter
            g.attrs["lower_edge"] = curve.lower_edge
            g.attrs["upper_edge"] = curve.upper_edge
            g.create_dataset("rates", data=curve.rates)
            g.create_dataset("errors", data=curve.errors)

            params = g.create_group("parameters", track_order=True)
            for k, v in curve.description.parameters:
                params.attrs[k] = v
            scaled = g.create_group("scaled_parameters", track_order=True)
            for k, ratio in curve.scaled_parameters:
                scaled.attrs[k] = ratio
    print(f"[OK] Rate curves saved to {out_path}")


def load_rate_curves(h5_path: str) -> MenuRateCurves:
    curves = MenuRateCurves()
    with h5py.File(h5_path, "r") as f:
        for group_name in sorted(f, key=lambda k: int(k[len("curve"):])):
            g = f[group_name]
            desc = ChannelDescription(
                str(g.attrs["name"]),
                int(g.attrs["version"]),
                tuple((str(k), float(v)) for k, v in g["parameters"].attrs.items()),
            )
            curves.add(RateCurve.from_arrays(
                desc,
                str(g.attrs["versus_parameter"]),
                [(str(k), float(v)) for k, v in g["scaled_parameters"].attrs.items()],
                float(g.attrs["lower_edge"]),
                float(g.attrs["upper_edge"]),
                np.asarray(g["rates"][:]),
                np.asarray(g["errors"][:]),
            ))
    return curves
