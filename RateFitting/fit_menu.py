# RateFitting/fit_menu.py
# python -m RateFitting.fit_menu --path Data/Trigger_food_MC.h5 --target 100 \
#     --channel L1_HTT fraction=0.5 --channel L1_AD fraction=0.5
from __future__ import annotations
import argparse, os
from typing import List, Optional, Sequence, Tuple

import matplotlib
matplotlib.use("Agg")  # headless

import mplhep as hep
hep.style.use("CMS")

from triggers import Channel
from MenuModel.constraints import Constraint
from MenuModel.errors import FitError, ThresholdOutOfRange
from MenuModel.menu import Menu
from MenuModel.registry import ChannelRegistry, default_registry
from .fitter import FitConfig, MenuFitter
from .plots import fit_evolution, rate_curve_plot
from .rate_io import DEFAULT_COLUMNS, load_rate_curves, load_sample, save_rate_curves
from .rates import format_rates


def parse_channel_spec(tokens: Sequence[str], registry: ChannelRegistry) -> Tuple[Channel, Constraint]:
    """
    ``NAME[:VERSION] [fixed | fraction=F | rate=R] [param=value ...]``.
    No constraint token means the thresholds stay fixed.
    """
    if not tokens:
        raise ValueError("empty channel specification")
    name, _, version = tokens[0].partition(":")
    channel = registry.create(name, int(version) if version else None)
    constraint = Constraint.fixed_thresholds()
    for tok in tokens[1:]:
        if tok == "fixed":
            constraint = Constraint.fixed_thresholds()
            continue
        key, sep, value = tok.partition("=")
        if not sep:
            raise ValueError(f"cannot parse '{tok}' for channel {name}")
        if key == "fraction":
            constraint = Constraint.fraction_of_bandwidth(float(value))
        elif key == "rate":
            constraint = Constraint.fixed_rate(float(value))
        else:
            channel.set_parameter(key, float(value))
    return channel, constraint


def parse_binning(spec: str) -> Tuple[str, str, int, float, float]:
    name, param, n_bins, lo, hi = spec.split(":")
    return name, param, int(n_bins), float(lo), float(hi)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Fit menu thresholds to a target total rate")
    p.add_argument("--path", default="Data/Trigger_food_MC.h5")
    p.add_argument("--column", action="append", default=None, metavar="NAME=DATASET",
                   help="sample column to dataset mapping (default: background trigger-food keys)")
    p.add_argument("--weight-key", default=None)
    p.add_argument("--start", type=int, default=0)
    p.add_argument("--stop", type=int, default=None)
    p.add_argument("--event-rate", type=float, default=40000.0, help="rate of one event fraction, kHz")
    p.add_argument("--channel", action="append", nargs="+", required=True,
                   metavar="TOKEN", help="NAME[:VERSION] [fixed|fraction=F|rate=R] [param=value ...]")
    p.add_argument("--binning", action="append", default=[], metavar="NAME:PARAM:N:LO:HI")
    p.add_argument("--target", type=float, default=100.0)
    p.add_argument("--tolerance", type=float, default=1.0)
    p.add_argument("--max-iterations", type=int, default=10)
    p.add_argument("--rescale-fixed-rate", action="store_true")
    p.add_argument("--curves-in", default=None)
    p.add_argument("--curves-out", default=None)
    p.add_argument("--outdir", default="outputs/menu_fit")
    p.add_argument("--no-plots", action="store_true")
    p.add_argument("--verbose", action="store_true")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    registry = default_registry()
    for spec in args.binning:
        registry.register_suggested_binning(*parse_binning(spec))

    if args.column:
        columns = dict(c.split("=", 1) for c in args.column)
    else:
        columns = dict(DEFAULT_COLUMNS)
    sample = load_sample(args.path, columns, args.weight_key, args.event_rate, args.start, args.stop)
    print(f"Loaded {sample.number_of_events()} events from {args.path}")

    curves = load_rate_curves(args.curves_in) if args.curves_in else None
    config = FitConfig(max_iterations=args.max_iterations,
                       rescale_fixed_rate=args.rescale_fixed_rate, verbose=args.verbose)

    fitter = MenuFitter(sample, Menu(registry), curves=curves, registry=registry, config=config)
    for tokens in args.channel:
        channel, constraint = parse_channel_spec(tokens, registry)
        fitter.add_channel(channel, constraint)

    try:
        result = fitter.fit(args.target, args.tolerance)
    except (FitError, ThresholdOutOfRange) as e:
        print(f"[FAIL] {e}")
        print(fitter.debug_log())
        return 1

    print(f"Converged after {fitter.iterations} iterations")
    print(format_rates(result))
    for channel, constraint in fitter.menu:
        params = ", ".join(f"{k}={v:.4g}" for k, v in channel.parameters().items())
        print(f"{channel.name:<20} v{channel.version} {constraint!r:<36} {params}")

    if args.curves_out:
        save_rate_curves(args.curves_out, fitter.rate_curves)

    if not args.no_plots:
        os.makedirs(args.outdir, exist_ok=True)
        names = [ch.name for ch in fitter.menu.channels()]
        fit_evolution(fitter.trace, names, args.target, title="fit_evolution", outdir=args.outdir)
        for index in sorted(fitter.trace[-1].thresholds):
            curve = fitter.rate_curve(index)
            rate_curve_plot(curve, f"{args.outdir}/rate_curve_{index}_{names[index]}.pdf",
                            target_rate=fitter.current_bandwidth(index))
        print("Saved the figures!")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
