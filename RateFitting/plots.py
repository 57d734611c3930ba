# RateFitting/plots.py
# rate-curve and fit-evolution figures
from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import numpy as np
import matplotlib.pyplot as plt

from .rate_curve import RateCurve


def rate_curve_plot(curve: RateCurve, out_pdf: str, target_rate: Optional[float] = None):
    """Rate vs threshold with its statistical band; marks the threshold for ``target_rate``."""
    Path(out_pdf).parent.mkdir(parents=True, exist_ok=True)
    x = curve.thresholds
    fig, ax = plt.subplots(figsize=(8, 6))
    ax.step(x, curve.rates, where="post", color="navy", linewidth=2, label="Rate")
    ax.fill_between(x, curve.rates - curve.errors, curve.rates + curve.errors,
                    step="post", color="deepskyblue", alpha=0.4, label="Stat. error")

    if target_rate is not None:
        t = curve.find_threshold(target_rate)
        ax.axhline(y=target_rate, color="grey", linestyle="--", linewidth=1.5)
        ax.axvline(x=t, color="mediumvioletred", linestyle="--", linewidth=1.5,
                   label=f"{curve.versus_parameter} = {t:.3g}")

    ax.set_xlabel(curve.versus_parameter)
    ax.set_ylabel("Rate")
    ax.set_xlim(curve.lower_edge, curve.upper_edge)
    if np.any(curve.rates > 0):
        ax.set_yscale("log")
    ax.set_title(f"{curve.description.name} v{curve.description.version}")
    ax.legend(loc="best", frameon=True); ax.grid(True)
    plt.tight_layout(); fig.savefig(out_pdf); plt.close(fig)


def fit_evolution(steps: Sequence, names: Sequence[str], target_rate: float, title: str, outdir: str = "outputs"):
    """Total rate and primary thresholds per fit iteration."""
    Path(outdir).mkdir(parents=True, exist_ok=True)
    it = np.array([s.iteration for s in steps])
    total = np.array([s.total_rate for s in steps])

    fig, axes = plt.subplots(1, 2, figsize=(16, 6))
    axes[0].plot(it, total, color="navy", linewidth=2, marker="o", label="Total Rate")
    axes[0].axhline(y=target_rate, color="grey", linestyle="--", linewidth=1.5, label="Target")
    axes[0].set_xlabel("Iteration"); axes[0].set_ylabel("Rate")
    axes[0].legend(loc="best"); axes[0].grid(True)

    indices = sorted(steps[0].thresholds) if steps else []
    for index in indices:
        axes[1].plot(it, [s.thresholds[index] for s in steps], marker="+", linewidth=1.5,
                     label=names[index])
    axes[1].set_xlabel("Iteration"); axes[1].set_ylabel("Threshold")
    if indices:
        axes[1].legend(loc="best")
    axes[1].grid(True)

    out = f"{outdir}/{title}.pdf"
    plt.tight_layout(); fig.savefig(out); plt.close(fig)
    return out
