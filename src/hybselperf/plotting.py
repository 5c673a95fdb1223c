from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import matplotlib.pyplot as plt
import numpy as np

from .models import TargetRow

logger = logging.getLogger(__name__)


def _finite(values: Sequence[float]) -> List[float]:
    return [v for v in values if not math.isnan(v)]


def plot_normalized_coverage_hist(
    *,
    rows: Sequence[TargetRow],
    out_png: str | Path,
    title: str = "Normalized target coverage",
    max_value: float = 3.0,
    nbins: int = 60,
) -> None:
    """Histogram of per-target normalized coverage; values above ``max_value`` are collapsed."""
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    values = np.clip(np.array(_finite([r.normalized_coverage for r in rows]), dtype=float), 0.0, max_value)
    bin_edges = np.linspace(0.0, max_value, nbins + 1)
    counts, _ = np.histogram(values, bins=bin_edges)

    widths = np.diff(bin_edges)
    centers = bin_edges[:-1] + widths / 2.0

    plt.figure()
    plt.bar(centers, counts, width=widths, align="center")
    plt.axvline(1.0, color="black", linestyle="--", linewidth=1)
    plt.xlabel(f"Normalized coverage (capped at {max_value:g})")
    plt.ylabel("Target count")
    plt.title(title)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def plot_gc_vs_coverage(
    *,
    rows: Sequence[TargetRow],
    out_png: str | Path,
    title: str = "GC content vs normalized coverage",
) -> None:
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    pairs = [(r.gc, r.normalized_coverage) for r in rows if not math.isnan(r.normalized_coverage)]
    xs = [p[0] for p in pairs]
    ys = [p[1] for p in pairs]

    plt.figure()
    plt.scatter(xs, ys, s=6, alpha=0.5)
    plt.xlabel("Target GC fraction")
    plt.ylabel("Normalized coverage")
    plt.xlim(0.0, 1.0)
    plt.title(title)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()


def plot_bases_over_thresholds(
    *,
    fraction_over: Dict[str, Optional[float]],
    out_png: str | Path,
    title: str = "Target bases at or above depth",
) -> None:
    out_png = Path(out_png)
    out_png.parent.mkdir(parents=True, exist_ok=True)

    labels = list(fraction_over.keys())
    values = [float(v) if v is not None else 0.0 for v in fraction_over.values()]

    plt.figure()
    plt.bar(labels, values)
    plt.ylim(0.0, 1.0)
    plt.ylabel("Fraction of target bases")
    plt.title(title)
    plt.tight_layout()
    plt.savefig(out_png, dpi=160)
    plt.close()
