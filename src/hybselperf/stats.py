"""Post-traversal report pass: classify, normalize and tabulate every target."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, TextIO

import numpy as np

from .accumulator import THRESHOLDS
from .annotation import AnnotationCursor, AnnotationTrack, resolve_gene_name
from .models import UNKNOWN_GENE, GenomicInterval, ReportConfig, TargetResult, TargetRow
from .overlap import OverlapIndex, build_target_index, is_freestanding
from .reference import ReferenceAccessor, gc_content

logger = logging.getLogger(__name__)

COLUMNS = [
    "location",
    "length",
    "gc",
    "avg_coverage",
    "normalized_coverage",
    "hit_twice",
    "freestanding",
    "boosted",
    "bases_over_2x",
    "bases_over_10x",
    "bases_over_20x",
    "bases_over_30x",
    "gene_name",
]


@dataclass(frozen=True)
class TargetReport:
    rows: List[TargetRow]
    mean_target_coverage: Optional[float]  # None when no target was hit twice


def mean_target_coverage(results: Sequence[TargetResult]) -> Optional[float]:
    """Mean depth over the bases of targets hit at least twice, or None if there are none."""
    total_depth = 0
    bases = 0
    for target, stats in results:
        if stats.hit_twice:
            total_depth += stats.total_depth
            bases += target.length
    if bases == 0:
        return None
    return total_depth / bases


def build_target_rows(
    results: Sequence[TargetResult],
    *,
    reference: ReferenceAccessor,
    config: ReportConfig,
    boosters: Optional[Sequence[GenomicInterval]] = None,
    annotation: Optional[AnnotationTrack] = None,
) -> TargetReport:
    """Build one report row per target, in ``results`` order.

    Requires every target's stats to be complete: the normalization uses the mean
    over all of them. ``results`` must be in genomic order for the gene lookup.
    """
    target_index = build_target_index(
        (target for target, _ in results),
        config.free_standing_distance,
        symmetric=config.symmetric_proximity,
    )
    booster_index: OverlapIndex[GenomicInterval] = OverlapIndex.with_slop(
        ((b, b) for b in (boosters or [])),
        config.booster_distance,
        symmetric=config.symmetric_proximity,
    )

    mean = mean_target_coverage(results)
    if mean is None:
        logger.warning(
            "No target was covered by at least two reads at any base; "
            "mean target coverage is undefined and normalized coverage is reported as NaN."
        )
    else:
        logger.info("Mean target coverage: %.4f", mean)

    cursor = AnnotationCursor()
    rows: List[TargetRow] = []
    for target, stats in results:
        length = target.length
        avg_coverage = stats.total_depth / length
        normalized = avg_coverage / mean if mean is not None else math.nan
        gene_name, cursor = resolve_gene_name(annotation, cursor, target)

        rows.append(
            TargetRow(
                target=target,
                length=length,
                gc=gc_content(reference, target),
                avg_coverage=avg_coverage,
                normalized_coverage=normalized,
                hit_twice=stats.hit_twice,
                freestanding=is_freestanding(target_index, target),
                boosted=booster_index.overlaps_any(target),
                bases_over_2x=stats.positions_over_2x,
                bases_over_10x=stats.positions_over_10x,
                bases_over_20x=stats.positions_over_20x,
                bases_over_30x=stats.positions_over_30x,
                gene_name=gene_name,
            )
        )
    return TargetReport(rows=rows, mean_target_coverage=mean)


def _fmt_float(x: float) -> str:
    if math.isnan(x):
        return "NaN"
    return f"{x:6.4f}"


def format_row(row: TargetRow) -> str:
    return "\t".join(
        [
            str(row.target),
            str(row.length),
            _fmt_float(row.gc),
            _fmt_float(row.avg_coverage),
            _fmt_float(row.normalized_coverage),
            str(int(row.hit_twice)),
            str(int(row.freestanding)),
            str(int(row.boosted)),
            str(row.bases_over_2x),
            str(row.bases_over_10x),
            str(row.bases_over_20x),
            str(row.bases_over_30x),
            row.gene_name,
        ]
    )


def write_target_table(rows: Sequence[TargetRow], handle: TextIO) -> None:
    handle.write("\t".join(COLUMNS) + "\n")
    for row in rows:
        handle.write(format_row(row) + "\n")


def summarize_rows(report: TargetReport) -> Dict[str, Any]:
    """Run-level summary for ``summary.json`` and the HTML report."""
    rows = report.rows
    lengths = np.array([r.length for r in rows], dtype=np.int64)
    target_bases = int(lengths.sum()) if rows else 0

    over = {
        2: sum(r.bases_over_2x for r in rows),
        10: sum(r.bases_over_10x for r in rows),
        20: sum(r.bases_over_20x for r in rows),
        30: sum(r.bases_over_30x for r in rows),
    }
    fraction_over = {
        f"{t}x": (over[t] / target_bases if target_bases else None) for t in THRESHOLDS
    }

    norm = np.array([r.normalized_coverage for r in rows], dtype=float)
    finite = norm[np.isfinite(norm)]
    percentiles: Optional[Dict[str, float]] = None
    if finite.size > 0:
        p10, p50, p90 = np.percentile(finite, [10, 50, 90])
        percentiles = {"p10": float(p10), "p50": float(p50), "p90": float(p90)}

    return {
        "targets": len(rows),
        "target_bases": target_bases,
        "targets_hit_twice": sum(1 for r in rows if r.hit_twice),
        "targets_freestanding": sum(1 for r in rows if r.freestanding),
        "targets_boosted": sum(1 for r in rows if r.boosted),
        "targets_annotated": sum(1 for r in rows if r.gene_name != UNKNOWN_GENE),
        "mean_target_coverage": report.mean_target_coverage,
        "fraction_bases_over": fraction_over,
        "normalized_coverage_percentiles": percentiles,
    }
