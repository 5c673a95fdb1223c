from __future__ import annotations

from typing import Iterable, Optional

from .models import TargetStats

# Depth thresholds reported per target. Counters are independent, so a locus at
# 35x increments all four.
THRESHOLDS = (2, 10, 20, 30)


def fold_depth(stats: TargetStats, depth: int) -> TargetStats:
    """Fold one locus depth into ``stats`` (in place) and return it."""
    stats.total_depth += depth
    if depth >= 2:
        stats.hit_twice = True
        stats.positions_over_2x += 1
    if depth >= 10:
        stats.positions_over_10x += 1
    if depth >= 20:
        stats.positions_over_20x += 1
    if depth >= 30:
        stats.positions_over_30x += 1
    return stats


def fold_depths(depths: Iterable[int], stats: Optional[TargetStats] = None) -> TargetStats:
    if stats is None:
        stats = TargetStats()
    for depth in depths:
        fold_depth(stats, depth)
    return stats
