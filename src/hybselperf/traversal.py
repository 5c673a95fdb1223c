from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Iterator, List, Sequence, TypeVar

import pysam
from tqdm import tqdm

from .accumulator import fold_depth
from .depth import ReadFilter, locus_depth
from .models import GenomicInterval, TargetResult, TargetStats

logger = logging.getLogger(__name__)

R = TypeVar("R")

# htslib caps pileup depth (8000 by default); hybrid-selection targets routinely exceed that.
_MAX_PILEUP_DEPTH = 1_000_000


def iter_locus_depths(
    bam: pysam.AlignmentFile,
    target: GenomicInterval,
    read_filter: ReadFilter,
) -> Iterator[int]:
    """Yield the filtered depth of every covered locus in ``target``.

    Loci without any read are not visited; their depth of 0 would not change a
    target's totals. Reads with a reference skip (``N``) over the locus do not
    cover it; deletions do.
    """
    columns = bam.pileup(
        target.contig,
        target.start - 1,
        target.stop,
        truncate=True,
        stepper="nofilter",
        max_depth=_MAX_PILEUP_DEPTH,
        min_base_quality=0,
        ignore_overlaps=False,
        ignore_orphans=False,
    )
    for column in columns:
        reads = [p.alignment for p in column.pileups if not p.is_refskip]
        yield locus_depth(reads, read_filter)


def reduce_target(
    depths: Iterable[int],
    reduce_locus: Callable[[TargetStats, int], TargetStats] = fold_depth,
) -> TargetStats:
    stats = TargetStats()
    for depth in depths:
        stats = reduce_locus(stats, depth)
    return stats


def traverse_targets(
    bam_path: str | Path,
    targets: Sequence[GenomicInterval],
    *,
    read_filter: ReadFilter,
    on_traversal_done: Callable[[List[TargetResult]], R],
    reduce_locus: Callable[[TargetStats, int], TargetStats] = fold_depth,
    progress: bool = True,
) -> R:
    """Reduce each target's loci separately, then hand every result over at once.

    ``reduce_locus`` is called once per covered locus with the current target's
    stats, in genomic order. ``on_traversal_done`` is called exactly once, after
    the last target, with ``(target, stats)`` pairs in ``targets`` order; its
    return value is returned.
    """
    results: List[TargetResult] = []
    with pysam.AlignmentFile(str(bam_path), "rb") as bam:
        missing = sorted({t.contig for t in targets} - set(bam.references))
        if missing:
            raise ValueError(
                "Contig mismatch between BAM and targets; not in BAM header: " + ", ".join(missing)
            )

        it: Iterable[GenomicInterval] = targets
        if progress:
            it = tqdm(targets, unit="target", desc="Computing target coverage")

        for target in it:
            stats = reduce_target(iter_locus_depths(bam, target, read_filter), reduce_locus)
            results.append((target, stats))

    logger.info("Traversal done: %d targets", len(results))
    return on_traversal_done(results)
