from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

import pysam

logger = logging.getLogger(__name__)

_HASH_SPACE = float(2**64)


@dataclass(frozen=True)
class ReadFilter:
    """Inclusion rules applied to every read at a locus.

    Secondary, supplementary and unmapped alignments are always excluded.

    Attributes
    ----------
    min_mapq:
        Minimum mapping quality of reads to consider.
    include_duplicates:
        Count duplicate-flagged reads towards depth.
    downsample_fraction:
        If set, keep each read (by name) with this probability.
    seed:
        Seed mixed into the down-sampling hash.
    """

    min_mapq: int = 1
    include_duplicates: bool = False
    downsample_fraction: Optional[float] = None
    seed: int = 0


def downsample_keep(qname: str, fraction: float, seed: int = 0) -> bool:
    """Decide whether a read survives down-sampling to ``fraction``.

    The decision is a hash of (seed, read name), so every locus covered by a read
    (and its mate) sees the same outcome and reruns are reproducible.
    """
    if fraction >= 1.0:
        return True
    if fraction <= 0.0:
        return False
    digest = hashlib.sha1(f"{seed}:{qname}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") / _HASH_SPACE < fraction


def passes_filter(read: pysam.AlignedSegment, read_filter: ReadFilter) -> bool:
    if read.is_secondary or read.is_supplementary:
        return False
    if read.is_unmapped:
        return False
    if read.is_duplicate and not read_filter.include_duplicates:
        return False
    if read.mapping_quality < read_filter.min_mapq:
        return False
    if read_filter.downsample_fraction is not None:
        return downsample_keep(str(read.query_name), read_filter.downsample_fraction, read_filter.seed)
    return True


def locus_depth(reads: Iterable[pysam.AlignedSegment], read_filter: ReadFilter) -> int:
    """Number of reads at one locus that pass ``read_filter``."""
    return sum(1 for read in reads if passes_filter(read, read_filter))
