"""Readers for target and booster interval files.

Two formats are accepted:

- Picard interval lists: optional ``@`` SAM-style header lines followed by
  ``contig  start  end  [strand  name]`` rows, 1-based inclusive.
- BED (``.bed`` / ``.bed.gz``): ``contig  start  end ...`` rows, 0-based half-open.
  ``track``/``browser`` lines are skipped.

All intervals come back as 1-based inclusive ``GenomicInterval`` objects.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Sequence

from .models import GenomicInterval
from .utils import open_textmaybe_gzip

logger = logging.getLogger(__name__)


class IntervalFormatError(ValueError):
    """Raised when an interval file line cannot be parsed."""


def _is_bed(path: Path) -> bool:
    suffixes = [s.lower() for s in path.suffixes]
    return bool(suffixes) and (suffixes[-1] == ".bed" or suffixes[-2:] == [".bed", ".gz"])


def read_intervals(path: str | Path) -> List[GenomicInterval]:
    """Read an interval list or BED file in file order.

    Parameters
    ----------
    path:
        Interval list (``.interval_list``/``.intervals``/anything else) or BED file.

    Raises
    ------
    IntervalFormatError
        On a malformed line (wrong column count, non-integer or inverted coordinates).
    """
    p = Path(path)
    bed = _is_bed(p)
    out: List[GenomicInterval] = []

    with open_textmaybe_gzip(p, "rt") as fh:
        for lineno, line in enumerate(fh, start=1):
            line = line.rstrip("\r\n")
            if not line.strip() or line.startswith("#") or line.startswith("@"):
                continue
            if bed and (line.startswith("track") or line.startswith("browser")):
                continue
            fields = line.split("\t") if "\t" in line else line.split()
            if len(fields) < 3:
                raise IntervalFormatError(f"{p}:{lineno}: expected at least 3 columns, got {len(fields)}")
            contig = fields[0]
            try:
                start = int(fields[1])
                stop = int(fields[2])
            except ValueError as err:
                raise IntervalFormatError(f"{p}:{lineno}: non-integer coordinates: {line!r}") from err
            if bed:
                start += 1
            try:
                out.append(GenomicInterval(contig, start, stop))
            except ValueError as err:
                raise IntervalFormatError(f"{p}:{lineno}: {err}") from err

    logger.info("Read %d intervals from %s", len(out), p)
    return out


def contig_ranks(contig_order: Sequence[str]) -> Dict[str, int]:
    return {name: i for i, name in enumerate(contig_order)}


def sort_intervals(intervals: Iterable[GenomicInterval], contig_order: Sequence[str]) -> List[GenomicInterval]:
    """Sort intervals into genomic order (reference contig order, then start, then stop).

    Raises ValueError for an interval on a contig missing from ``contig_order``.
    """
    ranks = contig_ranks(contig_order)
    items = list(intervals)
    for iv in items:
        if iv.contig not in ranks:
            raise ValueError(f"Interval {iv} is on contig '{iv.contig}', which is not in the reference")
    return sorted(items, key=lambda iv: (ranks[iv.contig], iv.start, iv.stop))


def unique_intervals(intervals: Iterable[GenomicInterval], contig_order: Sequence[str]) -> List[GenomicInterval]:
    """Sort and merge overlapping or abutting intervals."""
    merged: List[GenomicInterval] = []
    for iv in sort_intervals(intervals, contig_order):
        if merged and merged[-1].contig == iv.contig and iv.start <= merged[-1].stop + 1:
            last = merged[-1]
            merged[-1] = GenomicInterval(last.contig, last.start, max(last.stop, iv.stop))
        else:
            merged.append(iv)
    return merged


def check_within_contigs(intervals: Iterable[GenomicInterval], contig_lengths: Dict[str, int]) -> None:
    """Raise ValueError if any interval is off its contig or past its end."""
    for iv in intervals:
        length = contig_lengths.get(iv.contig)
        if length is None:
            raise ValueError(f"Interval {iv} is on contig '{iv.contig}', which is not in the reference")
        if iv.stop > length:
            raise ValueError(f"Interval {iv} extends past the end of {iv.contig} (length {length})")
