from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from typing import Dict, Generic, Iterable, List, Set, Tuple, TypeVar

from .models import GenomicInterval

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class _ContigEntries(Generic[T]):
    """Per-contig entries sorted by padded start."""

    starts: List[int]  # padded starts, sorted
    stops: List[int]  # padded stops, aligned with starts
    payloads: List[T]
    max_span: int  # largest padded stop - start on this contig


class OverlapIndex(Generic[T]):
    """Padded-overlap lookup over a fixed set of intervals.

    A stored interval ``[s, e]`` occupies ``[s - upstream, e + downstream]`` for
    overlap purposes; queries are never padded. Built once, read-only afterwards.

    The default used for freestanding/booster classification pads the upstream
    side only (``with_slop``), so a stored interval is "near" a query when it
    starts at most ``slop`` bases after the query ends.

    Lookups bisect the sorted padded starts of the query's contig. Any stored
    interval that can reach ``query.start`` starts no earlier than
    ``query.start - max_span``, which bounds the scanned window. A single very long
    interval on a contig widens that window to the whole contig for every query.

    Payloads must be hashable; duplicates are reported once.
    """

    def __init__(
        self,
        entries: Iterable[Tuple[GenomicInterval, T]],
        *,
        upstream: int = 0,
        downstream: int = 0,
    ) -> None:
        if upstream < 0 or downstream < 0:
            raise ValueError("Overlap padding must be >= 0")
        self.upstream = upstream
        self.downstream = downstream

        by_contig: Dict[str, List[Tuple[int, int, int, T]]] = {}
        n = 0
        for order, (interval, payload) in enumerate(entries):
            by_contig.setdefault(interval.contig, []).append(
                (interval.start - upstream, interval.stop + downstream, order, payload)
            )
            n += 1

        self._by_contig: Dict[str, _ContigEntries[T]] = {}
        for contig, lst in by_contig.items():
            lst.sort(key=lambda x: (x[0], x[2]))
            self._by_contig[contig] = _ContigEntries(
                starts=[x[0] for x in lst],
                stops=[x[1] for x in lst],
                payloads=[x[3] for x in lst],
                max_span=max(x[1] - x[0] for x in lst),
            )
        self._size = n
        logger.debug(
            "Built overlap index: %d intervals on %d contigs (upstream=%d, downstream=%d)",
            n,
            len(self._by_contig),
            upstream,
            downstream,
        )

    @classmethod
    def with_slop(
        cls,
        entries: Iterable[Tuple[GenomicInterval, T]],
        slop: int,
        *,
        symmetric: bool = False,
    ) -> "OverlapIndex[T]":
        """Index padded by ``slop`` upstream only, or on both sides if ``symmetric``."""
        return cls(entries, upstream=slop, downstream=slop if symmetric else 0)

    def __len__(self) -> int:
        return self._size

    def overlaps(self, query: GenomicInterval) -> List[T]:
        """Distinct payloads whose padded interval intersects ``query``, in padded-start order."""
        entries = self._by_contig.get(query.contig)
        if entries is None:
            return []

        left = bisect.bisect_left(entries.starts, query.start - entries.max_span)
        right = bisect.bisect_right(entries.starts, query.stop)

        hits: List[T] = []
        seen: Set[T] = set()
        for i in range(left, right):
            if entries.stops[i] >= query.start:
                payload = entries.payloads[i]
                if payload not in seen:
                    seen.add(payload)
                    hits.append(payload)
        return hits

    def overlaps_any(self, query: GenomicInterval) -> bool:
        return len(self.overlaps(query)) > 0


def build_target_index(
    targets: Iterable[GenomicInterval], distance: int, *, symmetric: bool = False
) -> OverlapIndex[GenomicInterval]:
    """Self-index of targets; each target is its own payload."""
    return OverlapIndex.with_slop(((t, t) for t in targets), distance, symmetric=symmetric)


def is_freestanding(index: OverlapIndex[GenomicInterval], target: GenomicInterval) -> bool:
    """True if the only target near ``target`` is itself."""
    return len(index.overlaps(target)) == 1
