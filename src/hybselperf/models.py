from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

UNKNOWN_GENE = "UNKNOWN"


@dataclass(frozen=True)
class GenomicInterval:
    """A target, booster or exon interval.

    Coordinates are 1-based inclusive, matching interval lists and the report's
    ``contig:start-stop`` location column.

    Attributes
    ----------
    contig:
        Contig name as present in the reference FASTA / BAM header.
    start:
        First base of the interval (1-based).
    stop:
        Last base of the interval (1-based, inclusive).
    """

    contig: str
    start: int
    stop: int

    def __post_init__(self) -> None:
        if not self.contig:
            raise ValueError("Interval contig must be a non-empty string")
        if self.start < 1:
            raise ValueError(f"Interval start must be >= 1: {self.contig}:{self.start}-{self.stop}")
        if self.start > self.stop:
            raise ValueError(f"Interval start > stop: {self.contig}:{self.start}-{self.stop}")

    @property
    def length(self) -> int:
        return self.stop - self.start + 1

    def overlaps(self, other: "GenomicInterval") -> bool:
        return self.contig == other.contig and self.start <= other.stop and self.stop >= other.start

    def __str__(self) -> str:
        return f"{self.contig}:{self.start}-{self.stop}"


@dataclass
class TargetStats:
    """Running per-target depth totals, folded once per locus."""

    total_depth: int = 0
    hit_twice: bool = False
    positions_over_2x: int = 0
    positions_over_10x: int = 0
    positions_over_20x: int = 0
    positions_over_30x: int = 0


@dataclass(frozen=True)
class AnnotationRecord:
    """One RefSeq transcript: its span, exons and gene name.

    ``exons`` are 1-based inclusive intervals on ``contig``; ``tx_start``/``tx_end``
    bound all of them.
    """

    name: str
    gene_name: str
    contig: str
    strand: str
    tx_start: int
    tx_end: int
    exons: List[GenomicInterval] = field(default_factory=list)

    def overlaps_exon(self, query: GenomicInterval) -> bool:
        return any(exon.overlaps(query) for exon in self.exons)


@dataclass(frozen=True)
class TargetRow:
    """Per-target report row; field order is the output column order."""

    target: GenomicInterval
    length: int
    gc: float
    avg_coverage: float
    normalized_coverage: float
    hit_twice: bool
    freestanding: bool
    boosted: bool
    bases_over_2x: int
    bases_over_10x: int
    bases_over_20x: int
    bases_over_30x: int
    gene_name: str


@dataclass(frozen=True)
class ReportConfig:
    """Settings for one coverage run (see ``hybselperf coverage --help``)."""

    reference_file: str
    min_mapq: int = 1
    include_duplicates: bool = False
    free_standing_distance: int = 500
    booster_interval_file: Optional[str] = None
    booster_distance: int = 100
    annotation_file: Optional[str] = None
    downsample_fraction: Optional[float] = None
    seed: int = 0
    symmetric_proximity: bool = False

    def __post_init__(self) -> None:
        if self.free_standing_distance < 0:
            raise ValueError("free_standing_distance must be >= 0")
        if self.booster_distance < 0:
            raise ValueError("booster_distance must be >= 0")
        if self.downsample_fraction is not None and not (0.0 < self.downsample_fraction <= 1.0):
            raise ValueError("downsample_fraction must be in (0, 1]")


# One finished target as handed from the traversal to the report pass.
TargetResult = Tuple[GenomicInterval, TargetStats]
