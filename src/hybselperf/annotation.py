"""RefSeq gene-name lookup for targets visited in genomic order.

The track is a UCSC ``refGene`` table (tab-separated, optionally gzipped)::

    bin name chrom strand txStart txEnd cdsStart cdsEnd exonCount exonStarts exonEnds score name2 ...

Starts are 0-based half-open in the file and converted to 1-based inclusive.

Lookups are sequential: the caller owns an ``AnnotationCursor`` and threads it
through ``resolve_gene_name`` calls in non-decreasing target order. The cursor only
moves forward, so resolving every target of a sorted target list touches each
record a bounded number of times.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from .models import UNKNOWN_GENE, AnnotationRecord, GenomicInterval
from .utils import open_textmaybe_gzip
from .validation import remap_contig, resolve_contig_style

logger = logging.getLogger(__name__)

_MIN_REFGENE_COLUMNS = 13


class AnnotationFormatError(ValueError):
    """Raised when a refGene line cannot be parsed."""


@dataclass(frozen=True)
class AnnotationTrack:
    """Transcript records sorted by (contig rank, txStart, txEnd)."""

    records: List[AnnotationRecord]
    contig_rank: Dict[str, int]

    def rank(self, contig: str) -> int:
        try:
            return self.contig_rank[contig]
        except KeyError:
            raise ValueError(f"Contig '{contig}' is not in the reference contig order") from None


@dataclass(frozen=True)
class AnnotationCursor:
    """Forward-only position in an ``AnnotationTrack``.

    ``index`` is the first record that may still overlap a later query;
    ``last_query`` is the (contig rank, start) of the last resolved query.
    """

    index: int = 0
    last_query: Optional[Tuple[int, int]] = None


def _parse_coords(value: str, path: Path, lineno: int) -> List[int]:
    try:
        return [int(x) for x in value.split(",") if x.strip()]
    except ValueError as err:
        raise AnnotationFormatError(f"{path}:{lineno}: bad exon coordinate list {value!r}") from err


def parse_refgene_line(line: str, *, path: Path = Path("<refGene>"), lineno: int = 0) -> AnnotationRecord:
    fields = line.rstrip("\r\n").split("\t")
    if len(fields) < _MIN_REFGENE_COLUMNS:
        raise AnnotationFormatError(
            f"{path}:{lineno}: expected >= {_MIN_REFGENE_COLUMNS} refGene columns, got {len(fields)}"
        )
    try:
        tx_start = int(fields[4]) + 1
        tx_end = int(fields[5])
        exon_count = int(fields[8])
    except ValueError as err:
        raise AnnotationFormatError(f"{path}:{lineno}: non-integer transcript coordinates") from err

    contig = fields[2]
    starts = _parse_coords(fields[9], path, lineno)
    ends = _parse_coords(fields[10], path, lineno)
    if len(starts) != exon_count or len(ends) != exon_count:
        raise AnnotationFormatError(
            f"{path}:{lineno}: exonCount={exon_count} but {len(starts)} starts / {len(ends)} ends"
        )
    try:
        exons = [GenomicInterval(contig, s + 1, e) for s, e in zip(starts, ends)]
    except ValueError as err:
        raise AnnotationFormatError(f"{path}:{lineno}: {err}") from err

    return AnnotationRecord(
        name=fields[1],
        gene_name=fields[12],
        contig=contig,
        strand=fields[3],
        tx_start=tx_start,
        tx_end=tx_end,
        exons=exons,
    )


def load_refseq(
    path: str | Path,
    contig_order: Sequence[str],
    *,
    contig_style: str = "auto",
) -> AnnotationTrack:
    """Load and sort a refGene track against the reference contig order.

    Records on contigs that are not in ``contig_order`` (alt haplotypes, patches)
    are dropped; contig names are first remapped to the reference naming style
    when they differ (see ``validation.resolve_contig_style``).
    """
    p = Path(path)
    raw: List[AnnotationRecord] = []
    with open_textmaybe_gzip(p, "rt") as fh:
        for lineno, line in enumerate(fh, start=1):
            if not line.strip() or line.startswith("#"):
                continue
            raw.append(parse_refgene_line(line, path=p, lineno=lineno))

    style = resolve_contig_style({r.contig for r in raw}, contig_order, contig_style, label="refGene")
    if style is not None:
        raw = [_remap_record(r, style) for r in raw]

    rank = {name: i for i, name in enumerate(contig_order)}
    kept = [r for r in raw if r.contig in rank]
    dropped = len(raw) - len(kept)
    if dropped:
        logger.info("Dropped %d refGene records on contigs absent from the reference", dropped)
    kept.sort(key=lambda r: (rank[r.contig], r.tx_start, r.tx_end))

    logger.info("Using RefSeq annotations from %s (%d transcripts)", p, len(kept))
    return AnnotationTrack(records=kept, contig_rank=rank)


def _remap_record(record: AnnotationRecord, style: str) -> AnnotationRecord:
    contig = remap_contig(record.contig, style)
    return AnnotationRecord(
        name=record.name,
        gene_name=record.gene_name,
        contig=contig,
        strand=record.strand,
        tx_start=record.tx_start,
        tx_end=record.tx_end,
        exons=[GenomicInterval(contig, e.start, e.stop) for e in record.exons],
    )


def resolve_gene_name(
    track: Optional[AnnotationTrack],
    cursor: AnnotationCursor,
    query: GenomicInterval,
) -> Tuple[str, AnnotationCursor]:
    """Return the gene name of the first record with an exon overlapping ``query``.

    Returns ``(gene_name, next_cursor)``; the gene name is ``UNKNOWN`` when there
    is no track or no overlapping exon.

    Raises
    ------
    ValueError
        If ``query`` starts before the previous query threaded through ``cursor``.
    """
    if track is None:
        return UNKNOWN_GENE, cursor

    qrank = track.rank(query.contig)
    key = (qrank, query.start)
    if cursor.last_query is not None and key < cursor.last_query:
        raise ValueError(f"Annotation queries must be in genomic order; {query} precedes the previous query")

    records = track.records
    i = cursor.index
    # Skip records that end before this query; later queries cannot reach them either.
    while i < len(records):
        rec = records[i]
        rec_rank = track.contig_rank[rec.contig]
        if rec_rank < qrank or (rec_rank == qrank and rec.tx_end < query.start):
            i += 1
            continue
        break

    gene_name = UNKNOWN_GENE
    j = i
    while j < len(records):
        rec = records[j]
        if rec.contig != query.contig or rec.tx_start > query.stop:
            break
        if rec.overlaps_exon(query):
            gene_name = rec.gene_name
            break
        j += 1

    return gene_name, AnnotationCursor(index=i, last_query=key)
