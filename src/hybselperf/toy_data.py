from __future__ import annotations

import random
from pathlib import Path
from typing import Dict, List, Tuple

import pysam

from .utils import ensure_outdir, write_json

_CONTIGS = [("chr1", 10_000), ("chr2", 2_000)]
_READ_LENGTH = 50

# (contig, start, stop), 1-based inclusive
TOY_TARGETS = [
    ("chr1", 1001, 1100),
    ("chr1", 1401, 1500),
    ("chr1", 8001, 8100),
    ("chr2", 501, 600),
]
TOY_BOOSTERS = [("chr1", 8151, 8200)]


def _write_fasta(path: Path, seqs: Dict[str, str]) -> None:
    lines: List[str] = []
    for contig, seq in seqs.items():
        lines.append(f">{contig}")
        for i in range(0, len(seq), 60):
            lines.append(seq[i : i + 60])
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _write_interval_list(path: Path, intervals: List[Tuple[str, int, int]]) -> None:
    lines = ["@HD\tVN:1.6\tSO:coordinate"]
    for contig, length in _CONTIGS:
        lines.append(f"@SQ\tSN:{contig}\tLN:{length}")
    for i, (contig, start, stop) in enumerate(intervals):
        lines.append(f"{contig}\t{start}\t{stop}\t+\tinterval_{i + 1}")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _refgene_line(
    name: str, gene: str, contig: str, tx: Tuple[int, int], exons: List[Tuple[int, int]]
) -> str:
    # UCSC refGene, 0-based half-open
    starts = "".join(f"{s}," for s, _ in exons)
    ends = "".join(f"{e}," for _, e in exons)
    frames = "".join("0," for _ in exons)
    fields = [
        "0", name, contig, "+", str(tx[0]), str(tx[1]), str(tx[0]), str(tx[1]),
        str(len(exons)), starts, ends, "0", gene, "cmpl", "cmpl", frames,
    ]
    return "\t".join(fields)


def _make_read(
    name: str,
    ref_id: int,
    start0: int,
    seq: str,
    mapq: int = 60,
    flag: int = 0,
) -> pysam.AlignedSegment:
    a = pysam.AlignedSegment()
    a.query_name = name
    a.query_sequence = seq
    a.flag = flag
    a.reference_id = ref_id
    a.reference_start = start0
    a.mapping_quality = mapq
    a.cigartuples = [(0, len(seq))]
    a.query_qualities = pysam.qualitystring_to_array("I" * len(seq))
    return a


def make_toy_data(*, outdir: str | Path) -> Dict[str, str]:
    """Create a tiny reference, BAM, target list, booster list and refGene track.

    The targets cover the interesting cases: a pair of targets 300 bp apart, a
    boosted target, and a target on chr2 without any reads.

    Returns
    -------
    dict
        Paths to the generated files.
    """
    outdir_p = ensure_outdir(outdir)
    rng = random.Random(7)

    seqs = {contig: "".join(rng.choice("ACGT") for _ in range(length)) for contig, length in _CONTIGS}
    ref_fa = outdir_p / "toy_ref.fa"
    _write_fasta(ref_fa, seqs)
    pysam.faidx(str(ref_fa))

    header = {
        "HD": {"VN": "1.6", "SO": "coordinate"},
        "SQ": [{"SN": contig, "LN": length} for contig, length in _CONTIGS],
    }

    reads: List[pysam.AlignedSegment] = []
    chr1 = seqs["chr1"]

    def add_reads(prefix: str, first0: int, n: int, step: int, **kwargs: int) -> None:
        for i in range(n):
            start0 = first0 + i * step
            reads.append(
                _make_read(f"{prefix}_{i}", 0, start0, chr1[start0 : start0 + _READ_LENGTH], **kwargs)
            )

    add_reads("t1", 1000, 20, 2)
    add_reads("t2", 1420, 4, 5)
    add_reads("t3", 8000, 40, 1)
    # Reads the default filters reject.
    add_reads("lowmapq", 8000, 5, 1, mapq=0)
    add_reads("dup", 8000, 5, 1, flag=0x400)
    add_reads("secondary", 8000, 5, 1, flag=0x100)

    reads.sort(key=lambda r: (r.reference_id, r.reference_start))

    bam_path = outdir_p / "toy.bam"
    with pysam.AlignmentFile(str(bam_path), "wb", header=header) as bam:
        for r in reads:
            bam.write(r)
    pysam.index(str(bam_path))

    targets_path = outdir_p / "targets.interval_list"
    _write_interval_list(targets_path, TOY_TARGETS)
    boosters_path = outdir_p / "boosters.interval_list"
    _write_interval_list(boosters_path, TOY_BOOSTERS)

    refseq_path = outdir_p / "refGene.txt"
    refseq_path.write_text(
        "\n".join(
            [
                _refgene_line("NM_000001", "GENEA", "chr1", (900, 1600), [(950, 1120), (1450, 1520)]),
                _refgene_line("NM_000002", "GENEB", "chr1", (7990, 8300), [(8200, 8300)]),
            ]
        )
        + "\n",
        encoding="utf-8",
    )

    summary = {
        "ref_fa": str(ref_fa),
        "bam": str(bam_path),
        "targets": str(targets_path),
        "boosters": str(boosters_path),
        "refseq": str(refseq_path),
        "outdir": str(outdir_p),
    }

    write_json(outdir_p / "toy_summary.json", summary)
    return summary
