from pathlib import Path
from typing import Dict

import pysam
import pytest

from hybselperf.models import GenomicInterval
from hybselperf.reference import ReferenceAccessError, ReferenceAccessor, gc_content, gc_fraction


def write_fasta(path: Path, seqs: Dict[str, str]) -> Path:
    lines = []
    for name, seq in seqs.items():
        lines.append(f">{name}")
        for i in range(0, len(seq), 60):
            lines.append(seq[i : i + 60])
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    pysam.faidx(str(path))
    return path


def test_gc_fraction_synthetic():
    assert gc_fraction("GCGCATATAT") == pytest.approx(0.4)


def test_gc_fraction_is_case_insensitive():
    assert gc_fraction("gcGCatAT") == pytest.approx(0.5)
    assert gc_fraction("NNNN") == 0.0


def test_gc_fraction_empty_sequence():
    with pytest.raises(ValueError):
        gc_fraction("")


def test_gc_content_from_fasta(tmp_path: Path):
    fa = write_fasta(tmp_path / "ref.fa", {"chr1": "GCGCATATAT" + "A" * 50, "chr2": "ggccaattgg"})
    with ReferenceAccessor(fa) as ref:
        assert ref.contigs == ["chr1", "chr2"]
        assert ref.contig_lengths == {"chr1": 60, "chr2": 10}
        assert gc_content(ref, GenomicInterval("chr1", 1, 10)) == pytest.approx(0.4)
        assert gc_content(ref, GenomicInterval("chr1", 11, 20)) == 0.0
        assert gc_content(ref, GenomicInterval("chr2", 1, 4)) == pytest.approx(1.0)


def test_missing_contig_is_fatal(tmp_path: Path):
    fa = write_fasta(tmp_path / "ref.fa", {"chr1": "ACGT" * 10})
    with ReferenceAccessor(fa) as ref:
        with pytest.raises(ReferenceAccessError):
            ref.fetch(GenomicInterval("chrZ", 1, 10))


def test_interval_past_contig_end_is_fatal(tmp_path: Path):
    fa = write_fasta(tmp_path / "ref.fa", {"chr1": "ACGT" * 10})
    with ReferenceAccessor(fa) as ref:
        with pytest.raises(ReferenceAccessError):
            ref.fetch(GenomicInterval("chr1", 30, 50))


def test_missing_reference_file(tmp_path: Path):
    with pytest.raises(ReferenceAccessError):
        with ReferenceAccessor(tmp_path / "absent.fa"):
            pass


def test_accessor_is_released_on_error(tmp_path: Path):
    fa = write_fasta(tmp_path / "ref.fa", {"chr1": "ACGT" * 10})
    accessor = ReferenceAccessor(fa)
    with pytest.raises(RuntimeError):
        with accessor:
            raise RuntimeError("boom")
    with pytest.raises(ReferenceAccessError):
        accessor.fetch(GenomicInterval("chr1", 1, 4))
