import io
import logging
import math
from pathlib import Path

import pysam
import pytest

from hybselperf.accumulator import fold_depths
from hybselperf.annotation import AnnotationTrack
from hybselperf.models import AnnotationRecord, GenomicInterval, ReportConfig, TargetStats
from hybselperf.reference import ReferenceAccessor
from hybselperf.stats import (
    COLUMNS,
    build_target_rows,
    format_row,
    mean_target_coverage,
    summarize_rows,
    write_target_table,
)

T1 = GenomicInterval("chr1", 100, 199)
T2 = GenomicInterval("chr1", 10_000, 10_099)


def hit_twice_stats(total_depth: int) -> TargetStats:
    return TargetStats(total_depth=total_depth, hit_twice=True, positions_over_2x=100, positions_over_10x=100)


@pytest.fixture
def reference_path(tmp_path: Path) -> Path:
    seq = "GCGCATATAT" * 1100
    fa = tmp_path / "ref.fa"
    lines = [">chr1"] + [seq[i : i + 60] for i in range(0, len(seq), 60)]
    fa.write_text("\n".join(lines) + "\n", encoding="utf-8")
    pysam.faidx(str(fa))
    return fa


def test_two_target_scenario(reference_path: Path):
    results = [(T1, hit_twice_stats(10_000)), (T2, hit_twice_stats(5_000))]
    config = ReportConfig(reference_file=str(reference_path))

    with ReferenceAccessor(reference_path) as ref:
        report = build_target_rows(results, reference=ref, config=config)

    assert report.mean_target_coverage == pytest.approx(75.0)
    first, second = report.rows
    assert first.avg_coverage == pytest.approx(100.0)
    assert first.normalized_coverage == pytest.approx(4.0 / 3.0)
    assert second.normalized_coverage == pytest.approx(2.0 / 3.0)
    assert first.gc == pytest.approx(0.4)
    assert first.freestanding and second.freestanding
    assert not first.boosted and not second.boosted
    assert first.gene_name == "UNKNOWN"

    assert format_row(first).split("\t") == [
        "chr1:100-199", "100", "0.4000", "100.0000", "1.3333", "1", "1", "0", "100", "100", "0", "0", "UNKNOWN",
    ]
    assert format_row(second).split("\t")[4] == "0.6667"


def test_zero_depth_target_excluded_from_mean(reference_path: Path):
    empty = GenomicInterval("chr1", 5_000, 5_099)
    results = [(T1, hit_twice_stats(10_000)), (empty, TargetStats()), (T2, hit_twice_stats(5_000))]
    assert mean_target_coverage(results) == pytest.approx(75.0)

    with ReferenceAccessor(reference_path) as ref:
        report = build_target_rows(results, reference=ref, config=ReportConfig(reference_file=str(reference_path)))

    row = report.rows[1]
    assert row.target == empty
    assert row.avg_coverage == 0.0
    assert row.normalized_coverage == 0.0
    assert not row.hit_twice


def test_undefined_mean_reports_nan(reference_path: Path, caplog):
    results = [(T1, fold_depths([1] * 100)), (T2, TargetStats())]
    assert mean_target_coverage(results) is None

    with caplog.at_level(logging.WARNING, logger="hybselperf.stats"):
        with ReferenceAccessor(reference_path) as ref:
            report = build_target_rows(
                results, reference=ref, config=ReportConfig(reference_file=str(reference_path))
            )

    assert report.mean_target_coverage is None
    assert all(math.isnan(r.normalized_coverage) for r in report.rows)
    assert "undefined" in caplog.text
    assert format_row(report.rows[0]).split("\t")[4] == "NaN"
    assert format_row(report.rows[0]).split("\t")[3] == "1.0000"


def test_freestanding_and_boosted_classification(reference_path: Path):
    near = GenomicInterval("chr1", 500, 599)
    results = [(T1, hit_twice_stats(1000)), (near, hit_twice_stats(1000)), (T2, hit_twice_stats(1000))]
    boosters = [GenomicInterval("chr1", 250, 260)]
    config = ReportConfig(reference_file=str(reference_path))

    with ReferenceAccessor(reference_path) as ref:
        rows = build_target_rows(results, reference=ref, config=config, boosters=boosters).rows

    assert [r.freestanding for r in rows] == [False, True, True]
    # Booster padded to [150, 260] reaches T1 only.
    assert [r.boosted for r in rows] == [True, False, False]


def test_symmetric_proximity(reference_path: Path):
    near = GenomicInterval("chr1", 500, 599)
    results = [(T1, hit_twice_stats(1000)), (near, hit_twice_stats(1000))]
    config = ReportConfig(reference_file=str(reference_path), symmetric_proximity=True)

    with ReferenceAccessor(reference_path) as ref:
        rows = build_target_rows(results, reference=ref, config=config).rows

    assert [r.freestanding for r in rows] == [False, False]


def test_gene_names_are_resolved_in_order(reference_path: Path):
    gene = AnnotationRecord(
        name="NM_1",
        gene_name="GENEA",
        contig="chr1",
        strand="+",
        tx_start=50,
        tx_end=400,
        exons=[GenomicInterval("chr1", 150, 160)],
    )
    track = AnnotationTrack(records=[gene], contig_rank={"chr1": 0})
    results = [(T1, hit_twice_stats(100)), (T2, hit_twice_stats(100))]

    with ReferenceAccessor(reference_path) as ref:
        rows = build_target_rows(
            results,
            reference=ref,
            config=ReportConfig(reference_file=str(reference_path)),
            annotation=track,
        ).rows

    assert [r.gene_name for r in rows] == ["GENEA", "UNKNOWN"]


def test_write_target_table_header_and_rows(reference_path: Path):
    results = [(T1, hit_twice_stats(10_000)), (T2, hit_twice_stats(5_000))]
    with ReferenceAccessor(reference_path) as ref:
        report = build_target_rows(results, reference=ref, config=ReportConfig(reference_file=str(reference_path)))

    buf = io.StringIO()
    write_target_table(report.rows, buf)
    lines = buf.getvalue().splitlines()
    assert lines[0] == "\t".join(COLUMNS)
    assert lines[0].startswith("location\tlength\tgc\tavg_coverage\tnormalized_coverage")
    assert len(lines) == 3
    assert all(len(line.split("\t")) == 13 for line in lines)


def test_summarize_rows(reference_path: Path):
    results = [(T1, hit_twice_stats(10_000)), (T2, TargetStats())]
    with ReferenceAccessor(reference_path) as ref:
        report = build_target_rows(results, reference=ref, config=ReportConfig(reference_file=str(reference_path)))

    summary = summarize_rows(report)
    assert summary["targets"] == 2
    assert summary["target_bases"] == 200
    assert summary["targets_hit_twice"] == 1
    assert summary["targets_freestanding"] == 2
    assert summary["targets_boosted"] == 0
    assert summary["mean_target_coverage"] == pytest.approx(100.0)
    assert summary["fraction_bases_over"]["2x"] == pytest.approx(0.5)
    assert summary["fraction_bases_over"]["30x"] == 0.0
    assert summary["normalized_coverage_percentiles"]["p50"] == pytest.approx(0.5)
