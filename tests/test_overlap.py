import random

import pytest

from hybselperf.models import GenomicInterval
from hybselperf.overlap import OverlapIndex, build_target_index, is_freestanding


def iv(contig: str, start: int, stop: int) -> GenomicInterval:
    return GenomicInterval(contig, start, stop)


def test_self_overlap():
    target = iv("chr1", 100, 199)
    index = OverlapIndex.with_slop([(target, target)], 500)
    assert index.overlaps(target) == [target]


def test_upstream_padding_edge():
    stored = iv("chr1", 1000, 1100)
    index = OverlapIndex.with_slop([(stored, "s")], 500)
    # Padded to [500, 1100].
    assert index.overlaps(iv("chr1", 400, 500)) == ["s"]
    assert index.overlaps(iv("chr1", 300, 499)) == []
    assert index.overlaps(iv("chr1", 1100, 1200)) == ["s"]
    assert index.overlaps(iv("chr1", 1101, 1200)) == []


def test_upstream_padding_does_not_extend_downstream():
    stored = iv("chr1", 100, 199)
    asymmetric = OverlapIndex.with_slop([(stored, "s")], 500)
    symmetric = OverlapIndex.with_slop([(stored, "s")], 500, symmetric=True)
    query = iv("chr1", 300, 399)
    assert asymmetric.overlaps(query) == []
    assert symmetric.overlaps(query) == ["s"]


@pytest.mark.parametrize("distance", [1, 2, 50, 500])
def test_downstream_padding_boundary(distance):
    end = 199
    stored = iv("chr1", 100, end)
    query = iv("chr1", end + distance, end + distance + 10)

    reaching = OverlapIndex([(stored, "s")], downstream=distance)
    assert reaching.overlaps(query) == ["s"]

    if distance >= 2:
        short = OverlapIndex([(stored, "s")], downstream=distance - 2)
        assert short.overlaps(query) == []


def test_contigs_are_separate():
    stored = iv("chr1", 100, 200)
    index = OverlapIndex.with_slop([(stored, "s")], 1000, symmetric=True)
    assert index.overlaps(iv("chr2", 100, 200)) == []


def test_empty_index():
    index = OverlapIndex.with_slop([], 100)
    assert len(index) == 0
    assert index.overlaps(iv("chr1", 1, 10)) == []
    assert not index.overlaps_any(iv("chr1", 1, 10))


def test_duplicate_payloads_are_reported_once():
    t = iv("chr1", 100, 200)
    index = OverlapIndex.with_slop([(t, t), (t, t)], 0)
    assert index.overlaps(t) == [t]


def test_many_hits_keep_first_occurrence_order():
    entries = [(iv("chr1", s, s + 1000), f"p{s % 7}") for s in range(1, 2000, 10)]
    index = OverlapIndex(entries)
    hits = index.overlaps(iv("chr1", 1500, 1600))
    assert sorted(hits) == [f"p{i}" for i in range(7)]
    # First occurrence by padded start decides the order.
    assert hits == [f"p{s % 7}" for s in range(501, 571, 10)]


def test_negative_padding_rejected():
    with pytest.raises(ValueError):
        OverlapIndex([], upstream=-1)


def test_long_interval_found_from_far_query():
    # A long interval that starts well before many short ones must still be found.
    entries = [(iv("chr1", 1, 100_000), "long")]
    entries += [(iv("chr1", s, s + 10), f"short{s}") for s in range(50_000, 50_500, 20)]
    index = OverlapIndex(entries)
    hits = index.overlaps(iv("chr1", 90_000, 90_010))
    assert hits == ["long"]


def test_matches_naive_scan():
    rng = random.Random(42)
    entries = []
    for i in range(300):
        contig = rng.choice(["chr1", "chr2"])
        start = rng.randint(1, 20_000)
        entries.append((iv(contig, start, start + rng.randint(0, 800)), i))
    upstream, downstream = 150, 40
    index = OverlapIndex(entries, upstream=upstream, downstream=downstream)

    for _ in range(300):
        contig = rng.choice(["chr1", "chr2"])
        start = rng.randint(1, 21_000)
        query = iv(contig, start, start + rng.randint(0, 300))
        expected = {
            payload
            for interval, payload in entries
            if interval.contig == query.contig
            and interval.start - upstream <= query.stop
            and interval.stop + downstream >= query.start
        }
        assert set(index.overlaps(query)) == expected


def test_freestanding_far_apart():
    a = iv("chr1", 100, 199)
    b = iv("chr1", 10_000, 10_099)
    index = build_target_index([a, b], 500)
    assert is_freestanding(index, a)
    assert is_freestanding(index, b)


def test_freestanding_is_directional_by_default():
    upstream_target = iv("chr1", 1001, 1100)
    downstream_target = iv("chr1", 1401, 1500)
    index = build_target_index([upstream_target, downstream_target], 500)
    # The downstream target's padded start reaches back over the upstream target.
    assert not is_freestanding(index, upstream_target)
    assert is_freestanding(index, downstream_target)

    symmetric = build_target_index([upstream_target, downstream_target], 500, symmetric=True)
    assert not is_freestanding(symmetric, upstream_target)
    assert not is_freestanding(symmetric, downstream_target)
