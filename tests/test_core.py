import pysam

from hybselperf.depth import ReadFilter, downsample_keep, locus_depth, passes_filter


def make_read(
    name: str = "r1",
    *,
    flag: int = 0,
    mapq: int = 60,
    seq: str = "ACGTACGTAA",
    start: int = 100,
) -> pysam.AlignedSegment:
    a = pysam.AlignedSegment()
    a.query_name = name
    a.query_sequence = seq
    a.flag = flag
    a.reference_start = start
    a.mapping_quality = mapq
    a.cigartuples = [(0, len(seq))]  # M
    a.query_qualities = pysam.qualitystring_to_array("I" * len(seq))
    return a


def test_default_filter_counts_primary_mapped_reads():
    reads = [
        make_read("ok1"),
        make_read("ok2", mapq=1),
        make_read("secondary", flag=0x100),
        make_read("supplementary", flag=0x800),
        make_read("unmapped", flag=0x4),
        make_read("duplicate", flag=0x400),
        make_read("mapq0", mapq=0),
    ]
    assert locus_depth(reads, ReadFilter()) == 2


def test_include_duplicates():
    reads = [make_read("a"), make_read("b", flag=0x400)]
    assert locus_depth(reads, ReadFilter(include_duplicates=True)) == 2
    assert locus_depth(reads, ReadFilter(include_duplicates=False)) == 1


def test_secondary_excluded_even_with_duplicates_included():
    read = make_read("s", flag=0x100 | 0x400)
    assert not passes_filter(read, ReadFilter(include_duplicates=True, min_mapq=0))


def test_min_mapq_threshold_is_inclusive():
    filt = ReadFilter(min_mapq=20)
    assert passes_filter(make_read(mapq=20), filt)
    assert not passes_filter(make_read(mapq=19), filt)


def test_empty_locus_has_zero_depth():
    assert locus_depth([], ReadFilter()) == 0


def test_downsample_is_deterministic_per_read_name():
    names = [f"read{i}" for i in range(2000)]
    first = [downsample_keep(n, 0.5, seed=3) for n in names]
    second = [downsample_keep(n, 0.5, seed=3) for n in names]
    assert first == second
    kept = sum(first)
    assert 800 < kept < 1200


def test_downsample_bounds():
    assert all(downsample_keep(f"r{i}", 1.0) for i in range(100))
    assert not any(downsample_keep(f"r{i}", 0.0) for i in range(100))


def test_downsample_applies_in_filter():
    reads = [make_read(f"r{i}") for i in range(1000)]
    depth = locus_depth(reads, ReadFilter(downsample_fraction=0.1, seed=1))
    assert 40 < depth < 160
    # Same read name, same decision at every locus.
    assert locus_depth(reads, ReadFilter(downsample_fraction=0.1, seed=1)) == depth
