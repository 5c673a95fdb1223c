from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

from . import __version__
from .annotation import AnnotationTrack, load_refseq
from .depth import ReadFilter
from .intervals import check_within_contigs, read_intervals, sort_intervals, unique_intervals
from .models import GenomicInterval, ReportConfig, TargetResult
from .plotting import plot_bases_over_thresholds, plot_gc_vs_coverage, plot_normalized_coverage_hist
from .reference import ReferenceAccessor
from .report import render_report
from .stats import TargetReport, build_target_rows, summarize_rows, write_target_table
from .toy_data import make_toy_data
from .traversal import traverse_targets
from .utils import ensure_outdir, open_textmaybe_gzip, write_json
from .validation import check_bam_index, remap_contig, resolve_contig_style


def _setup_logging(verbosity: int, *, logfile: Optional[Path] = None) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    log_fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(level=level, format=log_fmt, stream=sys.stderr)

    if logfile is not None:
        logfile.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(logfile)
        fh.setLevel(level)
        fh.setFormatter(logging.Formatter(log_fmt))
        logging.getLogger().addHandler(fh)


def _path_exists(p: str) -> str:
    if not Path(p).exists():
        raise argparse.ArgumentTypeError(f"Path does not exist: {p}")
    return p


def _fraction(p: str) -> float:
    v = float(p)
    if not (0.0 < v <= 1.0):
        raise argparse.ArgumentTypeError(f"Fraction must be in (0, 1]: {p}")
    return v


def _non_negative_int(p: str) -> int:
    v = int(p)
    if v < 0:
        raise argparse.ArgumentTypeError(f"Value must be >= 0: {p}")
    return v


def _log_path(outdir: Path, name: str) -> Path:
    return outdir / "logs" / name


def _handle_error(err: Exception, *, log_path: Optional[Path] = None) -> int:
    msg = f"{err.__class__.__name__}: {err}"
    sys.stderr.write(msg + "\n")
    if log_path is not None:
        sys.stderr.write(f"See log: {log_path}\n")
    return 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="hybselperf",
        description=(
            "HybSelPerf: per-target coverage, GC and proximity statistics for "
            "hybrid-selection (targeted) sequencing BAMs."
        ),
    )
    p.add_argument("--version", action="version", version=f"hybselperf {__version__}")

    sub = p.add_subparsers(dest="cmd", required=True)

    # -----------------
    # coverage
    # -----------------
    c = sub.add_parser(
        "coverage",
        help="Write one row of coverage statistics per target interval.",
    )
    c.add_argument("--bam", required=True, type=_path_exists, help="Input BAM (sorted, indexed).")
    c.add_argument(
        "--targets",
        required=True,
        type=_path_exists,
        help="Target intervals (Picard interval list or BED).",
    )
    c.add_argument("--ref", required=True, type=_path_exists, help="Reference FASTA (indexed).")
    c.add_argument(
        "--booster",
        default=None,
        type=_path_exists,
        help="Interval list of booster baits.",
    )
    c.add_argument(
        "--booster-distance",
        type=_non_negative_int,
        default=100,
        help="Distance up to which a booster can affect a target.",
    )
    c.add_argument(
        "--free-standing-distance",
        type=_non_negative_int,
        default=500,
        help="Minimum distance to the next target to consider a target freestanding.",
    )
    c.add_argument(
        "--symmetric-proximity",
        action="store_true",
        help="Pad intervals on both sides for freestanding/booster tests (default: upstream only).",
    )
    c.add_argument(
        "--refseq",
        default=None,
        type=_path_exists,
        help="RefSeq transcript annotation (UCSC refGene.txt[.gz]); adds gene names to targets.",
    )
    c.add_argument(
        "--contig-style",
        choices=["auto", "ucsc", "ensembl", "none"],
        default="auto",
        help="Contig naming style to reconcile booster/RefSeq files with the reference.",
    )

    # Read filters
    c.add_argument("--min-mapq", type=int, default=1, help="Minimum mapping quality of reads to consider.")
    c.add_argument("--include-duplicates", action="store_true", help="Count duplicate reads.")
    c.add_argument(
        "--downsample",
        type=_fraction,
        default=None,
        help="Keep each read (by name) with this probability before counting depth.",
    )
    c.add_argument("--seed", type=int, default=0, help="Seed for --downsample.")

    # Outputs
    c.add_argument("--out", default=None, help="Write the target table here (.gz ok) instead of stdout.")
    c.add_argument(
        "--outdir",
        default=None,
        help="Also write summary.json, plots and report.html into this directory.",
    )
    c.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    c.add_argument("--dry-run", action="store_true", help="Validate inputs without reading the BAM.")
    c.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v/-vv).")

    # -----------------
    # make-toy-data
    # -----------------
    t = sub.add_parser(
        "make-toy-data",
        help="Generate a tiny reference, BAM, target list, booster list and refGene file.",
    )
    t.add_argument("--outdir", required=True, help="Output directory for toy data.")
    t.add_argument("--dry-run", action="store_true", help="Validate paths without writing files.")

    return p


# -----------------
# Input loading
# -----------------

def _load_targets(path: str, reference: ReferenceAccessor) -> List[GenomicInterval]:
    targets = read_intervals(path)
    if not targets:
        raise ValueError(f"No target intervals found in {path}")
    check_within_contigs(targets, reference.contig_lengths)
    return sort_intervals(targets, reference.contigs)


def _load_boosters(path: str, reference: ReferenceAccessor, contig_style: str) -> List[GenomicInterval]:
    logger = logging.getLogger("hybselperf")
    boosters = read_intervals(path)
    contigs = reference.contigs

    style = resolve_contig_style({b.contig for b in boosters}, contigs, contig_style, label="booster")
    if style is not None:
        boosters = [GenomicInterval(remap_contig(b.contig, style), b.start, b.stop) for b in boosters]

    check_within_contigs(boosters, reference.contig_lengths)
    if not boosters:
        logger.warning("Booster file %s has no intervals; no target will be boosted.", path)
    return unique_intervals(boosters, contigs)


def _write_extras(
    outdir: Path,
    *,
    report: TargetReport,
    config: ReportConfig,
    run: dict,
) -> Path:
    summary = summarize_rows(report)
    write_json(outdir / "summary.json", {"run": run, "config": asdict(config), "summary": summary})

    plots_dir = outdir / "plots"
    plots_dir.mkdir(parents=True, exist_ok=True)
    normalized_png = plots_dir / "normalized_coverage_hist.png"
    gc_png = plots_dir / "gc_vs_coverage.png"
    thresholds_png = plots_dir / "bases_over_thresholds.png"

    plot_normalized_coverage_hist(rows=report.rows, out_png=normalized_png)
    plot_gc_vs_coverage(rows=report.rows, out_png=gc_png)
    plot_bases_over_thresholds(fraction_over=summary["fraction_bases_over"], out_png=thresholds_png)

    plots_rel = {
        "normalized_hist": str(Path("plots") / normalized_png.name),
        "gc_scatter": str(Path("plots") / gc_png.name),
        "thresholds": str(Path("plots") / thresholds_png.name),
    }
    return render_report(
        outdir=outdir,
        version=__version__,
        run=run,
        config=asdict(config),
        summary=summary,
        plots=plots_rel,
    )


# -----------------
# Command handlers
# -----------------

def cmd_coverage(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve() if args.outdir else None
    log_path = _log_path(outdir, "coverage.log") if outdir is not None and not args.dry_run else None
    _setup_logging(args.verbose, logfile=log_path)

    logger = logging.getLogger("hybselperf")
    logger.info("hybselperf %s", __version__)

    try:
        config = ReportConfig(
            reference_file=args.ref,
            min_mapq=int(args.min_mapq),
            include_duplicates=bool(args.include_duplicates),
            free_standing_distance=int(args.free_standing_distance),
            booster_interval_file=args.booster,
            booster_distance=int(args.booster_distance),
            annotation_file=args.refseq,
            downsample_fraction=args.downsample,
            seed=int(args.seed),
            symmetric_proximity=bool(args.symmetric_proximity),
        )
        read_filter = ReadFilter(
            min_mapq=config.min_mapq,
            include_duplicates=config.include_duplicates,
            downsample_fraction=config.downsample_fraction,
            seed=config.seed,
        )
        check_bam_index(args.bam)

        with ReferenceAccessor(config.reference_file) as reference:
            targets = _load_targets(args.targets, reference)
            boosters: Optional[List[GenomicInterval]] = None
            if config.booster_interval_file is not None:
                boosters = _load_boosters(config.booster_interval_file, reference, args.contig_style)
            annotation: Optional[AnnotationTrack] = None
            if config.annotation_file is not None:
                annotation = load_refseq(config.annotation_file, reference.contigs, contig_style=args.contig_style)
            else:
                logger.info("No annotations available")

            if args.dry_run:
                print("Dry-run: inputs look OK.")
                print(f"Targets: {len(targets)}")
                print(f"Boosters: {len(boosters) if boosters is not None else 'none'}")
                print(f"RefSeq transcripts: {len(annotation.records) if annotation is not None else 'none'}")
                print(f"Target table -> {args.out or 'stdout'}")
                if outdir is not None:
                    print(f"Report -> {outdir / 'report.html'}")
                return 0

            def on_traversal_done(results: List[TargetResult]) -> TargetReport:
                return build_target_rows(
                    results,
                    reference=reference,
                    config=config,
                    boosters=boosters,
                    annotation=annotation,
                )

            report = traverse_targets(
                args.bam,
                targets,
                read_filter=read_filter,
                on_traversal_done=on_traversal_done,
                progress=not bool(args.no_progress),
            )

        if args.out is not None:
            with open_textmaybe_gzip(args.out, "wt") as fh:
                write_target_table(report.rows, fh)
            logger.info("Target table written: %s", args.out)
        else:
            write_target_table(report.rows, sys.stdout)
            sys.stdout.flush()

        if outdir is not None:
            run = {
                "bam_path": args.bam,
                "targets_path": args.targets,
                "table_path": args.out or "stdout",
                "version": __version__,
            }
            report_path = _write_extras(ensure_outdir(outdir), report=report, config=config, run=run)
            logger.info("Report written: %s", report_path)
        return 0
    except Exception as e:
        return _handle_error(e, log_path=log_path)


def cmd_make_toy_data(args: argparse.Namespace) -> int:
    outdir = Path(args.outdir).expanduser().resolve()
    if args.dry_run:
        print(f"Would write toy data into: {outdir}")
        return 0

    summary = make_toy_data(outdir=outdir)
    print(json.dumps(summary, indent=2))
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.cmd == "coverage":
        return cmd_coverage(args)
    if args.cmd == "make-toy-data":
        return cmd_make_toy_data(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
