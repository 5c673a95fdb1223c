from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


_UCSC_PREFIX = "chr"


def check_bam_index(bam_path: str | Path) -> None:
    """Ensure a BAM has an index; raise ValueError with fix instructions."""
    bam = Path(bam_path)
    bai1 = bam.with_suffix(bam.suffix + ".bai")
    bai2 = bam.with_suffix(".bai")
    csi = bam.with_suffix(bam.suffix + ".csi")
    if bai1.exists() or bai2.exists() or csi.exists():
        return
    raise ValueError("BAM is not indexed. Run: samtools index " + str(bam))


def detect_contig_style(contigs: Iterable[str]) -> str:
    """Infer contig style: 'ucsc' if most contigs start with 'chr', else 'ensembl'."""
    names = [c for c in contigs if c]
    if not names:
        return "unknown"
    chr_like = [c for c in names if c.startswith(_UCSC_PREFIX)]
    if len(chr_like) >= max(1, int(0.5 * len(names))):
        return "ucsc"
    return "ensembl"


def remap_contig(contig: str, style: str) -> str:
    """Remap a contig name to the requested style (ucsc or ensembl)."""
    if style == "ucsc":
        if contig.startswith(_UCSC_PREFIX):
            return contig
        if contig == "MT":
            return "chrM"
        return f"{_UCSC_PREFIX}{contig}"
    if style == "ensembl":
        if contig.startswith(_UCSC_PREFIX):
            core = contig[len(_UCSC_PREFIX) :]
            if core == "M":
                return "MT"
            return core
        return contig
    return contig


def resolve_contig_style(
    file_contigs: Iterable[str],
    reference_contigs: Iterable[str],
    requested: str = "auto",
    *,
    label: str = "input",
) -> Optional[str]:
    """Return the style an auxiliary file's contigs must be remapped to, or None.

    ``requested`` is ``auto`` (follow the reference), ``ucsc``, ``ensembl`` or
    ``none`` (never remap).
    """
    if requested == "none":
        return None
    file_style = detect_contig_style(file_contigs)
    if requested == "auto":
        target_style = detect_contig_style(reference_contigs)
    else:
        target_style = requested
    if file_style == "unknown" or target_style == "unknown" or file_style == target_style:
        return None
    logger.warning(
        "Contig style mismatch detected (%s=%s, reference=%s). Remapping %s contigs to %s style.",
        label,
        file_style,
        target_style,
        label,
        target_style,
    )
    return target_style
