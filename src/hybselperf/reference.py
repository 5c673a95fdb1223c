from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pysam

from .models import GenomicInterval

logger = logging.getLogger(__name__)

_GC_BASES = frozenset("GCgc")


class ReferenceAccessError(RuntimeError):
    """Raised when reference bases cannot be read."""


class ReferenceAccessor:
    """Indexed reference FASTA, opened once for a report run.

    Use as a context manager; the underlying ``pysam.FastaFile`` is released on exit
    whether or not the body raised.
    """

    def __init__(self, fasta_path: str | Path) -> None:
        self.path = Path(fasta_path)
        self._fasta: Optional[pysam.FastaFile] = None

    def open(self) -> "ReferenceAccessor":
        if self._fasta is not None:
            return self
        if not self.path.exists():
            raise ReferenceAccessError(f"Reference FASTA not found: {self.path}")
        try:
            self._fasta = pysam.FastaFile(str(self.path))
        except (OSError, ValueError) as err:
            raise ReferenceAccessError(f"Cannot open reference FASTA {self.path}: {err}") from err
        logger.info("Opened reference %s (%d contigs)", self.path, len(self._fasta.references))
        return self

    def close(self) -> None:
        if self._fasta is not None:
            self._fasta.close()
            self._fasta = None

    def __enter__(self) -> "ReferenceAccessor":
        return self.open()

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _handle(self) -> pysam.FastaFile:
        if self._fasta is None:
            raise ReferenceAccessError("Reference FASTA is not open")
        return self._fasta

    @property
    def contigs(self) -> List[str]:
        return list(self._handle().references)

    @property
    def contig_lengths(self) -> Dict[str, int]:
        fa = self._handle()
        return dict(zip(fa.references, fa.lengths))

    def fetch(self, interval: GenomicInterval) -> str:
        """Reference bases of ``interval`` (1-based inclusive)."""
        fa = self._handle()
        try:
            bases = fa.fetch(interval.contig, interval.start - 1, interval.stop)
        except (KeyError, ValueError, OSError) as err:
            raise ReferenceAccessError(f"Cannot read {interval} from {self.path}: {err}") from err
        if len(bases) != interval.length:
            raise ReferenceAccessError(
                f"Reference returned {len(bases)} bases for {interval} ({interval.length} expected)"
            )
        return bases


def gc_fraction(bases: str) -> float:
    """Fraction of G/C bases (case-insensitive) over all bases."""
    if not bases:
        raise ValueError("Cannot compute GC content of an empty sequence")
    gc_count = sum(1 for b in bases if b in _GC_BASES)
    return gc_count / len(bases)


def gc_content(reference: ReferenceAccessor, interval: GenomicInterval) -> float:
    return gc_fraction(reference.fetch(interval))
