"""HybSelPerf: per-target coverage statistics for hybrid-selection sequencing.

Public API is intentionally small; most users should use the CLI:

    hybselperf coverage --bam ... --targets ... --ref ...

"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
