from __future__ import annotations

import datetime as _dt
import logging
from pathlib import Path
from typing import Any, Dict

from jinja2 import Template

logger = logging.getLogger(__name__)


_REPORT_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>HybSelPerf Report</title>
  <style>
    body { font-family: Arial, Helvetica, sans-serif; margin: 24px; }
    code, pre { background: #f6f8fa; padding: 2px 4px; border-radius: 4px; }
    h1, h2, h3 { margin-top: 1.2em; }
    table { border-collapse: collapse; margin-top: 0.6em; }
    th, td { border: 1px solid #ddd; padding: 8px; }
    th { background: #f2f2f2; text-align: left; }
    .grid { display: grid; grid-template-columns: 1fr 1fr; gap: 16px; }
    .card { border: 1px solid #ddd; border-radius: 8px; padding: 12px; }
    .small { color: #666; font-size: 0.9em; }
    .warn { color: #a33; }
    img { max-width: 100%; height: auto; border: 1px solid #eee; border-radius: 6px; }
  </style>
</head>
<body>

<h1>HybSelPerf Report</h1>
<p class="small">Generated: {{ generated_at }}</p>

<h2>Run summary</h2>
<div class="grid">
  <div class="card">
    <h3>Inputs</h3>
    <table>
      <tr><th>BAM</th><td><code>{{ run.bam_path }}</code></td></tr>
      <tr><th>Targets</th><td><code>{{ run.targets_path }}</code></td></tr>
      <tr><th>Reference</th><td><code>{{ config.reference_file }}</code></td></tr>
      <tr><th>Boosters</th><td><code>{{ config.booster_interval_file or "none" }}</code></td></tr>
      <tr><th>RefSeq</th><td><code>{{ config.annotation_file or "none" }}</code></td></tr>
    </table>
  </div>
  <div class="card">
    <h3>Settings</h3>
    <table>
      <tr><th>Min MAPQ</th><td>{{ config.min_mapq }}</td></tr>
      <tr><th>Include duplicates</th><td>{{ config.include_duplicates }}</td></tr>
      <tr><th>Free-standing distance</th><td>{{ config.free_standing_distance }}</td></tr>
      <tr><th>Booster distance</th><td>{{ config.booster_distance }}</td></tr>
      <tr><th>Symmetric proximity</th><td>{{ config.symmetric_proximity }}</td></tr>
      <tr><th>Down-sampling</th><td>{{ config.downsample_fraction or "off" }}</td></tr>
    </table>
  </div>
</div>

<h2>Targets</h2>
<table>
  <tr><th>Targets</th><td>{{ summary.targets }}</td></tr>
  <tr><th>Target bases</th><td>{{ summary.target_bases }}</td></tr>
  <tr><th>Hit twice</th><td>{{ summary.targets_hit_twice }}</td></tr>
  <tr><th>Freestanding</th><td>{{ summary.targets_freestanding }}</td></tr>
  <tr><th>Boosted</th><td>{{ summary.targets_boosted }}</td></tr>
  <tr><th>Annotated</th><td>{{ summary.targets_annotated }}</td></tr>
  <tr><th>Mean target coverage</th>
    {% if summary.mean_target_coverage is none %}
    <td class="warn">undefined (no target hit twice)</td>
    {% else %}
    <td>{{ "%.4f"|format(summary.mean_target_coverage) }}</td>
    {% endif %}
  </tr>
  {% for label, frac in summary.fraction_bases_over.items() %}
  <tr><th>Bases &ge; {{ label }}</th><td>{{ "%.4f"|format(frac) if frac is not none else "n/a" }}</td></tr>
  {% endfor %}
</table>

<h2>Plots</h2>
<div class="grid">
  <div class="card">
    <h3>Normalized coverage</h3>
    <img src="{{ plots.normalized_hist }}" alt="normalized coverage histogram">
  </div>
  <div class="card">
    <h3>GC bias</h3>
    <img src="{{ plots.gc_scatter }}" alt="gc vs coverage">
  </div>
</div>
<div class="grid" style="margin-top:16px;">
  <div class="card">
    <h3>Depth thresholds</h3>
    <img src="{{ plots.thresholds }}" alt="bases over thresholds">
  </div>
</div>

<h2>Outputs</h2>
<ul>
  <li><code>{{ run.table_path }}</code> (per-target table)</li>
  <li><code>summary.json</code> (machine-readable summary)</li>
</ul>

<hr>
<p class="small">HybSelPerf {{ version }}</p>
</body>
</html>"""
)


def render_report(
    *,
    outdir: str | Path,
    version: str,
    run: Dict[str, Any],
    config: Dict[str, Any],
    summary: Dict[str, Any],
    plots: Dict[str, str],
) -> Path:
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    html = _REPORT_TEMPLATE.render(
        generated_at=_dt.datetime.now().isoformat(timespec="seconds"),
        version=version,
        run=run,
        config=config,
        summary=summary,
        plots=plots,
    )

    out_path = outdir / "report.html"
    out_path.write_text(html, encoding="utf-8")
    logger.debug("Rendered HTML report to %s", out_path)
    return out_path
