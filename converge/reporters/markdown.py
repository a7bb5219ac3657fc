"""
Markdown + Mermaid run report generator.
"""
import re
from datetime import datetime, timezone
from typing import Dict

from jinja2 import Environment

from converge import __version__
from converge.engine.report import RunReport
from converge.models.outcome import Outcome

_OUTCOME_ICON = {
    "Unchanged": "⚪",
    "Changed": "🟢",
    "Failed": "🔴",
    "Skipped": "🟡",
}

_OUTCOME_ASCII = {
    "Unchanged": "[=]",
    "Changed": "[+]",
    "Failed": "[x]",
    "Skipped": "[-]",
}

_OUTCOME_COLOR = {
    "Changed": "fill:#88cc00,color:#000",
    "Failed": "fill:#ff4444,color:#fff",
    "Skipped": "fill:#ffcc00,color:#000",
}


def _sanitize_node_id(name: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_]", "_", name)


def _build_mermaid(report: RunReport, graph_edges: Dict[str, Dict[str, str]]) -> str:
    lines = ["flowchart LR"]
    for r in report.ordered_results():
        node_id = _sanitize_node_id(str(r.resource_id))
        lines.append(f'    {node_id}["{r.resource_id}"]')

    for target, sources in graph_edges.items():
        for source, label in sources.items():
            lines.append(f"    {_sanitize_node_id(source)} -->|{label}| {_sanitize_node_id(target)}")

    for r in report.ordered_results():
        color = _OUTCOME_COLOR.get(r.outcome.value)
        if color:
            lines.append(f"    style {_sanitize_node_id(str(r.resource_id))} {color}")
    return "\n".join(lines)


def _edges(report: RunReport) -> Dict[str, Dict[str, str]]:
    """target -> {source: 'require' | 'notify'} for resources in the run."""
    edges: Dict[str, Dict[str, str]] = {}
    graph = report.graph
    if graph is None:
        return edges
    for rid in report.order:
        resource = graph[rid]
        for dep in resource.dependencies:
            edges.setdefault(str(rid), {})[str(dep)] = "require"
        for target in resource.notifies:
            if target in report.results:
                edges.setdefault(str(target), {})[str(rid)] = "notify"
    return edges


_TEMPLATE = """\
# Convergence Report

**Generated:** {{ generated }}
**Source:** {{ source }}
**Tool:** converge v{{ version }}{% if dry_run %}
**Mode:** dry run (no changes applied){% endif %}

---

## Summary

**Status: {{ status }}** across **{{ total }} resources**:
{% for outcome in outcomes %}
- **{{ outcome }}**: {{ counts[outcome] }}{% endfor %}

{% if problems %}
The following resources did not converge:

| Resource | Outcome | Reason |
|----------|---------|--------|
{% for r in problems %}| `{{ r.resource_id }}` | {{ icon[r.outcome.value] }} {{ r.outcome.value }} | {{ r.reason or "" }} |
{% endfor %}
{% else %}
All resources converged.
{% endif %}

---

## Resources

| # | Resource | Outcome | Refreshed | Detail |
|---|----------|---------|-----------|--------|
{% for r in results %}| {{ loop.index }} | `{{ r.resource_id }}` | {{ icon[r.outcome.value] }} {{ r.outcome.value }}{% if r.noop %} (noop){% endif %} | {% if r.refreshed %}by {{ r.refreshed_by | join(", ") }}{% endif %} | {{ r.reason or "" }} |
{% endfor %}

## Resource Graph

```mermaid
{{ mermaid }}
```
"""


def build_report(report: RunReport, source_path: str, ascii_mode: bool = False) -> str:
    mermaid = _build_mermaid(report, _edges(report))

    env = Environment(autoescape=False)
    template = env.from_string(_TEMPLATE)

    return template.render(
        generated=datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC"),
        source=source_path,
        version=__version__,
        dry_run=report.dry_run,
        status=report.status.value,
        total=len(report.results),
        outcomes=[o.value for o in Outcome],
        counts=report.counts,
        problems=report.failed + report.skipped,
        results=report.ordered_results(),
        icon=_OUTCOME_ASCII if ascii_mode else _OUTCOME_ICON,
        mermaid=mermaid,
    )
