from __future__ import annotations

import json
from pathlib import Path

from lineage.core.models import LineageGraph, LineageReport
from lineage.detectors.base import short
from lineage.io.schemas import graph_to_dict, report_to_dict


def _write_json(payload: dict, out_dir: str, filename: str) -> str:
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename
    with out_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    return str(out_path)


def write_report_json(report: LineageReport, out_dir: str, filename: str = "report.json") -> str:
    return _write_json(report_to_dict(report), out_dir, filename)


def write_graph_json(graph: LineageGraph, out_dir: str, filename: str = "graph.json") -> str:
    return _write_json(graph_to_dict(graph), out_dir, filename)


def write_summary_md(report: LineageReport, out_dir: str, filename: str = "summary.md") -> str:
    """
    Minimal, investigator-friendly summary.
    """
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)

    out_path = p / filename
    risk = report.risk_assessment

    def completeness() -> str:
        if report.error_count == 0:
            return "Every node in the explored window was fetched."
        return (
            f"{report.error_count} of {report.node_count} node(s) could not be fetched; "
            "findings cover the partial graph only."
        )

    lines = []
    lines.append("# Lineage Summary\n")
    lines.append(f"- Seed: **{report.seed}**\n")
    if report.seed_tx_hash != report.seed:
        lines.append(f"- Seed transaction: **{report.seed_tx_hash}**\n")
    lines.append(f"- Nodes: **{report.node_count}**\n")
    lines.append(f"- Depth reached: **{report.graph_depth_reached}**\n")
    lines.append(f"- Risk: **{risk.score}/100 ({risk.level.value})**\n")
    lines.append("\n")

    lines.append("## Node Status\n\n")
    for status, count in report.status_counts.items():
        lines.append(f"- {status}: {count}\n")
    lines.append(f"\n{completeness()}\n\n")

    lines.append("## Patterns\n\n")
    if not risk.patterns:
        lines.append("_No suspicious patterns found in the explored graph._\n\n")
    else:
        for pat in risk.patterns:
            evidence = ", ".join(short(h) for h in pat.evidence)
            lines.append(f"- **{pat.severity.value}** | {pat.type.value} | {pat.description}")
            lines.append(f" | tx: {evidence}\n" if evidence else "\n")
        lines.append("\n")

    lines.append("## Recommended Actions\n\n")
    if not report.recommendations:
        lines.append("_No actions recommended._\n\n")
    else:
        for rec in report.recommendations:
            lines.append(
                f"- **{rec.priority.value}** ({rec.urgency.value}) | "
                f"{rec.action.value} | {rec.description}\n"
            )
        lines.append("\n")

    lines.append("## Limitations\n\n")
    lines.append("- Findings are heuristic indicators for human review, not proof.\n")
    lines.append("- Exploration is bounded by depth and per-node branching.\n")
    lines.append("- Address labels depend on the configured directory.\n")

    with out_path.open("w", encoding="utf-8") as f:
        f.writelines(lines)

    return str(out_path)
