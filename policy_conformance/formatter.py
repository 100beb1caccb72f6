from __future__ import annotations
import json
from typing import Dict, List

from . import Finding, Report, Rule
from .errors import FormatError
from .severity import decide_counts, stats_counts

STYLES: List[str] = ["summary", "table", "checklist", "diff", "json"]

# SGR parameters per role in the rendered report
_SGR: Dict[str, str] = {
    "heading": "1;96",
    "rule": "1",
    "PASS": "1;32",
    "FAIL": "1;31",
    "blocker": "1;31",
    "major": "1;33",
    "minor": "34",
}

def _paint(enabled: bool, text: str, role: str) -> str:
    code = _SGR.get(role)
    if not enabled or code is None:
        return text
    return f"\033[{code}m{text}\033[0m"

def _label(severity: str | None) -> str:
    return (severity or "minor").capitalize()

def _tag(severity: str | None, color: bool) -> str:
    return _paint(color, f"[{_label(severity)}]", severity or "minor")

def _cell(text: str) -> str:
    return " ".join(str(text).split()).replace("|", "\\|")

def format_summary(report: Report, color: bool = False, fail_on: str = "blocker") -> str:
    s = report.stats
    result = decide_counts(stats_counts(report), fail_on)
    lines = [
        _paint(color, f"Conformance report: {report.target}", "heading"),
        f"Files: {s.files}  Rules checked: {s.rules}  Checks run: {s.checks}",
        "Findings: "
        + ", ".join(
            [
                _paint(color, f"{s.blocker} blocker", "blocker"),
                _paint(color, f"{s.major} major", "major"),
                _paint(color, f"{s.minor} minor", "minor"),
            ]
        ),
        f"Check errors: {s.check_errors}  Waived: {s.waived}",
        f"Result: {_paint(color, result, result)} (fail on {fail_on})",
    ]
    return "\n".join(lines) + "\n"

def format_table(report: Report) -> str:
    if not report.findings:
        return "No findings.\n"
    lines = [
        "| Severity | Rule | Location | Message | Fix |",
        "|---|---|---|---|---|",
    ]
    for f in report.findings:
        lines.append(
            f"| {_label(f.severity)} | {f.rule_id} | {_cell(str(f.location))} | {_cell(f.message)} | {_cell(f.fix)} |"
        )
    return "\n".join(lines) + "\n"

def format_checklist(report: Report, color: bool = False) -> str:
    if not report.rules:
        return "No rules were checked.\n"
    by_rule: Dict[str, List[Finding]] = {}
    for f in report.findings:
        by_rule.setdefault(f.rule_id, []).append(f)
    by_category: Dict[str, List[Rule]] = {}
    for r in report.rules:
        by_category.setdefault(r.category, []).append(r)

    lines: List[str] = []
    for category in sorted(by_category):
        if lines:
            lines.append("")
        lines.append(_paint(color, f"## {category}", "heading"))
        for r in by_category[category]:
            hits = by_rule.get(r.id, [])
            if not hits:
                lines.append(f"- [x] {r.id} ({r.requirement}) {r.title}")
                continue
            lines.append(
                f"- [ ] {_paint(color, r.id, 'rule')} ({r.requirement}) {r.title} - {len(hits)} finding(s)"
            )
            for f in hits:
                lines.append(f"    - {f.location} {_tag(f.severity, color)} {f.message}")
    return "\n".join(lines) + "\n"

def format_diff(report: Report) -> str:
    if not report.findings:
        return "No findings.\n"
    chunks: List[str] = []
    for f in report.findings:
        loc = f.location
        chunk = [
            f"--- a/{loc.path}",
            f"+++ b/{loc.path}",
            f"@@ line {loc.line if loc.line is not None else '?'} @@ {f.rule_id} {_label(f.severity)}: {f.message}",
        ]
        if f.evidence:
            chunk.append(f"- {f.evidence}")
        fix = f.fix or "(no suggested fix)"
        chunk.extend(f"+ # fix: {part}" for part in fix.splitlines() or [fix])
        chunks.append("\n".join(chunk))
    return "\n\n".join(chunks) + "\n"

def format_json(report: Report, fail_on: str = "blocker") -> str:
    payload = report.to_dict()
    payload["result"] = decide_counts(stats_counts(report), fail_on)
    payload["fail_on"] = fail_on
    return json.dumps(payload, indent=2, sort_keys=True) + "\n"

def format_report(report: Report, style: str, color: bool = False, fail_on: str = "blocker") -> str:
    """Render a report. Pure and deterministic; unknown styles raise FormatError."""
    if style == "summary":
        return format_summary(report, color, fail_on)
    if style == "table":
        return format_table(report)
    if style == "checklist":
        return format_checklist(report, color)
    if style == "diff":
        return format_diff(report)
    if style == "json":
        return format_json(report, fail_on)
    raise FormatError(f"Unsupported report style {style!r}; expected one of {', '.join(STYLES)}")
