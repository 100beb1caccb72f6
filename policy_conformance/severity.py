from __future__ import annotations
from typing import Dict, List, Literal
from . import Level, Report, Severity

Decision = Literal["PASS", "FAIL"]

# Most severe first
SEVERITY_ORDER: List[str] = ["blocker", "major", "minor"]
LEVELS: List[str] = ["MUST", "SHOULD", "MAY"]

# RFC 2119 keywords and their normalised level
LEVEL_KEYWORDS: Dict[str, str] = {
    "MUST": "MUST",
    "MUST NOT": "MUST",
    "SHALL": "MUST",
    "SHALL NOT": "MUST",
    "REQUIRED": "MUST",
    "SHOULD": "SHOULD",
    "SHOULD NOT": "SHOULD",
    "RECOMMENDED": "SHOULD",
    "NOT RECOMMENDED": "SHOULD",
    "MAY": "MAY",
    "OPTIONAL": "MAY",
}

def canonical_keyword(keyword: str) -> str:
    """'must  not' -> 'MUST NOT'."""
    return " ".join(keyword.upper().split())

def normalize_level(keyword: str) -> Level | None:
    return LEVEL_KEYWORDS.get(canonical_keyword(keyword))  # type: ignore[return-value]

def derive_severity(level: Level, blocking: bool = False) -> Severity:
    """
    MUST   -> major, blocker when the finding blocks the primary task
    SHOULD -> minor, major when blocking
    MAY    -> minor
    """
    if level == "MUST":
        return "blocker" if blocking else "major"
    if level == "SHOULD":
        return "major" if blocking else "minor"
    return "minor"

def severity_rank(severity: str | None) -> int:
    """0 is the most severe; unknown severities sort last."""
    try:
        return SEVERITY_ORDER.index(severity or "")
    except ValueError:
        return len(SEVERITY_ORDER)

def decide_counts(counts: Dict[str, int], fail_on: str = "blocker") -> Decision:
    """FAIL when any count at or above the threshold is non-zero."""
    if fail_on == "never":
        return "PASS"
    if fail_on not in SEVERITY_ORDER:
        raise ValueError(f"fail_on must be one of {SEVERITY_ORDER + ['never']}, got {fail_on!r}")
    limit = severity_rank(fail_on)
    return "FAIL" if any(counts.get(s, 0) for s in SEVERITY_ORDER[: limit + 1]) else "PASS"

def decide(report: Report, fail_on: str = "blocker") -> Decision:
    return decide_counts(report.counts(), fail_on)

def stats_counts(report: Report) -> Dict[str, int]:
    """Severity totals from stats, which survive Report.filtered()."""
    s = report.stats
    return {"blocker": s.blocker, "major": s.major, "minor": s.minor}
