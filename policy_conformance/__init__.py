from __future__ import annotations
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, Literal, Optional, Tuple

Level = Literal["MUST", "SHOULD", "MAY"]
Severity = Literal["blocker", "major", "minor"]

@dataclass(frozen=True)
class Rule:
    id: str
    category: str
    level: Level
    title: str
    section: str = ""
    description: str = ""
    rationale: str = ""
    fix: str = ""
    source: str = ""
    lineno: int = 0
    keyword: str = ""

    @property
    def requirement(self) -> str:
        """The keyword as written (MUST NOT, SHOULD NOT, ...); falls back to the level."""
        return self.keyword or self.level

@dataclass(frozen=True)
class Location:
    path: str
    line: Optional[int] = None
    column: Optional[int] = None

    def __str__(self) -> str:
        if self.line is None:
            return self.path
        if self.column is None:
            return f"{self.path}:{self.line}"
        return f"{self.path}:{self.line}:{self.column}"

@dataclass(frozen=True)
class Finding:
    rule_id: str
    location: Location
    message: str
    severity: Optional[Severity] = None
    evidence: str = ""
    fix: str = ""
    check: str = ""
    blocking: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

@dataclass(frozen=True)
class Stats:
    files: int = 0
    rules: int = 0
    checks: int = 0
    check_errors: int = 0
    blocker: int = 0
    major: int = 0
    minor: int = 0
    waived: int = 0

@dataclass(frozen=True)
class Report:
    target: str
    findings: Tuple[Finding, ...] = ()
    rules: Tuple[Rule, ...] = ()
    stats: Stats = field(default_factory=Stats)

    def counts(self) -> Dict[str, int]:
        out = {"blocker": 0, "major": 0, "minor": 0}
        for f in self.findings:
            out[f.severity or "minor"] += 1
        return out

    def filtered(self, severity: str) -> "Report":
        """
        Only findings of one severity; stats keep the totals. Rules whose
        findings were all filtered out are dropped so they never read as passed.
        """
        if severity == "all":
            return self
        kept = tuple(f for f in self.findings if f.severity == severity)
        failed = {f.rule_id for f in self.findings}
        shown = {f.rule_id for f in kept}
        rules = tuple(r for r in self.rules if r.id not in failed or r.id in shown)
        return replace(self, findings=kept, rules=rules)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "stats": asdict(self.stats),
            "findings": [f.to_dict() for f in self.findings],
            "rules": [asdict(r) for r in self.rules],
        }

__all__ = ["Level", "Severity", "Rule", "Location", "Finding", "Stats", "Report"]
