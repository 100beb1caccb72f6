from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from . import Finding, Location, Report, Rule, Stats
from .artifact import Artifact, collect_artifacts
from .catalog import Catalog
from .checks.base import Check
from .config import Settings
from .errors import CheckError
from .matcher import Waiver, is_waived
from .severity import derive_severity, severity_rank

log = logging.getLogger(__name__)

CHECK_FAILED = "META-CHECK-001"
UNKNOWN_RULE = "META-RULE-001"

def _run_check(check: Check, artifact: Artifact) -> Tuple[bool, List[Finding]]:
    """(applied, raw findings). A failing check yields one META-CHECK-001 finding."""
    try:
        if not check.applies(artifact):
            return False, []
        found = list(check.run(artifact) or ())
        bad = [f for f in found if not isinstance(f, Finding)]
        if bad:
            raise TypeError(f"run() returned {type(bad[0]).__name__}, expected Finding")
    except Exception as exc:
        err = CheckError(check.name, f"{type(exc).__name__}: {exc}")
        err.__cause__ = exc
        log.warning("%s (artifact %s)", err, artifact.path)
        log.debug("Traceback for check %s", check.name, exc_info=exc)
        return True, [
            Finding(
                rule_id=CHECK_FAILED,
                location=Location(artifact.path),
                message=str(err),
                check=check.name,
            )
        ]
    return True, found

def _bind(raw: Finding, catalog: Catalog, check_name: str) -> Finding:
    """Attach catalog data: severity from the rule level, default fix, check name."""
    if raw.rule_id not in catalog:
        log.warning("Check %s reported unknown rule %s", check_name, raw.rule_id)
        raw = Finding(
            rule_id=UNKNOWN_RULE,
            location=raw.location,
            message=f"check '{check_name}' reported unknown rule {raw.rule_id}: {raw.message}",
            evidence=raw.evidence,
        )
    rule = catalog.lookup(raw.rule_id)
    return replace(
        raw,
        severity=derive_severity(rule.level, raw.blocking),
        fix=raw.fix or rule.fix,
        check=raw.check or check_name,
    )

def _evaluate(
    artifact: Artifact,
    catalog: Catalog,
    checks: Sequence[Check],
    workers: int = 1,
) -> Tuple[List[Finding], List[Check]]:
    active = [c for c in checks if any(r in catalog for r in c.rule_ids)]
    for c in checks:
        if c not in active:
            log.debug("Skipping check %s: none of %s in catalog", c.name, list(c.rule_ids))

    if workers > 1 and len(active) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(lambda c: _run_check(c, artifact), active))
    else:
        results = [_run_check(c, artifact) for c in active]

    findings: List[Finding] = []
    applied: List[Check] = []
    seen: Set[Tuple[str, str, Optional[int], Optional[int]]] = set()
    for check, (ran, raw) in zip(active, results):
        if ran:
            applied.append(check)
        for item in raw:
            f = _bind(item, catalog, check.name)
            key = (f.rule_id, f.location.path, f.location.line, f.location.column)
            if key in seen:
                continue
            seen.add(key)
            findings.append(f)
    return findings, applied

def evaluate(
    artifact: Artifact,
    catalog: Catalog,
    checks: Sequence[Check],
    workers: int = 1,
) -> List[Finding]:
    """
    Run every check against one artifact and bind the results to the catalog.

    Checks are independent; with workers > 1 they run on a thread pool and the
    merged output matches a sequential run. Duplicate (rule, location) pairs
    collapse to the first. A check that raises becomes a META-CHECK-001
    finding and the other checks' findings are kept.
    """
    return _evaluate(artifact, catalog, checks, workers)[0]

def sort_key(f: Finding) -> tuple:
    loc = f.location
    return (severity_rank(f.severity), loc.path, loc.line or 0, loc.column or 0, f.rule_id, f.message)

def aggregate_stats(
    findings: Iterable[Finding],
    files: int,
    rules: int,
    checks: int,
    waived: int = 0,
) -> Stats:
    blocker = major = minor = errors = 0
    for f in findings:
        if f.rule_id == CHECK_FAILED:
            errors += 1
        if f.severity == "blocker":
            blocker += 1
        elif f.severity == "major":
            major += 1
        else:
            minor += 1
    return Stats(
        files=files, rules=rules, checks=checks, check_errors=errors,
        blocker=blocker, major=major, minor=minor, waived=waived,
    )

def build_report(
    target: str,
    catalog: Catalog,
    findings: Iterable[Finding],
    applied: Iterable[Check],
    files: int,
    waivers: Sequence[Waiver] = (),
) -> Report:
    kept: List[Finding] = []
    waived = 0
    for f in findings:
        if waivers and is_waived(waivers, f.rule_id, f.location.path):
            waived += 1
            continue
        kept.append(f)
    kept.sort(key=sort_key)

    applied = list(applied)
    in_scope: Dict[str, Rule] = {}
    for c in applied:
        for rid in c.rule_ids:
            if rid in catalog:
                in_scope[rid] = catalog.lookup(rid)
    for f in kept:
        in_scope[f.rule_id] = catalog.lookup(f.rule_id)
    rules = tuple(in_scope[k] for k in sorted(in_scope))

    stats = aggregate_stats(kept, files=files, rules=len(rules), checks=len({c.name for c in applied}), waived=waived)
    return Report(target=target, findings=tuple(kept), rules=rules, stats=stats)

def evaluate_artifacts(
    artifacts: Sequence[Artifact],
    catalog: Catalog,
    checks: Sequence[Check],
    target: str = "inline",
    workers: int = 1,
    waivers: Sequence[Waiver] = (),
) -> Report:
    findings: List[Finding] = []
    applied: Dict[str, Check] = {}
    for art in artifacts:
        found, ran = _evaluate(art, catalog, checks, workers)
        findings.extend(found)
        for c in ran:
            applied.setdefault(c.name, c)
    return build_report(target, catalog, findings, applied.values(), files=len(artifacts), waivers=waivers)

def evaluate_paths(
    target: str | Path,
    catalog: Catalog,
    checks: Sequence[Check],
    settings: Optional[Settings] = None,
) -> Report:
    """Collect files under target, evaluate each, apply waivers, order the findings."""
    settings = settings or Settings()
    artifacts = collect_artifacts(
        target,
        include_exts=settings.include_exts,
        exclude_dirs=settings.exclude_dirs,
        max_file_size_bytes=settings.max_file_size_bytes,
    )
    report = evaluate_artifacts(
        artifacts, catalog, checks,
        target=str(target), workers=settings.workers, waivers=settings.waivers,
    )
    log.info(
        "Evaluated %d files with %d checks: %d findings (%d waived)",
        report.stats.files, report.stats.checks, len(report.findings), report.stats.waived,
    )
    return report
