from __future__ import annotations
import pytest

from policy_conformance import Finding, Location, Report, Stats
from policy_conformance.severity import decide, decide_counts, derive_severity, normalize_level, severity_rank


@pytest.mark.parametrize(
    "level, blocking, severity",
    [
        ("MUST", False, "major"),
        ("MUST", True, "blocker"),
        ("SHOULD", False, "minor"),
        ("SHOULD", True, "major"),
        ("MAY", False, "minor"),
        ("MAY", True, "minor"),
    ],
)
def test_derive_severity(level, blocking, severity):
    assert derive_severity(level, blocking) == severity


def test_normalize_level():
    assert normalize_level("must  not") == "MUST"
    assert normalize_level("Not Recommended") == "SHOULD"
    assert normalize_level("OPTIONAL") == "MAY"
    assert normalize_level("COULD") is None
    assert normalize_level("") is None


def test_severity_rank_orders_unknown_last():
    assert severity_rank("blocker") < severity_rank("major") < severity_rank("minor") < severity_rank(None)


def _report(*severities: str) -> Report:
    findings = tuple(
        Finding(rule_id="SEC-TLS-001", location=Location("a.py", i), message="m", severity=s)
        for i, s in enumerate(severities, start=1)
    )
    return Report(target="t", findings=findings)


def test_decide_thresholds():
    minor_only = _report("minor")
    assert decide(minor_only) == "PASS"
    assert decide(minor_only, "major") == "PASS"
    assert decide(minor_only, "minor") == "FAIL"

    with_blocker = _report("minor", "blocker")
    assert decide(with_blocker) == "FAIL"
    assert decide(with_blocker, "never") == "PASS"

    assert decide(_report()) == "PASS"


def test_decide_rejects_unknown_threshold():
    with pytest.raises(ValueError):
        decide_counts({"blocker": 1}, "critical")


def test_gate_uses_unfiltered_stats():
    report = Report(
        target="t",
        findings=_report("blocker", "minor").findings,
        stats=Stats(blocker=1, minor=1),
    )
    visible = report.filtered("minor")
    assert [f.severity for f in visible.findings] == ["minor"]
    assert visible.stats == report.stats
    assert report.filtered("all") is report
