from __future__ import annotations
import json
import logging

import pytest

from policy_conformance.artifact import Artifact
from policy_conformance.catalog import load
from policy_conformance.checks import builtin_checks
from policy_conformance.checks.base import finding
from policy_conformance.config import Settings
from policy_conformance.errors import ConformanceError
from policy_conformance.evaluator import evaluate, evaluate_artifacts, evaluate_paths
from policy_conformance.matcher import Waiver
from policy_conformance.severity import severity_rank

from test_checks import SECURITY_PY


class Boom:
    name = "test.boom"
    rule_ids = ("SEC-EVAL-001",)

    def applies(self, artifact):
        return True

    def run(self, artifact):
        raise RuntimeError("kaput")


class Fixed:
    """Reports one finding on a fixed line."""

    def __init__(self, name, rule_id, line=1, blocking=False, reports=None):
        self.name = name
        self.rule_ids = (rule_id,)
        self.line = line
        self.blocking = blocking
        self.reports = reports or rule_id

    def applies(self, artifact):
        return True

    def run(self, artifact):
        return [finding(self.reports, artifact, self.line, f"{self.name} hit", blocking=self.blocking)]


class NotAFinding(Fixed):
    def run(self, artifact):
        return ["SEC-TLS-001 at line 1"]


ART = Artifact("app.py", "x = 1\ny = 2\n")


def test_zero_checks_yield_empty_report(catalog):
    assert evaluate(ART, catalog, []) == []
    report = evaluate_artifacts([ART], catalog, [])
    assert report.findings == ()
    assert report.rules == ()
    assert report.stats.files == 1
    assert report.stats.checks == 0


def test_failing_check_becomes_meta_finding(catalog, caplog):
    checks = [Boom(), Fixed("test.tls", "SEC-TLS-001", line=2, blocking=True)]
    with caplog.at_level(logging.WARNING, logger="policy_conformance.evaluator"):
        found = evaluate(ART, catalog, checks)

    assert [f.rule_id for f in found] == ["META-CHECK-001", "SEC-TLS-001"]
    meta, tls = found
    assert meta.check == "test.boom"
    assert meta.severity == "major"
    assert "kaput" in meta.message
    assert meta.location.path == "app.py"
    assert tls.severity == "blocker"
    assert tls.fix == catalog.lookup("SEC-TLS-001").fix
    assert "test.boom" in caplog.text


def test_non_finding_result_is_a_check_failure(catalog):
    found = evaluate(ART, catalog, [NotAFinding("test.bad", "SEC-TLS-001")])
    assert [f.rule_id for f in found] == ["META-CHECK-001"]
    assert "TypeError" in found[0].message


def test_unknown_rule_is_reported_as_meta(catalog):
    found = evaluate(ART, catalog, [Fixed("test.unknown", "SEC-TLS-001", reports="NOPE-X-001")])
    assert [f.rule_id for f in found] == ["META-RULE-001"]
    assert "NOPE-X-001" in found[0].message
    assert found[0].check == "test.unknown"


def test_check_without_catalog_rules_is_skipped(catalog):
    report = evaluate_artifacts([ART], catalog, [Fixed("test.other", "NOPE-X-001")])
    assert report.findings == ()
    assert report.stats.checks == 0


def test_duplicate_locations_collapse(catalog):
    checks = [Fixed("test.first", "SEC-TLS-001"), Fixed("test.second", "SEC-TLS-001")]
    found = evaluate(ART, catalog, checks)
    assert len(found) == 1
    assert found[0].check == "test.first"


def test_workers_match_sequential(catalog):
    art = Artifact("app.py", SECURITY_PY)
    checks = builtin_checks()
    assert evaluate(art, catalog, checks, workers=4) == evaluate(art, catalog, checks, workers=1)


def test_report_is_ordered_by_severity(catalog):
    report = evaluate_artifacts([Artifact("app.py", SECURITY_PY)], catalog, builtin_checks())
    ranks = [severity_rank(f.severity) for f in report.findings]
    assert ranks == sorted(ranks)
    assert report.stats.blocker == 4
    assert report.stats.major == 4
    assert report.stats.minor == 1


def test_every_finding_resolves_in_catalog(catalog):
    arts = [Artifact("app.py", SECURITY_PY), Artifact("x.py", "def broken(:\n")]
    report = evaluate_artifacts(arts, catalog, [*builtin_checks(), Boom()])
    assert report.findings
    for f in report.findings:
        assert catalog.lookup(f.rule_id).id == f.rule_id
    assert {r.id for r in report.rules} >= {f.rule_id for f in report.findings}


def test_rules_in_scope_follow_applied_checks(catalog):
    report = evaluate_artifacts([ART], catalog, [Fixed("test.tls", "SEC-TLS-001", line=99)])
    assert [r.id for r in report.rules] == ["SEC-TLS-001"]
    assert report.findings[0].location.line == 99
    assert report.findings[0].evidence == ""


def test_waivers_drop_matching_findings(catalog):
    art = Artifact("tests/test_app.py", SECURITY_PY)
    waivers = [Waiver(path="tests/*", rules=("SEC-*",), reason="fixtures")]
    report = evaluate_artifacts([art], catalog, [*builtin_checks(), Boom()], waivers=waivers)
    assert [f.rule_id for f in report.findings] == ["META-CHECK-001"]
    assert report.stats.waived == 9
    assert report.stats.check_errors == 1


def test_restricted_catalog_limits_checks(tmp_path):
    path = tmp_path / "only.json"
    path.write_text(
        json.dumps([{"id": "SEC-EVAL-001", "category": "Mine", "level": "MUST", "title": "No eval"}]),
        encoding="utf-8",
    )
    report = evaluate_artifacts([Artifact("app.py", SECURITY_PY)], load([path]), builtin_checks())
    assert [(f.rule_id, f.location.line) for f in report.findings] == [("SEC-EVAL-001", 7)]
    assert report.stats.checks == 1


def test_evaluate_paths_walks_and_excludes(tmp_path, catalog):
    (tmp_path / "app.py").write_text("def run(user):\n    return eval(user)\n", encoding="utf-8")
    (tmp_path / "pkg").mkdir()
    (tmp_path / "pkg" / "page.html").write_text('<html lang="en"><img src="a.png"></html>\n', encoding="utf-8")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "lib.js").write_text("eval(x)\n", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("eval(x)\n", encoding="utf-8")

    report = evaluate_paths(tmp_path, catalog, builtin_checks())
    assert report.stats.files == 2
    assert [(f.rule_id, str(f.location)) for f in report.findings] == [
        ("SEC-EVAL-001", "app.py:2:12"),
        ("A11Y-IMG-001", "pkg/page.html:1"),
    ]


def test_evaluate_paths_single_file_and_settings(tmp_path, catalog):
    target = tmp_path / "app.py"
    target.write_text("def run(user):\n    return eval(user)\n", encoding="utf-8")
    report = evaluate_paths(target, catalog, builtin_checks(), Settings(workers=3))
    assert [str(f.location) for f in report.findings] == ["app.py:2:12"]

    skipped = evaluate_paths(tmp_path, catalog, builtin_checks(), Settings(include_exts=(".html",)))
    assert skipped.stats.files == 0
    assert skipped.findings == ()


def test_single_file_is_reported_relative_to_working_directory(tmp_path, monkeypatch, catalog):
    (tmp_path / "tests").mkdir()
    (tmp_path / "tests" / "test_app.py").write_text(SECURITY_PY, encoding="utf-8")
    monkeypatch.chdir(tmp_path)

    report = evaluate_paths("tests/test_app.py", catalog, builtin_checks())
    assert {f.location.path for f in report.findings} == {"tests/test_app.py"}

    waived = evaluate_paths(
        tmp_path / "tests" / "test_app.py", catalog, builtin_checks(),
        Settings(waivers=(Waiver("tests/*", ("SEC-*",)),)),
    )
    assert waived.findings == ()
    assert waived.stats.waived == 9


def test_evaluate_paths_missing_target(tmp_path, catalog):
    with pytest.raises(ConformanceError, match="Target not found"):
        evaluate_paths(tmp_path / "missing", catalog, builtin_checks())
