from __future__ import annotations
import json
from pathlib import Path

import pytest

from policy_conformance.config import Settings, load_settings, normalize_exts
from policy_conformance.errors import ConfigError
from policy_conformance.matcher import Waiver

CONFIG_YAML = '''
catalog: [rules, /abs/standards.md]
include_exts: [py, .HTML]
style: summary
fail_on: major
workers: 2
disable_checks: [cli.no-color]
waivers:
  - path: tests/*
    rules: [SEC-*]
    reason: fixtures
'''


def test_load_yaml(tmp_path):
    path = tmp_path / "conformance.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    s = load_settings(path)

    assert Path(s.catalog[0]) == (tmp_path / "rules").resolve()
    assert s.catalog[1] == "/abs/standards.md"
    assert s.include_exts == (".py", ".html")
    assert s.style == "summary"
    assert s.fail_on == "major"
    assert s.workers == 2
    assert s.disable_checks == ("cli.no-color",)
    assert s.waivers == (Waiver(path="tests/*", rules=("SEC-*",), reason="fixtures"),)
    assert s.exclude_dirs == Settings().exclude_dirs


def test_load_json(tmp_path):
    path = tmp_path / "conformance.json"
    path.write_text(json.dumps({"style": "JSON", "max_file_size_bytes": 10}), encoding="utf-8")
    s = load_settings(path)
    assert s.style == "json"
    assert s.max_file_size_bytes == 10


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_settings(path) == Settings()


@pytest.mark.parametrize(
    "text, message",
    [
        ("colour: always\n", "unknown keys: colour"),
        ("style: xml\n", "'style' must be one of"),
        ("fail_on: critical\n", "'fail_on' must be one of"),
        ("workers: true\n", "'workers' must be an integer"),
        ("workers: 0\n", "'workers' must be at least 1"),
        ("include_exts: {py: 1}\n", "'include_exts' must be a list of strings"),
        ("waivers:\n  - path: tests/*\n", "waiver 1 needs 'path' and 'rules'"),
        ("- just\n- a list\n", "top level must be a mapping"),
        ("style: [unclosed\n", "Cannot parse"),
        ("1: a\nbogus: b\n", "keys must be strings, got 1"),
        ("true: yes\n", "keys must be strings, got True"),
    ],
)
def test_invalid_settings(tmp_path, text, message):
    path = tmp_path / "bad.yaml"
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError, match=message):
        load_settings(path)


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_settings(tmp_path / "nope.yaml")


def test_override_ignores_none_and_validates():
    base = Settings(style="summary")
    assert base.override(style=None, workers=None) == base
    assert base.override(workers=4).workers == 4
    with pytest.raises(ConfigError):
        base.override(fail_on="sometimes")


def test_normalize_exts():
    assert normalize_exts(["py", ".JS", "Html"]) == (".py", ".js", ".html")


def test_undecodable_file(tmp_path):
    path = tmp_path / "latin1.yaml"
    path.write_bytes(b"style: \xff\xfe summary\n")
    with pytest.raises(ConfigError, match="Cannot read"):
        load_settings(path)
