from __future__ import annotations
import argparse
import json
import logging
import os
import sys
from dataclasses import asdict
from typing import List

import colorama

from . import Rule
from .catalog import load
from .checks import builtin_checks, select_checks
from .config import FAIL_ON, Settings, load_settings, normalize_exts
from .errors import ConformanceError, NotFound
from .evaluator import evaluate_paths
from .formatter import STYLES, format_report
from .severity import decide

LOG_ENV = "POLICY_CONFORMANCE_LOG_LEVEL"

log = logging.getLogger(__name__)

def _color_enabled(mode: str, stream=None) -> bool:
    """--color always/never wins; auto needs a terminal and no NO_COLOR in the environment."""
    if mode != "auto":
        return mode == "always"
    if os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream or sys.stdout, "isatty", None)
    try:
        return bool(isatty and isatty())
    except ValueError:  # closed stream
        return False

def _log_level(verbosity: int) -> int:
    if verbosity >= 2:
        return logging.DEBUG
    if verbosity == 1:
        return logging.INFO
    level = logging.getLevelName(os.environ.get(LOG_ENV, "WARNING").strip().upper())
    return level if isinstance(level, int) else logging.WARNING

def _setup_logging(verbosity: int) -> None:
    logging.basicConfig(
        level=_log_level(verbosity),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

def _csv(value: str | None) -> List[str] | None:
    if value is None:
        return None
    return [item.strip() for item in value.split(",") if item.strip()]

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="policy-conformance",
        description="Check source files against accessibility, CLI, error-handling and security standards",
    )
    ap.add_argument("-v", "--verbose", action="count", default=0, help="-v for info, -vv for debug logs (stderr)")
    sub = ap.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="Evaluate a file or folder and print a report")
    check.add_argument("target", help="File or folder to check")
    check.add_argument("--catalog", action="append", default=None,
                       help="Catalog file or folder (.md/.json/.yaml); repeatable. Default: built-in standards")
    check.add_argument("--config", default=None, help="Settings file (YAML or JSON)")
    check.add_argument("--style", choices=STYLES, default=None, help="Report style (default: table)")
    check.add_argument("--json", action="store_true", help="Emit JSON instead of human-readable")
    check.add_argument("--severity", choices=["all", "blocker", "major", "minor"], default="all",
                       help="Filter which findings are shown (stats are unaffected).")
    check.add_argument("--fail-on", choices=FAIL_ON, default=None,
                       help="Lowest severity that makes the exit status non-zero (default: blocker)")
    check.add_argument("--exts", default=None, help="Comma-separated extensions to include, e.g. .py,.html")
    check.add_argument("--workers", type=int, default=None, help="Run checks on N threads")
    check.add_argument("--disable-check", action="append", default=[], metavar="NAME",
                       help="Skip a check by name; repeatable")
    check.add_argument("--color", choices=["auto", "always", "never"], default="auto",
                       help="Colorize output (default: auto)")

    rules = sub.add_parser("rules", help="List catalog rules or look one up")
    rules.add_argument("--catalog", action="append", default=None, help="Catalog file or folder; repeatable")
    rules.add_argument("--id", dest="rule_id", default=None, help="Show a single rule")
    rules.add_argument("--category", default=None, help="Only rules of this category")
    rules.add_argument("--json", action="store_true", help="Emit JSON instead of human-readable")
    return ap

def _print_rule(r: Rule) -> None:
    print(f"{r.id} [{r.requirement}] {r.title}")
    print(f"  category: {r.category}" + (f" / {r.section}" if r.section else ""))
    if r.description:
        print(f"  {r.description}")
    if r.rationale:
        print(f"  rationale: {r.rationale}")
    if r.fix:
        print(f"  fix: {r.fix}")

def _cmd_rules(args: argparse.Namespace) -> int:
    catalog = load(args.catalog)
    if args.rule_id:
        try:
            rule = catalog.lookup(args.rule_id)
        except NotFound as exc:
            print(str(exc), file=sys.stderr)
            return 1
        if args.json:
            print(json.dumps(asdict(rule), indent=2))
        else:
            _print_rule(rule)
        return 0

    selected = [r for r in catalog if args.category is None or r.category.lower() == args.category.lower()]
    if args.json:
        print(json.dumps([asdict(r) for r in selected], indent=2))
        return 0
    for r in selected:
        print(f"{r.id:<18} {r.requirement:<15} {r.category}: {r.title}")
    return 0

def _cmd_check(args: argparse.Namespace) -> int:
    settings = load_settings(args.config) if args.config else Settings()
    settings = settings.override(
        catalog=tuple(args.catalog) if args.catalog else None,
        style="json" if args.json else args.style,
        fail_on=args.fail_on,
        workers=args.workers,
        include_exts=normalize_exts(_csv(args.exts) or ()) if args.exts else None,
        disable_checks=tuple([*settings.disable_checks, *args.disable_check]),
    )
    log.debug("Effective settings: %s", settings)

    color_enabled = _color_enabled(args.color) and settings.style != "json"
    if color_enabled:
        colorama.just_fix_windows_console()

    catalog = load(settings.catalog)
    checks = select_checks(builtin_checks(), settings.disable_checks)
    report = evaluate_paths(args.target, catalog, checks, settings)
    result = decide(report, settings.fail_on)

    visible = report.filtered(args.severity)
    sys.stdout.write(format_report(visible, settings.style, color=color_enabled, fail_on=settings.fail_on))
    return 1 if result == "FAIL" else 0

def main(argv: List[str] | None = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        if args.command == "rules":
            return _cmd_rules(args)
        if args.command == "check":
            return _cmd_check(args)
    except ConformanceError as exc:
        ap.error(str(exc))

    ap.error(f"Unsupported command: {args.command}")
    return 2

if __name__ == "__main__":
    raise SystemExit(main())
