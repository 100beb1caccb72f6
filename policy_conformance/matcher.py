from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Tuple

@dataclass(frozen=True)
class Waiver:
    path: str
    rules: Tuple[str, ...]
    reason: str = ""

def _parts(path: str) -> List[str]:
    """Posix or Windows separators; empty parts and surrounding slashes ignored."""
    return [p for p in path.replace("\\", "/").split("/") if p]

def _part_matches(want: str, got: str) -> bool:
    if want == "+":
        return True
    if want.endswith("*"):
        return got.startswith(want[:-1])
    return want == got

def match_path(pattern: str, path: str) -> bool:
    """
    Does a waiver path pattern cover a reported file path?

    'src/+/fixtures' needs some directory where the '+' stands, 'tests/*'
    covers the tests folder and everything beneath it, and 'src/gen*' covers
    any file or folder directly under src whose name starts with 'gen'.
    """
    want, got = _parts(pattern), _parts(path)
    if want and want[-1] == "*":
        want = want[:-1]
        return len(got) >= len(want) and all(map(_part_matches, want, got))
    return len(want) == len(got) and all(map(_part_matches, want, got))

def match_rule(pattern: str, rule_id: str) -> bool:
    """Exact rule ID, or an ID prefix ending in '*' ('SEC-*', '*')."""
    if pattern.endswith("*"):
        return rule_id.startswith(pattern[:-1])
    return pattern == rule_id

def is_waived(waivers: Iterable[Waiver], rule_id: str, path: str) -> bool:
    if rule_id.startswith("META-"):
        return False
    for w in waivers:
        if match_path(w.path, path) and any(match_rule(r, rule_id) for r in w.rules):
            return True
    return False
