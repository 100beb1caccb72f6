from __future__ import annotations
from typing import Iterable, List

from . import accessibility, cli_design, error_handling, security
from .base import Check

def builtin_checks() -> List[Check]:
    """Fresh instances of every bundled check, in a fixed order."""
    return [
        *accessibility.checks(),
        *cli_design.checks(),
        *error_handling.checks(),
        *security.checks(),
    ]

def select_checks(checks: Iterable[Check], disabled: Iterable[str] = ()) -> List[Check]:
    off = set(disabled)
    return [c for c in checks if c.name not in off]

__all__ = ["Check", "builtin_checks", "select_checks"]
