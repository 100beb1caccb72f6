from __future__ import annotations
import ast
import re
from typing import List

from .. import Finding
from ..artifact import Artifact
from .base import LineCheck, PythonCheck, contains_raise, finding, handlers

BROAD = ("Exception", "BaseException")

def _is_noop(body: List[ast.stmt]) -> bool:
    """pass / ... / continue / a lone docstring-like constant."""
    for stmt in body:
        if isinstance(stmt, (ast.Pass, ast.Continue)):
            continue
        if isinstance(stmt, ast.Expr) and isinstance(stmt.value, ast.Constant):
            continue
        return False
    return True

def _type_names(handler: ast.ExceptHandler) -> List[str]:
    t = handler.type
    if t is None:
        return []
    elts = t.elts if isinstance(t, ast.Tuple) else [t]
    return [ast.unparse(e) for e in elts]

class BareExceptCheck(PythonCheck):
    name = "errors.bare-except"
    rule_ids = ("ERR-CATCH-001",)

    def run(self, artifact: Artifact) -> List[Finding]:
        tree = artifact.python_tree
        if tree is None:
            return []
        return [
            finding(
                "ERR-CATCH-001", artifact, h.lineno,
                "Bare 'except:' also catches KeyboardInterrupt and SystemExit.",
                column=h.col_offset + 1,
                fix="Catch the specific exceptions the block can handle.",
            )
            for h in handlers(tree)
            if h.type is None
        ]

class SwallowedExceptionCheck(PythonCheck):
    name = "errors.swallowed-exception"
    rule_ids = ("ERR-SWALLOW-001",)

    def run(self, artifact: Artifact) -> List[Finding]:
        tree = artifact.python_tree
        if tree is None:
            return []
        out: List[Finding] = []
        for h in handlers(tree):
            if not _is_noop(h.body):
                continue
            names = _type_names(h)
            broad = not names or any(n in BROAD for n in names)
            out.append(
                finding(
                    "ERR-SWALLOW-001", artifact, h.lineno,
                    f"Exception {'/'.join(names) or '(any)'} is silently discarded.",
                    column=h.col_offset + 1,
                    fix="Handle the error, log it with context, or let it propagate.",
                    blocking=broad,
                )
            )
        return out

class BroadExceptCheck(PythonCheck):
    name = "errors.broad-except"
    rule_ids = ("ERR-BROAD-001",)

    def run(self, artifact: Artifact) -> List[Finding]:
        tree = artifact.python_tree
        if tree is None:
            return []
        out: List[Finding] = []
        for h in handlers(tree):
            names = _type_names(h)
            hit = [n for n in names if n in BROAD]
            if not hit or contains_raise(h.body) or _is_noop(h.body):
                continue
            out.append(
                finding(
                    "ERR-BROAD-001", artifact, h.lineno,
                    f"'except {hit[0]}' handles every error the same way and does not re-raise.",
                    column=h.col_offset + 1,
                    fix="Narrow the exception types or re-raise after handling.",
                )
            )
        return out

class LostCauseCheck(PythonCheck):
    name = "errors.lost-cause"
    rule_ids = ("ERR-CTX-001",)

    def run(self, artifact: Artifact) -> List[Finding]:
        tree = artifact.python_tree
        if tree is None:
            return []
        out: List[Finding] = []
        for h in handlers(tree):
            for stmt in h.body:
                for node in ast.walk(stmt):
                    if not isinstance(node, ast.Raise) or node.exc is None or node.cause is not None:
                        continue
                    if not isinstance(node.exc, ast.Call):
                        continue
                    out.append(
                        finding(
                            "ERR-CTX-001", artifact, node.lineno,
                            "A new exception is raised inside a handler without 'from'.",
                            column=node.col_offset + 1,
                            fix="Chain the original error: raise NewError(...) from exc.",
                        )
                    )
        return out

class LeakedTraceCheck(LineCheck):
    name = "errors.leaked-trace"
    rule_id = "ERR-LEAK-001"
    suffixes = frozenset({".py", ".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"})
    pattern = re.compile(
        r"\bres\.(?:send|json|write|end)\s*\([^)]*\b(?:err|error|e)\.stack\b"
        r"|\breturn\b[^#\n]*\btraceback\.format_exc\s*\("
        r"|\b(?:jsonify|Response|HTTPException|JSONResponse)\s*\([^#\n]*\btraceback\.format_exc\s*\("
    )
    message = "A stack trace is returned to the caller."
    fix = "Log the trace server-side and return a generic message with a correlation ID."

    def blocking(self, match: re.Match, line: str) -> bool:
        return True

def checks() -> list:
    return [
        BareExceptCheck(),
        SwallowedExceptionCheck(),
        BroadExceptCheck(),
        LostCauseCheck(),
        LeakedTraceCheck(),
    ]
