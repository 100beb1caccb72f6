from __future__ import annotations
import ast
import re
from typing import FrozenSet, Iterable, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from .. import Finding, Location
from ..artifact import Artifact

EVIDENCE_LIMIT = 200

@runtime_checkable
class Check(Protocol):
    """Anything with a name, the rules it reports, applies() and run()."""

    name: str
    rule_ids: Tuple[str, ...]

    def applies(self, artifact: Artifact) -> bool: ...

    def run(self, artifact: Artifact) -> Sequence[Finding]: ...

def finding(
    rule_id: str,
    artifact: Artifact,
    line: Optional[int],
    message: str,
    *,
    column: Optional[int] = None,
    fix: str = "",
    blocking: bool = False,
) -> Finding:
    return Finding(
        rule_id=rule_id,
        location=Location(artifact.path, line, column),
        message=message,
        evidence=artifact.line(line).strip()[:EVIDENCE_LIMIT],
        fix=fix,
        blocking=blocking,
    )

class SuffixCheck:
    """Applies to artifacts whose suffix is in `suffixes`."""

    name = "suffix"
    rule_ids: Tuple[str, ...] = ()
    suffixes: FrozenSet[str] = frozenset()

    def applies(self, artifact: Artifact) -> bool:
        return artifact.suffix in self.suffixes

    def run(self, artifact: Artifact) -> List[Finding]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"

class LineCheck(SuffixCheck):
    """One regex, one rule; a finding per matching line."""

    rule_id = ""
    pattern: re.Pattern = re.compile(r"(?!)")
    message = ""
    fix = ""
    skip_comments = True

    @property
    def rule_ids(self) -> Tuple[str, ...]:  # type: ignore[override]
        return (self.rule_id,)

    def blocking(self, match: re.Match, line: str) -> bool:
        return False

    def run(self, artifact: Artifact) -> List[Finding]:
        out: List[Finding] = []
        for i, line in enumerate(artifact.lines, start=1):
            if self.skip_comments and is_comment(line):
                continue
            m = self.pattern.search(line)
            if not m:
                continue
            out.append(
                finding(
                    self.rule_id, artifact, i, self.message,
                    column=m.start() + 1, fix=self.fix, blocking=self.blocking(m, line),
                )
            )
        return out

class PythonCheck(SuffixCheck):
    """Walks the parsed module; subclasses implement visit()."""

    suffixes = frozenset({".py"})

    def applies(self, artifact: Artifact) -> bool:
        return artifact.suffix == ".py" and artifact.python_tree is not None

    def run(self, artifact: Artifact) -> List[Finding]:
        tree = artifact.python_tree
        if tree is None:
            return []
        out: List[Finding] = []
        for node in ast.walk(tree):
            out.extend(self.visit(node, artifact))
        return out

    def visit(self, node: ast.AST, artifact: Artifact) -> Iterable[Finding]:
        return ()

def is_comment(line: str) -> bool:
    s = line.lstrip()
    return s.startswith(("#", "//", "/*", "*", "<!--"))

def call_name(node: ast.Call) -> str:
    """Dotted name of the callee: 'subprocess.run', 'eval', '' for anything else."""
    parts: List[str] = []
    cur: ast.AST = node.func
    while isinstance(cur, ast.Attribute):
        parts.append(cur.attr)
        cur = cur.value
    if isinstance(cur, ast.Name):
        parts.append(cur.id)
    else:
        return ""
    return ".".join(reversed(parts))

def keyword_value(node: ast.Call, name: str) -> Optional[ast.AST]:
    for kw in node.keywords:
        if kw.arg == name:
            return kw.value
    return None

def is_constant(node: Optional[ast.AST], value: object = ...) -> bool:
    if not isinstance(node, ast.Constant):
        return False
    return value is ... or node.value is value or node.value == value

def is_dynamic(node: Optional[ast.AST]) -> bool:
    """True when the expression is built at runtime rather than a literal."""
    if node is None:
        return False
    if isinstance(node, ast.Constant):
        return False
    if isinstance(node, (ast.List, ast.Tuple)):
        return any(is_dynamic(e) for e in node.elts)
    return True

def handlers(tree: ast.AST) -> Iterable[ast.ExceptHandler]:
    for node in ast.walk(tree):
        if isinstance(node, ast.ExceptHandler):
            yield node

def contains_raise(body: Sequence[ast.stmt]) -> bool:
    for stmt in body:
        for node in ast.walk(stmt):
            if isinstance(node, ast.Raise):
                return True
    return False
