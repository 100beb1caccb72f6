from __future__ import annotations
import ast
import re
from typing import Iterable, List

from .. import Finding
from ..artifact import Artifact
from .base import PythonCheck, call_name, finding, handlers, keyword_value

_ERROR_TEXT = re.compile(r"^\s*(?:error|fatal|failed|failure)\b", re.IGNORECASE)
_ANSI = re.compile(r"\\(?:033|x1b|u001b|e)\[", re.IGNORECASE)

def _leading_text(node: ast.AST) -> str:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value
    if isinstance(node, ast.JoinedStr):
        for part in node.values:
            if isinstance(part, ast.Constant) and isinstance(part.value, str):
                return part.value
            return ""
    return ""

class ErrorsToStdoutCheck(PythonCheck):
    name = "cli.errors-to-stdout"
    rule_ids = ("CLI-OUT-001",)

    def visit(self, node: ast.AST, artifact: Artifact) -> Iterable[Finding]:
        if not isinstance(node, ast.Call) or call_name(node) != "print" or not node.args:
            return
        if keyword_value(node, "file") is not None:
            return
        if _ERROR_TEXT.match(_leading_text(node.args[0])):
            yield finding(
                "CLI-OUT-001", artifact, node.lineno,
                "An error message is printed to stdout.",
                column=node.col_offset + 1,
                fix="print(..., file=sys.stderr) or use logging.",
            )

class ExitZeroOnErrorCheck(PythonCheck):
    name = "cli.exit-zero-on-error"
    rule_ids = ("CLI-EXIT-001",)

    def run(self, artifact: Artifact) -> List[Finding]:
        tree = artifact.python_tree
        if tree is None:
            return []
        out: List[Finding] = []
        for h in handlers(tree):
            for stmt in h.body:
                for node in ast.walk(stmt):
                    if not isinstance(node, ast.Call) or call_name(node) not in ("sys.exit", "exit", "os._exit"):
                        continue
                    arg = node.args[0] if node.args else None
                    if arg is None or (isinstance(arg, ast.Constant) and arg.value in (0, None)):
                        out.append(
                            finding(
                                "CLI-EXIT-001", artifact, node.lineno,
                                "The program exits with status 0 from an error handler.",
                                column=node.col_offset + 1,
                                fix="Exit with a non-zero status (e.g. sys.exit(1)) so callers can detect the failure.",
                                blocking=True,
                            )
                        )
        return out

class NoColorCheck(PythonCheck):
    """Raw ANSI escapes in a module that never looks at NO_COLOR or isatty()."""

    name = "cli.no-color"
    rule_ids = ("CLI-COLOR-001",)

    def run(self, artifact: Artifact) -> List[Finding]:
        text = artifact.text
        if "NO_COLOR" in text or "isatty" in text:
            return []
        for i, line in enumerate(artifact.lines, start=1):
            m = _ANSI.search(line)
            if m:
                return [
                    finding(
                        "CLI-COLOR-001", artifact, i,
                        "ANSI colour is emitted without honouring NO_COLOR or checking for a terminal.",
                        column=m.start() + 1,
                        fix="Disable colour when NO_COLOR is set or stdout is not a TTY; offer --color=never.",
                    )
                ]
        return []

class InteractivePromptCheck(PythonCheck):
    name = "cli.interactive-prompt"
    rule_ids = ("CLI-INPUT-001",)

    def run(self, artifact: Artifact) -> List[Finding]:
        tree = artifact.python_tree
        if tree is None or "isatty" in artifact.text:
            return []
        return [
            finding(
                "CLI-INPUT-001", artifact, node.lineno,
                "input() prompts without checking that stdin is a terminal.",
                column=node.col_offset + 1,
                fix="Check sys.stdin.isatty() and provide a flag (e.g. --yes) for non-interactive use.",
            )
            for node in ast.walk(tree)
            if isinstance(node, ast.Call) and call_name(node) in ("input", "getpass.getpass")
        ]

def checks() -> list:
    return [
        ErrorsToStdoutCheck(),
        ExitZeroOnErrorCheck(),
        NoColorCheck(),
        InteractivePromptCheck(),
    ]
