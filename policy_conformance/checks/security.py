from __future__ import annotations
import ast
import re
from typing import Iterable, List

from .. import Finding
from ..artifact import Artifact
from .base import LineCheck, PythonCheck, call_name, finding, is_comment, is_constant, is_dynamic, keyword_value

CODE_EXTS = frozenset({".py", ".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".vue"})
JS_EXTS = frozenset({".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".vue"})
CONFIG_EXTS = frozenset({".json", ".yaml", ".yml", ".toml", ".ini", ".cfg", ".env"})

_SECRET_ASSIGN = re.compile(
    r"""(?ix)
    \b(?P<name>[a-z0-9_]*(?:password|passwd|pwd|secret|api[_-]?key|access[_-]?key|auth[_-]?token|token|private[_-]?key))
    ["']?\s*[:=]\s*
    ["'](?P<value>[^"'\s]{8,})["']
    """
)
_PLACEHOLDER = re.compile(r"(?i)^(?:x+|\*+|changeme|change_me|example|dummy|placeholder|your[_-].*|<.*>|\$\{.*\}|%\(.*\)s|\{\{.*\}\})$")
_HIGH_CONFIDENCE = (
    re.compile(r"-----BEGIN (?:RSA |EC |DSA |OPENSSH |PGP )?PRIVATE KEY-----"),
    re.compile(r"\bAKIA[0-9A-Z]{16}\b"),
    re.compile(r"\bgh[pousr]_[A-Za-z0-9]{36,}\b"),
    re.compile(r"\bxox[baprs]-[A-Za-z0-9-]{10,}\b"),
)

class HardcodedSecretCheck:
    """Credentials in source or config. Known key formats block; name=value pairs do not."""

    name = "security.hardcoded-secret"
    rule_ids = ("SEC-SECRET-001",)

    def applies(self, artifact: Artifact) -> bool:
        return artifact.suffix in CODE_EXTS | CONFIG_EXTS

    def run(self, artifact: Artifact) -> List[Finding]:
        out: List[Finding] = []
        for i, line in enumerate(artifact.lines, start=1):
            if is_comment(line) and "PRIVATE KEY" not in line:
                continue
            strong = next((m for m in (p.search(line) for p in _HIGH_CONFIDENCE) if m), None)
            if strong:
                out.append(
                    finding(
                        "SEC-SECRET-001", artifact, i,
                        "Credential material with a known key format is committed in plain text.",
                        column=strong.start() + 1,
                        fix="Revoke the key, remove it from history and load it from a secret store.",
                        blocking=True,
                    )
                )
                continue
            m = _SECRET_ASSIGN.search(line)
            if m and not _PLACEHOLDER.match(m.group("value")):
                out.append(
                    finding(
                        "SEC-SECRET-001", artifact, i,
                        f"'{m.group('name')}' is assigned a literal credential.",
                        column=m.start() + 1,
                        fix="Read the value from the environment or a secret manager.",
                    )
                )
        return out

_SHELL_CALLS = {
    "subprocess.run", "subprocess.call", "subprocess.check_call", "subprocess.check_output",
    "subprocess.Popen", "run", "call", "check_call", "check_output", "Popen",
}

class ShellInjectionCheck(PythonCheck):
    name = "security.shell-injection"
    rule_ids = ("SEC-INJ-001",)

    def visit(self, node: ast.AST, artifact: Artifact) -> Iterable[Finding]:
        if not isinstance(node, ast.Call):
            return
        name = call_name(node)
        command = node.args[0] if node.args else keyword_value(node, "args")
        if name in ("os.system", "os.popen"):
            yield finding(
                "SEC-INJ-001", artifact, node.lineno,
                f"{name}() runs its argument through the shell.",
                column=node.col_offset + 1,
                fix="Use subprocess.run() with an argument list and shell=False.",
                blocking=is_dynamic(command),
            )
        elif name in _SHELL_CALLS and is_constant(keyword_value(node, "shell"), True):
            dynamic = is_dynamic(command)
            yield finding(
                "SEC-INJ-001", artifact, node.lineno,
                f"{name}() with shell=True" + (" on a command built at runtime." if dynamic else "."),
                column=node.col_offset + 1,
                fix="Pass the command as a list and drop shell=True.",
                blocking=dynamic,
            )

class DynamicEvalCheck(PythonCheck):
    name = "security.dynamic-eval"
    rule_ids = ("SEC-EVAL-001",)

    def visit(self, node: ast.AST, artifact: Artifact) -> Iterable[Finding]:
        if isinstance(node, ast.Call) and call_name(node) in ("eval", "exec") and node.args:
            if is_dynamic(node.args[0]):
                yield finding(
                    "SEC-EVAL-001", artifact, node.lineno,
                    f"{call_name(node)}() evaluates a value computed at runtime.",
                    column=node.col_offset + 1,
                    fix="Parse the input explicitly (ast.literal_eval, json.loads) or dispatch through a table.",
                    blocking=True,
                )

class JsEvalCheck(LineCheck):
    name = "security.js-eval"
    rule_id = "SEC-EVAL-001"
    suffixes = JS_EXTS
    pattern = re.compile(r"(?<![\w.])(?:eval\s*\(|new\s+Function\s*\()")
    message = "eval()/new Function() executes strings as code."
    fix = "Parse data with JSON.parse or map inputs to known handlers."

class TlsVerificationCheck(PythonCheck):
    name = "security.tls-verification"
    rule_ids = ("SEC-TLS-001",)

    def visit(self, node: ast.AST, artifact: Artifact) -> Iterable[Finding]:
        if not isinstance(node, ast.Call):
            return
        if is_constant(keyword_value(node, "verify"), False):
            yield finding(
                "SEC-TLS-001", artifact, node.lineno,
                "TLS certificate verification is disabled (verify=False).",
                column=node.col_offset + 1,
                fix="Remove verify=False; pass a CA bundle path if a private CA is needed.",
                blocking=True,
            )
        elif call_name(node) in ("ssl._create_unverified_context", "_create_unverified_context"):
            yield finding(
                "SEC-TLS-001", artifact, node.lineno,
                "An unverified SSL context skips certificate checks.",
                column=node.col_offset + 1,
                fix="Use ssl.create_default_context().",
                blocking=True,
            )

class JsTlsVerificationCheck(LineCheck):
    name = "security.js-tls-verification"
    rule_id = "SEC-TLS-001"
    suffixes = JS_EXTS | CONFIG_EXTS
    pattern = re.compile(r"rejectUnauthorized\s*:\s*false|NODE_TLS_REJECT_UNAUTHORIZED\s*[=:]\s*['\"]?0")
    message = "TLS certificate verification is disabled."
    fix = "Keep rejectUnauthorized enabled and configure the trusted CA instead."

    def blocking(self, match: re.Match, line: str) -> bool:
        return True

class WeakHashCheck(PythonCheck):
    name = "security.weak-hash"
    rule_ids = ("SEC-CRYPTO-001",)

    def visit(self, node: ast.AST, artifact: Artifact) -> Iterable[Finding]:
        if not isinstance(node, ast.Call):
            return
        name = call_name(node)
        algo = ""
        if name in ("hashlib.md5", "hashlib.sha1", "md5", "sha1"):
            algo = name.rsplit(".", 1)[-1]
        elif name in ("hashlib.new",) and node.args and isinstance(node.args[0], ast.Constant):
            if str(node.args[0].value).lower() in ("md5", "sha1"):
                algo = str(node.args[0].value).lower()
        if not algo or is_constant(keyword_value(node, "usedforsecurity"), False):
            return
        yield finding(
            "SEC-CRYPTO-001", artifact, node.lineno,
            f"{algo.upper()} is not collision resistant.",
            column=node.col_offset + 1,
            fix="Use hashlib.sha256 (or pass usedforsecurity=False for non-security checksums).",
        )

class UnsafeDeserializationCheck(PythonCheck):
    name = "security.unsafe-deserialization"
    rule_ids = ("SEC-DESER-001",)

    def visit(self, node: ast.AST, artifact: Artifact) -> Iterable[Finding]:
        if not isinstance(node, ast.Call):
            return
        name = call_name(node)
        if name in ("pickle.loads", "pickle.load", "cPickle.loads", "marshal.loads", "yaml.unsafe_load", "dill.loads"):
            yield finding(
                "SEC-DESER-001", artifact, node.lineno,
                f"{name}() can execute arbitrary code from its input.",
                column=node.col_offset + 1,
                fix="Exchange data as JSON or use yaml.safe_load.",
            )
        elif name == "yaml.load":
            loader = keyword_value(node, "Loader") or (node.args[1] if len(node.args) > 1 else None)
            loader_name = ast.unparse(loader) if loader is not None else ""
            if "Safe" not in loader_name:
                yield finding(
                    "SEC-DESER-001", artifact, node.lineno,
                    "yaml.load() without SafeLoader constructs arbitrary objects.",
                    column=node.col_offset + 1,
                    fix="Use yaml.safe_load().",
                )

_LOG_SECRET = re.compile(
    r"\b(?:log(?:ger|ging)?|console)\.(?:debug|info|warn|warning|error|exception|critical|log)\s*\("
    r"[^)]*\b(?:password|passwd|secret|token|api_?key|credentials?)\b",
    re.IGNORECASE,
)

class SecretLoggingCheck(LineCheck):
    name = "security.secret-logging"
    rule_id = "SEC-LOG-001"
    suffixes = CODE_EXTS
    pattern = _LOG_SECRET
    message = "A log statement references a secret-bearing value."
    fix = "Log an identifier or a redacted form, never the secret."

def checks() -> list:
    return [
        HardcodedSecretCheck(),
        ShellInjectionCheck(),
        DynamicEvalCheck(),
        JsEvalCheck(),
        TlsVerificationCheck(),
        JsTlsVerificationCheck(),
        WeakHashCheck(),
        UnsafeDeserializationCheck(),
        SecretLoggingCheck(),
    ]
