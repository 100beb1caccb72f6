from __future__ import annotations
import ast
import logging
import os
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Iterable, List, Optional, Set

from .errors import ConformanceError

log = logging.getLogger(__name__)

DEFAULT_INCLUDE_EXTS: Set[str] = {
    ".py", ".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs", ".vue",
    ".html", ".htm", ".css", ".scss",
    ".json", ".yaml", ".yml", ".toml", ".ini", ".cfg", ".env",
}

DEFAULT_EXCLUDE_DIRS: Set[str] = {
    ".git", ".hg", ".venv", "venv", "node_modules", "build", "dist", "__pycache__", ".tox",
}

DEFAULT_MAX_FILE_SIZE = 1_000_000

@dataclass(frozen=True)
class Artifact:
    """One target file: display path plus its decoded text."""

    path: str
    text: str

    @property
    def suffix(self) -> str:
        name = self.path.rsplit("/", 1)[-1].lower()
        if name.startswith(".env"):
            return ".env"
        return os.path.splitext(name)[1]

    @cached_property
    def lines(self) -> List[str]:
        return self.text.splitlines()

    @cached_property
    def python_tree(self) -> Optional[ast.AST]:
        if self.suffix != ".py":
            return None
        try:
            return ast.parse(self.text, filename=self.path)
        except (SyntaxError, ValueError) as exc:
            log.debug("Not parsing %s as Python: %s", self.path, exc)
            return None

    def line(self, lineno: Optional[int]) -> str:
        if lineno is None or lineno < 1 or lineno > len(self.lines):
            return ""
        return self.lines[lineno - 1]

def _iter_files(root: Path, include_exts: Set[str], exclude_dirs: Set[str]) -> Iterable[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in exclude_dirs)
        for fn in sorted(filenames):
            p = Path(dirpath) / fn
            suffix = ".env" if fn.lower().startswith(".env") else p.suffix.lower()
            if suffix in include_exts:
                yield p

def read_artifact(path: Path, display: str, max_file_size_bytes: int) -> Optional[Artifact]:
    try:
        size = path.stat().st_size
    except OSError as exc:
        log.warning("Skipping %s: %s", display, exc)
        return None
    if size > max_file_size_bytes:
        log.debug("Skipping %s: %d bytes exceeds limit %d", display, size, max_file_size_bytes)
        return None
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        log.warning("Skipping %s: %s", display, exc)
        return None
    return Artifact(path=display, text=text)

def _display_path(path: Path) -> str:
    """A lone file: relative to the working directory when inside it, else its name."""
    try:
        return path.resolve().relative_to(Path.cwd().resolve()).as_posix()
    except ValueError:
        return path.name

def collect_artifacts(
    target: str | Path,
    include_exts: Iterable[str] | None = None,
    exclude_dirs: Iterable[str] | None = None,
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE,
) -> List[Artifact]:
    """Single file, or every matching file under a directory in sorted order."""
    root = Path(target)
    if root.is_file():
        art = read_artifact(root, _display_path(root), max_file_size_bytes)
        return [art] if art else []
    if not root.is_dir():
        raise ConformanceError(f"Target not found: {root}")

    exts = {e.lower() for e in include_exts} if include_exts else DEFAULT_INCLUDE_EXTS
    excluded = set(exclude_dirs) if exclude_dirs is not None else DEFAULT_EXCLUDE_DIRS
    out: List[Artifact] = []
    for p in _iter_files(root, exts, excluded):
        art = read_artifact(p, p.relative_to(root).as_posix(), max_file_size_bytes)
        if art:
            out.append(art)
    log.info("Collected %d files from %s", len(out), root)
    return out
