from __future__ import annotations
import json
import logging
import re
import threading
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Union

import yaml

from . import Rule
from .errors import CatalogError, NotFound
from .severity import canonical_keyword, normalize_level

log = logging.getLogger(__name__)

Source = Union[str, Path]

CATALOG_EXTS = (".md", ".json", ".yaml", ".yml")
META_PREFIX = "META-"

# Reserved rules every catalog carries; meta-findings point at these.
META_RULES = (
    Rule(
        id="META-CHECK-001",
        category="Tooling",
        section="Evaluation",
        level="MUST",
        keyword="MUST",
        title="Every configured check completes",
        description="A check raised an error; its rules were not evaluated for this artifact.",
        fix="Inspect the check error, fix the check or disable it with --disable-check.",
        source="<builtin>",
    ),
    Rule(
        id="META-RULE-001",
        category="Tooling",
        section="Evaluation",
        level="MUST",
        keyword="MUST",
        title="Checks report only catalog rules",
        description="A check reported a rule ID that is not in the loaded catalog.",
        fix="Add the rule to the catalog or correct the check's rule ID.",
        source="<builtin>",
    ),
)

RULE_ID = r"[A-Z][A-Z0-9]*(?:-[A-Z0-9]+)+"
_RULE_ID = re.compile(rf"^{RULE_ID}$")
# ### A11Y-SEM-001 [MUST] Use native semantic elements
_RULE_HEADING = re.compile(
    rf"^###\s+(?P<id>{RULE_ID})\b\s*(?:\[(?P<level>[^\]]*)\])?\s*(?P<title>.*?)\s*$"
)
_HEADING = re.compile(r"^(?P<hashes>#{1,6})\s+(?P<text>.*?)\s*#*\s*$")
_FIELD = re.compile(r"^\s*(?:\*\*)?(?P<key>Rationale|Fix)(?:\*\*)?\s*:\s*(?:\*\*)?\s*(?P<value>.*)$", re.IGNORECASE)

class Catalog:
    """Immutable mapping of rule ID -> Rule."""

    def __init__(self, rules: Iterable[Rule]):
        by_id: Dict[str, Rule] = {}
        for r in rules:
            if r.id in by_id:
                first = by_id[r.id]
                raise CatalogError(
                    f"Duplicate rule ID {r.id}: {_where(first)} and {_where(r)}"
                )
            by_id[r.id] = r
        self._rules = MappingProxyType(dict(sorted(by_id.items())))

    def lookup(self, rule_id: str) -> Rule:
        try:
            return self._rules[rule_id]
        except KeyError:
            raise NotFound(rule_id) from None

    def ids(self) -> List[str]:
        return list(self._rules)

    def categories(self) -> List[str]:
        return sorted({r.category for r in self._rules.values()})

    def by_category(self) -> Dict[str, List[Rule]]:
        out: Dict[str, List[Rule]] = {}
        for r in self._rules.values():
            out.setdefault(r.category, []).append(r)
        return dict(sorted(out.items()))

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"Catalog({len(self)} rules)"

def _where(rule: Rule) -> str:
    return f"{rule.source}:{rule.lineno}" if rule.lineno else (rule.source or "<inline>")

def parse_standards(text: str, source: str = "inline") -> List[Rule]:
    """
    Extract rules from a Markdown standards document.

    H1 names the category, H2 the section, and each rule is a
    '### <ID> [<LEVEL>] <title>' heading followed by description lines and
    optional 'Rationale:' / 'Fix:' lines. Raises CatalogError on malformed rules.
    """
    rules: List[Rule] = []
    category = ""
    section = ""
    current: Optional[Dict[str, object]] = None
    in_fence = False

    def flush() -> None:
        if current is None:
            return
        rules.append(
            Rule(
                id=str(current["id"]),
                category=category,
                section=str(current["section"]),
                level=current["level"],  # type: ignore[arg-type]
                title=str(current["title"]),
                description=" ".join(current["description"]).strip(),  # type: ignore[arg-type]
                rationale=" ".join(current["rationale"]).strip(),  # type: ignore[arg-type]
                fix=" ".join(current["fix"]).strip(),  # type: ignore[arg-type]
                source=source,
                lineno=int(current["lineno"]),  # type: ignore[arg-type]
                keyword=str(current["keyword"]),
            )
        )

    target = "description"
    for lineno, line in enumerate((text or "").splitlines(), start=1):
        if line.lstrip().startswith("```"):
            in_fence = not in_fence
            continue
        if in_fence:
            continue

        rm = _RULE_HEADING.match(line)
        if rm:
            flush()
            rule_id = rm.group("id")
            level = normalize_level(rm.group("level") or "")
            if level is None:
                raise CatalogError(
                    f"{source}:{lineno}: rule {rule_id} has a missing or unknown level "
                    f"{rm.group('level')!r}; expected one of MUST, SHOULD, MAY"
                )
            if not rm.group("title"):
                raise CatalogError(f"{source}:{lineno}: rule {rule_id} has no title")
            if not category:
                raise CatalogError(f"{source}:{lineno}: rule {rule_id} appears before the document title")
            current = {
                "id": rule_id, "level": level, "keyword": canonical_keyword(rm.group("level")),
                "title": rm.group("title"), "section": section,
                "description": [], "rationale": [], "fix": [], "lineno": lineno,
            }
            target = "description"
            continue

        hm = _HEADING.match(line)
        if hm:
            flush()
            current = None
            depth = len(hm.group("hashes"))
            if depth == 1:
                category, section = hm.group("text"), ""
            elif depth == 2:
                section = hm.group("text")
            continue

        if current is None:
            continue
        fm = _FIELD.match(line)
        if fm:
            target = fm.group("key").lower()
            if fm.group("value"):
                current[target].append(fm.group("value"))  # type: ignore[union-attr]
            continue
        if not line.strip():
            # a blank line ends Rationale/Fix continuation
            target = "description" if target == "description" else "_closed"
            continue
        if target != "_closed":
            current[target].append(line.strip())  # type: ignore[union-attr]

    flush()
    return rules

def parse_entries(raw: object, source: str) -> List[Rule]:
    """Rules from a decoded JSON/YAML list of objects."""
    if not isinstance(raw, list) or not raw:
        raise CatalogError(f"{source}: catalog file must contain a non-empty list of rules")
    rules: List[Rule] = []
    for i, item in enumerate(raw, start=1):
        if not isinstance(item, dict):
            raise CatalogError(f"{source}: entry {i} must be an object")
        missing = [k for k in ("id", "category", "level", "title") if not item.get(k)]
        if missing:
            raise CatalogError(f"{source}: entry {i} is missing keys: {', '.join(missing)}")
        rule_id = str(item["id"]).strip()
        if not _RULE_ID.match(rule_id):
            raise CatalogError(f"{source}: entry {i} has a malformed rule ID {rule_id!r}")
        level = normalize_level(str(item["level"]))
        if level is None:
            raise CatalogError(f"{source}: rule {rule_id} has an unknown level {item['level']!r}")
        rules.append(
            Rule(
                id=rule_id,
                category=str(item["category"]),
                level=level,
                title=str(item["title"]),
                section=str(item.get("section") or ""),
                description=str(item.get("description") or ""),
                rationale=str(item.get("rationale") or ""),
                fix=str(item.get("fix") or ""),
                source=source,
                lineno=0,
                keyword=canonical_keyword(str(item["level"])),
            )
        )
    return rules

def parse_source(text: str, source: str) -> List[Rule]:
    suffix = Path(source).suffix.lower()
    if suffix == ".md":
        return parse_standards(text, source=source)
    try:
        if suffix == ".json":
            raw = json.loads(text)
        else:
            raw = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise CatalogError(f"{source}: cannot decode catalog file: {exc}") from exc
    return parse_entries(raw, source)

def _expand(sources: Iterable[Source]) -> List[Path]:
    paths: List[Path] = []
    for s in sources:
        p = Path(s)
        if p.is_dir():
            found = sorted(c for c in p.iterdir() if c.is_file() and c.suffix.lower() in CATALOG_EXTS)
            if not found:
                raise CatalogError(f"No catalog files ({', '.join(CATALOG_EXTS)}) in {p}")
            paths.extend(found)
        elif p.is_file():
            paths.append(p)
        else:
            raise CatalogError(f"Catalog source not found: {p}")
    return paths

def builtin_texts() -> List[tuple]:
    """(name, text) for the standards documents shipped with the package."""
    folder = resources.files("policy_conformance").joinpath("standards")
    docs = sorted((f for f in folder.iterdir() if f.name.endswith(".md")), key=lambda f: f.name)
    return [(f"<builtin>/{f.name}", f.read_text(encoding="utf-8")) for f in docs]

def load(sources: Optional[Sequence[Source]] = None) -> Catalog:
    """
    Build a catalog from files/directories, or the built-in standards when
    sources is None or empty. User rules may not use the reserved META- prefix.
    """
    rules: List[Rule] = []
    if not sources:
        for name, text in builtin_texts():
            rules.extend(parse_standards(text, source=name))
        origin = "built-in standards"
    else:
        for path in _expand(sources):
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise CatalogError(f"Cannot read catalog source {path}: {exc}") from exc
            rules.extend(parse_source(text, str(path)))
        origin = ", ".join(str(s) for s in sources)

    for r in rules:
        if r.id.startswith(META_PREFIX):
            raise CatalogError(f"{_where(r)}: rule ID {r.id} uses the reserved {META_PREFIX} prefix")

    catalog = Catalog([*rules, *META_RULES])
    log.info("Loaded %d rules from %s", len(rules), origin)
    return catalog

class CatalogStore:
    """Holds the current catalog; reload swaps it whole, or not at all."""

    def __init__(self, catalog: Catalog):
        self._catalog = catalog
        self._lock = threading.Lock()

    @property
    def current(self) -> Catalog:
        with self._lock:
            return self._catalog

    def reload(self, sources: Optional[Sequence[Source]] = None) -> Catalog:
        fresh = load(sources)  # raises before anything is replaced
        with self._lock:
            self._catalog = fresh
        return fresh
