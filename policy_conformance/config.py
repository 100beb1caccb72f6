from __future__ import annotations
import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Tuple

import yaml

from .artifact import DEFAULT_EXCLUDE_DIRS, DEFAULT_INCLUDE_EXTS, DEFAULT_MAX_FILE_SIZE
from .errors import ConfigError
from .formatter import STYLES
from .matcher import Waiver
from .severity import SEVERITY_ORDER

log = logging.getLogger(__name__)

FAIL_ON = [*SEVERITY_ORDER, "never"]

@dataclass(frozen=True)
class Settings:
    catalog: Tuple[str, ...] = ()
    include_exts: Tuple[str, ...] = tuple(sorted(DEFAULT_INCLUDE_EXTS))
    exclude_dirs: Tuple[str, ...] = tuple(sorted(DEFAULT_EXCLUDE_DIRS))
    max_file_size_bytes: int = DEFAULT_MAX_FILE_SIZE
    style: str = "table"
    fail_on: str = "blocker"
    workers: int = 1
    disable_checks: Tuple[str, ...] = ()
    waivers: Tuple[Waiver, ...] = ()

    def override(self, **values: Any) -> "Settings":
        """Copy with every non-None value replaced, validated like a file."""
        changed = {k: v for k, v in values.items() if v is not None}
        return validate(replace(self, **changed))

def validate(settings: Settings) -> Settings:
    if settings.style not in STYLES:
        raise ConfigError(f"'style' must be one of {', '.join(STYLES)}, got {settings.style!r}")
    if settings.fail_on not in FAIL_ON:
        raise ConfigError(f"'fail_on' must be one of {', '.join(FAIL_ON)}, got {settings.fail_on!r}")
    if settings.workers < 1:
        raise ConfigError("'workers' must be at least 1")
    if settings.max_file_size_bytes < 1:
        raise ConfigError("'max_file_size_bytes' must be positive")
    return settings

def load_settings(path: str | Path) -> Settings:
    """Read a YAML or JSON settings file. Relative catalog paths resolve against the file."""
    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        text = config_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read {config_path}: {exc}") from exc
    try:
        raw = json.loads(text) if config_path.suffix.lower() == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot parse {config_path}: {exc}") from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path}: top level must be a mapping")

    bad_keys = [k for k in raw if not isinstance(k, str)]
    if bad_keys:
        raise ConfigError(f"{config_path}: keys must be strings, got {bad_keys[0]!r}")
    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"{config_path}: unknown keys: {', '.join(unknown)}")

    values: Dict[str, Any] = {}
    base = config_path.resolve().parent
    if "catalog" in raw:
        values["catalog"] = tuple(
            str(p if Path(p).is_absolute() else base / p) for p in _string_list(raw["catalog"], "catalog")
        )
    for key in ("include_exts", "exclude_dirs", "disable_checks"):
        if key in raw:
            values[key] = tuple(_string_list(raw[key], key))
    if "include_exts" in values:
        values["include_exts"] = normalize_exts(values["include_exts"])
    for key in ("max_file_size_bytes", "workers"):
        if key in raw:
            values[key] = _int(raw[key], key)
    for key in ("style", "fail_on"):
        if key in raw:
            values[key] = str(raw[key]).strip().lower()
    if "waivers" in raw:
        values["waivers"] = tuple(_waivers(raw["waivers"]))

    settings = validate(Settings(**values))
    log.info("Loaded settings from %s", config_path)
    return settings

def normalize_exts(exts: Iterable[str]) -> Tuple[str, ...]:
    """'py' and '.PY' both become '.py'."""
    return tuple(e.lower() if e.startswith(".") else f".{e.lower()}" for e in exts)

def _string_list(value: object, key: str) -> List[str]:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, (str, int, float)) for v in value):
        raise ConfigError(f"'{key}' must be a list of strings")
    return [str(v) for v in value]

def _int(value: object, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"'{key}' must be an integer")
    return value

def _waivers(value: object) -> List[Waiver]:
    if not isinstance(value, list):
        raise ConfigError("'waivers' must be a list")
    out: List[Waiver] = []
    for i, item in enumerate(value, start=1):
        if not isinstance(item, dict) or not item.get("path") or not item.get("rules"):
            raise ConfigError(f"waiver {i} needs 'path' and 'rules'")
        out.append(
            Waiver(
                path=str(item["path"]),
                rules=tuple(_string_list(item["rules"], f"waivers[{i}].rules")),
                reason=str(item.get("reason") or ""),
            )
        )
    return out
