from __future__ import annotations

class ConformanceError(Exception):
    """Base class for every error raised by policy_conformance."""

class CatalogError(ConformanceError):
    """Malformed, duplicate or unreadable rule definitions. Fatal."""

class NotFound(CatalogError, KeyError):
    def __init__(self, rule_id: str):
        super().__init__(rule_id)
        self.rule_id = rule_id

    def __str__(self) -> str:
        return f"Rule not found: {self.rule_id}"

class CheckError(ConformanceError):
    """A single check failed. Recovered as a meta-finding."""

    def __init__(self, check: str, message: str):
        super().__init__(f"check '{check}' failed: {message}")
        self.check = check

class FormatError(ConformanceError):
    """Unsupported report style."""

class ConfigError(ConformanceError):
    """Bad settings file or setting value."""
