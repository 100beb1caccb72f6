from __future__ import annotations
import re
from typing import List

from .. import Finding
from ..artifact import Artifact
from .base import LineCheck, SuffixCheck, finding

MARKUP_EXTS = frozenset({".html", ".htm", ".jsx", ".tsx", ".vue"})
STYLE_EXTS = frozenset({".css", ".scss", ".html", ".htm", ".vue"})

_TAG = re.compile(r"<(?P<name>[a-zA-Z][a-zA-Z0-9-]*)\b(?P<attrs>[^<>]*?)/?>", re.DOTALL)

def _has_attr(attrs: str, *names: str) -> bool:
    return any(re.search(rf"(?<![\w-]){re.escape(n)}\s*=", attrs, re.IGNORECASE) for n in names)

def _lineno(text: str, idx: int) -> int:
    return text.count("\n", 0, idx) + 1

class ImageAltCheck(SuffixCheck):
    """<img> needs alt. An image alone inside a link or button leaves the control unnamed."""

    name = "a11y.image-alt"
    rule_ids = ("A11Y-IMG-001",)
    suffixes = MARKUP_EXTS

    def run(self, artifact: Artifact) -> List[Finding]:
        out: List[Finding] = []
        text = artifact.text
        open_controls = 0
        for m in re.finditer(r"<(/?)(a|button|img)\b([^<>]*?)/?>", text, re.IGNORECASE | re.DOTALL):
            closing, tag, attrs = m.group(1), m.group(2).lower(), m.group(3)
            if tag in ("a", "button"):
                open_controls += -1 if closing else 1
                open_controls = max(open_controls, 0)
                continue
            if _has_attr(attrs, "alt", "aria-label", "aria-labelledby") or re.search(r"role\s*=\s*[\"']presentation", attrs):
                continue
            inside = open_controls > 0
            out.append(
                finding(
                    "A11Y-IMG-001", artifact, _lineno(text, m.start()),
                    "<img> has no text alternative" + (" and is the content of a link or button." if inside else "."),
                    fix='Add alt="..." describing the image, or alt="" if it is decorative.',
                    blocking=inside,
                )
            )
        return out

class DocumentLanguageCheck(SuffixCheck):
    name = "a11y.document-language"
    rule_ids = ("A11Y-LANG-001",)
    suffixes = frozenset({".html", ".htm"})

    def run(self, artifact: Artifact) -> List[Finding]:
        m = re.search(r"<html\b([^>]*)>", artifact.text, re.IGNORECASE)
        if not m or _has_attr(m.group(1), "lang"):
            return []
        return [
            finding(
                "A11Y-LANG-001", artifact, _lineno(artifact.text, m.start()),
                "<html> does not declare the page language.",
                fix='Add lang="en" (or the page language) to <html>.',
            )
        ]

class ClickableElementCheck(SuffixCheck):
    """Click handlers on div/span without role and keyboard support."""

    name = "a11y.clickable-element"
    rule_ids = ("A11Y-SEM-001",)
    suffixes = MARKUP_EXTS

    def run(self, artifact: Artifact) -> List[Finding]:
        out: List[Finding] = []
        text = artifact.text
        for m in _TAG.finditer(text):
            if m.group("name").lower() not in ("div", "span", "li", "td", "p"):
                continue
            attrs = m.group("attrs")
            if not _has_attr(attrs, "onclick", "@click", "v-on:click"):
                continue
            if _has_attr(attrs, "role") and _has_attr(attrs, "onkeydown", "onkeyup", "onkeypress", "@keydown", "@keyup"):
                continue
            out.append(
                finding(
                    "A11Y-SEM-001", artifact, _lineno(text, m.start()),
                    f"<{m.group('name')}> has a click handler but is not keyboard operable.",
                    fix="Use a <button> (or <a href>) instead of a clickable container.",
                    blocking=True,
                )
            )
        return out

class PositiveTabindexCheck(LineCheck):
    name = "a11y.positive-tabindex"
    rule_id = "A11Y-KBD-001"
    suffixes = MARKUP_EXTS
    pattern = re.compile(r"""tab[iI]ndex\s*=\s*(?:["']|\{)\s*[1-9]\d*""")
    message = "Positive tabindex overrides the natural focus order."
    fix = 'Use tabindex="0" or "-1" and order the DOM to match the visual order.'

class FormLabelCheck(SuffixCheck):
    name = "a11y.form-label"
    rule_ids = ("A11Y-FORM-001",)
    suffixes = MARKUP_EXTS
    _unlabelled_types = ("hidden", "submit", "button", "reset", "image")

    def run(self, artifact: Artifact) -> List[Finding]:
        text = artifact.text
        labelled = set(re.findall(r"<label\b[^>]*\b(?:for|htmlFor)\s*=\s*[\"']([^\"']+)[\"']", text, re.IGNORECASE))
        out: List[Finding] = []
        for m in _TAG.finditer(text):
            tag = m.group("name").lower()
            if tag not in ("input", "select", "textarea"):
                continue
            attrs = m.group("attrs")
            tm = re.search(r"\btype\s*=\s*[\"']([^\"']+)", attrs, re.IGNORECASE)
            if tm and tm.group(1).lower() in self._unlabelled_types:
                continue
            if _has_attr(attrs, "aria-label", "aria-labelledby", "title"):
                continue
            idm = re.search(r"(?<![\w-])id\s*=\s*[\"']([^\"']+)", attrs)
            if idm and idm.group(1) in labelled:
                continue
            if self._wrapped_in_label(text, m.start()):
                continue
            out.append(
                finding(
                    "A11Y-FORM-001", artifact, _lineno(text, m.start()),
                    f"<{tag}> has no associated label.",
                    fix="Add <label for=...> or aria-label.",
                )
            )
        return out

    @staticmethod
    def _wrapped_in_label(text: str, idx: int) -> bool:
        before = text[:idx]
        return before.rfind("<label") > before.rfind("</label")

class FocusOutlineCheck(LineCheck):
    name = "a11y.focus-outline"
    rule_id = "A11Y-FOCUS-001"
    suffixes = STYLE_EXTS
    pattern = re.compile(r"\boutline\s*:\s*(?:none|0)\s*(?:!important\s*)?[;}]", re.IGNORECASE)
    message = "Focus outline removed."
    fix = "Keep a visible focus style, e.g. :focus-visible { outline: 2px solid; }."

def checks() -> list:
    return [
        ImageAltCheck(),
        DocumentLanguageCheck(),
        ClickableElementCheck(),
        PositiveTabindexCheck(),
        FormLabelCheck(),
        FocusOutlineCheck(),
    ]
