from __future__ import annotations
from pathlib import Path
from typing import List

import streamlit as st

from policy_conformance import Finding, Report, Stats
from policy_conformance.catalog import CatalogStore, load
from policy_conformance.checks import builtin_checks, select_checks
from policy_conformance.config import Settings, normalize_exts
from policy_conformance.errors import ConformanceError
from policy_conformance.evaluator import evaluate_paths
from policy_conformance.formatter import STYLES, format_report
from policy_conformance.severity import decide

st.set_page_config(page_title="Policy Conformance", layout="wide", initial_sidebar_state="expanded")

def _render_stats(stats: Stats) -> None:
    st.sidebar.markdown("### Statistics")
    st.sidebar.write(f"- Files checked: {stats.files}")
    st.sidebar.write(f"- Rules in scope: {stats.rules}")
    st.sidebar.write(f"- Checks run: {stats.checks}")
    st.sidebar.write(f"- Check errors: {stats.check_errors}")
    st.sidebar.write(f"- Blocker findings: {stats.blocker}")
    st.sidebar.write(f"- Major findings: {stats.major}")
    st.sidebar.write(f"- Minor findings: {stats.minor}")
    st.sidebar.write(f"- Waived: {stats.waived}")

def _render_findings(findings: List[Finding]) -> None:
    if not findings:
        st.success("No findings.")
        return
    for f in findings:
        msg = f"[{(f.severity or 'minor').capitalize()}] {f.rule_id}: {f.message} ({f.location})"
        if f.severity == "blocker":
            st.error(msg)
        elif f.severity == "major":
            st.warning(msg)
        else:
            st.info(msg)

def _store() -> CatalogStore:
    if "catalog_store" not in st.session_state:
        st.session_state["catalog_store"] = CatalogStore(load())
    return st.session_state["catalog_store"]

# ---------------- sidebar ----------------

st.sidebar.title("Policy Conformance")
folder = st.sidebar.text_input("Target folder or file (server-side)", value=st.session_state.get("target", ""))
st.session_state["target"] = folder
catalog_paths = st.sidebar.text_input(
    "Catalog paths (comma separated, empty = built-in)", value=st.session_state.get("catalog_paths", "")
)
st.session_state["catalog_paths"] = catalog_paths
exts = st.sidebar.text_input("Extensions (comma separated)", value=st.session_state.get("exts", ""))
st.session_state["exts"] = exts
style = st.sidebar.selectbox("Report style", STYLES, index=STYLES.index("table"))
severity = st.sidebar.selectbox("Severity", ["all", "blocker", "major", "minor"], index=0)

if st.sidebar.button("Reload catalog", use_container_width=True):
    sources = [p.strip() for p in catalog_paths.split(",") if p.strip()]
    try:
        _store().reload(sources or None)
        st.sidebar.success(f"Loaded {len(_store().current)} rules.")
    except ConformanceError as exc:
        st.sidebar.error(f"Catalog not replaced: {exc}")

run_clicked = st.sidebar.button("Run checks", type="primary", use_container_width=True)
st.sidebar.markdown("---")

if "report" not in st.session_state:
    st.session_state["report"] = None
report: Report | None = st.session_state["report"]
_render_stats(report.stats if report else Stats())

# ---------------- main page ----------------

st.header("Standards Conformance Review")
tab_report, tab_catalog = st.tabs(["Report", "Catalog"])

with tab_report:
    if run_clicked:
        target = Path(folder or "")
        if not folder or not target.exists():
            st.error("Target not found.")
        else:
            settings = Settings()
            if exts.strip():
                settings = settings.override(include_exts=normalize_exts(e.strip() for e in exts.split(",") if e.strip()))
            checks = select_checks(builtin_checks())
            try:
                report = evaluate_paths(target, _store().current, checks, settings)
            except ConformanceError as exc:
                st.error(str(exc))
                report = None
            st.session_state["report"] = report

    if report is None:
        st.info("Set a target in the sidebar, then click **Run checks**.")
    else:
        result = decide(report)
        (st.success if result == "PASS" else st.error)(f"Result: {result}")
        visible = report.filtered(severity)
        st.subheader("Findings")
        _render_findings(list(visible.findings))
        st.subheader(f"Report ({style})")
        text = format_report(visible, style)
        if style == "table":
            st.markdown(text)
        else:
            st.code(text, language="json" if style == "json" else "diff" if style == "diff" else None)
        st.download_button("Download report", text, file_name=f"conformance-{style}.{'json' if style == 'json' else 'md'}")

with tab_catalog:
    catalog = _store().current
    categories = ["all", *catalog.categories()]
    chosen = st.selectbox("Category", categories, index=0)
    for category, rules in catalog.by_category().items():
        if chosen != "all" and category != chosen:
            continue
        st.markdown(f"### {category}")
        for r in rules:
            with st.expander(f"{r.id} [{r.requirement}] {r.title}"):
                if r.section:
                    st.caption(r.section)
                if r.description:
                    st.write(r.description)
                if r.rationale:
                    st.write(f"**Rationale:** {r.rationale}")
                if r.fix:
                    st.write(f"**Fix:** {r.fix}")
