from __future__ import annotations
import json

import pytest

from policy_conformance.catalog import CatalogStore, META_RULES, load, parse_standards
from policy_conformance.checks import builtin_checks
from policy_conformance.errors import CatalogError, NotFound


SAMPLE = '''
# Sample Standard

Intro text is ignored.

## Part one

### DEMO-ONE-001 [SHOULD NOT] Avoid the thing
Long description
continues here.

Rationale: because it hurts.
Fix: do the other thing.

```
### DEMO-FAKE-001 [MUST] Not a rule, inside a fence
```

## Part two

### DEMO-TWO-001 [REQUIRED] Do the other thing
'''


def test_parse_standards_fields():
    rules = parse_standards(SAMPLE, source="sample.md")
    assert [r.id for r in rules] == ["DEMO-ONE-001", "DEMO-TWO-001"]

    one, two = rules
    assert one.category == "Sample Standard"
    assert one.section == "Part one"
    assert one.level == "SHOULD"
    assert one.keyword == "SHOULD NOT"
    assert one.requirement == "SHOULD NOT"
    assert one.title == "Avoid the thing"
    assert one.description == "Long description continues here."
    assert one.rationale == "because it hurts."
    assert one.fix == "do the other thing."
    assert one.source == "sample.md"
    assert one.lineno == 8

    assert two.section == "Part two"
    assert two.level == "MUST"
    assert two.keyword == "REQUIRED"
    assert two.fix == ""


@pytest.mark.parametrize(
    "keyword, level",
    [("MUST NOT", "MUST"), ("SHALL", "MUST"), ("RECOMMENDED", "SHOULD"), ("OPTIONAL", "MAY"), ("may", "MAY")],
)
def test_level_keywords_normalise(keyword, level):
    text = f"# Cat\n### DEMO-LVL-001 [{keyword}] Title\n"
    assert parse_standards(text)[0].level == level


def test_missing_level_is_an_error():
    with pytest.raises(CatalogError, match="missing or unknown level"):
        parse_standards("# Cat\n### DEMO-NOLVL-001 Title without level\n")


def test_unknown_level_is_an_error():
    with pytest.raises(CatalogError, match="DEMO-BAD-001"):
        parse_standards("# Cat\n### DEMO-BAD-001 [COULD] Title\n")


def test_rule_before_title_is_an_error():
    with pytest.raises(CatalogError, match="before the document title"):
        parse_standards("### DEMO-EARLY-001 [MUST] Too early\n")


def test_duplicate_ids_across_files(tmp_path):
    (tmp_path / "a.md").write_text("# A\n### DUP-RULE-001 [MUST] First\n", encoding="utf-8")
    (tmp_path / "b.md").write_text("# B\n\n### DUP-RULE-001 [MAY] Second\n", encoding="utf-8")
    with pytest.raises(CatalogError) as exc:
        load([tmp_path])
    msg = str(exc.value)
    assert "DUP-RULE-001" in msg
    assert "a.md:2" in msg and "b.md:3" in msg


def test_meta_prefix_is_reserved(tmp_path):
    path = tmp_path / "rules.md"
    path.write_text("# Mine\n### META-MINE-001 [MUST] Sneaky\n", encoding="utf-8")
    with pytest.raises(CatalogError, match="reserved"):
        load([path])


def test_json_and_yaml_catalogs(tmp_path):
    (tmp_path / "one.json").write_text(
        json.dumps([{"id": "JS-ONE-001", "category": "Json", "level": "must not", "title": "No"}]),
        encoding="utf-8",
    )
    (tmp_path / "two.yaml").write_text(
        "- id: YM-TWO-001\n  category: Yaml\n  level: SHOULD\n  title: Maybe\n  fix: Do it\n",
        encoding="utf-8",
    )
    catalog = load([tmp_path])
    assert catalog.lookup("JS-ONE-001").level == "MUST"
    assert catalog.lookup("JS-ONE-001").keyword == "MUST NOT"
    assert catalog.lookup("YM-TWO-001").requirement == "SHOULD"
    assert catalog.lookup("YM-TWO-001").fix == "Do it"
    assert "Tooling" in catalog.categories()


def test_structured_catalog_needs_required_keys(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps([{"id": "JS-ONE-001", "level": "MUST"}]), encoding="utf-8")
    with pytest.raises(CatalogError, match="missing keys: category, title"):
        load([path])


def test_missing_source(tmp_path):
    with pytest.raises(CatalogError, match="not found"):
        load([tmp_path / "nope.md"])


def test_lookup_not_found(catalog):
    with pytest.raises(NotFound) as exc:
        catalog.lookup("NOPE-000")
    assert isinstance(exc.value, KeyError)
    assert isinstance(exc.value, CatalogError)
    assert str(exc.value) == "Rule not found: NOPE-000"


def test_builtin_catalog(catalog):
    assert catalog.categories() == [
        "Accessibility", "CLI Design", "Error Handling", "Security and Privacy", "Tooling",
    ]
    assert catalog.ids() == sorted(catalog.ids())
    for meta in META_RULES:
        assert catalog.lookup(meta.id) == meta
    # RFC 2119 negations normalise
    assert catalog.lookup("A11Y-KBD-001").level == "MUST"
    assert catalog.lookup("SEC-CRYPTO-001").level == "SHOULD"
    assert catalog.lookup("CLI-JSON-001").level == "MAY"
    assert catalog.lookup("SEC-TLS-001").requirement == "MUST NOT"
    assert catalog.lookup("SEC-CRYPTO-001").requirement == "SHOULD NOT"


def test_every_builtin_check_rule_is_catalogued(catalog):
    for check in builtin_checks():
        for rule_id in check.rule_ids:
            assert rule_id in catalog, f"{check.name} reports {rule_id}"


def test_by_category_groups_in_id_order(catalog):
    groups = catalog.by_category()
    assert [r.id for r in groups["Tooling"]] == ["META-CHECK-001", "META-RULE-001"]
    assert all(r.category == "CLI Design" for r in groups["CLI Design"])


def test_store_reload_swaps_whole_catalog(tmp_path, catalog):
    store = CatalogStore(catalog)
    good = tmp_path / "good.md"
    good.write_text("# Only\n### ONLY-RULE-001 [MAY] Single\n", encoding="utf-8")
    fresh = store.reload([good])
    assert store.current is fresh
    assert fresh.ids() == ["META-CHECK-001", "META-RULE-001", "ONLY-RULE-001"]


def test_store_reload_failure_keeps_previous(tmp_path, catalog):
    store = CatalogStore(catalog)
    bad = tmp_path / "bad.md"
    bad.write_text("# Bad\n### BAD-RULE-001 Title only\n", encoding="utf-8")
    with pytest.raises(CatalogError):
        store.reload([bad])
    assert store.current is catalog
