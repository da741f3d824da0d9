"""
Tests for the Risk Store — CRUD, derived state, subscriptions, CSV and seeding.
"""

import math

import pytest
from pydantic import ValidationError

from riskregister.models.enums import RiskSeverity, RiskStatus
from riskregister.models.risk_models import RiskUpdate
from riskregister.store.risk_store import RiskStore, generate_risk_id


def test_add_risk(store, sample_input):
    risk = store.add_risk(sample_input)
    assert risk.title == "Test Risk"
    assert risk.description == "Test Description"
    assert (risk.probability, risk.impact) == (3, 4)
    assert risk.risk_score == 12
    assert risk.category == "Security"
    assert risk.status == RiskStatus.OPEN
    assert risk.mitigation_plan == ""
    assert risk.id == "risk001"
    assert risk.creation_date == risk.last_modified
    assert store.risks == (risk,)


def test_add_risk_prepends(store, sample_input):
    first = store.add_risk(sample_input)
    second = store.add_risk({**sample_input, "title": "Second"})
    assert [r.id for r in store.risks] == [second.id, first.id]


def test_add_risk_clamps_and_defaults_category(store):
    risk = store.add_risk({
        "title": "  Spaced  ",
        "description": "<script>x</script>Desc",
        "probability": 9,
        "impact": 0.4,
        "category": "   ",
    })
    assert risk.title == "Spaced"
    assert risk.description == "Desc"
    assert (risk.probability, risk.impact, risk.risk_score) == (5, 1, 5)
    assert risk.category == "Operational"


def test_add_risk_rejects_missing_title(store):
    with pytest.raises(ValidationError):
        store.add_risk({"description": "no title", "probability": 1, "impact": 1})


@pytest.mark.parametrize("rating", [math.inf, -math.inf, math.nan])
def test_non_finite_ratings_rejected(store, sample_input, rating):
    with pytest.raises(ValidationError):
        store.add_risk({**sample_input, "probability": rating})
    assert store.risks == ()

    risk = store.add_risk(sample_input)
    with pytest.raises(ValidationError):
        store.update_risk(risk.id, {"impact": rating})
    assert store.get_risk(risk.id) == risk


def test_huge_finite_rating_clamped(store, sample_input):
    risk = store.add_risk({**sample_input, "probability": 1e300, "impact": -1e300})
    assert (risk.probability, risk.impact, risk.risk_score) == (5, 1, 5)


def test_stats_and_view_recomputed_after_add(store, sample_input):
    store.add_risk(sample_input)
    assert store.stats.total == 1
    assert store.stats.max_score == 12
    assert store.stats.by_severity[RiskSeverity.MEDIUM] == 1
    assert len(store.filtered_risks) == 1


def test_update_recomputes_score(store):
    risk = store.add_risk({
        "title": "Original Risk",
        "description": "Original Description",
        "probability": 2,
        "impact": 3,
        "category": "Operational",
    })
    updated = store.update_risk(risk.id, {"title": "Updated Risk", "probability": 4})
    assert updated.title == "Updated Risk"
    assert updated.probability == 4
    assert updated.impact == 3
    assert updated.risk_score == 12
    assert updated.creation_date == risk.creation_date
    assert updated.last_modified > risk.last_modified
    assert store.risks[0].title == "Updated Risk"
    assert store.stats.max_score == 12


def test_update_keeps_omitted_fields(store, sample_input):
    risk = store.add_risk({**sample_input, "mitigation_plan": "Keep me"})
    updated = store.update_risk(risk.id, RiskUpdate(status=RiskStatus.MITIGATED))
    assert updated.status == RiskStatus.MITIGATED
    assert updated.mitigation_plan == "Keep me"
    assert updated.title == risk.title


def test_update_explicit_empty_values(store, sample_input):
    risk = store.add_risk({**sample_input, "mitigation_plan": "Old plan"})
    updated = store.update_risk(
        risk.id, {"mitigation_plan": "", "category": "", "title": "", "impact": None}
    )
    assert updated.mitigation_plan == ""
    assert updated.category == "Operational"
    assert updated.title == "Test Risk"
    assert updated.impact == 4


def test_update_unknown_id_returns_none(store, sample_input):
    store.add_risk(sample_input)
    before = store.snapshot()
    assert store.update_risk("missing", {"title": "x"}) is None
    assert store.risks == before.risks


def test_delete_is_noop_second_time(store, sample_input):
    risk = store.add_risk(sample_input)
    store.add_risk(sample_input)
    assert store.delete_risk(risk.id) is True
    assert len(store.risks) == 1
    assert store.delete_risk(risk.id) is False
    assert len(store.risks) == 1
    assert store.stats.total == 1


def test_set_filters_merges_and_leaves_stats(populated_store):
    stats_before = populated_store.stats
    populated_store.set_filters(category="Security")
    assert [r.title for r in populated_store.filtered_risks] == ["High Risk"]
    populated_store.set_filters({"status": "closed"})
    assert populated_store.filters.category == "Security"
    assert populated_store.filtered_risks == ()
    assert populated_store.stats is stats_before


def test_set_filters_rejects_unknown_keys(store):
    with pytest.raises(ValidationError):
        store.set_filters(colour="red")


def test_filtered_view_follows_mutations(populated_store):
    populated_store.set_filters(severity="high")
    assert len(populated_store.filtered_risks) == 1
    low = next(r for r in populated_store.risks if r.title == "Low Risk")
    populated_store.update_risk(low.id, {"probability": 5, "impact": 5})
    assert len(populated_store.filtered_risks) == 2


def test_subscribers_notified_after_recompute(store, sample_input):
    seen = []
    unsubscribe = store.subscribe(lambda snap: seen.append((len(snap.risks), snap.stats.total)))
    store.add_risk(sample_input)
    store.set_filters(search="test")
    unsubscribe()
    store.add_risk(sample_input)
    assert seen == [(1, 1), (1, 1)]


def test_failing_subscriber_does_not_block_others(store, sample_input):
    calls = []

    def broken(snapshot):
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.subscribe(lambda snapshot: calls.append(snapshot))
    store.add_risk(sample_input)
    assert len(calls) == 1
    assert len(store.risks) == 1


def test_add_category(store):
    assert store.add_category("  <b>Legal</b> ") is True
    assert store.categories[-1] == "<b>Legal</b>"
    assert store.add_category("Security") is False
    assert store.add_category("   ") is False
    assert store.add_category("<script>x</script>") is False


def test_csv_round_trip_through_store(populated_store, clock, ids):
    exported = populated_store.export_to_csv()
    fresh = RiskStore(default_categories=["Operational"], id_factory=ids, clock=clock)
    assert fresh.import_from_csv(exported) == 3
    assert fresh.risks == populated_store.risks
    assert fresh.stats.total == 3


def test_import_prepends(store, sample_input):
    existing = store.add_risk(sample_input)
    count = store.import_from_csv("title,description\nImported,From CSV")
    assert count == 1
    assert store.risks[0].title == "Imported"
    assert store.risks[1].id == existing.id


def test_import_injection_returns_zero(store):
    assert store.import_from_csv("=cmd|'/C calc'!A0\ntitle,description\nx,y") == 0
    assert store.risks == ()


def test_import_diagnostics(store):
    result = store.import_csv("title,description\nGood,Row\nBad,")
    assert result.imported == 1
    assert result.rejected_rows == 1


def test_seed_demo_data(store):
    seeded = store.seed_demo_data()
    assert seeded == 3
    assert len(store.risks) == 3
    assert store.risks[0].title == "Payment processor outage"
    assert store.risks[1].status == RiskStatus.MITIGATED


def test_seed_skipped_when_not_empty(store, sample_input):
    store.add_risk(sample_input)
    assert store.seed_demo_data() == 0
    assert len(store.risks) == 1


def test_bulk_import_and_get(populated_store):
    store = RiskStore(default_categories=["Operational"])
    count = store.bulk_import(populated_store.risks)
    assert count == 3
    target = populated_store.risks[1]
    assert store.get_risk(target.id) == target
    assert store.get_risk("nope") is None


def test_store_requires_a_default_category():
    with pytest.raises(ValueError):
        RiskStore(default_categories=[])


def test_generated_ids_are_unique():
    ids = {generate_risk_id() for _ in range(500)}
    assert len(ids) == 500
    assert all(len(i) == 12 for i in ids)
