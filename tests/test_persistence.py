"""
Tests for PersistedRiskStore — save after mutations, versioned restore, migration.
"""

import json

import pytest

from riskregister.models.enums import RiskStatus
from riskregister.storage.backends import MemoryStorage
from riskregister.store.persistence import (
    SCHEMA_VERSION,
    PersistedRiskStore,
    migrate_document,
)
from riskregister.store.risk_store import RiskStore

KEY = "test-register"


def _stored(storage):
    return json.loads(storage.get(KEY))


def _fresh(storage):
    persisted = PersistedRiskStore(RiskStore(default_categories=["Operational"]), storage, key=KEY)
    persisted.hydrate()
    return persisted


def test_nothing_written_until_mutation(persisted_store, memory_storage):
    assert memory_storage.get(KEY) is None
    assert persisted_store.hydrated is True


def test_mutation_saves_versioned_document(persisted_store, memory_storage, sample_input):
    risk = persisted_store.add_risk(sample_input)
    document = _stored(memory_storage)
    assert document["version"] == SCHEMA_VERSION
    stored = document["state"]["risks"][0]
    assert stored["id"] == risk.id
    assert stored["riskScore"] == 12
    assert stored["mitigationPlan"] == ""
    assert "filteredRisks" not in document["state"]
    assert "stats" not in document["state"]


def test_every_mutation_is_saved(persisted_store, memory_storage, sample_input):
    risk = persisted_store.add_risk(sample_input)
    persisted_store.update_risk(risk.id, {"status": "closed"})
    assert _stored(memory_storage)["state"]["risks"][0]["status"] == "closed"

    persisted_store.set_filters(search="test")
    assert _stored(memory_storage)["state"]["filters"]["search"] == "test"

    persisted_store.add_category("Legal")
    assert "Legal" in _stored(memory_storage)["state"]["categories"]

    persisted_store.delete_risk(risk.id)
    assert _stored(memory_storage)["state"]["risks"] == []


def test_restore_recomputes_derived_state(persisted_store, memory_storage, sample_input):
    persisted_store.add_risk(sample_input)
    persisted_store.add_risk({**sample_input, "title": "Other", "probability": 5, "impact": 5})
    persisted_store.set_filters(severity="high")
    persisted_store.add_category("Legal")

    restored = _fresh(memory_storage)
    assert restored.risks == persisted_store.risks
    assert restored.filters.severity == "high"
    assert [r.title for r in restored.filtered_risks] == ["Other"]
    assert restored.stats.total == 2
    assert restored.stats.max_score == 25
    assert "Legal" in restored.categories


def test_restore_ignores_stored_score(memory_storage):
    memory_storage.set(KEY, json.dumps({
        "version": 1,
        "state": {
            "risks": [{
                "id": "r1", "title": "T", "description": "D",
                "probability": 2, "impact": 2, "riskScore": 25,
                "category": "Operational", "status": "open", "mitigationPlan": "",
                "creationDate": "2024-01-01T00:00:00.000Z",
                "lastModified": "2024-01-01T00:00:00.000Z",
            }],
            "categories": ["Operational"],
            "filters": {},
        },
    }))
    restored = _fresh(memory_storage)
    assert restored.risks[0].risk_score == 4
    assert restored.stats.max_score == 4


def test_unversioned_document_is_migrated(memory_storage):
    memory_storage.set(KEY, json.dumps({
        "risks": [{
            "id": "legacy", "title": "Legacy", "description": "Old format",
            "probability": 3, "impact": 3, "category": "Security",
            "status": "mitigated", "mitigationPlan": "",
            "creationDate": "2023-05-01T00:00:00.000Z",
            "lastModified": "2023-05-01T00:00:00.000Z",
        }],
        "categories": ["Security"],
    }))
    restored = _fresh(memory_storage)
    assert restored.risks[0].id == "legacy"
    assert restored.risks[0].status == RiskStatus.MITIGATED
    assert restored.categories == ("Security",)


def test_migrate_document_versions():
    assert migrate_document({"state": {"risks": []}}) == {"version": 1, "state": {"risks": []}}
    assert migrate_document({"version": 0, "risks": []}) == {"version": 1, "state": {"risks": []}}
    with pytest.raises(ValueError):
        migrate_document({"version": 99, "state": {}})


@pytest.mark.parametrize("raw", [
    "{not json",
    "[1, 2, 3]",
    '{"version": 7, "state": {}}',
    '{"version": 1, "state": {"risks": 5}}',
    '{"version": 1, "state": {"risks": [], "categories": 7}}',
    '{"version": 1, "state": {"risks": {"id": "r1"}}}',
    '{"version": 1, "state": []}',
])
def test_unreadable_document_starts_empty(memory_storage, raw):
    memory_storage.set(KEY, raw)
    restored = _fresh(memory_storage)
    assert restored.risks == ()
    assert restored.stats.total == 0
    assert memory_storage.get(f"{KEY}:unreadable") == raw


def test_bad_records_and_filters_dropped(memory_storage):
    memory_storage.set(KEY, json.dumps({
        "version": 1,
        "state": {
            "risks": [
                {"id": "ok", "title": "T", "description": "D", "probability": 1,
                 "impact": 1, "category": "Operational", "status": "open",
                 "creationDate": "2024-01-01T00:00:00Z", "lastModified": "2024-01-01T00:00:00Z"},
                {"id": "broken", "title": "No dates"},
            ],
            "filters": {"status": "escalated"},
        },
    }))
    restored = _fresh(memory_storage)
    assert [r.id for r in restored.risks] == ["ok"]
    assert restored.filters.status == "all"
    assert restored.categories == ("Operational",)


class _FailingStorage(MemoryStorage):
    def set(self, key, value):
        raise OSError("disk full")


def test_write_failure_keeps_memory_state(sample_input):
    persisted = PersistedRiskStore(RiskStore(default_categories=["Operational"]), _FailingStorage())
    persisted.hydrate()
    risk = persisted.add_risk(sample_input)
    assert persisted.risks == (risk,)
    assert persisted.stats.total == 1


def test_reads_delegate_and_clear(persisted_store, memory_storage, sample_input):
    risk = persisted_store.add_risk(sample_input)
    assert persisted_store.get_risk(risk.id) == risk
    assert persisted_store.export_to_csv().startswith("id,title")
    persisted_store.clear()
    assert memory_storage.get(KEY) is None
    assert persisted_store.risks == (risk,)


def test_csv_import_and_seed_saved(persisted_store, memory_storage):
    assert persisted_store.seed_demo_data() == 3
    assert len(_stored(memory_storage)["state"]["risks"]) == 3
    assert persisted_store.import_from_csv("title,description\nFrom,CSV") == 1
    assert len(_stored(memory_storage)["state"]["risks"]) == 4


def test_wrong_shaped_filters_fall_back_to_defaults(memory_storage):
    memory_storage.set(KEY, json.dumps({
        "version": 1,
        "state": {"risks": [], "categories": ["Legal", 3, ""], "filters": 5},
    }))
    restored = _fresh(memory_storage)
    assert restored.filters.search == ""
    assert restored.categories == ("Legal",)


def test_mutation_before_hydrate_keeps_stored_register(memory_storage, sample_input):
    persisted = _fresh(memory_storage)
    persisted.add_risk(sample_input)
    saved = memory_storage.get(KEY)

    early = PersistedRiskStore(RiskStore(default_categories=["Operational"]), memory_storage, key=KEY)
    early.add_category("Legal")
    early.flush()
    assert memory_storage.get(KEY) == saved

    early.hydrate()
    assert len(early.risks) == 1
    early.add_category("Legal")
    assert "Legal" in _stored(memory_storage)["state"]["categories"]
