"""
Persisted Risk Store — writes the register to a storage backend.

Wraps a RiskStore: every mutating operation is forwarded to the store and the
resulting state is serialized afterwards, so the in-memory mutation and
recomputation always complete before anything is written. Reads pass straight
through to the wrapped store.

Stored document (version 1):
    {"version": 1, "state": {"risks": [...], "categories": [...], "filters": {...}}}

A document without a version is version 0 and is migrated forward on load.
Only the canonical collection, categories and filters are stored; the
filtered view and stats are rebuilt from them on restore.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from riskregister.config import settings
from riskregister.models.risk_models import DEFAULT_FILTERS, Risk, RiskFilters
from riskregister.storage.backends import StorageBackend, UnreadableValueError
from riskregister.store.risk_store import RiskStore

logger = logging.getLogger("riskregister.persistence")

SCHEMA_VERSION = 1


def _migrate_v0(document: dict[str, Any]) -> dict[str, Any]:
    # v0 stored either the bare state object or a {"state": ...} envelope
    state = document.get("state", document)
    if not isinstance(state, dict):
        raise ValueError("Version 0 document has no state object")
    state = {k: v for k, v in state.items() if k != "version"}
    return {"version": 1, "state": state}


MIGRATIONS: dict[int, Callable[[dict[str, Any]], dict[str, Any]]] = {
    0: _migrate_v0,
}


def migrate_document(document: dict[str, Any]) -> dict[str, Any]:
    """
    Bring a stored document up to SCHEMA_VERSION.

    Raises:
        ValueError: if the version is unknown or newer than this code supports.
    """
    version = document.get("version", 0)
    if not isinstance(version, int) or version < 0 or version > SCHEMA_VERSION:
        raise ValueError(f"Unsupported storage schema version: {version!r}")
    while version < SCHEMA_VERSION:
        document = MIGRATIONS[version](document)
        logger.info(f"Migrated stored register from version {version} to {document['version']}")
        version = document["version"]
    return document


def serialize_state(store: RiskStore) -> str:
    """Versioned JSON document for the store's canonical state."""
    return json.dumps({
        "version": SCHEMA_VERSION,
        "state": {
            "risks": [risk.model_dump(mode="json", by_alias=True) for risk in store.risks],
            "categories": list(store.categories),
            "filters": store.filters.model_dump(mode="json", by_alias=True),
        },
    })


def _persisting(name: str) -> Callable[..., Any]:
    def method(self: PersistedRiskStore, *args: Any, **kwargs: Any) -> Any:
        result = getattr(self._store, name)(*args, **kwargs)
        self._persist()
        return result

    method.__name__ = name
    method.__doc__ = getattr(RiskStore, name).__doc__
    return method


class PersistedRiskStore:
    """
    RiskStore decorator adding load/save through a StorageBackend.

    Lifecycle:
        persisted = PersistedRiskStore(RiskStore(), storage)
        persisted.hydrate()
        persisted.add_risk(...)   # saved after the call returns
        persisted.close()

    Nothing is written until hydrate() has run, so a stored register is never
    replaced by the empty state the store starts with.
    """

    def __init__(
        self,
        store: RiskStore,
        storage: StorageBackend,
        key: str | None = None,
    ) -> None:
        self._store = store
        self._storage = storage
        self.key = key or settings.storage_key
        self.hydrated = False

    @property
    def store(self) -> RiskStore:
        return self._store

    def __getattr__(self, name: str) -> Any:
        return getattr(self._store, name)

    # ── Mutations (forwarded, then saved) ──

    add_risk = _persisting("add_risk")
    update_risk = _persisting("update_risk")
    delete_risk = _persisting("delete_risk")
    bulk_import = _persisting("bulk_import")
    seed_demo_data = _persisting("seed_demo_data")
    set_filters = _persisting("set_filters")
    add_category = _persisting("add_category")
    import_csv = _persisting("import_csv")
    import_from_csv = _persisting("import_from_csv")

    # ── Lifecycle ──

    def hydrate(self) -> bool:
        """
        Restore state from storage.

        Returns True if a stored document was loaded. A missing document
        leaves the store empty; an unreadable one (bad JSON, wrong shape,
        unsupported version, or a value the backend cannot decrypt) is set
        aside under ``<key>:unreadable`` and the store starts empty. For a value
        that fails to decrypt, the set-aside copy is the original ciphertext.
        """
        self.hydrated = True
        try:
            raw = self._storage.get(self.key)
        except UnreadableValueError as e:
            logger.warning(f"Stored register unreadable ({e}); starting empty")
            self._set_aside(e.raw)
            return False
        if raw is None:
            return False

        try:
            document = json.loads(raw)
            if not isinstance(document, dict):
                raise ValueError("stored register is not a JSON object")
            state = migrate_document(document)["state"]
            if not isinstance(state, dict):
                raise ValueError("stored register has no state object")
            raw_risks = state.get("risks") or []
            raw_categories = state.get("categories") or []
            if not isinstance(raw_risks, list) or not isinstance(raw_categories, list):
                raise ValueError("stored risks and categories must be lists")
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Stored register unreadable ({e}); starting empty")
            self._set_aside(raw)
            return False

        risks: list[Risk] = []
        dropped = 0
        for item in raw_risks:
            try:
                risks.append(Risk.model_validate(item))
            except ValidationError:
                dropped += 1
        if dropped:
            logger.warning(f"Dropped {dropped} unreadable risk record(s) from storage")

        categories = [c for c in raw_categories if isinstance(c, str) and c.strip()]

        try:
            filters = RiskFilters.model_validate(state.get("filters") or {})
        except ValidationError:
            logger.warning("Stored filters unreadable; using defaults")
            filters = DEFAULT_FILTERS

        self._store.load_state(risks, categories or None, filters)
        logger.info(f"Restored {len(risks)} risk(s) from storage")
        return True

    def flush(self) -> None:
        """Write the current state now."""
        self._persist()

    def close(self) -> None:
        self.flush()

    def clear(self) -> None:
        """Remove the stored document; in-memory state is untouched."""
        self._storage.remove(self.key)

    def _persist(self) -> None:
        if not self.hydrated:
            logger.warning("Register not hydrated yet; skipping save to keep the stored copy")
            return
        try:
            self._storage.set(self.key, serialize_state(self._store))
        except OSError as e:
            logger.error(f"Failed to persist risk register: {e}")

    def _set_aside(self, raw: str) -> None:
        try:
            self._storage.set(f"{self.key}:unreadable", raw)
        except OSError as e:
            logger.error(f"Failed to keep unreadable register: {e}")
