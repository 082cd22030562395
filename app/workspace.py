"""Session-scoped wiring of stores, guard, resolver and scanner."""

from __future__ import annotations

import logging
from typing import Any, List

from app.deals import DealRepository
from app.entry_validation import UNTITLED, derive_display_value
from app.persistence import JsonPersistence
from app.stores import MemoryKeyValueStore
from cascade_filter import CascadeFilter
from deal_linkage import DealLinkageScanner
from entry_store import CatalogEntryStore, ReferenceEntryStore
from mutation_guard import MutationGuard
from relationship_resolver import RelationshipResolver
from schema_store import SchemaStore

logger = logging.getLogger("refbook")


class Workspace:
    def __init__(self, backend=None, author: str | None = None) -> None:
        self.backend = backend if backend is not None else MemoryKeyValueStore()
        self.persistence = JsonPersistence(self.backend)
        self.schemas = SchemaStore(self.persistence, author=author)
        self.reference_entries = ReferenceEntryStore(
            self.persistence, schema_lookup=self.schemas.reference_schema_fields, author=author
        )
        self.catalog_entries = CatalogEntryStore(
            self.persistence, schema_lookup=self.schemas.catalog_schema_fields, author=author
        )
        self.deals = DealRepository(self.persistence)
        self.guard = MutationGuard(self.reference_entries, self.catalog_entries, self.deals)
        self.schemas.bind(
            guard=self.guard, reference_entries=self.reference_entries, catalog_entries=self.catalog_entries
        )
        self.resolver = RelationshipResolver(self.schemas, self.reference_entries, self.catalog_entries)
        self.cascade = CascadeFilter(self.schemas, self.reference_entries)
        self.scanner = DealLinkageScanner(self.deals)

    def init(self, initial_state: dict | None = None) -> None:
        """Hydrate every store from ``initial_state``, or from persistence when it is None."""
        if initial_state is None:
            self.schemas.init()
            self.reference_entries.init()
            self.catalog_entries.init()
        else:
            self.schemas.init(initial_state)
            self.reference_entries.init(initial_state.get("reference_entries") or [])
            self.catalog_entries.init(initial_state.get("catalog_entries") or [])
            self.deals.init(initial_state)
        logger.info("workspace_init seeded=%s", initial_state is not None)

    def create_reference_entry(
        self,
        definition_id: str,
        fields: Any,
        display_value: str | None = None,
        created_by: str | None = None,
        entry_id: str | None = None,
    ) -> str:
        if display_value is None:
            schema_fields = self.schemas.reference_schema_fields(definition_id) or []
            display_value = derive_display_value(schema_fields, fields)
        return self.reference_entries.create(
            definition_id, display_value, fields, created_by=created_by, entry_id=entry_id
        )

    def create_catalog_entry(
        self, catalog_id: str, fields: Any, display_value: str | None = None, entry_id: str | None = None
    ) -> str:
        if display_value is None:
            schema_fields = self.schemas.catalog_schema_fields(catalog_id) or []
            display_value = derive_display_value(schema_fields, fields, fallback=UNTITLED)
        return self.catalog_entries.create(catalog_id, display_value, fields, entry_id=entry_id)

    def deals_for_reference_entry(self, entry_id: str) -> List[dict]:
        return self.scanner.deals_for_entry_with_linked(entry_id, self.resolver.linked_entry_ids(entry_id))

    def deals_for_catalog_entry(self, entry_id: str) -> List[dict]:
        resolved = self.resolver.resolve_catalog_entry(entry_id)
        linked: List[str] = []
        if resolved is not None:
            for entries in resolved["linked_entries"].values():
                linked.extend(e["id"] for e in entries)
        return self.scanner.deals_for_entry_with_linked(entry_id, linked)
