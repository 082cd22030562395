"""Persistence key namespaces.

Each record is stored under ``<namespace>:<id>``; the trailing colon keeps one
namespace from prefix-matching another.
"""

from __future__ import annotations

FIELD_DEFINITION_PREFIX = "crm.field_definition:"
CATALOG_PREFIX = "crm.catalog:"
REFERENCE_ENTRY_PREFIX = "crm.reference_entry:"
CATALOG_ENTRY_PREFIX = "crm.catalog_entry:"
DEAL_PREFIX = "crm.deal:"
DEAL_VALUES_PREFIX = "crm.deal_values:"


def record_key(prefix: str, record_id: str) -> str:
    return f"{prefix}{record_id}"


def id_from_key(prefix: str, key: str) -> str:
    return key[len(prefix) :] if key.startswith(prefix) else key
