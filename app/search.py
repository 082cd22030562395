"""Case-insensitive substring search across entries and deals."""

from __future__ import annotations

from typing import Any, Dict, List

from field_types import TYPE_EMAIL, TYPE_PHONE

DEAL_SEARCH_KEYS = ("title", "customer", "order_number", "description", "assignee", "type", "amount")


def _matches(text: Any, needle: str) -> bool:
    # empty and zero values never match, same as a blank cell
    if not text:
        return False
    return needle in str(text).lower()


def _value_matches(value: Any, needle: str) -> bool:
    if isinstance(value, (list, tuple)):
        return any(_matches(v, needle) for v in value)
    return _matches(value, needle)


def _entry_matches(entry: dict, needle: str, title_only: bool) -> bool:
    if _matches(entry.get("display_value"), needle):
        return True
    if title_only:
        return False
    return any(_value_matches(item.get("value"), needle) for item in entry.get("fields") or [])


def _deal_result(deal: dict, related_to: str | None = None) -> dict:
    info = [str(deal[key]) for key in ("amount", "status", "order_number") if deal.get(key) not in (None, "")]
    result = {
        "id": deal.get("id"),
        "type": "deal",
        "title": deal.get("title") or "",
        "subtitle": deal.get("customer") or "",
        "additional_info": info,
    }
    if related_to is not None:
        result["related_to"] = related_to
    return result


def _contact_info(entry: dict, schema_fields: List[dict]) -> List[str]:
    types = {f.get("id"): f.get("type") for f in schema_fields}
    info = []
    for wanted in (TYPE_PHONE, TYPE_EMAIL):
        for item in entry.get("fields") or []:
            if types.get(item.get("field_id")) == wanted and item.get("value"):
                info.append(str(item["value"]))
                break
    return info


def global_search(workspace, query: str, title_only: bool = False) -> Dict[str, Any]:
    """Reference entries, catalog entries and deals matching ``query``.

    Matching entries carry the deals that reference them; those come from a
    single scanner pass over all deal value maps.
    """
    needle = (query or "").strip().lower()
    results: Dict[str, Any] = {"query": query or "", "reference_entries": [], "catalog_entries": [], "deals": []}
    if not needle:
        return results

    for deal in workspace.deals.list_deals():
        if title_only:
            hit = _matches(deal.get("title"), needle)
        else:
            hit = any(_matches(deal.get(key), needle) for key in DEAL_SEARCH_KEYS)
        if hit:
            results["deals"].append(_deal_result(deal))

    definitions = {d["id"]: d for d in workspace.schemas.list_field_definitions()}
    catalogs = {c["id"]: c for c in workspace.schemas.list_catalogs()}
    ref_hits = [e for e in workspace.reference_entries.list_all() if _entry_matches(e, needle, title_only)]
    cat_hits = [e for e in workspace.catalog_entries.list_all() if _entry_matches(e, needle, title_only)]
    related = workspace.scanner.deals_by_entry([e["id"] for e in ref_hits + cat_hits])

    for entry in ref_hits:
        definition = definitions.get(entry.get("definition_id")) or {}
        results["reference_entries"].append(
            {
                "id": entry["id"],
                "type": "reference_entry",
                "title": entry.get("display_value") or "",
                "schema_id": entry.get("definition_id"),
                "schema_name": definition.get("name"),
                "additional_info": _contact_info(entry, definition.get("reference_fields") or []),
                "related_deals": [_deal_result(d, entry["id"]) for d in related.get(entry["id"], [])],
            }
        )
    for entry in cat_hits:
        catalog = catalogs.get(entry.get("catalog_id")) or {}
        results["catalog_entries"].append(
            {
                "id": entry["id"],
                "type": "catalog_entry",
                "title": entry.get("display_value") or "",
                "schema_id": entry.get("catalog_id"),
                "schema_name": catalog.get("name"),
                "additional_info": _contact_info(entry, workspace.schemas.effective_catalog_fields(catalog)),
                "related_deals": [_deal_result(d, entry["id"]) for d in related.get(entry["id"], [])],
            }
        )
    return results
