import os
import sys
import unittest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from fastapi.testclient import TestClient

os.environ["USE_DB"] = "0"

import app.main as main
from app.workspace import Workspace


COMPANIES = {
    "id": "companies",
    "name": "Companies",
    "kind": "reference",
    "reference_fields": [
        {"id": "company_name", "name": "Name", "type": "text", "required": True},
        {"id": "company_size", "name": "Size", "type": "numeric"},
    ],
}
CONTACTS = {
    "id": "contacts",
    "name": "Contacts",
    "kind": "reference",
    "reference_fields": [
        {"id": "contact_name", "name": "Name", "type": "text", "required": True},
        {"id": "contact_company", "name": "Company", "type": "reference", "target_definition_id": "companies"},
    ],
}


class TestApi(unittest.TestCase):
    def setUp(self) -> None:
        main.workspace = Workspace()
        main.workspace.init()
        self.client = TestClient(main.app)

    def _seed(self):
        self.assertEqual(self.client.post("/field-definitions", json=COMPANIES).status_code, 201)
        self.assertEqual(self.client.post("/field-definitions", json=CONTACTS).status_code, 201)
        res = self.client.post(
            "/reference-entries", json={"definition_id": "companies", "id": "C1", "fields": {"company_name": "Acme"}}
        )
        self.assertEqual(res.status_code, 201, res.json())
        res = self.client.post(
            "/reference-entries",
            json={"definition_id": "contacts", "id": "P1", "fields": {"contact_name": "Bob", "contact_company": "C1"}},
        )
        self.assertEqual(res.status_code, 201, res.json())

    def test_health(self):
        res = self.client.get("/health")
        self.assertEqual(res.json(), {"ok": True})
        self.assertIn("X-Req-MS", res.headers)

    def test_definition_validation_errors(self):
        res = self.client.post("/field-definitions", json={"name": "", "kind": "reference"})
        self.assertEqual(res.status_code, 400)
        codes = [e["code"] for e in res.json()["errors"]]
        self.assertIn("FIELD_NAME_REQUIRED", codes)
        self.assertIn("REFERENCE_FIELDS_REQUIRED", codes)

    def test_duplicate_definition_conflicts(self):
        self.client.post("/field-definitions", json=COMPANIES)
        res = self.client.post("/field-definitions", json=COMPANIES)
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.json()["errors"][0]["code"], "DUPLICATE_ID")

    def test_entry_create_and_display_value(self):
        self._seed()
        body = self.client.get("/reference-entries/C1").json()
        self.assertTrue(body["ok"], body)
        self.assertEqual(body["entry"]["display_value"], "Acme")
        self.assertEqual(
            body["view"]["fields"][1], {"field_id": "company_size", "name": "Size", "type": "numeric", "value": ""}
        )

    def test_entry_create_rejects_bad_payloads(self):
        self._seed()
        res = self.client.post("/reference-entries", json={"definition_id": "companies", "fields": {"company_size": 3}})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["errors"][0]["code"], "REQUIRED_FIELDS_MISSING")
        res = self.client.post(
            "/reference-entries", json={"definition_id": "companies", "fields": {"company_name": "X", "company_size": "big"}}
        )
        self.assertEqual(res.json()["errors"][0]["code"], "TYPE_MISMATCH")
        res = self.client.post("/reference-entries", json={"definition_id": "nope", "fields": {}})
        self.assertEqual(res.status_code, 404)
        res = self.client.post(
            "/reference-entries", json={"definition_id": "companies", "id": "C1", "fields": {"company_name": "Again"}}
        )
        self.assertEqual(res.status_code, 409)

    def test_malformed_fields_payload_is_a_validation_error(self):
        self._seed()
        res = self.client.post("/reference-entries", json={"definition_id": "companies", "fields": "oops"})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["errors"][0]["code"], "FIELDS_INVALID")
        res = self.client.patch("/reference-entries/C1", json={"fields": 5})
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["errors"][0]["code"], "FIELDS_INVALID")
        self.client.post(
            "/catalogs", json={"id": "tools", "name": "Tools", "fields": [{"id": "tool_name", "name": "Name", "type": "text"}]}
        )
        res = self.client.post("/catalog-entries", json={"catalog_id": "tools", "fields": ["oops"]})
        self.assertEqual(res.status_code, 201)
        res = self.client.post("/catalog-entries", json={"catalog_id": "tools", "fields": "oops"})
        self.assertEqual(res.status_code, 400)

    def test_entry_update_rederives_display_value(self):
        self._seed()
        res = self.client.patch("/reference-entries/C1", json={"fields": {"company_name": "Acme Corp"}})
        body = res.json()
        self.assertTrue(body["ok"], body)
        self.assertEqual(body["entry"]["display_value"], "Acme Corp")
        self.assertEqual(self.client.patch("/reference-entries/C404", json={}).status_code, 404)

    def test_entry_detail_and_usage(self):
        self._seed()
        detail = self.client.get("/reference-entries/C1/detail").json()["detail"]
        self.assertEqual([e["id"] for e in detail["linked_entries"]["contacts"]], ["P1"])
        usage = self.client.get("/reference-entries/C1/usage").json()["usage"]
        self.assertEqual([u["entity_id"] for u in usage], ["P1"])

    def test_missing_links_are_described(self):
        self._seed()
        self.client.delete("/reference-entries/C1")
        missing = self.client.get("/reference-entries/P1/detail").json()["detail"]["missing"]
        self.assertEqual(missing[0]["entry_id"], "C1")
        self.assertFalse(missing[0]["found"])
        self.assertEqual(missing[0]["display_value"], "C1")

    def test_locked_definition_update_warns(self):
        self._seed()
        res = self.client.patch(
            "/field-definitions/companies",
            json={"reference_fields": [{"id": "company_name", "name": "Title", "type": "numeric", "required": True}]},
        )
        body = res.json()
        self.assertTrue(body["ok"], body)
        self.assertIn("FIELD_LOCKED", [w["code"] for w in body["warnings"]])
        self.assertEqual(body["definition"]["reference_fields"][0]["type"], "text")
        self.assertTrue(self.client.get("/fields/company_name/locked").json()["locked"])

    def test_delete_in_use_definition_deactivates(self):
        self._seed()
        body = self.client.delete("/field-definitions/companies").json()
        self.assertTrue(body["ok"], body)
        self.assertFalse(body["deleted"])
        self.assertTrue(body["deactivated"])
        active = self.client.get("/field-definitions", params={"active_only": "true"}).json()["field_definitions"]
        self.assertEqual([d["id"] for d in active], ["contacts"])
        body = self.client.delete("/field-definitions/companies", params={"force": "true"}).json()
        self.assertTrue(body["deleted"])
        self.assertEqual(body["entries_deleted"], 1)

    def test_clear_requires_confirmation(self):
        self._seed()
        res = self.client.post("/fields/company_name/clear", json={})
        self.assertEqual(res.status_code, 409)
        res = self.client.post("/fields/company_name/clear", json={"confirmed": True})
        self.assertEqual(res.json()["result"]["entries_cleared"], 1)
        self.assertFalse(self.client.get("/fields/company_name/locked").json()["locked"])

    def test_cascade_endpoint(self):
        self._seed()
        res = self.client.post(
            "/cascade",
            json={"target_definition_id": "contacts", "constraint_field_id": "contact_company", "constraint_value": "C2"},
        )
        self.assertEqual(res.json()["entries"], [])
        res = self.client.post("/cascade", json={"target_definition_id": "contacts"})
        self.assertEqual([e["id"] for e in res.json()["entries"]], ["P1"])
        self.assertEqual(self.client.post("/cascade", json={}).status_code, 400)

    def test_catalog_entries_read_only(self):
        res = self.client.post(
            "/catalogs",
            json={
                "id": "tools",
                "name": "Tools",
                "entries_editable": False,
                "fields": [{"id": "tool_name", "name": "Name", "type": "text"}],
            },
        )
        self.assertEqual(res.status_code, 201, res.json())
        res = self.client.post("/catalog-entries", json={"catalog_id": "tools", "id": "T1", "fields": {"tool_name": "Saw"}})
        self.assertEqual(res.json()["entry"]["display_value"], "Saw")
        res = self.client.patch("/catalog-entries/T1", json={"fields": {"tool_name": "Drill"}})
        self.assertEqual(res.status_code, 403)
        body = self.client.delete("/catalogs/tools").json()
        self.assertEqual(body["entries_deleted"], 1)
        self.assertEqual(self.client.get("/catalog-entries/T1").status_code, 404)

    def test_deals_and_search(self):
        self._seed()
        res = self.client.post("/deals", json={"id": "D1", "title": "Acme order", "values": {"contact": ["P1"]}})
        self.assertEqual(res.status_code, 201)
        self.assertEqual(self.client.get("/deals/D1").json()["values"], {"contact": ["P1"]})
        deals = self.client.get("/reference-entries/C1/deals").json()["deals"]
        self.assertEqual([d["id"] for d in deals], ["D1"])
        deals = self.client.post("/deals/referencing", json={"entry_ids": ["C1", "P1"]}).json()["deals"]
        self.assertEqual([d["id"] for d in deals], ["D1"])
        results = self.client.get("/search", params={"q": "acme"}).json()["results"]
        self.assertEqual([e["id"] for e in results["reference_entries"]], ["C1"])
        self.assertEqual([d["id"] for d in results["deals"]], ["D1"])


if __name__ == "__main__":
    unittest.main()
