import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from app.workspace import Workspace


class TestCascadeFilter(unittest.TestCase):
    def setUp(self) -> None:
        ws = Workspace()
        ws.init()
        ws.schemas.create_field_definition(
            {
                "id": "companies",
                "name": "Companies",
                "kind": "reference",
                "reference_fields": [{"id": "company_name", "name": "Name", "type": "text"}],
            }
        )
        ws.schemas.create_field_definition(
            {
                "id": "contacts",
                "name": "Contacts",
                "kind": "reference",
                "reference_fields": [
                    {"id": "contact_name", "name": "Name", "type": "text"},
                    {"id": "contact_company", "name": "Company", "type": "reference", "target_definition_id": "companies"},
                ],
            }
        )
        ws.schemas.create_field_definition(
            {
                "id": "orders",
                "name": "Orders",
                "kind": "reference",
                "reference_fields": [
                    {"id": "order_company", "name": "Company", "type": "reference", "target_definition_id": "companies"},
                    {
                        "id": "order_contact",
                        "name": "Contact",
                        "type": "reference",
                        "target_definition_id": "contacts",
                        "cascade_filter": True,
                    },
                ],
            }
        )
        ws.create_reference_entry("companies", {"company_name": "Acme"}, entry_id="C1")
        ws.create_reference_entry("companies", {"company_name": "Globex"}, entry_id="C2")
        ws.create_reference_entry("contacts", {"contact_name": "Bob", "contact_company": "C1"}, entry_id="P1")
        ws.create_reference_entry("contacts", {"contact_name": "Ann", "contact_company": ["C2", "C1"]}, entry_id="P2")
        ws.create_reference_entry("contacts", {"contact_name": "Eve", "contact_company": "C2"}, entry_id="P3")
        self.ws = ws
        self.cascade = ws.cascade

    def _ids(self, entries):
        return [e["id"] for e in entries]

    def test_filter_by_scalar_and_array_membership(self):
        self.assertEqual(self._ids(self.cascade.filter("contacts", "contact_company", "C1")), ["P1", "P2"])
        self.assertEqual(self._ids(self.cascade.filter("contacts", "contact_company", "C2")), ["P2", "P3"])

    def test_absent_constraint_returns_everything(self):
        everything = ["P1", "P2", "P3"]
        self.assertEqual(self._ids(self.cascade.filter("contacts")), everything)
        self.assertEqual(self._ids(self.cascade.filter("contacts", "contact_company", None)), everything)
        self.assertEqual(self._ids(self.cascade.filter("contacts", "contact_company", "")), everything)
        self.assertEqual(self._ids(self.cascade.filter("contacts", None, "C1")), everything)

    def test_list_constraint_matches_any(self):
        self.assertEqual(self._ids(self.cascade.filter("contacts", "contact_company", ["C404", "C2"])), ["P2", "P3"])

    def test_options_follow_sibling_selection(self):
        siblings = self.ws.schemas.reference_schema_fields("orders")
        order_contact = siblings[1]
        options = self.cascade.options_for(order_contact, siblings, {"order_company": "C2"})
        self.assertEqual(self._ids(options), ["P2", "P3"])
        unfiltered = self.cascade.options_for(order_contact, siblings, {})
        self.assertEqual(self._ids(unfiltered), ["P1", "P2", "P3"])

    def test_options_without_cascade_flag_are_unfiltered(self):
        siblings = self.ws.schemas.reference_schema_fields("orders")
        order_contact = dict(siblings[1], cascade_filter=False)
        options = self.cascade.options_for(order_contact, siblings, {"order_company": "C2"})
        self.assertEqual(self._ids(options), ["P1", "P2", "P3"])
        self.assertEqual(self.cascade.options_for({"id": "x", "type": "text"}), [])


if __name__ == "__main__":
    unittest.main()
