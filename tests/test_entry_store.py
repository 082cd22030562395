import os
import sys
import unittest


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from app.persistence import JsonPersistence
from app.stores import MemoryKeyValueStore
from entry_store import CatalogEntryStore, DuplicateIdError, EntryValidationError, ReferenceEntryStore


SCHEMAS = {
    "contacts": [
        {"id": "name", "name": "Name", "type": "text", "required": True},
        {"id": "phone", "name": "Phone", "type": "phone"},
    ]
}


class TestReferenceEntryStore(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = MemoryKeyValueStore()
        self.persistence = JsonPersistence(self.backend)
        self.store = ReferenceEntryStore(self.persistence, schema_lookup=SCHEMAS.get, author="tester")

    def test_create_normalizes_mapping_fields(self):
        entry_id = self.store.create("contacts", "Bob", {"name": "Bob", "phone": "123"})
        entry = self.store.get(entry_id)
        self.assertEqual(entry["definition_id"], "contacts")
        self.assertEqual(entry["display_value"], "Bob")
        self.assertEqual(entry["fields"], [{"field_id": "name", "value": "Bob"}, {"field_id": "phone", "value": "123"}])
        self.assertEqual(entry["created_by"], "tester")
        self.assertIsNotNone(self.backend.get_item(f"crm.reference_entry:{entry_id}"))

    def test_missing_required_fields_block_write(self):
        with self.assertRaises(EntryValidationError) as ctx:
            self.store.create("contacts", "", [{"field_id": "phone", "value": "123"}])
        self.assertEqual(ctx.exception.field_ids, ["name"])
        self.assertEqual(self.store.list_all(), [])
        self.assertEqual(self.backend.keys("crm.reference_entry:"), [])

    def test_empty_array_counts_as_missing(self):
        with self.assertRaises(EntryValidationError):
            self.store.create("contacts", "", {"name": []})

    def test_unknown_schema_rejected(self):
        with self.assertRaises(EntryValidationError) as ctx:
            self.store.create("nope", "", {})
        self.assertEqual(ctx.exception.code, "SCHEMA_NOT_FOUND")

    def test_fields_of_the_wrong_shape_are_rejected(self):
        with self.assertRaises(EntryValidationError) as ctx:
            self.store.create("contacts", "Bob", "oops")
        self.assertEqual(ctx.exception.code, "FIELDS_INVALID")
        entry_id = self.store.create("contacts", "Bob", {"name": "Bob"})
        with self.assertRaises(EntryValidationError):
            self.store.update(entry_id, {"fields": 42})
        self.assertEqual(self.store.get(entry_id)["fields"], [{"field_id": "name", "value": "Bob"}])

    def test_seeding_replaces_persisted_entries(self):
        self.store.create("contacts", "Old", {"name": "Old"}, entry_id="OLD")
        self.store.init([{"id": "P9", "definition_id": "contacts", "fields": {"name": "New"}}])
        self.assertEqual(self.backend.keys("crm.reference_entry:"), ["crm.reference_entry:P9"])
        reloaded = ReferenceEntryStore(self.persistence, schema_lookup=SCHEMAS.get)
        reloaded.init()
        self.assertEqual([e["id"] for e in reloaded.list_all()], ["P9"])

    def test_duplicate_id_rejected(self):
        self.store.create("contacts", "Bob", {"name": "Bob"}, entry_id="P1")
        with self.assertRaises(DuplicateIdError):
            self.store.create("contacts", "Bob", {"name": "Bob"}, entry_id="P1")

    def test_update_keeps_identity_and_validates(self):
        self.store.create("contacts", "Bob", {"name": "Bob"}, entry_id="P1")
        before = self.store.get("P1")
        updated = self.store.update(
            "P1", {"id": "X", "definition_id": "other", "created_at": "1999", "display_value": "Robert"}
        )
        self.assertEqual(updated["id"], "P1")
        self.assertEqual(updated["definition_id"], "contacts")
        self.assertEqual(updated["created_at"], before["created_at"])
        self.assertEqual(updated["display_value"], "Robert")
        with self.assertRaises(EntryValidationError):
            self.store.update("P1", {"fields": {"name": ""}})
        self.assertEqual(self.store.get("P1")["fields"], [{"field_id": "name", "value": "Bob"}])
        self.assertIsNone(self.store.update("missing", {"display_value": "x"}))

    def test_delete_and_list_by_definition(self):
        self.store.create("contacts", "Bob", {"name": "Bob"}, entry_id="P1")
        self.store.create("contacts", "Ann", {"name": "Ann"}, entry_id="P2")
        self.store.delete("P1")
        self.store.delete("P1")
        self.assertEqual([e["id"] for e in self.store.list_by_definition("contacts")], ["P2"])
        self.assertIsNone(self.backend.get_item("crm.reference_entry:P1"))

    def test_returned_entries_are_copies(self):
        self.store.create("contacts", "Bob", {"name": "Bob"}, entry_id="P1")
        entry = self.store.get("P1")
        entry["fields"].append({"field_id": "phone", "value": "1"})
        self.assertEqual(len(self.store.get("P1")["fields"]), 1)

    def test_clear_field_and_has_value(self):
        self.store.create("contacts", "Bob", {"name": "Bob", "phone": "1"}, entry_id="P1")
        self.store.create("contacts", "Ann", {"name": "Ann", "phone": ""}, entry_id="P2")
        self.assertTrue(self.store.has_value("phone"))
        self.assertEqual(self.store.clear_field("phone"), 2)
        self.assertFalse(self.store.has_value("phone"))
        self.assertEqual(self.store.get("P1")["fields"], [{"field_id": "name", "value": "Bob"}])

    def test_init_reloads_and_skips_bad_records(self):
        self.store.create("contacts", "Bob", {"name": "Bob"}, entry_id="P1")
        self.backend.set_item("crm.reference_entry:bad", '{"id": "bad"}')
        self.backend.set_item("crm.reference_entry:worse", "not json")
        reloaded = ReferenceEntryStore(self.persistence)
        with self.assertLogs("refbook", level="WARNING"):
            reloaded.init()
        self.assertEqual([e["id"] for e in reloaded.list_all()], ["P1"])

    def test_write_failure_keeps_memory_state(self):
        class _Failing(MemoryKeyValueStore):
            def set_item(self, key, value):
                raise RuntimeError("disk full")

        store = ReferenceEntryStore(JsonPersistence(_Failing()), schema_lookup=SCHEMAS.get)
        with self.assertLogs("refbook.persistence", level="ERROR"):
            entry_id = store.create("contacts", "Bob", {"name": "Bob"})
        self.assertEqual(store.get(entry_id)["display_value"], "Bob")


class TestCatalogEntryStore(unittest.TestCase):
    def test_catalog_owner_key(self):
        store = CatalogEntryStore()
        entry_id = store.create("products", "Widget", [{"field_id": "title", "value": "Widget"}])
        entry = store.get(entry_id)
        self.assertEqual(entry["catalog_id"], "products")
        self.assertNotIn("created_by", entry)
        self.assertEqual(len(store.list_by_catalog("products")), 1)
        self.assertEqual(store.delete_by_owner("products"), 1)
        self.assertEqual(store.list_all(), [])


if __name__ == "__main__":
    unittest.main()
