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
from refbook.keys import DEAL_VALUES_PREFIX, REFERENCE_ENTRY_PREFIX, id_from_key, record_key


class _BrokenBackend:
    def get_item(self, key):
        raise RuntimeError("backend down")

    def set_item(self, key, value):
        raise RuntimeError("backend down")

    def remove_item(self, key):
        raise RuntimeError("backend down")

    def keys(self, prefix=""):
        raise RuntimeError("backend down")


class TestMemoryKeyValueStore(unittest.TestCase):
    def test_prefix_listing_and_removal(self):
        backend = MemoryKeyValueStore()
        backend.set_item("crm.deal:d1", "{}")
        backend.set_item("crm.deal_values:d1", "{}")
        self.assertEqual(backend.keys("crm.deal:"), ["crm.deal:d1"])
        self.assertIsNotNone(backend.updated_at("crm.deal:d1"))
        backend.remove_item("crm.deal:d1")
        self.assertIsNone(backend.get_item("crm.deal:d1"))
        self.assertEqual(backend.keys("crm.deal"), ["crm.deal_values:d1"])

    def test_rejects_non_string_values(self):
        with self.assertRaises(TypeError):
            MemoryKeyValueStore().set_item("k", {"a": 1})


class TestJsonPersistence(unittest.TestCase):
    def test_keys_round_trip(self):
        key = record_key(REFERENCE_ENTRY_PREFIX, "ref-1")
        self.assertEqual(key, "crm.reference_entry:ref-1")
        self.assertEqual(id_from_key(REFERENCE_ENTRY_PREFIX, key), "ref-1")

    def test_load_prefix_skips_malformed_record(self):
        backend = MemoryKeyValueStore()
        persistence = JsonPersistence(backend)
        self.assertTrue(persistence.write("crm.deal_values:d1", {"contact": "P1"}))
        backend.set_item("crm.deal_values:d2", "{broken")
        self.assertTrue(persistence.write("crm.deal_values:d3", {"company": ["C1"]}))
        with self.assertLogs("refbook.persistence", level="WARNING") as logs:
            items = persistence.load_prefix(DEAL_VALUES_PREFIX)
        self.assertEqual([key for key, _ in items], ["crm.deal_values:d1", "crm.deal_values:d3"])
        self.assertTrue(any("crm.deal_values:d2" in line for line in logs.output))

    def test_read_returns_default_for_missing_or_malformed(self):
        backend = MemoryKeyValueStore({"bad": "[1,"})
        persistence = JsonPersistence(backend)
        self.assertEqual(persistence.read("missing", default={}), {})
        with self.assertLogs("refbook.persistence", level="WARNING"):
            self.assertEqual(persistence.read("bad", default={}), {})

    def test_clear_prefix_leaves_other_namespaces(self):
        backend = MemoryKeyValueStore()
        persistence = JsonPersistence(backend)
        persistence.write("crm.deal:d1", {"id": "d1"})
        persistence.write("crm.deal:d2", {"id": "d2"})
        persistence.write("crm.deal_values:d1", {"company": "C1"})
        self.assertEqual(persistence.clear_prefix("crm.deal:"), 2)
        self.assertEqual(backend.keys("crm."), ["crm.deal_values:d1"])

    def test_backend_failures_are_absorbed(self):
        persistence = JsonPersistence(_BrokenBackend())
        with self.assertLogs("refbook.persistence", level="WARNING"):
            self.assertFalse(persistence.write("k", {"a": 1}))
            self.assertFalse(persistence.remove("k"))
            self.assertIsNone(persistence.read("k"))
            self.assertEqual(persistence.load_prefix("crm."), [])

    def test_unencodable_value_is_not_written(self):
        backend = MemoryKeyValueStore()
        persistence = JsonPersistence(backend)
        with self.assertLogs("refbook.persistence", level="ERROR"):
            self.assertFalse(persistence.write("k", {"at": object()}))
        self.assertIsNone(backend.get_item("k"))


if __name__ == "__main__":
    unittest.main()
