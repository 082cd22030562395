import os
import sys
import unittest
import uuid
from contextlib import contextmanager
from unittest import mock


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

import app.stores_db as stores_db
from app.stores_db import DbKeyValueStore, _escape_like

USE_DB = os.getenv("USE_DB", "0") == "1"
DB_URL = os.getenv("SUPABASE_DB_URL") or os.getenv("DATABASE_URL")


@contextmanager
def _fake_conn():
    yield mock.sentinel.conn


class TestDbKeyValueStore(unittest.TestCase):
    def setUp(self) -> None:
        patcher = mock.patch.object(stores_db, "get_conn", _fake_conn)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_schema_created_once(self):
        with mock.patch.object(stores_db, "execute") as execute:
            store = DbKeyValueStore(tenant_id="t1")
            store.ensure_schema()
        self.assertEqual(execute.call_count, 1)
        self.assertEqual(execute.call_args.kwargs["query_name"], "kv_items.ensure_schema")

    def test_set_item_upserts_for_tenant(self):
        with mock.patch.object(stores_db, "execute") as execute:
            store = DbKeyValueStore(tenant_id="t1", ensure_schema=False)
            store.set_item("crm.deal:d1", '{"id":"d1"}')
        params = execute.call_args.args[2]
        self.assertEqual(params[:3], ["t1", "crm.deal:d1", '{"id":"d1"}'])
        self.assertIn("on conflict", execute.call_args.args[1])
        with self.assertRaises(TypeError):
            store.set_item("crm.deal:d1", {"id": "d1"})

    def test_get_item_and_keys(self):
        store = DbKeyValueStore(tenant_id="t1", ensure_schema=False)
        with mock.patch.object(stores_db, "fetch_one", return_value={"value": "{}"}) as fetch_one:
            self.assertEqual(store.get_item("crm.deal:d1"), "{}")
        self.assertEqual(fetch_one.call_args.args[2], ["t1", "crm.deal:d1"])
        with mock.patch.object(stores_db, "fetch_one", return_value=None):
            self.assertIsNone(store.get_item("crm.deal:missing"))
        rows = [{"key": "crm.deal_values:d1"}, {"key": "crm.deal_values:d2"}]
        with mock.patch.object(stores_db, "fetch_all", return_value=rows) as fetch_all:
            self.assertEqual(store.keys("crm.deal_values:"), ["crm.deal_values:d1", "crm.deal_values:d2"])
        self.assertEqual(fetch_all.call_args.args[2], ["t1", "crm.deal\\_values:%"])

    def test_escape_like(self):
        self.assertEqual(_escape_like("a_b%c\\"), "a\\_b\\%c\\\\")


class TestDbKeyValueStoreLive(unittest.TestCase):
    @unittest.skipUnless(USE_DB and DB_URL, "DB test requires USE_DB=1 and DATABASE_URL/SUPABASE_DB_URL")
    def test_round_trip(self):
        store = DbKeyValueStore(tenant_id=f"test_{uuid.uuid4().hex[:8]}")
        store.set_item("crm.deal:d1", '{"id":"d1"}')
        store.set_item("crm.deal:d1", '{"id":"d1","title":"x"}')
        self.assertEqual(store.get_item("crm.deal:d1"), '{"id":"d1","title":"x"}')
        self.assertEqual(store.keys("crm.deal:"), ["crm.deal:d1"])
        store.remove_item("crm.deal:d1")
        self.assertIsNone(store.get_item("crm.deal:d1"))


if __name__ == "__main__":
    unittest.main()
