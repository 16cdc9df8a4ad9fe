import json
import unittest
from unittest.mock import patch

from skycache.cache.cache_store import CacheStore
from skycache.cache.memory import InMemoryKeyValueStore


class ExplodingStore(InMemoryKeyValueStore):
    """Substrate that fails every write to keys containing `fail_on`."""

    def __init__(self, fail_on: str = ""):
        super().__init__()
        self.fail_on = fail_on

    def set(self, key, value):
        if self.fail_on in key:
            raise OSError("disk full")
        super().set(key, value)

    def delete(self, key):
        if self.fail_on in key:
            raise OSError("read-only")
        super().delete(key)


class TestCacheStore(unittest.TestCase):
    def setUp(self):
        self.kv = InMemoryKeyValueStore()
        self.cache = CacheStore(self.kv)

    def test_put_writes_three_records(self):
        with patch("skycache.cache.cache_store.time.time") as mock_time:
            mock_time.return_value = 1000.0
            self.assertTrue(self.cache.put("WEATHER_paris", {"name": "Paris"}, 60))

        self.assertEqual(json.loads(self.kv.get("WEATHER_paris")), {"name": "Paris"})
        self.assertEqual(self.kv.get("WEATHER_paris-timestamp"), "1000000")
        self.assertEqual(self.kv.get("WEATHER_paris-expiry"), "60000")

    def test_get_round_trip_then_expires(self):
        with patch("skycache.cache.cache_store.time.time") as mock_time:
            mock_time.return_value = 1000.0
            self.cache.put("k", {"temp": 12.5}, 60)

            mock_time.return_value = 1030.0
            self.assertEqual(self.cache.get("k"), {"temp": 12.5})

            mock_time.return_value = 1060.0
            self.assertEqual(self.cache.get("k"), {"temp": 12.5})

            mock_time.return_value = 1061.0
            self.assertIsNone(self.cache.get("k"))
            # explicit inspection may skip the expiry check
            self.assertEqual(self.cache.get("k", check_expiry=False), {"temp": 12.5})

    def test_strings_are_stored_verbatim(self):
        self.cache.put("raw", "hello", 60)
        self.assertEqual(self.kv.get("raw"), "hello")
        self.assertEqual(self.cache.get("raw", deserialize=str), "hello")

    def test_bytes_are_stored_as_text(self):
        self.cache.put("raw", b'{"a": 1}', 60)
        self.assertEqual(self.cache.get("raw"), {"a": 1})

    def test_get_returns_copies(self):
        self.cache.put("k", {"items": [1, 2]}, 60)
        first = self.cache.get("k")
        first["items"].append(3)
        self.assertEqual(self.cache.get("k"), {"items": [1, 2]})

    def test_missing_sub_record_reads_as_expired(self):
        self.kv.set("k", json.dumps({"a": 1}))
        self.kv.set("k-timestamp", "99999999999999")
        self.assertTrue(self.cache.is_expired("k"))
        self.assertIsNone(self.cache.get("k"))

        self.kv.delete("k-timestamp")
        self.kv.set("k-expiry", "60000")
        self.assertTrue(self.cache.is_expired("k"))

    def test_unparsable_sub_record_reads_as_expired(self):
        self.cache.put("k", {"a": 1}, 60)
        self.kv.set("k-expiry", "soon")
        self.assertTrue(self.cache.is_expired("k"))

    def test_missing_key_is_expired_and_absent(self):
        self.assertTrue(self.cache.is_expired("nope"))
        self.assertIsNone(self.cache.get("nope"))
        self.assertFalse(self.cache.has_key("nope"))

    def test_decode_failure_is_a_miss(self):
        self.cache.put("k", "not-json", 60)
        self.assertIsNone(self.cache.get("k"))

    def test_miss_cause_is_logged(self):
        self.cache.put("k", "not-json", 60)
        with self.assertLogs("skycache.cache.cache_store", level="WARNING") as captured:
            self.assertIsNone(self.cache.get("k"))
        record = captured.records[-1]
        self.assertEqual(record.key, "k")
        self.assertIn("Expecting value", record.error)

    def test_unserializable_value_fails_put(self):
        self.assertFalse(self.cache.put("k", object(), 60))
        self.assertFalse(self.cache.has_key("k"))

    def test_write_failure_returns_false(self):
        cache = CacheStore(ExplodingStore(fail_on="-expiry"))
        self.assertFalse(cache.put("k", {"a": 1}, 60))
        # payload landed, expiry did not: fail-safe expiry hides it
        self.assertTrue(cache.has_key("k"))
        self.assertIsNone(cache.get("k"))

    def test_remove_deletes_all_records(self):
        self.cache.put("k", {"a": 1}, 60)
        self.assertTrue(self.cache.remove("k"))
        self.assertEqual(self.kv.keys(), [])

    def test_remove_reports_partial_failure(self):
        kv = ExplodingStore(fail_on="__never__")
        cache = CacheStore(kv)
        cache.put("k", {"a": 1}, 60)
        kv.fail_on = "-timestamp"
        self.assertFalse(cache.remove("k"))
        self.assertFalse(kv.contains("k"))
        self.assertTrue(kv.contains("k-timestamp"))

    def test_clear_all(self):
        self.cache.put("a", 1, 60)
        self.cache.put("b", 2, 60)
        self.assertTrue(self.cache.clear_all())
        self.assertEqual(self.kv.keys(), [])

    def test_is_valid_and_entry(self):
        with patch("skycache.cache.cache_store.time.time") as mock_time:
            mock_time.return_value = 50.0
            self.cache.put("k", {"a": 1}, 10)
            entry = self.cache.entry("k")
            self.assertEqual(entry.stored_at_ms, 50000)
            self.assertEqual(entry.ttl_ms, 10000)
            self.assertEqual(entry.expires_at_ms, 60000)
            self.assertTrue(self.cache.is_valid("k"))
            mock_time.return_value = 61.0
            self.assertFalse(self.cache.is_valid("k"))
        self.assertIsNone(self.cache.entry("missing"))

    def test_default_ttl_is_used(self):
        cache = CacheStore(self.kv, default_ttl_seconds=5)
        cache.put("k", 1)
        self.assertEqual(self.kv.get("k-expiry"), "5000")

    def test_put_list_truncates_and_has_no_ttl(self):
        items = [f"city{i}" for i in range(15)]
        self.assertTrue(self.cache.put_list("HISTORY", items, max_items=10))
        self.assertEqual(self.cache.get_list("HISTORY"), items[:10])
        self.assertFalse(self.kv.contains("HISTORY-timestamp"))

    def test_get_list_defaults(self):
        self.assertEqual(self.cache.get_list("HISTORY"), [])
        self.assertEqual(self.cache.get_list("HISTORY", default=["x"]), ["x"])
        self.kv.set("HISTORY", "{broken")
        self.assertEqual(self.cache.get_list("HISTORY"), [])
        self.kv.set("HISTORY", json.dumps({"not": "a list"}))
        self.assertEqual(self.cache.get_list("HISTORY"), [])


if __name__ == "__main__":
    unittest.main()
