import json
import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import redis

from app.models import Diagnosis, HistoryEntry, Treatment
from app.services.history import HistoryStore, init_redis

DIAGNOSIS = Diagnosis(disease_name="Leaf Blight", confidence=0.9, description="brown spots")
TREATMENT = Treatment(chemical_treatment="Spray copper hydroxide.")


def make_entry(name):
    return HistoryEntry(
        timestamp=datetime.now(timezone.utc),
        image=None,
        diagnosis={"diseaseName": name},
        treatment={},
    )


class TestMemoryBackend:
    def test_newest_first(self):
        store = HistoryStore()
        for name in ["first", "second", "third"]:
            store.append(make_entry(name))

        names = [entry.diagnosis["diseaseName"] for entry in store.list_entries()]
        assert names == ["third", "second", "first"]
        assert store.backend == "memory"

    def test_limit(self):
        store = HistoryStore()
        for name in ["first", "second", "third"]:
            store.append(make_entry(name))

        assert [e.diagnosis["diseaseName"] for e in store.list_entries(limit=2)] == ["third", "second"]

    def test_capped_at_max_entries(self):
        store = HistoryStore(max_entries=2)
        for name in ["first", "second", "third"]:
            store.append(make_entry(name))

        assert store.stats()["entries"] == 2
        assert [e.diagnosis["diseaseName"] for e in store.list_entries()] == ["third", "second"]

    def test_record_keeps_camel_case_documents(self):
        store = HistoryStore()
        assert store.record("data:image/png;base64,AAAA", DIAGNOSIS, TREATMENT)

        entry = store.list_entries()[0]
        assert entry.image == "data:image/png;base64,AAAA"
        assert entry.diagnosis["diseaseName"] == "Leaf Blight"
        assert entry.treatment["chemicalTreatment"] == "Spray copper hydroxide."

    def test_heterogeneous_entries_tolerated(self):
        store = HistoryStore()
        store.append(make_entry("current"))
        # Older or foreign shapes written by other versions
        store._entries.append(json.dumps({
            "timestamp": "2024-05-01T10:00:00Z",
            "diagnosis": {"diseaseName": "Rust", "confidence": 0.6, "description": "pustules"},
            "treatment": {"treatmentRecommendation": "Remove leaves", "suggestedMedicines": "Neem"},
            "source": "legacy",
        }))
        store._entries.append("{not json")
        store._entries.append(json.dumps({"diagnosis": "missing timestamp"}))

        entries = store.list_entries()
        assert [e.diagnosis["diseaseName"] for e in entries] == ["Rust", "current"]
        assert entries[0].treatment["treatmentRecommendation"] == "Remove leaves"

    def test_clear(self):
        store = HistoryStore()
        store.append(make_entry("first"))
        store.clear()
        assert store.list_entries() == []

    def test_concurrent_appends_are_not_lost(self):
        store = HistoryStore(max_entries=1000)

        def writer(prefix):
            for i in range(50):
                store.append(make_entry(f"{prefix}-{i}"))

        threads = [threading.Thread(target=writer, args=(str(n),)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(store.list_entries()) == 200


class TestRedisBackend:
    def test_append_is_one_transaction(self):
        client = MagicMock()
        pipe = client.pipeline.return_value.__enter__.return_value
        store = HistoryStore(key="test:history", max_entries=10, redis_client=client)

        assert store.append(make_entry("first")) is True

        client.pipeline.assert_called_once_with(transaction=True)
        key, document = pipe.rpush.call_args.args
        assert key == "test:history"
        assert json.loads(document)["diagnosis"] == {"diseaseName": "first"}
        pipe.ltrim.assert_called_once_with("test:history", -10, -1)
        pipe.execute.assert_called_once()
        assert store.backend == "redis"

    def test_list_reads_whole_key(self):
        client = MagicMock()
        client.lrange.return_value = [
            make_entry("first").model_dump_json(by_alias=True),
            make_entry("second").model_dump_json(by_alias=True),
        ]
        store = HistoryStore(key="test:history", redis_client=client)

        names = [e.diagnosis["diseaseName"] for e in store.list_entries()]

        client.lrange.assert_called_once_with("test:history", 0, -1)
        assert names == ["second", "first"]

    def test_redis_errors_are_not_raised(self):
        client = MagicMock()
        client.pipeline.side_effect = redis.ConnectionError("down")
        client.lrange.side_effect = redis.ConnectionError("down")
        store = HistoryStore(redis_client=client)

        assert store.append(make_entry("first")) is False
        assert store.list_entries() == []


@pytest.mark.parametrize("max_entries", [0, -5])
def test_cap_below_one_rejected(max_entries):
    with pytest.raises(ValueError):
        HistoryStore(max_entries=max_entries)


def test_no_url_means_memory():
    assert init_redis(None) is None
    assert init_redis("") is None
