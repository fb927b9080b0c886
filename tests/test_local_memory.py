"""
Tests for the local semantic memory, its entry model, seeds and the
durability policy.

Scenarios tested:
- Nearest match at or above the similarity threshold
- Duplicate writes (> 0.95) stored once
- Capacity eviction never removes seeded entries
- JSON file persistence, corrupt files, export/import

Usage:
    pytest tests/test_local_memory.py -v
"""

import json

import pytest

from sviesa.errors import CacheCorruption
from sviesa.memory.local import LocalSemanticMemory
from sviesa.memory.models import MemoryOrigin, QAMemoryEntry
from sviesa.memory.policy import is_durable_answer, is_time_sensitive
from sviesa.memory.seed import load_seed_memory


E1 = [1.0, 0.0, 0.0, 0.0]
E2 = [0.0, 1.0, 0.0, 0.0]
E3 = [0.0, 0.0, 1.0, 0.0]
E4 = [0.0, 0.0, 0.0, 1.0]


class Clock:

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        self.now += 1
        return self.now


def seed_entry(question="Kas yra Eucharistija?", embedding=E1):
    return QAMemoryEntry(question=question, answer="Sakramentas.", embedding=embedding, origin=MemoryOrigin.SYSTEM)


class TestMemoryEntry:

    def test_dict_roundtrip_keeps_origin(self):
        entry = seed_entry()
        restored = QAMemoryEntry.from_dict(entry.to_dict())
        assert restored == entry

    def test_source_alias(self):
        entry = QAMemoryEntry.from_dict({
            "question": "Q", "answer": "A", "embedding": [1, 2], "source": "system",
        })
        assert entry.origin == MemoryOrigin.SYSTEM
        assert entry.embedding == [1.0, 2.0]

    def test_invalid_embedding(self):
        with pytest.raises(ValueError):
            QAMemoryEntry.from_dict({"question": "Q", "answer": "A", "embedding": "nope"})


class TestPolicy:

    def test_time_sensitive(self):
        assert is_time_sensitive("Kokia šiandien Evangelija?") is True
        assert is_time_sensitive("Kas yra Eucharistija?") is False

    def test_durable_answer(self):
        assert is_durable_answer("Kas yra Eucharistija?", "x" * 100) is True
        assert is_durable_answer("Kas yra Eucharistija?", "Klaida") is False
        assert is_durable_answer("Šiandienos skaitiniai?", "x" * 200) is False


class TestLocalSemanticMemory:

    @pytest.mark.asyncio
    async def test_find_nearest_threshold(self):
        memory = LocalSemanticMemory()
        await memory.append("Kas yra malda?", "Pokalbis su Dievu.", E1)

        hit = memory.find_nearest([0.9, 0.1, 0.0, 0.0])
        assert hit is not None
        assert hit.answer == "Pokalbis su Dievu."
        assert hit.question == "Kas yra malda?"
        assert hit.tier == "local"
        assert hit.similarity > 0.85

        assert memory.find_nearest([0.5, 0.5, 0.0, 0.0]) is None

    @pytest.mark.asyncio
    async def test_empty_memory(self):
        memory = LocalSemanticMemory()
        assert memory.find_nearest(E1) is None

    @pytest.mark.asyncio
    async def test_duplicate_stored_once(self):
        memory = LocalSemanticMemory()

        assert await memory.append("Kas yra malda?", "A", E1) is True
        assert await memory.append("Kas ta malda?", "B", [0.99, 0.01, 0.0, 0.0]) is False
        assert len(memory) == 1

    @pytest.mark.asyncio
    async def test_dimension_mismatch_refused(self):
        memory = LocalSemanticMemory()
        await memory.append("Kas yra malda?", "A", E1)

        assert await memory.append("Kas yra tikėjimas?", "B", [1.0, 0.0]) is False
        assert await memory.append("Kas yra viltis?", "C", []) is False
        assert len(memory) == 1

    @pytest.mark.asyncio
    async def test_eviction_keeps_system_entries(self):
        memory = LocalSemanticMemory(max_entries=3, seed=[seed_entry()], clock=Clock())
        await memory.open()

        await memory.append("Pirmas klausimas?", "A", E2)
        await memory.append("Antras klausimas?", "B", E3)
        await memory.append("Trečias klausimas?", "C", E4)

        questions = [e.question for e in memory.entries]
        assert len(memory) == 3
        assert "Kas yra Eucharistija?" in questions
        assert "Pirmas klausimas?" not in questions
        assert questions[-1] == "Trečias klausimas?"

    @pytest.mark.asyncio
    async def test_only_system_entries_at_capacity(self):
        memory = LocalSemanticMemory(max_entries=1, seed=[seed_entry()])
        await memory.open()

        await memory.append("Naujas klausimas?", "A", E2)

        assert memory.entries[0].origin == MemoryOrigin.SYSTEM
        assert len(memory) == 2

    @pytest.mark.asyncio
    async def test_persists_and_reloads(self, tmp_path):
        path = tmp_path / "local_memory.json"
        memory = LocalSemanticMemory(path=path)
        await memory.open()
        await memory.append("Kas yra malda?", "A", E1)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["version"] == 1
        assert data["entries"][0]["question"] == "Kas yra malda?"

        reloaded = LocalSemanticMemory(path=path)
        await reloaded.open()
        assert reloaded.find_nearest(E1).answer == "A"

    @pytest.mark.asyncio
    async def test_open_twice_does_not_duplicate(self, tmp_path):
        path = tmp_path / "local_memory.json"
        first = LocalSemanticMemory(path=path)
        await first.open()
        await first.append("Kas yra malda?", "A", E1)

        memory = LocalSemanticMemory(path=path, seed=[seed_entry(embedding=E2)])
        await memory.open()
        await memory.open()

        assert [e.question for e in memory.entries] == ["Kas yra malda?"]

    @pytest.mark.asyncio
    async def test_corrupt_file_starts_empty_and_seeds(self, tmp_path):
        path = tmp_path / "local_memory.json"
        path.write_text("{not json", encoding="utf-8")

        memory = LocalSemanticMemory(path=path, seed=[seed_entry()])
        await memory.open()

        assert len(memory) == 1
        assert memory.entries[0].origin == MemoryOrigin.SYSTEM

    @pytest.mark.asyncio
    async def test_seed_not_applied_when_entries_exist(self, tmp_path):
        path = tmp_path / "local_memory.json"
        first = LocalSemanticMemory(path=path)
        await first.open()
        await first.append("Kas yra malda?", "A", E2)

        memory = LocalSemanticMemory(path=path, seed=[seed_entry()])
        await memory.open()
        assert [e.question for e in memory.entries] == ["Kas yra malda?"]

    @pytest.mark.asyncio
    async def test_export_import(self):
        source = LocalSemanticMemory()
        await source.append("Kas yra malda?", "A", E1)
        await source.append("Kas yra viltis?", "B", E2)
        payload = source.export_json()

        target = LocalSemanticMemory()
        await target.append("Kas yra malda?", "Sena", E1)

        added = await target.import_json(payload)

        assert added == 1
        imported = [e for e in target.entries if e.question == "Kas yra viltis?"][0]
        assert imported.origin == MemoryOrigin.SYSTEM

    @pytest.mark.asyncio
    async def test_import_rejects_garbage(self):
        memory = LocalSemanticMemory()
        with pytest.raises(CacheCorruption):
            await memory.import_json('{"entries": 3}')
        with pytest.raises(CacheCorruption):
            await memory.import_json("[{\"question\": \"Q\"}]")


class TestSeedMemory:

    def test_missing_file(self, tmp_path):
        assert load_seed_memory(tmp_path / "none.json") == []
        assert load_seed_memory(None) == []

    def test_loads_as_system(self, tmp_path):
        path = tmp_path / "seed_memory.json"
        path.write_text(json.dumps([
            {"question": "Kas yra Eucharistija?", "answer": "Sakramentas.", "embedding": E1, "origin": "user"},
        ]), encoding="utf-8")

        entries = load_seed_memory(path)

        assert len(entries) == 1
        assert entries[0].origin == MemoryOrigin.SYSTEM

    def test_versioned_payload(self, tmp_path):
        path = tmp_path / "seed_memory.json"
        path.write_text(json.dumps({"version": 1, "entries": [seed_entry().to_dict()]}), encoding="utf-8")
        assert len(load_seed_memory(path)) == 1

    def test_malformed_file_ignored(self, tmp_path):
        path = tmp_path / "seed_memory.json"
        path.write_text("[1, 2", encoding="utf-8")
        assert load_seed_memory(path) == []
