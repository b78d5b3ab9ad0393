"""
Tests for the in-memory and JSON-file session stores.
"""

import json
import threading
from datetime import datetime, timedelta, timezone

import pytest

from companion_framework.models import CacheEntry, LanguagePatterns, SessionSummary
from companion_framework.providers.persistence import InMemorySessionStore, JsonFileSessionStore


def summary(tone="Calm", days_ago=0):
    return SessionSummary(
        id="s",
        summary=["Talked about the week"],
        tone=tone,
        gratitude_mentions=1,
        language=LanguagePatterns(repeated_words=["week"]),
        created_at=datetime.now(timezone.utc) - timedelta(days=days_ago),
    )


class TestInMemorySessionStore:

    @pytest.mark.asyncio
    async def test_session_lifecycle(self):
        store = InMemorySessionStore()

        session_id = await store.start_session("u1")
        await store.append_transcript(session_id, "You: hi\nCompanion: hello")
        await store.write_summary(session_id, summary(), duration_sec=95.7)

        record = store.sessions[session_id]
        assert record['userId'] == "u1"
        assert record['transcript'].startswith("You: hi")
        assert record['status'] == 'summarized'
        assert record['durationSec'] == 95
        assert record['summary']['tone'] == "Calm"

    @pytest.mark.asyncio
    async def test_unknown_session(self):
        store = InMemorySessionStore()
        with pytest.raises(KeyError):
            await store.append_transcript("missing", "text")

    @pytest.mark.asyncio
    async def test_time_limit_hooks(self):
        store = InMemorySessionStore()
        session_id = await store.start_session("u1")

        await store.set_max_duration(session_id, 1200)
        await store.mark_session_warning(session_id)
        await store.end_session_by_time_limit(session_id)

        record = store.sessions[session_id]
        assert record['maxDurationSec'] == 1200
        assert 'warningIssuedAt' in record
        assert record['status'] == 'ended_by_time_limit'
        assert 'endedAt' in record

    @pytest.mark.asyncio
    async def test_list_summaries_filters_and_orders(self):
        store = InMemorySessionStore()
        for tone, days_ago in (("Calm", 10), ("Sad", 1), ("Hopeful", 0)):
            session_id = await store.start_session("u1")
            await store.write_summary(session_id, summary(tone, days_ago), 60)
        other = await store.start_session("u2")
        await store.write_summary(other, summary("Stressed"), 60)
        await store.start_session("u1")

        recent = await store.list_summaries("u1", since=datetime.now(timezone.utc) - timedelta(days=7))
        everything = await store.list_summaries("u1")

        assert [s.summary.tone for s in recent] == ["Hopeful", "Sad"]
        assert len(everything) == 3
        assert all(s.user_id == "u1" for s in everything)

    @pytest.mark.asyncio
    async def test_cache_roundtrip(self):
        store = InMemorySessionStore()
        assert await store.read_cache("u1", "7d:recommendation") is None

        await store.write_cache("u1", "7d:recommendation", CacheEntry(digest="abc", payload={'recommendation': 'x'}))
        entry = await store.read_cache("u1", "7d:recommendation")

        assert entry.digest == "abc"
        assert entry.payload == {'recommendation': 'x'}


class TestJsonFileSessionStore:

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "store" / "sessions.json"
        store = JsonFileSessionStore(path)
        session_id = await store.start_session("u1")
        await store.write_summary(session_id, summary("Reflective"), 300)
        await store.write_cache("u1", "30d:language_patterns", CacheEntry(digest="d", payload={'a': 1}))

        reopened = JsonFileSessionStore(path)
        summaries = await reopened.list_summaries("u1")
        entry = await reopened.read_cache("u1", "30d:language_patterns")

        assert summaries[0].summary.tone == "Reflective"
        assert summaries[0].duration_sec == 300
        assert entry.payload == {'a': 1}
        assert json.loads(path.read_text())['sessions'][session_id]['status'] == 'summarized'
        assert not path.with_suffix(".json.tmp").exists()

    def test_unreadable_file_starts_empty(self, tmp_path):
        path = tmp_path / "sessions.json"
        path.write_text("{broken")

        store = JsonFileSessionStore(path)

        assert store.sessions == {}

    @pytest.mark.asyncio
    async def test_writes_run_off_the_event_loop(self, tmp_path, monkeypatch):
        store = JsonFileSessionStore(tmp_path / "sessions.json")
        write = store._write_snapshot
        writer_threads = []

        def recording_write(snapshot):
            writer_threads.append(threading.get_ident())
            write(snapshot)

        monkeypatch.setattr(store, "_write_snapshot", recording_write)
        session_id = await store.start_session("u1")

        assert writer_threads
        assert threading.get_ident() not in writer_threads
        assert session_id in json.loads((tmp_path / "sessions.json").read_text())['sessions']

    @pytest.mark.asyncio
    async def test_snapshot_is_taken_before_the_write(self, tmp_path, monkeypatch):
        store = JsonFileSessionStore(tmp_path / "sessions.json")
        snapshots = []
        monkeypatch.setattr(store, "_write_snapshot", snapshots.append)

        await store.start_session("u1")

        assert isinstance(snapshots[0], str)
        assert len(json.loads(snapshots[0])['sessions']) == 1
