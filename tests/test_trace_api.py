"""Tests for trace ingestion and stats queries over HTTP."""
import orjson
import pytest
from httpx import AsyncClient, ASGITransport

from storytrace.main import create_app

FLEE = {"type": "choice", "seed": "abc", "data": {"context": "day1", "choice": "flee"}}


def client_for(app):
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_choice_then_stats(app):
    async with client_for(app) as client:
        response = await client.post("/trace", json=FLEE)
        assert response.status_code == 202
        data = response.json()
        assert data == {
            "ok": True,
            "accepted": 1,
            "totals": {"events": 1, "choices": 1, "sessions": 1},
        }

        response = await client.get("/stats", params={"context": "day1"})
        assert response.status_code == 200
        stats = response.json()
        assert stats["ok"] is True
        assert stats["totals"] == {"events": 1, "choices": 1, "sessions": 1, "contexts": 1}
        assert stats["context"]["key"] == "day1"
        assert stats["context"]["choices"] == [
            {"key": "flee", "label": "flee", "count": 1, "percent": 100}
        ]
        assert stats["context"]["top"]["percent"] == 100
        assert [c["key"] for c in stats["topContexts"]] == ["day1"]
        assert "generatedAt" in stats


@pytest.mark.asyncio
async def test_stats_without_or_with_unknown_context(app):
    async with client_for(app) as client:
        await client.post("/trace", json=FLEE)

        assert (await client.get("/stats")).json()["context"] is None
        assert (await client.get("/stats", params={"context": "nope"})).json()["context"] is None


@pytest.mark.asyncio
async def test_batch_of_events(app):
    batch = [
        FLEE,
        {"type": "choice", "seed": "abc", "data": {"context": "day1", "choice": "fight"}},
        {"type": "annotation", "seed": "xyz", "data": {"context": "day1", "mark": "star"}},
        "not an object",
    ]
    async with client_for(app) as client:
        response = await client.post("/trace", json=batch)

    assert response.status_code == 202
    data = response.json()
    assert data["accepted"] == 4
    assert data["totals"] == {"events": 4, "choices": 2, "sessions": 2}


@pytest.mark.asyncio
async def test_invalid_json_recorded_as_raw_event(app):
    async with client_for(app) as client:
        response = await client.post("/trace", content=b"not json")
        assert response.status_code == 202
        assert response.json()["totals"] == {"events": 1, "choices": 0, "sessions": 0}

    persistence = app.state.persistence
    record = orjson.loads(persistence.events_file.read_bytes().splitlines()[0])
    assert record["type"] == "raw"
    assert record["data"] == {"raw": "not json"}
    assert record["sourceIp"] == "127.0.0.1"


@pytest.mark.asyncio
async def test_empty_body_is_one_unknown_event(app):
    async with client_for(app) as client:
        response = await client.post("/trace", content=b"   ")
    assert response.status_code == 202
    assert response.json()["accepted"] == 1
    assert app.state.store.snapshot.totals.events == 1


@pytest.mark.asyncio
async def test_empty_array_accepts_nothing(app):
    async with client_for(app) as client:
        response = await client.post("/trace", json=[])
    assert response.status_code == 202
    assert response.json()["accepted"] == 0
    assert app.state.persistence.stats_file.exists()
    assert not app.state.persistence.events_file.exists()


@pytest.mark.asyncio
async def test_oversized_body_rejected_without_ingesting(app):
    big = {"type": "choice", "data": {"context": "day1", "choice": "x" * (130 * 1024)}}
    async with client_for(app) as client:
        response = await client.post("/trace", json=big)
        assert response.status_code == 413
        assert response.json()["error"] == "payload_too_large"
        assert response.json()["ok"] is False

        totals = (await client.get("/stats")).json()["totals"]
    assert totals == {"events": 0, "choices": 0, "sessions": 0, "contexts": 0}


@pytest.mark.asyncio
async def test_oversized_streamed_body_rejected(app):
    async def chunks():
        for _ in range(5):
            yield b"x" * (40 * 1024)

    async with client_for(app) as client:
        response = await client.post("/trace", content=chunks())
        assert response.status_code == 413
        assert response.json() == {"ok": False, "error": "payload_too_large", "max_size": 128 * 1024}

        totals = (await client.get("/stats")).json()["totals"]
    assert totals["events"] == 0


@pytest.mark.asyncio
async def test_annotation_leaves_choice_totals(app):
    async with client_for(app) as client:
        await client.post("/trace", json=FLEE)
        response = await client.post(
            "/trace", json={"type": "annotation", "data": {"context": "day1", "mark": "Heart"}}
        )
        assert response.json()["totals"]["choices"] == 1

        summary = (await client.get("/stats", params={"context": "day1"})).json()["context"]
    assert summary["total"] == 1
    assert app.state.store.snapshot.contexts["day1"].marks == {"heart": 1}


@pytest.mark.asyncio
async def test_write_failure_reports_error_but_keeps_counters(app, monkeypatch):
    def boom(content):
        raise OSError("read-only file system")

    monkeypatch.setattr(app.state.persistence, "_atomic_write", boom)

    async with client_for(app) as client:
        response = await client.post("/trace", json=FLEE)
        assert response.status_code == 500
        assert response.json() == {"ok": False, "error": "trace_write_failed"}

        totals = (await client.get("/stats")).json()["totals"]
    assert totals["events"] == 1
    assert totals["choices"] == 1


@pytest.mark.asyncio
async def test_state_survives_restart(settings):
    async with client_for(create_app(settings)) as client:
        await client.post("/trace", json=[FLEE, FLEE])

    async with client_for(create_app(settings)) as client:
        stats = (await client.get("/stats", params={"context": "day1"})).json()

    assert stats["totals"] == {"events": 2, "choices": 2, "sessions": 1, "contexts": 1}
    assert stats["context"]["choices"][0]["count"] == 2


@pytest.mark.asyncio
async def test_huge_day_is_logged_not_rejected(app):
    body = {"type": "choice", "seed": "s", "day": 1e300, "data": {"context": "day1", "choice": "flee"}}
    async with client_for(app) as client:
        response = await client.post("/trace", json=body)

    assert response.status_code == 202
    assert response.json()["totals"] == {"events": 1, "choices": 1, "sessions": 1}
    record = orjson.loads(app.state.persistence.events_file.read_bytes().splitlines()[0])
    assert record["day"] == 1e300


@pytest.mark.asyncio
async def test_lone_surrogate_body_recorded_as_raw(app):
    body = b'{"type": "choice", "data": {"context": "day1", "choice": "\\ud800"}}'
    async with client_for(app) as client:
        response = await client.post("/trace", content=body)

    assert response.status_code == 202
    assert response.json()["totals"] == {"events": 1, "choices": 0, "sessions": 0}
    record = orjson.loads(app.state.persistence.events_file.read_bytes().splitlines()[0])
    assert record["type"] == "raw"
