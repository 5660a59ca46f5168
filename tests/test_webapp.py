from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from clock_in.webapp import create_app


@pytest.fixture
def client(tmp_path, clock):
    app = create_app(db_path=tmp_path / "ledger.sqlite3", clock=clock)
    yield TestClient(app)
    app.state.session.close()


def _tag_id(client: TestClient, name: str) -> str:
    tags = client.get("/api/tags").json()["tags"]
    return next(tag["id"] for tag in tags if tag["name"] == name)


def _current(client: TestClient) -> dict:
    return client.get("/api/status").json()["current_segment"]


def test_status_reports_idle_after_open(client, tmp_path):
    body = client.get("/api/status").json()

    assert body["current_tag"]["name"] == "Idle / Off"
    assert body["current_segment"]["start"] == "2024-03-11T09:00:00"
    assert body["ticker_running"] is False
    assert body["tick_seconds"] == 60
    assert body["database_path"] == str(tmp_path / "ledger.sqlite3")
    assert body["can_undo"] is False


def test_switch_and_undo(client, clock):
    clock.advance(minutes=5)
    work_id = _tag_id(client, "Work")

    response = client.post("/api/switch", json={"tag_id": work_id})
    assert response.status_code == 200
    assert response.json()["can_undo"] is True
    assert response.json()["current_segment"]["tag"] == "Work"

    assert client.post("/api/undo").status_code == 200
    assert _current(client)["tag"] == "Idle / Off"
    assert client.post("/api/undo").status_code == 409


def test_switch_to_unknown_tag_is_404(client):
    response = client.post("/api/switch", json={"tag_id": "missing"})
    assert response.status_code == 404


def test_tag_management(client):
    created = client.post("/api/tags", json={"name": "  Reading "})
    assert created.status_code == 201
    reading = created.json()
    assert reading["name"] == "Reading"

    assert client.post("/api/tags", json={"name": "reading"}).status_code == 400
    assert client.post("/api/tags", json={"name": "Reading", "color": "red"}).status_code == 422

    renamed = client.patch(f"/api/tags/{reading['id']}", json={"name": "Books", "index": 0})
    assert renamed.json()["name"] == "Books"
    assert renamed.json()["order"] == 0

    client.patch(f"/api/tags/{reading['id']}", json={"is_hidden": True})
    visible = client.get("/api/tags", params={"visible_only": True}).json()["tags"]
    assert "Books" not in [tag["name"] for tag in visible]

    idle_id = _tag_id(client, "Idle / Off")
    assert client.patch(f"/api/tags/{idle_id}", json={"name": "Away"}).status_code == 400
    assert client.patch("/api/tags/missing", json={"name": "Away"}).status_code == 404


def test_segment_editing(client, clock):
    clock.advance(hours=1)
    client.post("/api/switch", json={"tag_id": _tag_id(client, "Work")})
    segments = client.get("/api/segments", params={"date": "2024-03-11"}).json()["segments"]
    idle_segment = segments[0]
    food_id = _tag_id(client, "Food")

    bad = client.patch(
        f"/api/segments/{idle_segment['id']}",
        json={"tag_id": food_id, "start": "2024-03-11T09:30:00", "end": "2024-03-11T09:10:00"},
    )
    assert bad.status_code == 400
    assert bad.json()["detail"] == "Start must be before end."

    check = client.post(
        f"/api/segments/{idle_segment['id']}/validate",
        json={"tag_id": food_id, "start": "2024-03-11T09:00:00", "end": "2024-03-11T10:30:00"},
    )
    assert check.json() == {"valid": False, "error": "Segment overlaps another segment."}

    updated = client.patch(
        f"/api/segments/{idle_segment['id']}",
        json={
            "tag_id": food_id,
            "start": "2024-03-11T09:00:00",
            "end": "2024-03-11T10:00:00",
            "note": "breakfast",
        },
    )
    assert updated.status_code == 200
    assert updated.json()["tag"] == "Food"
    assert updated.json()["note"] == "breakfast"
    assert updated.json()["duration_seconds"] == 3600

    split = client.post(
        f"/api/segments/{idle_segment['id']}/split",
        json={
            "at": "2024-03-11T09:30:00",
            "before_tag_id": food_id,
            "after_tag_id": food_id,
        },
    )
    assert split.status_code == 200
    first, second = split.json()["segments"]
    assert (first["end"], second["start"]) == ("2024-03-11T09:30:00", "2024-03-11T09:30:00")

    merged = client.post("/api/merge", params={"date": "2024-03-11"}).json()["segments"]
    assert [(s["tag"], s["start"], s["end"]) for s in merged] == [
        ("Food", "2024-03-11T09:00:00", "2024-03-11T10:00:00"),
        ("Work", "2024-03-11T10:00:00", None),
    ]

    assert client.delete(f"/api/segments/{merged[0]['id']}").status_code == 204
    assert client.delete(f"/api/segments/{merged[0]['id']}").status_code == 404


def test_bad_dates_are_rejected(client):
    assert client.get("/api/segments", params={"date": "11/03/2024"}).status_code == 400
    assert client.get("/api/summary", params={"date": "yesterday"}).status_code == 400


def test_summary_and_week(client, clock):
    clock.advance(minutes=5)
    client.post("/api/switch", json={"tag_id": _tag_id(client, "Work")})
    clock.advance(minutes=55)
    ticked = client.post("/api/views/dashboard", json={"visible": True})
    assert ticked.json() == {"tick_seconds": 5}

    summary = client.get("/api/summary").json()
    assert summary["date"] == "2024-03-11"
    assert summary["totals"] == {
        "tracked_seconds": 3600,
        "active_seconds": 3300,
        "focused_seconds": 3300,
        "maintenance_seconds": 0,
        "idle_seconds": 300,
    }
    assert [entry["tag"] for entry in summary["entries"]] == ["Work", "Idle / Off"]

    week = client.get("/api/week", params={"date": "2024-03-11"}).json()
    assert week["tracked_days"] == 1
    assert week["average_active_seconds"] == 3300
    assert len(week["days"]) == 7
    assert week["days"][0] == {"date": "2024-03-11", "active_seconds": 3300}
    assert [entry["tag"] for entry in week["entries"]] == ["Work"]

    empty = client.get("/api/week", params={"date": "2024-02-01"}).json()
    assert empty["tracked_days"] == 0
    assert empty["average_active_seconds"] is None
