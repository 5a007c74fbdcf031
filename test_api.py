"""
Test API
========

Monitoring endpoints on the in-memory database.
"""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from voicescribe.api.main import app
from voicescribe.models import Utterance, UtteranceStatus
from voicescribe.stats_collector import stats_collector

T0 = datetime(2024, 6, 1, 12, 0, 0)


@pytest.fixture
def client(db):
    with TestClient(app) as test_client:
        yield test_client


def add(db, guild_id, user_id, minutes, status=UtteranceStatus.TRANSCRIBED, transcript="hi",
        confidence=0.8, duration_ms=1000):
    utterance = Utterance(
        guild_id=guild_id,
        channel_id=1,
        user_id=user_id,
        user_name=f"user{user_id}",
        started_at=T0 + timedelta(minutes=minutes),
        ended_at=T0 + timedelta(minutes=minutes, seconds=1),
        duration_ms=duration_ms,
        transcript=transcript if status == UtteranceStatus.TRANSCRIBED else None,
        confidence=confidence if status == UtteranceStatus.TRANSCRIBED else None,
        status=status
    )
    db.add(utterance)
    db.commit()
    return utterance


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] is True
    assert body["service"] == "voicescribe"


def test_list_newest_first_with_filters(client, db):
    add(db, 1, 10, 0)
    add(db, 1, 11, 5, status=UtteranceStatus.SKIPPED)
    add(db, 1, 10, 10)
    add(db, 2, 10, 15)

    rows = client.get("/utterances", params={"guild_id": 1}).json()
    assert [row["started_at"] for row in rows] == [
        (T0 + timedelta(minutes=m)).isoformat() for m in (10, 5, 0)
    ]

    rows = client.get("/utterances", params={"guild_id": 1, "user_id": 10}).json()
    assert len(rows) == 2

    rows = client.get("/utterances", params={"status": "skipped"}).json()
    assert [row["user_id"] for row in rows] == [11]
    assert rows[0]["status"] == "skipped"

    rows = client.get("/utterances", params={"limit": 1}).json()
    assert len(rows) == 1
    assert rows[0]["guild_id"] == 2


def test_list_limit_bounds(client):
    assert client.get("/utterances", params={"limit": 0}).status_code == 422
    assert client.get("/utterances", params={"limit": 100000}).status_code == 422
    assert client.get("/utterances", params={"status": "bogus"}).status_code == 422


def test_get_utterance(client, db):
    utterance = add(db, 1, 10, 0, transcript="hello there")

    response = client.get(f"/utterances/{utterance.id}")
    assert response.status_code == 200
    assert response.json()["transcript"] == "hello there"

    response = client.get("/utterances/999999")
    assert response.status_code == 404
    assert response.json()["detail"] == "Utterance 999999 not found"


def test_guild_stats(client, db):
    add(db, 1, 10, 0, confidence=0.9, duration_ms=1000)
    add(db, 1, 11, 1, confidence=0.7, duration_ms=2000)
    add(db, 1, 11, 2, status=UtteranceStatus.FAILED, duration_ms=500)
    add(db, 2, 12, 3)

    stats = client.get("/stats/1").json()
    assert stats["utterances"] == 3
    assert stats["by_status"]["transcribed"] == 2
    assert stats["by_status"]["failed"] == 1
    assert stats["by_status"]["pending"] == 0
    assert stats["speakers"] == 2
    assert stats["total_audio_ms"] == 3500
    assert stats["avg_confidence"] == 0.8

    empty = client.get("/stats/3").json()
    assert empty["utterances"] == 0
    assert empty["avg_confidence"] is None

    overview = client.get("/stats").json()
    assert overview["total_utterances"] == 4
    assert [guild["guild_id"] for guild in overview["guilds"]] == [1, 2]


def test_live_stats(client):
    stats_collector.clear_cache()
    stats_collector.record_utterance(77, "failed")

    live = client.get("/stats/live").json()
    assert live["77"]["failed"] == 1
    stats_collector.clear_cache()
