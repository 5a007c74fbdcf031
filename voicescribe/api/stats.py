"""
Stats API - VoiceScribe

Aggregates over stored utterances, plus the live counters of this process.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from voicescribe.database import get_db
from voicescribe.models import Utterance, UtteranceStatus
from voicescribe.stats_collector import stats_collector

router = APIRouter(prefix="/stats", tags=["statistics"])


def _guild_stats(db: Session, guild_id: int) -> Dict[str, Any]:
    status_counts = {status.value: 0 for status in UtteranceStatus}
    rows = (
        db.query(Utterance.status, func.count(Utterance.id))
        .filter(Utterance.guild_id == guild_id)
        .group_by(Utterance.status)
        .all()
    )
    for status, count in rows:
        status_counts[status.value] = count

    total_audio_ms, speakers = (
        db.query(
            func.coalesce(func.sum(Utterance.duration_ms), 0),
            func.count(func.distinct(Utterance.user_id))
        )
        .filter(Utterance.guild_id == guild_id)
        .one()
    )
    transcribed_confidence = (
        db.query(func.avg(Utterance.confidence))
        .filter(Utterance.guild_id == guild_id, Utterance.status == UtteranceStatus.TRANSCRIBED)
        .scalar()
    )

    return {
        "guild_id": guild_id,
        "utterances": sum(status_counts.values()),
        "by_status": status_counts,
        "speakers": speakers,
        "total_audio_ms": int(total_audio_ms),
        "avg_confidence": round(transcribed_confidence, 3) if transcribed_confidence is not None else None,
    }


@router.get("")
def get_stats(db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Stored statistics per guild."""
    guild_ids = [row[0] for row in db.query(Utterance.guild_id).distinct().all()]
    return {
        "guilds": [_guild_stats(db, guild_id) for guild_id in sorted(guild_ids)],
        "total_utterances": db.query(func.count(Utterance.id)).scalar(),
    }


@router.get("/live")
def get_live_stats() -> Dict[str, Any]:
    """In-memory counters of this process (bot and API in one process)."""
    return {str(guild_id): stats for guild_id, stats in stats_collector.get_all_stats().items()}


@router.get("/{guild_id}")
def get_guild_stats(guild_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    return _guild_stats(db, guild_id)
