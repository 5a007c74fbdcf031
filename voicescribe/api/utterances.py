"""
Utterances API - VoiceScribe

Listing and lookup of stored utterances.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from voicescribe.config import config
from voicescribe.database import get_db
from voicescribe.models import Utterance, UtteranceStatus

router = APIRouter(prefix="/utterances", tags=["utterances"])


@router.get("")
def list_utterances(
    guild_id: Optional[int] = None,
    user_id: Optional[int] = None,
    status: Optional[UtteranceStatus] = None,
    limit: int = Query(50, ge=1, le=config.API_MAX_LIMIT),
    db: Session = Depends(get_db)
) -> List[Dict[str, Any]]:
    """
    Most recent utterances first.

    Args:
        guild_id: Only this guild
        user_id: Only this speaker
        status: Only this transcription status
        limit: Max rows
    """
    query = db.query(Utterance)
    if guild_id is not None:
        query = query.filter(Utterance.guild_id == guild_id)
    if user_id is not None:
        query = query.filter(Utterance.user_id == user_id)
    if status is not None:
        query = query.filter(Utterance.status == status)

    rows = query.order_by(Utterance.started_at.desc(), Utterance.id.desc()).limit(limit).all()
    return [row.to_dict() for row in rows]


@router.get("/{utterance_id}")
def get_utterance(utterance_id: int, db: Session = Depends(get_db)) -> Dict[str, Any]:
    utterance = db.get(Utterance, utterance_id)
    if utterance is None:
        raise HTTPException(status_code=404, detail=f"Utterance {utterance_id} not found")
    return utterance.to_dict()
