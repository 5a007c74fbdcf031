"""
API REST Package - VoiceScribe

FastAPI monitoring API.

Endpoints:
- /health : liveness + database check
- /utterances : stored utterances and transcripts
- /stats : aggregates per guild
"""

from .utterances import router as utterances_router
from .stats import router as stats_router

__all__ = ['utterances_router', 'stats_router']
