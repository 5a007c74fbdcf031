"""
Stats Collector - VoiceScribe

Real-time per-guild transcription statistics.

Features:
- Counters per utterance outcome (transcribed, empty, skipped, failed)
- Running averages (audio duration, confidence, processing time)
- Thread-safe: fed by the transcription workers, read by !stats and the API

Usage:
    from voicescribe.stats_collector import StatsCollector

    collector = StatsCollector()
    collector.record_utterance(guild_id, "transcribed", duration_ms=1840, confidence=0.91)
    stats = collector.get_guild_stats(guild_id)
"""

import threading
from datetime import datetime
from typing import Dict, Any, Optional

from voicescribe.logger import get_logger

logger = get_logger("system", name=__name__)

OUTCOMES = ("transcribed", "empty", "skipped", "failed")


class StatsCollector:
    """In-memory statistics collector."""

    def __init__(self):
        self._stats_cache: Dict[int, Dict[str, Any]] = {}
        self._cache_lock = threading.Lock()

    def record_utterance(
        self,
        guild_id: int,
        outcome: str,
        duration_ms: int = 0,
        confidence: Optional[float] = None,
        processing_time: Optional[float] = None
    ):
        """
        Record a processed utterance.

        Args:
            guild_id: Guild id
            outcome: transcribed, empty, skipped or failed
            duration_ms: Audio length
            confidence: Recognizer confidence (transcribed only)
            processing_time: Recognizer time in seconds
        """
        if outcome not in OUTCOMES:
            raise ValueError(f"Unknown outcome: {outcome}")

        with self._cache_lock:
            if guild_id not in self._stats_cache:
                self._stats_cache[guild_id] = self._init_stats()
                self._stats_cache[guild_id]["started_at"] = datetime.now()

            stats = self._stats_cache[guild_id]
            stats["utterances"] += 1
            stats[outcome] += 1
            stats["total_audio_ms"] += duration_ms
            stats["last_update"] = datetime.now()

            if outcome == "transcribed" and confidence is not None:
                count = stats["transcribed"]
                stats["avg_confidence"] = round(
                    ((stats["avg_confidence"] * (count - 1)) + confidence) / count, 3
                )

            if processing_time is not None:
                stats["_timed"] += 1
                timed = stats["_timed"]
                stats["avg_processing_time"] = round(
                    ((stats["avg_processing_time"] * (timed - 1)) + processing_time) / timed, 3
                )

            logger.debug(f"Recorded utterance: guild {guild_id}, outcome {outcome}, "
                         f"total={stats['utterances']}")

    def get_guild_stats(self, guild_id: int) -> Dict[str, Any]:
        """
        Statistics of a guild (zeros if nothing was recorded).
        """
        with self._cache_lock:
            stats = self._stats_cache.get(guild_id) or self._init_stats()
            return {key: value for key, value in stats.items() if not key.startswith("_")}

    def get_all_stats(self) -> Dict[int, Dict[str, Any]]:
        with self._cache_lock:
            guild_ids = list(self._stats_cache)
        return {guild_id: self.get_guild_stats(guild_id) for guild_id in guild_ids}

    def _init_stats(self) -> Dict[str, Any]:
        return {
            "utterances": 0,
            "transcribed": 0,
            "empty": 0,
            "skipped": 0,
            "failed": 0,
            "total_audio_ms": 0,
            "avg_confidence": 0.0,
            "avg_processing_time": 0.0,
            "_timed": 0,
            "started_at": None,
            "last_update": None
        }

    def clear_cache(self, guild_id: Optional[int] = None):
        """
        Reset statistics.

        Args:
            guild_id: One guild, or None for all
        """
        with self._cache_lock:
            if guild_id:
                self._stats_cache.pop(guild_id, None)
            else:
                self._stats_cache.clear()

        logger.info(f"Stats cache cleared{f' for guild {guild_id}' if guild_id else ''}")


# Shared by the bot and the API when they run in the same process
stats_collector = StatsCollector()
