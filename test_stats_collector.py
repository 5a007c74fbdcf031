"""
Test Stats Collector
====================
"""

import pytest

from voicescribe.stats_collector import StatsCollector


def test_counters_and_averages():
    collector = StatsCollector()
    collector.record_utterance(1, "transcribed", duration_ms=1000, confidence=0.8, processing_time=1.0)
    collector.record_utterance(1, "transcribed", duration_ms=500, confidence=0.6)
    collector.record_utterance(1, "empty", duration_ms=400, processing_time=2.0)
    collector.record_utterance(1, "skipped", duration_ms=100)

    stats = collector.get_guild_stats(1)
    assert stats["utterances"] == 4
    assert stats["transcribed"] == 2
    assert stats["empty"] == 1
    assert stats["skipped"] == 1
    assert stats["failed"] == 0
    assert stats["total_audio_ms"] == 2000
    assert stats["avg_confidence"] == 0.7
    assert stats["avg_processing_time"] == 1.5
    assert stats["started_at"] is not None
    assert "_timed" not in stats


def test_guilds_are_separate():
    collector = StatsCollector()
    collector.record_utterance(1, "failed")
    collector.record_utterance(2, "transcribed", confidence=1.0)

    assert collector.get_guild_stats(1)["failed"] == 1
    assert collector.get_guild_stats(2)["failed"] == 0
    assert set(collector.get_all_stats()) == {1, 2}


def test_unknown_guild_has_zeros():
    stats = StatsCollector().get_guild_stats(99)
    assert stats["utterances"] == 0
    assert stats["avg_confidence"] == 0.0
    assert stats["started_at"] is None


def test_unknown_outcome():
    with pytest.raises(ValueError):
        StatsCollector().record_utterance(1, "pending")


def test_clear_cache():
    collector = StatsCollector()
    collector.record_utterance(1, "failed")
    collector.record_utterance(2, "failed")

    collector.clear_cache(1)
    assert set(collector.get_all_stats()) == {2}

    collector.clear_cache()
    assert collector.get_all_stats() == {}
