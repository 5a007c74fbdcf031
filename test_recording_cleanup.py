"""
Test Recording Cleanup
======================
"""

import os
from datetime import datetime, timedelta

from voicescribe.services.recording_cleanup import RecordingCleanup

NOW = datetime(2024, 6, 1, 12, 0, 0)


def make_recording(path, age_days):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\x00" * 1024)
    mtime = (NOW - timedelta(days=age_days)).timestamp()
    os.utime(path, (mtime, mtime))
    return path


def test_old_recordings_are_deleted(tmp_path):
    old = make_recording(tmp_path / "1" / "alice-1.wav", 10)
    recent = make_recording(tmp_path / "1" / "bob-2.wav", 2)
    lonely = make_recording(tmp_path / "2" / "carol-3.wav", 30)

    result = RecordingCleanup(tmp_path).cleanup_old_recordings(days=7, now=NOW)

    assert result["deleted_count"] == 2
    assert result["errors"] == []
    assert result["freed_gb"] > 0
    assert not old.exists()
    assert not lonely.exists()
    assert recent.exists()
    # Empty guild directory removed
    assert not (tmp_path / "2").exists()
    assert (tmp_path / "1").is_dir()


def test_dry_run_deletes_nothing(tmp_path):
    old = make_recording(tmp_path / "1" / "alice-1.wav", 10)

    result = RecordingCleanup(tmp_path).cleanup_old_recordings(days=7, dry_run=True, now=NOW)

    assert result["deleted_count"] == 1
    assert old.exists()


def test_missing_directory(tmp_path):
    cleanup = RecordingCleanup(tmp_path / "missing")
    assert cleanup.cleanup_old_recordings(days=7)["deleted_count"] == 0
    assert cleanup.get_recordings_stats()["count"] == 0


def test_recordings_stats(tmp_path):
    make_recording(tmp_path / "1" / "alice-1.wav", 10)
    make_recording(tmp_path / "1" / "bob-2.wav", 2)
    (tmp_path / "1" / "notes.txt").write_text("not a recording")

    stats = RecordingCleanup(tmp_path).get_recordings_stats()

    assert stats["count"] == 2
    assert stats["oldest_date"] < stats["newest_date"]
    assert RecordingCleanup(tmp_path).get_disk_usage()["total_gb"] > 0
