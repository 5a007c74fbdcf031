"""
Recording Cleanup Service
=========================

Retention of dumped utterance files so the recordings directory does not
grow forever.

Features:
1. Delete utterance WAVs older than N days (AUDIO_RETENTION_DAYS)
2. Disk usage of the recordings volume
3. Stats per recordings directory

Usage:
    cleanup = RecordingCleanup(config.RECORDINGS_DIR)
    cleanup.cleanup_old_recordings(days=7)
"""

import shutil
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Union

from voicescribe.logger import get_logger

logger = get_logger("system", name=__name__)

GB = 1024 ** 3


class RecordingCleanup:
    """Retention of dumped utterances."""

    def __init__(self, recordings_dir: Union[str, Path]):
        self.recordings_dir = Path(recordings_dir)
        if not self.recordings_dir.exists():
            logger.warning(f"Recordings directory does not exist: {recordings_dir}")

    def _recordings(self):
        return list(self.recordings_dir.rglob("*.wav"))

    def get_disk_usage(self) -> Dict[str, float]:
        """
        Disk usage of the volume holding the recordings.

        Returns:
            Dict with total_gb, used_gb, free_gb, percent_used
        """
        try:
            stats = shutil.disk_usage(str(self.recordings_dir))
        except OSError as e:
            logger.error(f"Error getting disk usage: {e}")
            return {'total_gb': 0.0, 'used_gb': 0.0, 'free_gb': 0.0, 'percent_used': 0.0}

        return {
            'total_gb': stats.total / GB,
            'used_gb': stats.used / GB,
            'free_gb': stats.free / GB,
            'percent_used': (stats.used / stats.total) * 100 if stats.total else 0.0
        }

    def get_recordings_stats(self) -> Dict[str, Any]:
        """
        Returns:
            Dict with count, total_size_gb, oldest_date, newest_date
        """
        if not self.recordings_dir.exists():
            return {'count': 0, 'total_size_gb': 0.0, 'oldest_date': None, 'newest_date': None}

        recordings = [(f, f.stat()) for f in self._recordings()]
        if not recordings:
            return {'count': 0, 'total_size_gb': 0.0, 'oldest_date': None, 'newest_date': None}

        mtimes = [st.st_mtime for _, st in recordings]
        return {
            'count': len(recordings),
            'total_size_gb': sum(st.st_size for _, st in recordings) / GB,
            'oldest_date': datetime.fromtimestamp(min(mtimes)),
            'newest_date': datetime.fromtimestamp(max(mtimes))
        }

    def cleanup_old_recordings(self, days: int = 7, dry_run: bool = False,
                               now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Delete recordings older than N days.

        Args:
            days: Retention in days
            dry_run: Only report what would be deleted
            now: Reference time (default: now)

        Returns:
            Dict with deleted_count, freed_gb, errors
        """
        if not self.recordings_dir.exists():
            logger.warning(f"Recordings directory does not exist: {self.recordings_dir}")
            return {'deleted_count': 0, 'freed_gb': 0.0, 'errors': []}

        cutoff = (now or datetime.now()) - timedelta(days=days)
        cutoff_timestamp = cutoff.timestamp()

        logger.info(f"🧹 Cleanup: recordings older than {days} days (before {cutoff:%Y-%m-%d %H:%M:%S})")
        if dry_run:
            logger.info("🔍 DRY RUN mode - no files will be deleted")

        deleted_count = 0
        freed_bytes = 0
        errors = []

        for recording in self._recordings():
            try:
                stat = recording.stat()
                if stat.st_mtime >= cutoff_timestamp:
                    continue

                if dry_run:
                    logger.debug(f"[DRY RUN] Would delete: {recording.name}")
                else:
                    logger.debug(f"Deleting: {recording.name}")
                    recording.unlink()

                deleted_count += 1
                freed_bytes += stat.st_size

            except OSError as e:
                error_msg = f"Error deleting {recording.name}: {e}"
                logger.error(error_msg)
                errors.append(error_msg)

        if not dry_run:
            self._remove_empty_dirs()

        freed_gb = freed_bytes / GB
        logger.info(
            f"✅ Cleanup complete: {deleted_count} files {'would be ' if dry_run else ''}deleted, "
            f"{freed_gb:.3f} GB freed"
        )

        return {'deleted_count': deleted_count, 'freed_gb': freed_gb, 'errors': errors}

    def _remove_empty_dirs(self):
        # Guild sub-directories left empty
        for directory in sorted(self.recordings_dir.iterdir()):
            if directory.is_dir() and not any(directory.iterdir()):
                directory.rmdir()
