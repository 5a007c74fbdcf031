#!/usr/bin/env python3
"""
Dumped utterances cleanup
=========================

Can be run:
1. Manually: python scripts/cleanup_recordings.py
2. From cron (daily): 0 3 * * * /path/to/venv/bin/python /path/to/scripts/cleanup_recordings.py

Options:
  --dry-run         Report without deleting
  --days N          Retention in days (default: AUDIO_RETENTION_DAYS)
  --no-cleanup      Only show statistics

Examples:
  python scripts/cleanup_recordings.py --dry-run
  python scripts/cleanup_recordings.py --days 14
"""

import sys
import argparse
import logging
from pathlib import Path

# Repository root on the path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from voicescribe.config import config
from voicescribe.services.recording_cleanup import RecordingCleanup

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)-8s | %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


def show_status(cleanup: RecordingCleanup):
    disk_usage = cleanup.get_disk_usage()
    logger.info(f"💾 Disk Usage: {disk_usage['used_gb']:.2f} GB / {disk_usage['total_gb']:.2f} GB "
                f"({disk_usage['percent_used']:.1f}%)")

    recordings_stats = cleanup.get_recordings_stats()
    logger.info(f"📁 Utterances: {recordings_stats['count']} files, {recordings_stats['total_size_gb']:.3f} GB")
    if recordings_stats['oldest_date']:
        logger.info(f"📅 Oldest: {recordings_stats['oldest_date']:%Y-%m-%d %H:%M:%S}")
        logger.info(f"📅 Newest: {recordings_stats['newest_date']:%Y-%m-%d %H:%M:%S}")


def main():
    parser = argparse.ArgumentParser(
        description='Delete old dumped utterances',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('--dry-run', action='store_true', help='Report without deleting')
    parser.add_argument(
        '--days',
        type=int,
        default=config.AUDIO_RETENTION_DAYS,
        help=f'Retention in days (default: {config.AUDIO_RETENTION_DAYS})'
    )
    parser.add_argument('--no-cleanup', action='store_true', help='Only show statistics')

    args = parser.parse_args()

    logger.info("=" * 70)
    logger.info(f"🧹 Utterance cleanup: {config.RECORDINGS_DIR}")
    logger.info("=" * 70)

    cleanup = RecordingCleanup(config.RECORDINGS_DIR)
    show_status(cleanup)

    if args.no_cleanup:
        return 0

    result = cleanup.cleanup_old_recordings(days=args.days, dry_run=args.dry_run)

    logger.info(f"{'Would delete' if args.dry_run else 'Deleted'}: {result['deleted_count']} files")
    logger.info(f"{'Would free' if args.dry_run else 'Freed'}: {result['freed_gb']:.3f} GB")
    if result['errors']:
        logger.warning(f"⚠️  Errors encountered: {len(result['errors'])}")
        for error in result['errors'][:5]:
            logger.error(f"  - {error}")

    if not args.dry_run:
        show_status(cleanup)

    return 1 if result['errors'] else 0


if __name__ == '__main__':
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        logger.info("⚠️  Interrupted by user")
        sys.exit(1)
