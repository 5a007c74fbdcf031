#!/usr/bin/env python3
"""
Setup Database - VoiceScribe

Creates the transcript store.

Usage:
    python setup_database.py
    python setup_database.py --reset (⚠️ deletes every stored utterance)
"""

import argparse
import logging

from sqlalchemy import func

from voicescribe.config import config
from voicescribe.database import Base, SessionLocal, engine, init_database, test_connection
from voicescribe.models import Utterance, UtteranceStatus

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def drop_tables():
    """Drop every table (DESTRUCTIVE)."""
    logger.warning("⚠️ Dropping all tables...")
    Base.metadata.drop_all(bind=engine)
    logger.info("✅ Tables dropped")


def show_stats():
    db = SessionLocal()
    try:
        total = db.query(func.count(Utterance.id)).scalar()
        logger.info(f"Utterances stored: {total}")
        for status in UtteranceStatus:
            count = db.query(func.count(Utterance.id)).filter(Utterance.status == status).scalar()
            logger.info(f"  {status.value:<12} {count}")
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Initialise the VoiceScribe database")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="⚠️ Drop and recreate every table (DESTRUCTIVE)"
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Do not ask for confirmation with --reset"
    )

    args = parser.parse_args()

    logger.info("🚀 DATABASE SETUP")
    logger.info("=" * 60)
    logger.info(f"Database URL: {config.DATABASE_URL}")
    logger.info("=" * 60)

    logger.info("1️⃣ Connection test...")
    if not test_connection():
        logger.error("❌ Cannot connect to the database")
        return 1

    if args.reset:
        logger.info("⚠️ RESET MODE")
        if not args.yes:
            confirm = input("Delete ALL stored utterances? (type 'RESET'): ")
            if confirm != "RESET":
                logger.info("❌ Cancelled")
                return 1

        logger.info("2️⃣ Dropping tables...")
        drop_tables()

    logger.info("3️⃣ Creating tables...")
    if not init_database():
        return 1

    logger.info("4️⃣ Final stats")
    show_stats()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
