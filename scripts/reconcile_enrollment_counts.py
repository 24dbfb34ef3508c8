#!/usr/bin/env python3
"""
Recompute every course's enrollment_count from its non-cancelled enrollments.

Run after an incident or on a schedule; safe to repeat. Reads
LEARNING_DATABASE_URL from .env like the service does.

Usage:
    cd coursehub-backend
    python -m scripts.reconcile_enrollment_counts [--dry-run]
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add backend root to path so imports resolve
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "services" / "learning"))
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "shared"))

from app.config import Settings
from app.lms.service import reconcile_enrollment_counts
from shared.database import dispose_session_factory, get_async_session_factory

logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s: %(message)s")


async def main(dry_run: bool) -> None:
    settings = Settings()
    session_factory = get_async_session_factory(settings.learning_database_url)

    async with session_factory() as session:
        corrected = await reconcile_enrollment_counts(session)
        if dry_run:
            await session.rollback()
        else:
            await session.commit()

    for course_id, stored, actual in corrected:
        print(f"{course_id}: {stored} -> {actual}")
    verb = "Would correct" if dry_run else "Corrected"
    print(f"{verb} {len(corrected)} course(s).")

    await dispose_session_factory(session_factory)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--dry-run", action="store_true", help="Report drift without writing.")
    asyncio.run(main(parser.parse_args().dry_run))
