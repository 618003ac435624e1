"""
Sync badge scans, employee names and shift assignments from the remote plants

Usage:
    python scripts/sync_plants.py [--plant-id ID] [--days N] [--dry-run]
"""
import sys
import os
import argparse
from datetime import timedelta

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import httpx

from plantclock.config import settings
from plantclock.db import SessionLocal
from plantclock.logging import setup_logging
from plantclock.main import init_db
from plantclock.models.models import Plant
from plantclock.services.plant_sync import sync_all_plants, sync_plant
from plantclock.services.time_rules import today_local


def main() -> int:
    parser = argparse.ArgumentParser(description="Sync attendance data from remote plants")
    parser.add_argument("--plant-id", type=int, help="Only sync this plant")
    parser.add_argument("--days", type=int, default=settings.plant_sync_days, help="Days back to sync, today included")
    parser.add_argument("--dry-run", action="store_true", help="Fetch and count without saving")
    args = parser.parse_args()

    if args.days < 1:
        parser.error("--days must be at least 1")

    setup_logging()
    init_db()
    end = today_local()
    start = end - timedelta(days=args.days - 1)

    db = SessionLocal()
    try:
        if args.plant_id is not None:
            plant = db.query(Plant).filter(Plant.id == args.plant_id).first()
            if not plant:
                print(f"Plant {args.plant_id} not found")
                return 1
            try:
                results = [sync_plant(db, plant, start, end, dry_run=args.dry_run)]
            except httpx.HTTPError as e:
                print(f"[{plant.name}] sync failed: {e}")
                return 1
        else:
            results = sync_all_plants(db, start, end, dry_run=args.dry_run).results

        prefix = "[dry-run] " if args.dry_run else ""
        for r in results:
            if r.success:
                print(
                    f"{prefix}[{r.plant_name}] fetched={r.entries_fetched} inserted={r.entries_inserted} "
                    f"names={r.employees_updated} shifts={r.assignments_updated}"
                )
            else:
                print(f"{prefix}[{r.plant_name}] FAILED: {r.error}")
        return 0 if all(r.success for r in results) else 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
