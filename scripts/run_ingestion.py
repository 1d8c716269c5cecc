#!/usr/bin/env python3
"""
Run one on-market ingestion pass.

Usage:
    DATABASE_URL=postgresql://... python3 scripts/run_ingestion.py --init-db --seed-sources
    python3 scripts/run_ingestion.py --seed-sources synergy_hvac murphy_business
    python3 scripts/run_ingestion.py --max-sources 5 --max-listings 10 --json
"""

import asyncio
import json
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), ".."))

from onmarket.archivist.database import close_db, get_session, init_db
from onmarket.archivist.storage import seed_sources
from onmarket.config.settings import settings
from onmarket.config.sources import get_source
from onmarket.harvester.orchestrator import run_ingestion, run_ingestion_cli


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Crawl due listing sources and promote qualifying deals")
    parser.add_argument("--init-db", action="store_true", help="Create tables before running")
    parser.add_argument(
        "--seed-sources",
        nargs="*",
        metavar="SLUG",
        help="Insert configured sources missing from the database (all, or only the given slugs)",
    )
    parser.add_argument("--max-sources", type=int, help="Sources considered this run")
    parser.add_argument("--max-listings", type=int, help="Listings processed per source")
    parser.add_argument("--json", action="store_true", help="Print the run summary as JSON")

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    async def main():
        try:
            if args.init_db:
                await init_db()
            if args.seed_sources is not None:
                configs = [get_source(slug) for slug in args.seed_sources] or None
                async with get_session() as session:
                    created = await seed_sources(session, configs)
                print(f"Seeded {created} sources")

            if args.json:
                result = await run_ingestion(max_sources=args.max_sources, max_listings=args.max_listings)
                print(json.dumps(result.to_summary(), indent=2))
            else:
                await run_ingestion_cli(max_sources=args.max_sources, max_listings=args.max_listings)
        finally:
            await close_db()

    asyncio.run(main())
