#!/usr/bin/env python3
"""
Issue login credentials to every student or staff member who has none.

Safe to run from cron or by hand while administrators are importing: a
credential created concurrently by someone else is counted as skipped.

Usage:
    python scripts/fill_missing_credentials.py --school DPS001
    python scripts/fill_missing_credentials.py --all --kind staff
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add the project root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.database import async_session_factory, engine
from app.exceptions import RollbookException
from app.schemas.provisioning import EntityKind
from app.services.provisioning_service import ProvisioningService
from app.services.provisioning_store import SqlAlchemyProvisioningStore


async def fill_missing_credentials(school: str | None, kinds: list[EntityKind]) -> bool:
    """Fill credentials for one school, or for every active school when school is None."""
    store = SqlAlchemyProvisioningStore(async_session_factory)
    service = ProvisioningService(store)

    if school:
        tenants = [await service.resolve_tenant(school)]
    else:
        tenants = await store.list_tenants()

    ok = True
    for tenant in tenants:
        for kind in kinds:
            result = await service.run_fill_missing_credentials(tenant, kind)
            print(
                f"{tenant.code:<12} {kind.value:<9} total={result.total} processed={result.processed} "
                f"created={result.created} skipped={result.skipped} failed={result.failed}"
            )
            for error in result.errors:
                print(f"    {error.natural_id}: {error.message}")
            ok = ok and result.failed == 0
    return ok


async def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Issue credentials to people who have none")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--school", "-s", help="School code")
    target.add_argument("--all", action="store_true", help="Every active school")
    parser.add_argument(
        "--kind",
        "-k",
        choices=[kind.value for kind in EntityKind],
        help="Only this kind (default: both)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    kinds = [EntityKind(args.kind)] if args.kind else list(EntityKind)

    try:
        success = await fill_missing_credentials(args.school, kinds)
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\n\nAborted by user.")
        sys.exit(1)
    except RollbookException as e:
        print(f"\nError: {e.message}")
        sys.exit(1)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
