#!/usr/bin/env python3
"""
Reconcile Obligations Script.

Finds payment records that share a tenant, property and month and removes
all but one of them: the paid record if there is one, otherwise the most
recently created.

Run with --dry-run first to see what would be removed.

Usage:
    # Dry run (shows what would be done)
    python -m scripts.reconcile_obligations --dry-run

    # Actually delete duplicates
    python -m scripts.reconcile_obligations

    # Smaller delete batches
    python -m scripts.reconcile_obligations --batch-size 25
"""
import asyncio
import argparse

from sqlalchemy.ext.asyncio import AsyncSession

from tenantpay.audit import AuditService
from tenantpay.config import settings
from tenantpay.database import AsyncSessionLocal
from tenantpay.reconciliation.service import ReconciliationJob


async def reconcile_obligations(db: AsyncSession, dry_run: bool, batch_size: int):
    print("\n" + "=" * 60)
    print("RECONCILE OBLIGATIONS SCRIPT")
    print("=" * 60)

    if dry_run:
        print("\n[DRY RUN MODE - No changes will be made]\n")
    else:
        print("\n[LIVE MODE - Changes will be committed]\n")

    job = ReconciliationJob(
        db,
        audit=AuditService(db, source="script"),
        batch_size=batch_size,
    )
    result = await asyncio.wait_for(
        job.run(dry_run=dry_run),
        timeout=settings.RECONCILIATION_TIMEOUT_SECONDS,
    )

    print("Duplicate groups:")
    if not result.groups:
        print("  ✓ No duplicates found")
    for group in result.groups:
        tenant_id, property_id, period_month = group.key
        print(f"  {tenant_id} / {property_id} / {period_month.isoformat()}")
        print(f"    keep:   {group.keep_id}")
        print(f"    delete: {', '.join(group.delete_ids)}")

    # Summary
    print("\n" + "=" * 60)
    print("SUMMARY")
    print("=" * 60)
    print(f"\n  Groups with duplicates: {result.groups_with_duplicates}")

    if dry_run:
        print("\n[DRY RUN - No changes made]")
        print(f"  Would delete: {sum(len(g.delete_ids) for g in result.groups)}")
    else:
        print("\n[CHANGES COMMITTED]")
        print(f"  Deleted: {result.records_deleted}")
        print(f"  Groups still duplicated: {result.remaining_duplicate_groups}")
        for warning in result.warnings:
            print(f"  ⚠️  {warning}")

    print("\n" + "=" * 60)
    print("Done!")
    print("=" * 60 + "\n")


async def main():
    parser = argparse.ArgumentParser(
        description="Remove duplicate tenant payment records"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes"
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=settings.RECONCILIATION_BATCH_SIZE,
        help="Records deleted per committed batch"
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Skip the confirmation prompt"
    )

    args = parser.parse_args()

    if not args.dry_run and not args.yes:
        print("\n⚠️  WARNING: This will DELETE duplicate payment records!")
        confirm = input("Type 'yes' to continue: ")
        if confirm.lower() != 'yes':
            print("Aborted.")
            return

    async with AsyncSessionLocal() as db:
        await reconcile_obligations(db, dry_run=args.dry_run, batch_size=args.batch_size)


if __name__ == "__main__":
    asyncio.run(main())
