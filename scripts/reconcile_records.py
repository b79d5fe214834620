#!/usr/bin/env python3
"""
Audit and repair stored user records.

For every record this reports:
- free slots below the highest occupied one (gaps, filled by later submissions)
- more occupied slots than the tier allows (left in place, never deleted)
- an unknown subscription tier
- counter drift: Active_webpage not matching the occupied slots, lifetime
  totals below the number of stored resumes

Counter drift is fixed with a versioned save; a record modified concurrently
is skipped and reported.

Usage:
    python scripts/reconcile_records.py [--dry-run] [--data-dir DATA_DIR] [--tier-capacities 1:3,2:10,3:50]
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from config_manager import get_quota_config, get_store_config, parse_tier_capacities
from app.exceptions import Conflict, InvalidTier
from app.quota import SlotQuotaManager, create_quota_module
from app.record_store import JsonFileRecordStore, RecordStore, StoredDocument
from app.resume_slots import UserRecord


def _fix_counters(record: UserRecord) -> list:
    """Apply counter corrections in place, returning a description of each."""
    fixes = []
    occupied = record.occupied_count
    if record.active_webpage_count != occupied:
        fixes.append(f"Active_webpage {record.active_webpage_count} -> {occupied}")
        record.reconcile_counters()
    if record.total_resumes_parsed < occupied:
        fixes.append(f"total_resumes_parsed {record.total_resumes_parsed} -> {occupied}")
        record.total_resumes_parsed = occupied
    if record.total_webpages_created < occupied:
        fixes.append(f"total_webpages_created {record.total_webpages_created} -> {occupied}")
        record.total_webpages_created = occupied
    return fixes


def reconcile_records(store: RecordStore, quota_manager: SlotQuotaManager, dry_run: bool = False) -> dict:
    """
    Audit every record in ``store`` and fix counter drift.

    Args:
        store: Record store to scan
        quota_manager: Tier capacity policy used for the over-capacity check
        dry_run: If True, only report what would be fixed

    Returns:
        Result dict with per-category lists of emails and the error messages
    """
    result = {
        "scanned": 0,
        "gaps": {},
        "over_capacity": {},
        "unknown_tier": [],
        "fixed": {},
        "skipped": [],
        "errors": []
    }

    for email in store.iter_emails():
        document = store.find(email)
        if document is None:
            continue
        result["scanned"] += 1

        try:
            record = UserRecord.from_document(document.fields, version=document.version)
        except (KeyError, ValueError) as e:
            result["errors"].append(f"{email}: unreadable record ({e})")
            print(f"   ❌ {email}: unreadable record ({e})")
            continue

        occupied = record.occupied_slots()
        if occupied:
            gaps = [slot for slot in range(1, occupied[-1]) if slot not in occupied]
            if gaps:
                result["gaps"][email] = gaps
                print(f"   ℹ️  {email}: free slots below resume{occupied[-1]}: {gaps}")

        try:
            capacity = quota_manager.capacity(record.subscription_tier)
        except InvalidTier:
            result["unknown_tier"].append(email)
            print(f"   ⚠️  {email}: unknown subscription tier {record.subscription_tier!r}")
            capacity = None

        if capacity is not None and len(occupied) > capacity:
            result["over_capacity"][email] = {"occupied": len(occupied), "capacity": capacity}
            print(f"   ⚠️  {email}: {len(occupied)} resumes stored, tier {record.subscription_tier} allows {capacity}")

        fixes = _fix_counters(record)
        if not fixes:
            continue

        if dry_run:
            result["fixed"][email] = fixes
            print(f"   🔍 {email}: would fix {', '.join(fixes)}")
            continue

        try:
            store.save(StoredDocument(email=email, fields=record.to_document(), version=record.version))
        except Conflict:
            result["skipped"].append(email)
            print(f"   ⏭️  Skipping {email} (modified concurrently)")
            continue

        result["fixed"][email] = fixes
        print(f"   ✅ {email}: fixed {', '.join(fixes)}")

    return result


def main():
    store_config = get_store_config()

    parser = argparse.ArgumentParser(
        description="Audit stored resume records and fix counter drift"
    )
    parser.add_argument(
        "--dry-run", "-n",
        action="store_true",
        help="Show what would be done without making changes"
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path(__file__).parent.parent / store_config.data_dir,
        help=f"Path to the record directory (default: ./{store_config.data_dir})"
    )
    parser.add_argument(
        "--tier-capacities",
        type=parse_tier_capacities,
        default=None,
        help="Tier capacity table such as 1:3,2:10,3:50 (default: from configuration)"
    )

    args = parser.parse_args()

    if not args.data_dir.exists():
        print(f"❌ Record directory not found: {args.data_dir}")
        sys.exit(1)

    tier_capacities = args.tier_capacities or get_quota_config().tier_capacities
    quota_manager = create_quota_module(tier_capacities)["manager"]
    store = JsonFileRecordStore(args.data_dir, timeout_seconds=store_config.timeout_seconds)

    print("🚀 Record Reconciliation Tool")
    print("=" * 50)
    print(f"Data directory: {args.data_dir}")
    print(f"Tier capacities: {quota_manager.table.to_dict()}")
    print(f"Dry run: {args.dry_run}")
    print()

    try:
        result = reconcile_records(store, quota_manager, args.dry_run)
    finally:
        store.close()

    print()
    print("📊 Reconciliation Summary:")
    print(f"   - Records scanned: {result['scanned']}")
    print(f"   - Records with gaps: {len(result['gaps'])}")
    print(f"   - Records over capacity: {len(result['over_capacity'])}")
    print(f"   - Records with unknown tier: {len(result['unknown_tier'])}")
    print(f"   - Records {'to fix' if args.dry_run else 'fixed'}: {len(result['fixed'])}")
    print(f"   - Skipped (concurrent update): {len(result['skipped'])}")
    print(f"   - Errors: {len(result['errors'])}")

    if result["errors"]:
        print("\n❌ Errors encountered:")
        for error in result["errors"]:
            print(f"   - {error}")
        sys.exit(1)

    print("\n✅ Reconciliation complete!")


if __name__ == "__main__":
    main()
