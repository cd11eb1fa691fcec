#!/usr/bin/env python
"""Check that every product's stored quantity matches a replay of its transaction log.

Exits non-zero when any product diverges. Safe to run against a live database;
it only reads.
"""
import argparse
import sys

from stockroom.db.session import SessionLocal
from stockroom.models.organization import Organization
from stockroom.services import ledger_service


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--organization", type=int, help="Only check this organization id")
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        q = db.query(Organization.id, Organization.name)
        if args.organization is not None:
            q = q.filter(Organization.id == args.organization)
        organizations = q.order_by(Organization.id).all()
        if not organizations:
            print("No organizations to check")
            return 1

        failures = 0
        for org_id, org_name in organizations:
            reports = ledger_service.reconcile_organization(db, org_id)
            bad = [r for r in reports if not r.is_consistent]
            failures += len(bad)
            print(f"{org_name} (id={org_id}): {len(reports)} products, {len(bad)} inconsistent")
            for r in bad:
                print(
                    f"  product {r.product_id}: stored {r.recorded_quantity}, replayed {r.replayed_quantity}, "
                    f"first divergent sequence {r.first_divergent_sequence}"
                )
        return 1 if failures else 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
