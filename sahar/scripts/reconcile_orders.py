# sahar/scripts/reconcile_orders.py
# Run from the project root:  python -m sahar.scripts.reconcile_orders [--hours 24]
import argparse
import sys

from sahar.backend import BackendError
from sahar.checkout import reconcile_drafts
from sahar.config import CONFIG
from sahar.db import backend, create_db_and_tables


def main(argv=None):
    ap = argparse.ArgumentParser(description="Repair checkouts left half way (order without items).")
    ap.add_argument("--hours", type=int, default=CONFIG.pos.draft_expiry_hours,
                    help="drafts older than this with no order are marked abandoned")
    args = ap.parse_args(argv)

    CONFIG.pos.draft_expiry_hours = args.hours
    create_db_and_tables()
    try:
        report = reconcile_drafts(backend, CONFIG.pos)
    except BackendError as e:
        print("[ERR] Reconcile failed:", e)
        sys.exit(2)

    for oid in report.repaired:
        print(f"[FIX] Order #{oid}: items restored from draft")
    for key in report.abandoned:
        print(f"[SKIP] Draft {key}: no order, abandoned")
    for err in report.errors:
        print("[ERR]", err)
    print(f"[OK] completed={len(report.completed)} repaired={len(report.repaired)} "
          f"abandoned={len(report.abandoned)} errors={len(report.errors)}")
    return 1 if report.errors else 0


if __name__ == "__main__":
    sys.exit(main())
