# portfolio_engine/cli/__main__.py
from __future__ import annotations

import argparse
from datetime import date

from ..db import SessionLocal
from ..logging_config import configure_logging
from ..services import financial_reports, payment_ledger, tenancy_lifecycle
from ..workers import report_worker
from .seed_demo import seed_demo


def _with_session(fn, **kwargs):
    db = SessionLocal()
    try:
        return fn(db, **kwargs)
    finally:
        db.close()


def main() -> None:
    p = argparse.ArgumentParser(prog="portfolio_engine")
    sub = p.add_subparsers(dest="cmd", required=True)

    seed = sub.add_parser("seed-demo")
    seed.add_argument("--email", default="demo@landlord.local")
    seed.add_argument("--name", default="Demo Landlord")
    seed.add_argument("--no-sample-tenancy", action="store_true")

    sweep = sub.add_parser("sweep-reports")
    sweep.add_argument("--timeout-seconds", type=int, default=None)

    sub.add_parser("drain-reports")

    expire = sub.add_parser("expire-tenancies")
    expire.add_argument("--today", type=date.fromisoformat, default=None)

    overdue = sub.add_parser("mark-overdue")
    overdue.add_argument("--today", type=date.fromisoformat, default=None)

    args = p.parse_args()
    configure_logging()

    if args.cmd == "seed-demo":
        out = seed_demo(
            email=args.email,
            display_name=args.name,
            create_sample_tenancy=(not args.no_sample_tenancy),
        )
        print({"ok": True, "landlord_id": out.landlord_id, "property_id": out.property_id, "tenancy_id": out.tenancy_id})
    elif args.cmd == "sweep-reports":
        print(_with_session(financial_reports.sweep_stuck_reports, timeout_seconds=args.timeout_seconds))
    elif args.cmd == "drain-reports":
        report_worker.main()
    elif args.cmd == "expire-tenancies":
        print({"expired": _with_session(tenancy_lifecycle.expire_due_tenancies, today=args.today)})
    elif args.cmd == "mark-overdue":
        print({"overdue": _with_session(payment_ledger.mark_overdue_payments, today=args.today)})


if __name__ == "__main__":
    main()
