#!/usr/bin/env python3
"""
Refresh every Oceanengine credential that expires soon.

Runs the same sweep as the ``credentials.refresh_due`` Celery task, in-process.

Usage:
    python scripts/refresh_due.py
    python scripts/refresh_due.py --lookahead-hours 6
    python scripts/refresh_due.py --json
"""
import argparse
import json
import sys

from qctoken.core.config import settings
from qctoken.core.exceptions import PersistenceError
from qctoken.core.logger import init_logging
from qctoken.workers.tasks import run_refresh_sweep


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Refresh credentials expiring within the lookahead window")
    parser.add_argument(
        "--lookahead-hours",
        type=float,
        default=settings.TOKEN_SWEEP_LOOKAHEAD_HOURS,
        help="Refresh credentials expiring within this many hours (default: %(default)s)",
    )
    parser.add_argument("--json", action="store_true", help="Print the full report as JSON")
    args = parser.parse_args(argv)

    init_logging()
    try:
        report = run_refresh_sweep(args.lookahead_hours)
    except PersistenceError as e:
        print(f"❌ Sweep aborted: {e.message}")
        return 2

    if args.json:
        print(json.dumps(report, indent=2))
    else:
        print(f"Candidates: {report['total']}  refreshed/valid: {report['succeeded']}  failed: {report['failed']}")
        for item in report["results"]:
            if item["success"]:
                print(f"  ✅ {item['id']}: {item['status']}")
            else:
                print(f"  ❌ {item['id']}: {item['error']} ({item.get('state')})")
    return 1 if report["failed"] else 0


if __name__ == "__main__":
    sys.exit(main())
