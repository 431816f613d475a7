"""
Signup Summary Report
======================

Runs one aggregation over the signup (or WhatsApp) spreadsheet and writes
the JSON payload to data/processed/signup_summary_<view>_<period>.json.
Optionally stores the payload as a Supabase dashboard snapshot.

Usage:
    python scripts/signup_report.py --month-year 09-2025
    python scripts/signup_report.py --month-year 09-2025 --view whatsapp
    python scripts/signup_report.py --date 01-09-2025 --assignee Sowmya
    python scripts/signup_report.py --last-n 7 --snapshot
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

load_dotenv(PROJECT_ROOT / ".env")

from integrations.google_sheets import source_from_env
from scripts.analytics.periods import PeriodSpec, resolve_period
from scripts.analytics.pipeline import IdentitySources, aggregate
from scripts.lib.errors import ConfigError, HubError
from scripts.lib.logger import setup_logger
from scripts.lib.utils import atomic_write_json

logger = setup_logger("signup_report")

PROCESSED_DIR = PROJECT_ROOT / "data" / "processed"

VIEWS = {
    "freesignup": ("SIGNUP_SPREADSHEET_ID", "all"),
    "whatsapp": ("WHATSAPP_SPREADSHEET_ID", None),
}


def build_sources(view: str, spreadsheet_id: Optional[str] = None) -> IdentitySources:
    setting, _ = VIEWS[view]
    signups = source_from_env(setting, spreadsheet_id)
    if signups is None:
        raise ConfigError(f"{setting} not set and no --spreadsheet-id given", setting=setting)
    return IdentitySources(
        signups=signups,
        conversions=source_from_env("CONVERSION_SPREADSHEET_ID"),
        demo_status=(
            source_from_env("DEMO_STATUS_SPREADSHEET_ID") if view == "whatsapp" else None
        ),
    )


def output_path(view: str, period: PeriodSpec, output_dir: Path = PROCESSED_DIR) -> Path:
    label = period.label.replace(":", "_")
    return Path(output_dir) / f"signup_summary_{view}_{label}.json"


async def run_report(
    view: str,
    period: PeriodSpec,
    sources: IdentitySources,
    assignee: Optional[str] = None,
) -> Dict[str, Any]:
    _, demo_mode = VIEWS[view]
    return await aggregate(period, sources, assignee=assignee, demo_mode=demo_mode)


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Aggregate signup sheets into a JSON summary")
    period = parser.add_mutually_exclusive_group(required=True)
    period.add_argument("--date", type=str, help="Single sheet, DD-MM-YYYY")
    period.add_argument("--month-year", type=str, help="MM-YYYY or YYYY-MM")
    period.add_argument("--last-n", type=int, help="N most recent sheets")
    parser.add_argument(
        "--view", choices=sorted(VIEWS), default="freesignup",
        help="Dashboard view. Default: freesignup",
    )
    parser.add_argument("--assignee", type=str, default=None, help="Restrict to one assignee")
    parser.add_argument("--spreadsheet-id", type=str, default=None, help="Override the sheet ID")
    parser.add_argument(
        "--output-dir", type=str, default=str(PROCESSED_DIR),
        help=f"Output directory. Default: {PROCESSED_DIR}",
    )
    parser.add_argument(
        "--snapshot", action="store_true",
        help="Also store the payload as a Supabase dashboard snapshot",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    period = resolve_period(date_title=args.date, month_year=args.month_year, last_n=args.last_n)
    sources = build_sources(args.view, args.spreadsheet_id)

    logger.info("Signup report starting")
    logger.info("  View: %s", args.view)
    logger.info("  Period: %s", period.description)
    logger.info("  Assignee: %s", args.assignee or "All")

    payload = asyncio.run(run_report(args.view, period, sources, args.assignee))

    path = output_path(args.view, period, Path(args.output_dir))
    if not atomic_write_json(payload, path):
        logger.error("Could not write %s", path)
        return 1

    if args.snapshot:
        from scripts.lib.supabase_client import upsert_snapshot
        upsert_snapshot(f"signup_summary_{args.view}", payload)

    summary = payload["summary"]
    logger.info("=== Signup Report Complete ===")
    logger.info("  Contacts: %d", summary["total_contacts"])
    logger.info("  Sales: %d (%d%%)", summary["sales_count"], summary["conversion_rate"])
    logger.info("  Complete: %s", payload["complete"])
    logger.info("  JSON: %s", path)
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except HubError as exc:
        logger.error("Signup report failed: %s", exc)
        sys.exit(2)
    except Exception as exc:
        logger.error("Signup report failed: %s", exc, exc_info=True)
        sys.exit(1)
