#!/usr/bin/env python3
"""
Threshold Enforcement Script
Expires overdue escalations and applies due salary deductions.

Usage:
    python -m vitalvida.scripts.process_thresholds                     # both jobs
    python -m vitalvida.scripts.process_thresholds --timeout-rejections
    python -m vitalvida.scripts.process_thresholds --overdue-deductions
    python -m vitalvida.scripts.process_thresholds --stats
    python -m vitalvida.scripts.process_thresholds --urgent
"""

import argparse
import logging
import sys
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from vitalvida.db.session import session_scope
from vitalvida.services.deductions import SalaryDeductionService
from vitalvida.services.escalation import EscalationService

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

URGENT_PRIORITIES = ("critical", "high")
URGENT_WINDOW_HOURS = 6


def process_timeout_rejections(db: Session) -> int:
    logger.info("Processing expired escalations...")
    count = EscalationService(db).process_expired()
    if count:
        logger.warning(f"Expired {count} escalation(s)")
    else:
        logger.info("No expired escalations to process")
    return count


def process_overdue_deductions(db: Session) -> int:
    logger.info("Processing due salary deductions...")
    results = SalaryDeductionService(db).process_due()
    if results["failed"]:
        logger.warning(f"{len(results['failed'])} deduction(s) failed")
    logger.info(
        f"Processed {results['total_processed']} deduction(s), total {results['total_amount']:,.2f}"
    )
    return results["total_processed"]


def show_statistics(db: Session) -> None:
    stats = SalaryDeductionService(db).statistics()
    pending = EscalationService(db).list_pending()

    logger.info("=" * 60)
    logger.info("THRESHOLD ENFORCEMENT STATISTICS")
    logger.info("=" * 60)
    logger.info(f"Pending escalations: {len(pending)}")
    logger.info(f"Salary deductions: {stats['total_deductions']}")
    for status, values in stats["by_status"].items():
        logger.info(f"  {status}: {values['count']} ({values['amount']:,.2f})")
    logger.info(f"Total amount: {stats['total_amount']:,.2f}")
    logger.info(
        f"Upcoming (30 days): {stats['upcoming']['count']} ({stats['upcoming']['amount']:,.2f})"
    )
    logger.info(f"Processing rate: {stats['processing_rate']}%")


def show_urgent(db: Session) -> int:
    cutoff = datetime.utcnow() + timedelta(hours=URGENT_WINDOW_HOURS)
    urgent = [
        e for e in EscalationService(db).list_pending()
        if e.priority in URGENT_PRIORITIES or e.expires_at <= cutoff
    ]

    logger.info(f"{len(urgent)} escalation(s) need attention")
    for escalation in urgent:
        waiting_on = [r for r in escalation.approval_required if r not in (escalation.decisions or {})]
        logger.info(
            f"  #{escalation.id} {escalation.escalation_type} [{escalation.priority}] "
            f"expires {escalation.expires_at:%Y-%m-%d %H:%M}, waiting on {', '.join(waiting_on)}"
        )
    return len(urgent)


def main(argv: Optional[List[str]] = None) -> None:
    """Main function to run threshold enforcement."""
    parser = argparse.ArgumentParser(description="Process threshold enforcement tasks")
    parser.add_argument(
        "--timeout-rejections",
        action="store_true",
        help="Expire escalations past their deadline",
    )
    parser.add_argument(
        "--overdue-deductions",
        action="store_true",
        help="Apply salary deductions that have fallen due",
    )
    parser.add_argument("--stats", action="store_true", help="Show enforcement statistics")
    parser.add_argument("--urgent", action="store_true", help="Show escalations needing attention")

    args = parser.parse_args(argv)

    try:
        with session_scope() as db:
            if args.stats:
                show_statistics(db)
                return
            if args.urgent:
                show_urgent(db)
                return

            run_all = not (args.timeout_rejections or args.overdue_deductions)
            if args.timeout_rejections or run_all:
                process_timeout_rejections(db)
            if args.overdue_deductions or run_all:
                process_overdue_deductions(db)

    except Exception as e:
        logger.error(f"Threshold enforcement failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
