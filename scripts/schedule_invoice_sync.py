"""Register the periodic invoice sync on Temporal.

Creates (or with --replace, recreates) a schedule that starts
InvoiceSyncWorkflow every INVOICE_SYNC_INTERVAL_MINUTES minutes.
"""

import argparse
import asyncio
import logging
import os
import sys
from datetime import timedelta
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from temporalio.client import (
    Schedule,
    ScheduleActionStartWorkflow,
    ScheduleAlreadyRunningError,
    ScheduleIntervalSpec,
    ScheduleSpec,
)

from temporalio.service import RPCError

from temporal_client import get_temporal_client
from workflows.invoice_sync_workflow import InvoiceSyncWorkflow, InvoiceSyncInput
from workflows.order_integration_workflow import TASK_QUEUE


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

SCHEDULE_ID = "invoice-sync"
DEFAULT_INTERVAL_MINUTES = 15


def build_schedule(interval_minutes: int) -> Schedule:
    return Schedule(
        action=ScheduleActionStartWorkflow(
            InvoiceSyncWorkflow.run,
            InvoiceSyncInput(),
            id=f"{SCHEDULE_ID}-run",
            task_queue=TASK_QUEUE,
        ),
        spec=ScheduleSpec(intervals=[ScheduleIntervalSpec(every=timedelta(minutes=interval_minutes))]),
    )


async def register_schedule(interval_minutes: int, replace: bool = False) -> None:
    client = await get_temporal_client()
    logger.info(f"Connected to Temporal: {client.namespace}")

    if replace:
        try:
            await client.get_schedule_handle(SCHEDULE_ID).delete()
            logger.info(f"Deleted existing schedule '{SCHEDULE_ID}'")
        except RPCError as e:
            logger.info(f"No schedule to delete ({e})")

    try:
        await client.create_schedule(SCHEDULE_ID, build_schedule(interval_minutes))
    except ScheduleAlreadyRunningError:
        logger.warning(f"Schedule '{SCHEDULE_ID}' already exists; use --replace to recreate it")
        return

    logger.info(f"Schedule '{SCHEDULE_ID}' created: invoice sync every {interval_minutes} minute(s)")


def main():
    """Entry point."""
    parser = argparse.ArgumentParser(description="Schedule the periodic invoice sync")
    parser.add_argument(
        "--interval",
        type=int,
        default=int(os.getenv("INVOICE_SYNC_INTERVAL_MINUTES", DEFAULT_INTERVAL_MINUTES)),
        help="Minutes between runs (default: INVOICE_SYNC_INTERVAL_MINUTES or 15)",
    )
    parser.add_argument("--replace", action="store_true", help="Recreate an existing schedule")
    args = parser.parse_args()

    try:
        asyncio.run(register_schedule(args.interval, replace=args.replace))
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
