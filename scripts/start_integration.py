"""Start an order integration workflow on Temporal.

Connects to Temporal, starts OrderIntegrationWorkflow for one order and
prints the saga result with its step log.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from temporal_client import get_temporal_client
from workflows.order_integration_workflow import (
    OrderIntegrationWorkflow,
    OrderIntegrationInput,
    TASK_QUEUE,
)


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def start_integration_workflow(account: str, order_id: str, marketplace: str = "Mercado Livre") -> dict:
    """Start the workflow and wait for its result.

    The workflow id is derived from the account and order, so a second start
    while the first is still running is refused by Temporal.
    """
    workflow_id = f"order-{account.lower()}-{order_id}"

    try:
        client = await get_temporal_client()
        logger.info(f"Connected to Temporal: {client.namespace}")

        logger.info(f"Starting OrderIntegrationWorkflow on task queue '{TASK_QUEUE}'...")
        handle = await client.start_workflow(
            OrderIntegrationWorkflow.run,
            OrderIntegrationInput(account=account, order_id=order_id, marketplace=marketplace),
            task_queue=TASK_QUEUE,
            id=workflow_id,
        )
        logger.info(f"Workflow started: {handle.id}")

        result = await handle.result()
        logger.info("Workflow completed")
        return result

    except Exception as e:
        logger.error(f"Workflow failed: {e}", exc_info=True)
        raise


def main():
    """Entry point."""
    parser = argparse.ArgumentParser(description="Integrate one marketplace order into the ERP")
    parser.add_argument("account", help="Marketplace account (e.g. psa)")
    parser.add_argument("order_id", help="Marketplace order or pack id")
    parser.add_argument("--marketplace", default="Mercado Livre", help="Marketplace name")
    args = parser.parse_args()

    try:
        result = asyncio.run(start_integration_workflow(args.account, args.order_id, args.marketplace))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print("\n=== STEP LOG ===")
    for entry in result.get("logs", []):
        print(f"  [{entry['level']:<7}] {entry['step']:<22} {entry['message']}")
    print("\n=== RESULT ===")
    print(f"  success: {result['success_count']}  errors: {result['error_count']}")
    for item in result.get("results", []):
        print(f"  {item}")
    print("==============\n")
    return 0 if result["success_count"] else 1


if __name__ == "__main__":
    sys.exit(main())
