"""Worker for the order integration service.

Polls the order-integration task queue and runs both saga workflows and
their activities. Start one per host; the sagas share the process-wide
service container (stores, connectors, step log hub).
"""

import argparse
import asyncio
import sys
from pathlib import Path

from temporalio.worker import Worker

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from temporal_client import get_temporal_client
from core.observability import configure_logging, get_logger
from core.services import get_services
from workflows.order_integration_workflow import OrderIntegrationWorkflow, TASK_QUEUE
from workflows.invoice_sync_workflow import InvoiceSyncWorkflow
from activities.integration import integrate_order, sync_invoices


logger = get_logger(__name__)

WORKFLOWS = [OrderIntegrationWorkflow, InvoiceSyncWorkflow]
ACTIVITIES = [integrate_order, sync_invoices]


async def run_worker(task_queue: str = TASK_QUEUE):
    """Start a worker listening on the task queue.

    Raises:
        Exception: If the connection to Temporal fails
    """
    services = get_services()
    services.init_storage()

    client = await get_temporal_client()
    logger.info(f"Connected to Temporal namespace: {client.namespace}")

    worker = Worker(
        client,
        task_queue=task_queue,
        workflows=WORKFLOWS,
        activities=ACTIVITIES,
    )
    logger.info(f"Worker created for queue '{task_queue}':")
    logger.info(f"  - Workflows: {len(WORKFLOWS)}")
    logger.info(f"  - Activities: {len(ACTIVITIES)}")

    # No live subscribers in the worker; the hub stays stopped
    try:
        logger.info("Worker running... (Ctrl+C to stop)")
        await worker.run()
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    except Exception as e:
        logger.error(f"Worker error: {e}", exc_info=True)
        raise


def main():
    """Entry point for worker with CLI args."""
    parser = argparse.ArgumentParser(description="Order Integration Temporal Worker")
    parser.add_argument(
        "--queue", "-q",
        default=TASK_QUEUE,
        help=f"Task queue to poll (default: {TASK_QUEUE})"
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit JSON log lines"
    )

    args = parser.parse_args()
    configure_logging(json_format=args.json_logs)
    asyncio.run(run_worker(task_queue=args.queue))


if __name__ == "__main__":
    main()
