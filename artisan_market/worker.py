import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

from temporalio.worker import Worker

from artisan_market import config
from artisan_market.activities.approval_activities import review_activities
from artisan_market.store.database import init_db
from artisan_market.utils.temporal import get_temporal_client
from artisan_market.workflows.review_workflow import ApprovalReviewWorkflow

# Configure logging
logging.basicConfig(level=config.LOG_LEVEL, format=config.LOG_FORMAT)
logger = logging.getLogger(__name__)


async def main():
    init_db()
    logger.info(f"Connecting to Temporal at {config.temporal_address()} (namespace {config.TEMPORAL_NAMESPACE})...")
    client = await get_temporal_client()
    logger.info("Connected to Temporal")

    # Review activities use blocking database sessions
    with ThreadPoolExecutor(max_workers=20) as activity_executor:
        worker = Worker(
            client,
            task_queue=config.APPROVAL_TASK_QUEUE,
            workflows=[ApprovalReviewWorkflow],
            activities=review_activities,
            activity_executor=activity_executor,
            max_concurrent_activities=20,
        )
        logger.info(
            f"Review worker polling {config.APPROVAL_TASK_QUEUE} with {len(review_activities)} activities. "
            "Press Ctrl+C to exit"
        )
        await worker.run()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Worker shutdown complete")
