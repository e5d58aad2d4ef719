import asyncio
import os
import uuid
from concurrent.futures import ThreadPoolExecutor

import pytest
from temporalio.client import WorkflowHandle
from temporalio.testing import WorkflowEnvironment
from temporalio.worker import Worker

from artisan_market.activities.approval_activities import review_activities
from artisan_market.lifecycle.approvals import repository_for
from artisan_market.models.approval import ApprovalStatus, ReviewRequest
from artisan_market.store import database
from artisan_market.workflows.review_workflow import ApprovalReviewWorkflow

# Downloads and runs the Temporal test server
pytestmark = pytest.mark.skipif(
    not os.getenv("TEMPORAL_TESTS"), reason="set TEMPORAL_TESTS=1 to run against the Temporal test server"
)


@pytest.fixture(autouse=True)
def activity_sessions(monkeypatch, session_factory):
    monkeypatch.setattr(database, "SessionLocal", session_factory)


async def _wait_for_status(handle: WorkflowHandle, expected: str):
    for _ in range(50):
        if await handle.query(ApprovalReviewWorkflow.get_status) == expected:
            return
        await asyncio.sleep(0.1)
    raise AssertionError(f"workflow never reached {expected}")


def _run_review(entity_id, drive):
    async def scenario():
        task_queue = f"review-test-{uuid.uuid4()}"
        review = ReviewRequest(kind="artisan", entity_id=entity_id, submitted_by="user-artisan-1")
        async with await WorkflowEnvironment.start_time_skipping() as env:
            with ThreadPoolExecutor(max_workers=4) as executor:
                async with Worker(
                    env.client,
                    task_queue=task_queue,
                    workflows=[ApprovalReviewWorkflow],
                    activities=review_activities,
                    activity_executor=executor,
                ):
                    handle = await env.client.start_workflow(
                        ApprovalReviewWorkflow.run,
                        review.model_dump(mode="json"),
                        id=review.workflow_id,
                        task_queue=task_queue,
                    )
                    await _wait_for_status(handle, "AWAITING_DECISION")
                    await drive(handle)
                    return await handle.result()

    return asyncio.run(scenario())


def test_approval_signal_is_applied(db, pending_artisan):
    async def approve(handle):
        await handle.signal(
            ApprovalReviewWorkflow.provide_decision,
            {"decision": "approved", "moderator_id": "admin-1", "notes": "Welcome"},
        )

    result = _run_review(pending_artisan.id, approve)

    assert result["status"] == "APPROVED"
    assert result["entity"]["approved_by"] == "admin-1"
    db.expire_all()
    assert repository_for(db, "artisan").get(pending_artisan.id).approval_status == ApprovalStatus.APPROVED


def test_rejection_without_reason_is_ignored(db, pending_artisan):
    async def reject(handle):
        await handle.signal(ApprovalReviewWorkflow.provide_decision, {"decision": "rejected", "moderator_id": "admin-1"})
        assert await handle.query(ApprovalReviewWorkflow.get_status) == "AWAITING_DECISION"
        await handle.signal(
            ApprovalReviewWorkflow.provide_decision,
            {"decision": "rejected", "moderator_id": "admin-1", "notes": "Stock photos"},
        )

    result = _run_review(pending_artisan.id, reject)

    assert result["status"] == "REJECTED"
    assert result["entity"]["rejection_reason"] == "Stock photos"


def test_withdrawn_review_leaves_entity_pending(db, pending_artisan):
    async def withdraw(handle):
        await handle.signal(ApprovalReviewWorkflow.withdraw)

    result = _run_review(pending_artisan.id, withdraw)

    assert result["status"] == "WITHDRAWN"
    assert result["entity"] is None
    db.expire_all()
    assert repository_for(db, "artisan").get(pending_artisan.id).approval_status == ApprovalStatus.PENDING
