from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
import logging

from temporalio.client import WorkflowHandle
from temporalio.service import RPCError

from artisan_market import config
from artisan_market.api.dependencies import require_actor_id
from artisan_market.lifecycle import approvals
from artisan_market.models.approval import EntityKind, ReviewDecision, ReviewRequest, review_workflow_id
from artisan_market.store.database import get_db
from artisan_market.utils.temporal import current_client
from artisan_market.workflows.review_workflow import ApprovalReviewWorkflow

logger = logging.getLogger(__name__)

router = APIRouter()
catalog_router = APIRouter()


class DecisionRequest(BaseModel):
    decision: str
    notes: Optional[str] = None


class PendingChangeRequest(BaseModel):
    changed_fields: List[str]
    changes: Dict[str, Any]


class ReviewStartRequest(BaseModel):
    summary: Optional[str] = None


def _temporal_client():
    client = current_client()
    if client is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Temporal service unavailable")
    return client


# --- Administrator queue and decisions ---

@router.post("/{kind}", status_code=201)
def submit(kind: EntityKind, data: Dict[str, Any], db: Session = Depends(get_db)):
    """Create an artisan, product or blog post awaiting approval."""
    return approvals.submit_for_approval(db, kind, data)


@router.get("/{kind}")
def list_for_review(
    kind: EntityKind,
    status: str = "pending",
    page: int = 1,
    limit: int = 10,
    moderator_id: str = Depends(require_actor_id),
    db: Session = Depends(get_db),
):
    return approvals.list_for_review(db, kind, status=status, page=page, limit=limit)


@router.get("/{kind}/{entity_id}")
def get_for_review(
    kind: EntityKind, entity_id: str, moderator_id: str = Depends(require_actor_id), db: Session = Depends(get_db)
):
    return approvals.repository_for(db, kind).get(entity_id)


@router.patch("/{kind}/{entity_id}")
def decide(
    kind: EntityKind,
    entity_id: str,
    request: DecisionRequest,
    moderator_id: str = Depends(require_actor_id),
    db: Session = Depends(get_db),
):
    return approvals.set_approval(db, kind, entity_id, request.decision, moderator_id, notes=request.notes)


# --- Artisan profile edits ---

@router.put("/artisan/{artisan_id}/profile")
def update_profile(
    artisan_id: str,
    updates: Dict[str, Any],
    actor_id: str = Depends(require_actor_id),
    db: Session = Depends(get_db),
):
    return approvals.update_artisan_profile(db, artisan_id, updates)


@router.post("/artisan/{artisan_id}/pending-changes")
def record_pending_change(
    artisan_id: str,
    request: PendingChangeRequest,
    actor_id: str = Depends(require_actor_id),
    db: Session = Depends(get_db),
):
    return approvals.record_pending_change(db, artisan_id, request.changed_fields, request.changes)


@router.delete("/artisan/{artisan_id}/pending-changes")
def clear_pending_changes(
    artisan_id: str, moderator_id: str = Depends(require_actor_id), db: Session = Depends(get_db)
):
    return approvals.clear_pending_changes(db, artisan_id, moderator_id)


# --- Durable onboarding reviews ---

@router.post("/{kind}/{entity_id}/review", status_code=202)
async def start_review(
    kind: EntityKind,
    entity_id: str,
    request: ReviewStartRequest,
    actor_id: str = Depends(require_actor_id),
    db: Session = Depends(get_db),
):
    """Starts the ApprovalReviewWorkflow for an entity."""
    client = _temporal_client()
    approvals.repository_for(db, kind).get(entity_id)
    review = ReviewRequest(kind=kind, entity_id=entity_id, submitted_by=actor_id, summary=request.summary)
    try:
        await client.start_workflow(
            ApprovalReviewWorkflow.run,
            review.model_dump(mode="json"),
            id=review.workflow_id,
            task_queue=config.APPROVAL_TASK_QUEUE,
        )
    except RPCError as e:
        logger.error(f"Error starting review workflow {review.workflow_id}: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"Review already running: {e}")
    return {"workflow_id": review.workflow_id, "message": "Review started"}


@router.get("/{kind}/{entity_id}/review")
async def get_review(kind: EntityKind, entity_id: str, moderator_id: str = Depends(require_actor_id)):
    handle: WorkflowHandle = _temporal_client().get_workflow_handle(review_workflow_id(kind, entity_id))
    try:
        return await handle.query(ApprovalReviewWorkflow.get_details)
    except RPCError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Review not found: {e}")


@router.post("/{kind}/{entity_id}/review/decision", status_code=202)
async def signal_decision(
    kind: EntityKind,
    entity_id: str,
    request: DecisionRequest,
    moderator_id: str = Depends(require_actor_id),
):
    """Sends the moderator's decision to a running review."""
    handle = _temporal_client().get_workflow_handle(review_workflow_id(kind, entity_id))
    decision = ReviewDecision(
        decision=approvals.coerce_decision(request.decision), moderator_id=moderator_id, notes=request.notes
    )
    try:
        await handle.signal(ApprovalReviewWorkflow.provide_decision, decision.model_dump(mode="json"))
    except RPCError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Review not found: {e}")
    return {"message": "Decision signal sent"}


# --- Public catalogue ---

@catalog_router.get("/{kind}")
def list_visible(
    kind: EntityKind, page: int = 1, limit: int = 10, artisan_id: Optional[str] = None, db: Session = Depends(get_db)
):
    return approvals.list_visible(db, kind, page=page, limit=limit, artisan_id=artisan_id)


@catalog_router.get("/{kind}/{entity_id}")
def get_visible(kind: EntityKind, entity_id: str, db: Session = Depends(get_db)):
    return approvals.get_visible(db, kind, entity_id)
