from temporalio import activity
from temporalio.exceptions import ApplicationError

from artisan_market.errors import MarketplaceError
from artisan_market.lifecycle.approvals import repository_for, set_approval
from artisan_market.models.approval import ReviewDecision, ReviewRequest
from artisan_market.store import database

# Activities touch the database through synchronous sessions, so they are
# plain functions run by the worker's thread pool executor.


def _application_error(error: MarketplaceError) -> ApplicationError:
    # Domain errors will not go away on retry
    return ApplicationError(error.message, type=type(error).__name__, non_retryable=True)


@activity.defn
def notify_moderators(review: dict) -> dict:
    request = ReviewRequest(**review)
    try:
        with database.session_scope() as db:
            entity = repository_for(db, request.kind).get(request.entity_id)
    except MarketplaceError as e:
        activity.logger.error(f"Cannot open review for {request.kind.value} {request.entity_id}: {e.message}")
        raise _application_error(e)
    activity.logger.info(
        f"Notifying moderators: {request.kind.value} {request.entity_id} awaits review "
        f"(currently {entity.approval_status.value})"
    )
    # TODO: deliver through the email service once moderator addresses are stored
    return {"kind": request.kind.value, "entity_id": request.entity_id, "approval_status": entity.approval_status.value}


@activity.defn
def apply_review_decision(review: dict, decision: dict) -> dict:
    request = ReviewRequest(**review)
    verdict = ReviewDecision(**decision)
    activity.logger.info(
        f"Applying decision '{verdict.decision.value}' by {verdict.moderator_id} "
        f"to {request.kind.value} {request.entity_id}"
    )
    try:
        with database.session_scope() as db:
            entity = set_approval(
                db,
                request.kind,
                request.entity_id,
                verdict.decision,
                verdict.moderator_id,
                notes=verdict.notes,
            )
    except MarketplaceError as e:
        activity.logger.error(f"Decision for {request.kind.value} {request.entity_id} rejected: {e.message}")
        raise _application_error(e)
    return entity.to_dict()


@activity.defn
def notify_submitter(review: dict, result: dict) -> None:
    request = ReviewRequest(**review)
    recipient = request.submitted_by or "unknown submitter"
    activity.logger.info(
        f"Notifying {recipient}: {request.kind.value} {request.entity_id} is {result.get('approval_status')}"
    )


review_activities = [
    notify_moderators,
    apply_review_decision,
    notify_submitter,
]
