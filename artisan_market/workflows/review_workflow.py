from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError, CancelledError
from datetime import timedelta

with workflow.unsafe.imports_passed_through():
    from artisan_market.activities.approval_activities import (
        notify_moderators,
        apply_review_decision,
        notify_submitter,
    )
    from artisan_market.models.approval import ApprovalDecision, ReviewDecision, ReviewRequest

DOMAIN_ERROR_TYPES = ["NotFoundError", "ValidationError", "ConflictError"]


@workflow.defn(name="ApprovalReviewWorkflow")
class ApprovalReviewWorkflow:
    """Onboarding review of an artisan, product or blog post.

    Moderators are notified, then the workflow waits for a
    ``provide_decision`` signal and applies it through ``set_approval``.
    """

    def __init__(self):
        self._review: ReviewRequest | None = None
        self._decision: ReviewDecision | None = None
        self._withdrawn: bool = False
        self._status: str = "CREATED"
        self._result: dict | None = None
        self._activity_retry_policy = RetryPolicy(
            initial_interval=timedelta(seconds=2),
            backoff_coefficient=2.0,
            maximum_interval=timedelta(seconds=30),
            maximum_attempts=5,
            non_retryable_error_types=DOMAIN_ERROR_TYPES,
        )

    @workflow.run
    async def run(self, review_input: dict) -> dict:
        self._review = ReviewRequest(**review_input)
        workflow.logger.info(f"Starting review of {self._review.kind.value} {self._review.entity_id}")

        try:
            await workflow.start_activity(
                notify_moderators,
                self._review.model_dump(mode="json"),
                retry_policy=self._activity_retry_policy,
                start_to_close_timeout=timedelta(seconds=30),
            )
        except ActivityError as e:
            workflow.logger.error(f"Review of {self._review.entity_id} could not be opened: {e}")
            self._update_status("FAILED")
            return self._summary()

        self._update_status("AWAITING_DECISION")
        try:
            await workflow.wait_condition(lambda: self._decision is not None or self._withdrawn)
        except CancelledError:
            workflow.logger.info(f"Review of {self._review.entity_id} cancelled while waiting for a decision")
            self._update_status("CANCELLED")
            raise

        if self._decision is None:
            workflow.logger.info(f"Review of {self._review.entity_id} withdrawn before a decision")
            self._update_status("WITHDRAWN")
            return self._summary()

        try:
            self._result = await workflow.start_activity(
                apply_review_decision,
                args=[self._review.model_dump(mode="json"), self._decision.model_dump(mode="json")],
                retry_policy=self._activity_retry_policy,
                start_to_close_timeout=timedelta(minutes=1),
            )
        except ActivityError as e:
            workflow.logger.error(f"Decision for {self._review.entity_id} could not be applied: {e}")
            self._update_status("FAILED")
            return self._summary()

        self._update_status(self._decision.decision.value.upper())
        await workflow.start_activity(
            notify_submitter,
            args=[self._review.model_dump(mode="json"), self._result],
            start_to_close_timeout=timedelta(seconds=30),
        )
        return self._summary()

    def _update_status(self, new_status: str):
        workflow.logger.info(f"Review {self._review.entity_id if self._review else 'N/A'}: {self._status} -> {new_status}")
        self._status = new_status

    def _summary(self) -> dict:
        return {
            "kind": self._review.kind.value,
            "entity_id": self._review.entity_id,
            "status": self._status,
            "decision": self._decision.model_dump(mode="json") if self._decision else None,
            "entity": self._result,
        }

    @workflow.query
    def get_status(self) -> str:
        return self._status

    @workflow.query
    def get_details(self) -> dict | None:
        if not self._review:
            return None
        return self._summary()

    @workflow.signal
    async def provide_decision(self, decision: dict):
        """Signal carrying ``{decision, moderator_id, notes}``."""
        try:
            verdict = ReviewDecision(**decision)
        except ValueError as e:
            workflow.logger.warning(f"Ignoring invalid decision signal {decision}: {e}")
            return
        if verdict.decision == ApprovalDecision.REJECTED and not (verdict.notes or "").strip():
            workflow.logger.warning("Ignoring rejection without a reason")
            return
        if self._decision is not None or self._withdrawn:
            workflow.logger.warning(f"Decision '{verdict.decision.value}' arrived after the review closed. Ignoring.")
            return
        self._decision = verdict

    @workflow.signal
    async def withdraw(self):
        if self._decision is None and not self._withdrawn:
            workflow.logger.info("Review withdrawn by submitter")
            self._withdrawn = True
