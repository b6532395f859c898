"""
Subscription Review Service.

This service handles user review actions on detected subscriptions:
confirm, reject and edit. Editing a subscription implies the user accepts
it, so edits also confirm.
"""

import logging

from subscription_engine.models.subscription import (
    ReviewActionType,
    Subscription,
    SubscriptionReviewAction,
    SubscriptionStatus,
)

logger = logging.getLogger(__name__)


class SubscriptionReviewService:
    """Handles user review actions on subscriptions."""

    def review(self, subscription: Subscription, review_action: SubscriptionReviewAction) -> Subscription:
        """
        Process a user review of a subscription.

        Args:
            subscription: The subscription being reviewed
            review_action: User's review action

        Returns:
            The updated subscription

        Raises:
            ValueError: If the subscription was rejected, the action targets a
                different subscription, or an edit carries no changes
        """
        if review_action.subscription_id != subscription.subscription_id:
            raise ValueError(
                f"Review action for subscription {review_action.subscription_id} "
                f"cannot be applied to subscription {subscription.subscription_id}"
            )

        if subscription.status == SubscriptionStatus.REJECTED:
            raise ValueError(
                f"Subscription status {subscription.status.value} cannot be reviewed. "
                f"Only PENDING or CONFIRMED subscriptions can be reviewed."
            )

        if review_action.action == ReviewActionType.CONFIRM:
            subscription.confirm()
        elif review_action.action == ReviewActionType.REJECT:
            subscription.reject()
        elif review_action.action == ReviewActionType.EDIT:
            if review_action.update is None:
                raise ValueError("Edit action requires subscription changes")
            subscription.update_model_details(review_action.update)
        else:
            raise ValueError(f"Invalid review action: {review_action.action}")

        if review_action.notes:
            subscription.notes = review_action.notes

        logger.info(
            f"Subscription {subscription.subscription_id} ({subscription.merchant}) "
            f"{review_action.action.value} by user {review_action.user_id}, "
            f"status now {subscription.status.value}"
        )
        return subscription
