"""Email notification subscription endpoints."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Path

from fittrack.api.dependencies import get_subscription_store
from fittrack.notifications.policies import NotificationPolicyRegistry
from fittrack.notifications.subscriptions import SubscriptionStore
from fittrack.schemas.subscription import SubscriptionsResponse

router = APIRouter()

_POLICIES = NotificationPolicyRegistry()


def _response(user_id: UUID, store: SubscriptionStore) -> SubscriptionsResponse:
    return SubscriptionsResponse(user_id=user_id, notification_types=store.list_for_user(user_id))


@router.get("/{user_id}", response_model=SubscriptionsResponse)
def list_subscriptions(
    user_id: UUID,
    store: SubscriptionStore = Depends(get_subscription_store),
) -> SubscriptionsResponse:
    return _response(user_id, store)


@router.put("/{user_id}/{notification_type}", response_model=SubscriptionsResponse)
def subscribe(
    user_id: UUID,
    notification_type: str = Path(..., max_length=128),
    store: SubscriptionStore = Depends(get_subscription_store),
) -> SubscriptionsResponse:
    _POLICIES.get(notification_type)
    store.subscribe(user_id, notification_type)
    return _response(user_id, store)


@router.delete("/{user_id}/{notification_type}", response_model=SubscriptionsResponse)
def unsubscribe(
    user_id: UUID,
    notification_type: str = Path(..., max_length=128),
    store: SubscriptionStore = Depends(get_subscription_store),
) -> SubscriptionsResponse:
    _POLICIES.get(notification_type)
    store.unsubscribe(user_id, notification_type)
    return _response(user_id, store)
