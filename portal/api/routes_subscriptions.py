"""
Routes des abonnements aux assets et des notifications in-app de l'appelant.
"""

from fastapi import APIRouter, Depends, Response

from portal.api.deps import actor_dep, get_subscription_service
from portal.api.schemas import (
    NotificationResponse,
    SubscriptionCheckResponse,
    SubscriptionCreateRequest,
    SubscriptionResponse,
)
from portal.core.http_constants import HTTP_CREATED, HTTP_NO_CONTENT
from portal.domain.access import Actor
from portal.services.notifications import SubscriptionService

router = APIRouter(prefix="/v1", tags=["subscriptions"])
service_dep = Depends(get_subscription_service)


@router.post("/subscriptions", response_model=SubscriptionResponse, status_code=HTTP_CREATED)
def subscribe(
    payload: SubscriptionCreateRequest,
    actor: Actor = actor_dep,
    service: SubscriptionService = service_dep,
):
    """Abonne l'appelant à un asset (renvoie l'abonnement existant si déjà abonné)."""
    sub = service.subscribe(
        actor,
        payload.asset_id,
        notify_new_version=payload.notify_new_version,
        notify_expired=payload.notify_expired,
    )
    return SubscriptionResponse.model_validate(sub)


@router.get("/subscriptions", response_model=list[SubscriptionResponse])
def list_subscriptions(actor: Actor = actor_dep, service: SubscriptionService = service_dep):
    return [SubscriptionResponse.model_validate(s) for s in service.list_subscriptions(actor)]


@router.get("/subscriptions/check", response_model=SubscriptionCheckResponse)
def check_subscription(
    asset_id: str, actor: Actor = actor_dep, service: SubscriptionService = service_dep
):
    """Indique si l'appelant est abonné à l'asset `asset_id` (paramètre de requête requis)."""
    sub = service.find_subscription(actor, asset_id)
    return SubscriptionCheckResponse(
        subscribed=sub is not None,
        subscription=SubscriptionResponse.model_validate(sub) if sub else None,
    )


@router.delete("/subscriptions/{subscription_id}", status_code=HTTP_NO_CONTENT)
def unsubscribe(
    subscription_id: str, actor: Actor = actor_dep, service: SubscriptionService = service_dep
):
    service.unsubscribe(actor, subscription_id)
    return Response(status_code=HTTP_NO_CONTENT)


@router.get("/notifications", response_model=list[NotificationResponse])
def list_notifications(actor: Actor = actor_dep, service: SubscriptionService = service_dep):
    """Notifications de l'appelant, la plus récente d'abord."""
    return [NotificationResponse.model_validate(n) for n in service.list_notifications(actor)]
