"""
Routes du cycle de vie des versions: publication, planification, expiration, archivage et
téléchargement.

Les transitions exigent le rôle Approver (ou Admin). Le téléchargement applique `can_download`:
un refus renvoie 403 avec le motif dans `details.reason`.
"""

from fastapi import APIRouter, Depends

from portal.api.deps import actor_dep, get_lifecycle_service, require_min_role
from portal.api.schemas import (
    AssetResponse,
    DownloadResponse,
    ExpireAtRequest,
    PublishRequest,
    PublishResponse,
    ScheduleRequest,
    VersionResponse,
)
from portal.apigw.errors import download_forbidden
from portal.domain.access import Actor
from portal.domain.asset import Role
from portal.services.lifecycle_service import LifecycleService

router = APIRouter(prefix="/v1/versions", tags=["versions"])
service_dep = Depends(get_lifecycle_service)
approver_dep = Depends(require_min_role(Role.APPROVER))


@router.get("/{version_id}", response_model=VersionResponse)
def get_version(
    version_id: str, _actor: Actor = actor_dep, service: LifecycleService = service_dep
):
    """Récupère une version par identifiant, sinon 404."""
    return VersionResponse.model_validate(service.get_version(version_id))


@router.post("/{version_id}/publish", response_model=PublishResponse)
def publish_version(
    version_id: str,
    payload: PublishRequest | None = None,
    actor: Actor = approver_dep,
    service: LifecycleService = service_dep,
):
    """
    Publie immédiatement une version `draft` ou `scheduled`.

    Erreurs: 400 métadonnées manquantes, 409 transition illégale.
    """
    change_log = payload.change_log if payload else None
    version, asset = service.publish_version(version_id, actor.user_id, change_log)
    return PublishResponse(
        version=VersionResponse.model_validate(version),
        asset=AssetResponse.model_validate(asset),
    )


@router.post("/{version_id}/schedule", response_model=VersionResponse)
def schedule_version(
    version_id: str,
    payload: ScheduleRequest,
    actor: Actor = approver_dep,
    service: LifecycleService = service_dep,
):
    """Planifie la publication à `publish_at` (409 si une autre version est déjà planifiée)."""
    version = service.schedule_version(version_id, payload.publish_at, actor_id=actor.user_id)
    return VersionResponse.model_validate(version)


@router.patch("/{version_id}/expire-at", response_model=VersionResponse)
def set_expire_at(
    version_id: str,
    payload: ExpireAtRequest,
    actor: Actor = approver_dep,
    service: LifecycleService = service_dep,
):
    """Pose ou efface la date d'expiration automatique."""
    version = service.set_expire_at(version_id, payload.expire_at, actor_id=actor.user_id)
    return VersionResponse.model_validate(version)


@router.post("/{version_id}/expire", response_model=VersionResponse)
def expire_version(
    version_id: str, actor: Actor = approver_dep, service: LifecycleService = service_dep
):
    """Expire une version publiée (409 sinon)."""
    return VersionResponse.model_validate(
        service.expire_version(version_id, actor_id=actor.user_id)
    )


@router.post("/{version_id}/archive", response_model=VersionResponse)
def archive_version(
    version_id: str, actor: Actor = approver_dep, service: LifecycleService = service_dep
):
    """Archive une version (409 si déjà archivée)."""
    return VersionResponse.model_validate(
        service.archive_version(version_id, actor_id=actor.user_id)
    )


@router.get("/{version_id}/download", response_model=DownloadResponse)
def download_version(
    version_id: str, actor: Actor = actor_dep, service: LifecycleService = service_dep
):
    """Autorise le téléchargement selon le statut et le rôle; 403 avec motif sinon."""
    version, asset, decision = service.check_download(version_id, actor)
    if not decision.allowed:
        raise download_forbidden(decision.reason)
    return DownloadResponse(
        version_id=version.version_id,
        asset_id=asset.asset_id,
        storage_key=version.storage_key,
        mime_type=version.mime_type,
    )
