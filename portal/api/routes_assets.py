"""
Routes liées aux assets: création, liste, consultation, mise à jour et ajout de versions.

Ce module regroupe les endpoints `/v1/assets`. La création d'un asset produit aussi sa version 1
en brouillon; les versions suivantes sont ajoutées par le propriétaire ou un Contributor+.
"""

from fastapi import APIRouter, Depends, Query

from portal.api.deps import actor_dep, get_lifecycle_service, require_min_role
from portal.api.schemas import (
    AssetCreatedResponse,
    AssetCreateRequest,
    AssetResponse,
    AssetUpdateRequest,
    VersionCreateRequest,
    VersionResponse,
)
from portal.core.http_constants import HTTP_CREATED
from portal.domain.access import Actor
from portal.domain.asset import Role
from portal.services.lifecycle_service import LifecycleService

router = APIRouter(prefix="/v1/assets", tags=["assets"])
service_dep = Depends(get_lifecycle_service)
contributor_dep = Depends(require_min_role(Role.CONTRIBUTOR))


@router.post("", response_model=AssetCreatedResponse, status_code=HTTP_CREATED)
def create_asset(
    payload: AssetCreateRequest,
    actor: Actor = contributor_dep,
    service: LifecycleService = service_dep,
):
    """
    Crée un asset possédé par l'appelant, avec sa version 1 en brouillon.

    Retour: `AssetCreatedResponse` (asset + version 1).
    """
    asset, version = service.create_asset(
        actor,
        title=payload.title,
        asset_type=payload.asset_type.value,
        source_type=payload.source_type,
        description=payload.description,
        filename=payload.filename,
        mime_type=payload.mime_type,
        size_bytes=payload.size_bytes,
    )
    return AssetCreatedResponse(
        asset=AssetResponse.model_validate(asset),
        version=VersionResponse.model_validate(version),
    )


@router.get("", response_model=list[AssetResponse])
def list_assets(
    asset_type: str | None = None,
    owner_id: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    _actor: Actor = actor_dep,
    service: LifecycleService = service_dep,
):
    """Liste les assets, filtrables par type et propriétaire."""
    assets = service.list_assets(asset_type=asset_type, owner_id=owner_id, limit=limit)
    return [AssetResponse.model_validate(a) for a in assets]


@router.get("/{asset_id}", response_model=AssetResponse)
def get_asset(asset_id: str, _actor: Actor = actor_dep, service: LifecycleService = service_dep):
    """Récupère un asset par identifiant, sinon 404."""
    return AssetResponse.model_validate(service.get_asset(asset_id))


@router.patch("/{asset_id}", response_model=AssetResponse)
def update_asset(
    asset_id: str,
    payload: AssetUpdateRequest,
    actor: Actor = contributor_dep,
    service: LifecycleService = service_dep,
):
    """Met à jour les métadonnées (Contributor+); identifiants et pointeurs restent inchangés."""
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    return AssetResponse.model_validate(service.update_asset(actor, asset_id, changes))


@router.get("/{asset_id}/versions", response_model=list[VersionResponse])
def list_versions(
    asset_id: str, _actor: Actor = actor_dep, service: LifecycleService = service_dep
):
    """Liste les versions de l'asset, la plus récente d'abord."""
    return [VersionResponse.model_validate(v) for v in service.list_versions(asset_id)]


@router.post("/{asset_id}/versions", response_model=VersionResponse, status_code=HTTP_CREATED)
def create_version(
    asset_id: str,
    payload: VersionCreateRequest,
    actor: Actor = actor_dep,
    service: LifecycleService = service_dep,
):
    """Ajoute une version brouillon numérotée `max + 1` (propriétaire ou Contributor+)."""
    version = service.create_version(
        actor,
        asset_id,
        filename=payload.filename,
        mime_type=payload.mime_type,
        size_bytes=payload.size_bytes,
    )
    return VersionResponse.model_validate(version)
