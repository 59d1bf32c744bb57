# ============================================================
# Module : portal/infra/repo/asset_repo.py
# Objet  : Accès SQL pour Asset (CRUD + créneau de planification).
# ============================================================

from __future__ import annotations

from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...domain.asset import Asset, SourceType
from ...domain.errors import ConflictError, NotFoundError
from .models import AssetORM

_IMMUTABLE_FIELDS = {"asset_id", "created_at", "created_by"}
_TIMESTAMPS = {"created_at", "updated_at"}


def _to_domain(row: AssetORM) -> Asset:
    try:
        source_type = SourceType(row.source_type)
    except ValueError:
        source_type = row.source_type  # type: ignore[assignment]
    return Asset(
        asset_id=row.asset_id,
        title=row.title,
        description=row.description,
        asset_type=row.asset_type,
        owner_id=row.owner_id,
        source_type=source_type,
        current_published_version_id=row.current_published_version_id,
        scheduled_version_id=row.scheduled_version_id,
        created_at=row.created_at,
        created_by=row.created_by,
        updated_at=row.updated_at,
        updated_by=row.updated_by,
    )


class SqlAssetRepo:
    """Dépôt d'assets adossé à SQLAlchemy."""

    def __init__(self, session: Session) -> None:
        """Construit le repo avec une session (SQLAlchemy)."""
        self._session = session

    def get(self, asset_id: str) -> Asset | None:
        """Retourne l'asset, ou None s'il est absent."""
        row = self._session.get(AssetORM, asset_id)
        return _to_domain(row) if row else None

    def create(self, asset: Asset) -> Asset:
        """Crée une ligne en base. Lève ConflictError sur doublon (insert annulé seul)."""
        values = dict(
            asset_id=asset.asset_id,
            title=asset.title,
            description=asset.description,
            asset_type=getattr(asset.asset_type, "value", asset.asset_type),
            owner_id=asset.owner_id,
            source_type=getattr(asset.source_type, "value", asset.source_type),
            current_published_version_id=asset.current_published_version_id,
            scheduled_version_id=asset.scheduled_version_id,
            created_at=asset.created_at,
            created_by=asset.created_by,
            updated_at=asset.updated_at or asset.created_at,
            updated_by=asset.updated_by,
        )
        # Horodatages absents: laisser jouer les valeurs par défaut des colonnes
        row = AssetORM(**{k: v for k, v in values.items() if v is not None or k not in _TIMESTAMPS})
        try:
            with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError as exc:
            raise ConflictError("Asset already exists", {"asset_id": asset.asset_id}) from exc
        return _to_domain(row)

    def update(self, asset_id: str, patch: dict[str, Any]) -> Asset:
        """Applique un patch partiel (clés = attributs d'Asset) et renvoie l'asset à jour."""
        row = self._session.get(AssetORM, asset_id)
        if row is None:
            raise NotFoundError("Asset not found", {"asset_id": asset_id})
        for key, value in patch.items():
            if key in _IMMUTABLE_FIELDS:
                continue
            if not hasattr(AssetORM, key):
                raise ValueError(f"unknown asset field: {key}")
            setattr(row, key, getattr(value, "value", value))
        self._session.flush()
        return _to_domain(row)

    def claim_schedule_slot(self, asset_id: str, version_id: str) -> bool:
        """Réserve atomiquement le créneau "planifiée" de l'asset pour `version_id`.

        UPDATE conditionnel: réussit si le créneau est libre ou déjà détenu par cette version.
        """
        stmt = (
            update(AssetORM)
            .where(AssetORM.asset_id == asset_id)
            .where(
                or_(
                    AssetORM.scheduled_version_id.is_(None),
                    AssetORM.scheduled_version_id == version_id,
                )
            )
            .values(scheduled_version_id=version_id)
            .execution_options(synchronize_session="fetch")
        )
        result = self._session.execute(stmt)
        return result.rowcount == 1

    def release_schedule_slot(self, asset_id: str, version_id: str) -> None:
        """Libère le créneau s'il est détenu par `version_id` (no-op sinon)."""
        stmt = (
            update(AssetORM)
            .where(AssetORM.asset_id == asset_id)
            .where(AssetORM.scheduled_version_id == version_id)
            .values(scheduled_version_id=None)
            .execution_options(synchronize_session="fetch")
        )
        self._session.execute(stmt)

    def list_assets(
        self, asset_type: str | None = None, owner_id: str | None = None, limit: int = 50
    ) -> list[Asset]:
        """Assets filtrés par type et propriétaire, ordre de création."""
        stmt = select(AssetORM)
        if asset_type is not None:
            stmt = stmt.where(AssetORM.asset_type == asset_type)
        if owner_id is not None:
            stmt = stmt.where(AssetORM.owner_id == owner_id)
        stmt = stmt.order_by(AssetORM.created_at, AssetORM.asset_id).limit(limit)
        return [_to_domain(r) for r in self._session.execute(stmt).scalars().all()]
