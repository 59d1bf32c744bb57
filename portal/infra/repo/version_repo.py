# ============================================================
# Module : portal/infra/repo/version_repo.py
# Objet  : Accès SQL pour AssetVersion (CRUD + requêtes de balayage).
# ============================================================

from __future__ import annotations

from dataclasses import fields
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...domain.asset import AssetVersion, VersionStatus
from ...domain.errors import ConflictError, NotFoundError
from .models import AssetVersionORM

_FIELD_NAMES = [f.name for f in fields(AssetVersion)]
_IMMUTABLE_FIELDS = {"version_id", "asset_id", "version_number", "created_at", "created_by"}


def _status_of(raw: str) -> VersionStatus | str:
    # Statut inconnu conservé brut: la transition lèvera InvalidStateError
    try:
        return VersionStatus(raw)
    except ValueError:
        return raw


def _to_domain(row: AssetVersionORM) -> AssetVersion:
    values = {name: getattr(row, name) for name in _FIELD_NAMES}
    values["status"] = _status_of(row.status)
    return AssetVersion(**values)


class SqlVersionRepo:
    """Dépôt de versions adossé à SQLAlchemy."""

    def __init__(self, session: Session) -> None:
        """Construit le repo avec une session (SQLAlchemy)."""
        self._session = session

    def get(self, version_id: str) -> AssetVersion | None:
        """Retourne la version, ou None si absente."""
        row = self._session.get(AssetVersionORM, version_id)
        return _to_domain(row) if row else None

    def create(self, version: AssetVersion) -> AssetVersion:
        """Crée une ligne en base.

        Contrainte d'unicité: (asset_id, version_number). Une collision (création concurrente)
        lève ConflictError; seul l'insert fautif est annulé (savepoint) et la session reste
        utilisable.
        """
        values = {name: getattr(version, name) for name in _FIELD_NAMES}
        values["status"] = getattr(version.status, "value", version.status)
        if values["updated_at"] is None:
            values["updated_at"] = values["created_at"]
        for stamp in ("created_at", "updated_at"):
            if values[stamp] is None:
                values.pop(stamp)
        row = AssetVersionORM(**values)
        try:
            with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError as exc:
            raise ConflictError(
                "Version number already taken",
                {"asset_id": version.asset_id, "version_number": version.version_number},
            ) from exc
        return _to_domain(row)

    def update(self, version: AssetVersion) -> AssetVersion:
        """Persiste l'état complet d'une version existante (champs mutables uniquement)."""
        row = self._session.get(AssetVersionORM, version.version_id)
        if row is None:
            raise NotFoundError("Version not found", {"version_id": version.version_id})
        for name in _FIELD_NAMES:
            if name in _IMMUTABLE_FIELDS:
                continue
            value = getattr(version, name)
            setattr(row, name, getattr(value, "value", value) if name == "status" else value)
        self._session.flush()
        return _to_domain(row)

    def list_by_asset(self, asset_id: str) -> list[AssetVersion]:
        """Liste les versions d'un asset, la plus récente d'abord."""
        stmt = (
            select(AssetVersionORM)
            .where(AssetVersionORM.asset_id == asset_id)
            .order_by(AssetVersionORM.version_number.desc())
        )
        return [_to_domain(r) for r in self._session.execute(stmt).scalars().all()]

    def max_version_number(self, asset_id: str) -> int | None:
        """Plus grand numéro de version de l'asset (None si aucune version)."""
        stmt = select(func.max(AssetVersionORM.version_number)).where(
            AssetVersionORM.asset_id == asset_id
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def get_latest_published(self, asset_id: str) -> AssetVersion | None:
        """Version publiée de plus haut numéro pour l'asset, si elle existe."""
        stmt = (
            select(AssetVersionORM)
            .where(AssetVersionORM.asset_id == asset_id)
            .where(AssetVersionORM.status == VersionStatus.PUBLISHED.value)
            .order_by(AssetVersionORM.version_number.desc())
            .limit(1)
        )
        row = self._session.execute(stmt).scalars().first()
        return _to_domain(row) if row else None

    def get_scheduled_to_publish(self, now: datetime) -> list[AssetVersion]:
        """Versions `scheduled` dont `publish_at <= now`."""
        stmt = (
            select(AssetVersionORM)
            .where(AssetVersionORM.status == VersionStatus.SCHEDULED.value)
            .where(AssetVersionORM.publish_at.is_not(None))
            .where(AssetVersionORM.publish_at <= now)
            .order_by(AssetVersionORM.publish_at)
        )
        return [_to_domain(r) for r in self._session.execute(stmt).scalars().all()]

    def get_published_to_expire(self, now: datetime) -> list[AssetVersion]:
        """Versions `published` dont `expire_at <= now`."""
        stmt = (
            select(AssetVersionORM)
            .where(AssetVersionORM.status == VersionStatus.PUBLISHED.value)
            .where(AssetVersionORM.expire_at.is_not(None))
            .where(AssetVersionORM.expire_at <= now)
            .order_by(AssetVersionORM.expire_at)
        )
        return [_to_domain(r) for r in self._session.execute(stmt).scalars().all()]
