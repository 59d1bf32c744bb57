"""Orchestration du cycle de vie des versions (couche "appelant" des transitions pures).

Ce service charge l'asset et la version via les dépôts injectés, vérifie les préconditions
documentées (métadonnées requises, créneau de planification unique), appelle la transition pure
de `portal.domain.lifecycle`, persiste la version puis le patch d'asset, et déclenche la
notification des abonnés en best-effort.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog

from portal.app.metrics import DOWNLOAD_DECISIONS, LIFECYCLE_TRANSITIONS, NOTIFICATIONS_TOTAL
from portal.domain import lifecycle
from portal.domain.access import AccessDecision, Actor, can_create_version, can_download
from portal.domain.asset import Asset, AssetVersion, SourceType, VersionStatus
from portal.domain.errors import (
    LifecycleError,
    NotFoundError,
    PermissionDeniedError,
    ScheduleConflictError,
    ValidationError,
)
from portal.domain.ports import AssetStore, Clock, Notifier, VersionStore

log = structlog.get_logger(__name__)

SYSTEM_ACTOR = "system"

# Champs modifiables par PATCH; identité, horodatages de création et pointeurs restent figés
EDITABLE_ASSET_FIELDS = frozenset({"title", "description", "asset_type", "owner_id"})


def build_storage_key(prefix: str, asset_id: str, version_id: str, filename: str) -> str:
    """Clé de stockage d'un fichier de version: `{prefix}/{asset}/versions/{version}/{nom}`."""
    safe_name = filename.replace("/", "_").replace("\\", "_").strip() or "file"
    return f"{prefix}/{asset_id}/versions/{version_id}/{safe_name}"


class LifecycleService:
    """Service métier du cycle de vie des versions d'assets.

    Responsabilités:
    - Créer assets et versions brouillon (numérotation `max + 1`).
    - Appliquer publish / schedule / expire / archive et maintenir `current_published_version_id`.
    - Réserver le créneau "planifiée" de l'asset par écriture conditionnelle.
    - Décider l'accès au téléchargement.
    """

    def __init__(
        self,
        assets: AssetStore,
        versions: VersionStore,
        clock: Clock,
        notifier: Notifier,
        storage_key_prefix: str = "assets",
    ):
        """Initialise le service avec ses dépendances (dépôts, horloge, notifier)."""
        self.assets = assets
        self.versions = versions
        self.clock = clock
        self.notifier = notifier
        self.storage_key_prefix = storage_key_prefix

    # ------------------------------------------------------------------ lecture

    def get_asset(self, asset_id: str) -> Asset:
        asset = self.assets.get(asset_id)
        if asset is None:
            raise NotFoundError("Asset not found", {"asset_id": asset_id})
        return asset

    def get_version(self, version_id: str) -> AssetVersion:
        version = self.versions.get(version_id)
        if version is None:
            raise NotFoundError("Version not found", {"version_id": version_id})
        return version

    def list_versions(self, asset_id: str) -> list[AssetVersion]:
        self.get_asset(asset_id)
        return self.versions.list_by_asset(asset_id)

    def list_assets(
        self, asset_type: str | None = None, owner_id: str | None = None, limit: int = 50
    ) -> list[Asset]:
        return self.assets.list_assets(asset_type=asset_type, owner_id=owner_id, limit=limit)

    def update_asset(self, actor: Actor, asset_id: str, changes: dict[str, Any]) -> Asset:
        """Met à jour les métadonnées de l'asset (title, description, asset_type, owner_id).

        Raises:
            NotFoundError: asset inconnu.
            ValidationError: champ non modifiable dans `changes`.
        """
        self.get_asset(asset_id)
        rejected = sorted(set(changes) - EDITABLE_ASSET_FIELDS)
        if rejected:
            raise ValidationError("Asset fields cannot be modified", {"fields": rejected})
        patch = {key: getattr(value, "value", value) for key, value in changes.items()}
        patch.update(updated_at=self.clock.now(), updated_by=actor.user_id)
        asset = self.assets.update(asset_id, patch)
        log.info("asset_updated", asset_id=asset_id, fields=sorted(changes), actor_id=actor.user_id)
        return asset

    # ------------------------------------------------------------------ création

    def create_asset(
        self,
        actor: Actor,
        title: str,
        asset_type: str,
        source_type: SourceType = SourceType.UPLOAD,
        description: str | None = None,
        filename: str | None = None,
        mime_type: str | None = None,
        size_bytes: int | None = None,
    ) -> tuple[Asset, AssetVersion]:
        """Crée un asset possédé par l'acteur, avec sa version 1 en brouillon."""
        now = self.clock.now()
        asset = Asset(
            asset_id=f"asset_{uuid.uuid4().hex}",
            title=title,
            asset_type=asset_type,
            owner_id=actor.user_id,
            source_type=source_type,
            description=description,
            created_at=now,
            created_by=actor.user_id,
            updated_at=now,
            updated_by=actor.user_id,
        )
        asset = self.assets.create(asset)
        version = self._new_draft(asset, actor.user_id, now, filename, mime_type, size_bytes)
        log.info("asset_created", asset_id=asset.asset_id, owner_id=actor.user_id)
        return asset, version

    def create_version(
        self,
        actor: Actor,
        asset_id: str,
        filename: str | None = None,
        mime_type: str | None = None,
        size_bytes: int | None = None,
    ) -> AssetVersion:
        """Ajoute une version brouillon (propriétaire ou Contributor+)."""
        asset = self.get_asset(asset_id)
        if not can_create_version(actor, asset):
            raise PermissionDeniedError(
                "Only asset owner or Contributor+ can upload versions",
                {"asset_id": asset_id},
            )
        now = self.clock.now()
        return self._new_draft(asset, actor.user_id, now, filename, mime_type, size_bytes)

    def _new_draft(
        self,
        asset: Asset,
        actor_id: str,
        now: datetime,
        filename: str | None,
        mime_type: str | None,
        size_bytes: int | None,
    ) -> AssetVersion:
        current_max = self.versions.max_version_number(asset.asset_id)
        number = lifecycle.next_version_number([] if current_max is None else [current_max])
        version_id = f"version_{uuid.uuid4().hex}"
        storage_key = (
            build_storage_key(self.storage_key_prefix, asset.asset_id, version_id, filename)
            if filename
            else None
        )
        version = AssetVersion(
            version_id=version_id,
            asset_id=asset.asset_id,
            version_number=number,
            status=VersionStatus.DRAFT,
            storage_key=storage_key,
            mime_type=mime_type,
            size_bytes=size_bytes,
            created_at=now,
            created_by=actor_id,
            updated_at=now,
            updated_by=actor_id,
        )
        created = self.versions.create(version)
        log.info(
            "version_created",
            asset_id=asset.asset_id,
            version_id=version_id,
            version_number=number,
        )
        return created

    # ------------------------------------------------------------------ transitions

    def publish_version(
        self,
        version_id: str,
        actor_id: str,
        change_log: str | None = None,
        now: datetime | None = None,
    ) -> tuple[AssetVersion, Asset]:
        """Publie la version, pointe l'asset dessus puis notifie les abonnés (best-effort).

        Raises:
            ValidationError: métadonnées de l'asset incomplètes.
            IllegalTransitionError: version ni `draft` ni `scheduled`.
        """
        version = self.get_version(version_id)
        asset = self.get_asset(version.asset_id)
        now = now or self.clock.now()
        try:
            lifecycle.ensure_publishable(asset)
            result = lifecycle.publish(version, actor_id, change_log, now)
        except LifecycleError:
            LIFECYCLE_TRANSITIONS.labels(transition="publish", result="rejected").inc()
            raise
        saved = self.versions.update(result.version)
        self.assets.release_schedule_slot(asset.asset_id, version_id)
        asset = self.assets.update(asset.asset_id, result.asset_patch)
        LIFECYCLE_TRANSITIONS.labels(transition="publish", result="ok").inc()
        log.info(
            "version_published",
            asset_id=asset.asset_id,
            version_id=version_id,
            version_number=saved.version_number,
            actor_id=actor_id,
        )
        self._notify_safely("new_version", self.notifier.notify_new_version, asset, saved)
        return saved, asset

    def schedule_version(
        self, version_id: str, publish_at: str | datetime, actor_id: str | None = None
    ) -> AssetVersion:
        """Planifie la publication; une seule version planifiée par asset.

        Raises:
            ValidationError: `publish_at` invalide.
            IllegalTransitionError: version ni `draft` ni `scheduled`.
            ScheduleConflictError: une autre version de l'asset est déjà planifiée.
        """
        version = self.get_version(version_id)
        now = self.clock.now()
        try:
            scheduled = lifecycle.schedule(version, publish_at, now=now)
        except LifecycleError:
            LIFECYCLE_TRANSITIONS.labels(transition="schedule", result="rejected").inc()
            raise
        if actor_id:
            scheduled.updated_by = actor_id
        self._claim_schedule_slot(version.asset_id, version_id)
        saved = self.versions.update(scheduled)
        LIFECYCLE_TRANSITIONS.labels(transition="schedule", result="ok").inc()
        log.info(
            "version_scheduled",
            asset_id=version.asset_id,
            version_id=version_id,
            publish_at=saved.publish_at.isoformat() if saved.publish_at else None,
        )
        return saved

    def _claim_schedule_slot(self, asset_id: str, version_id: str) -> None:
        if self.assets.claim_schedule_slot(asset_id, version_id):
            return
        # Créneau détenu: le libérer seulement si son détenteur n'est plus planifié
        asset = self.get_asset(asset_id)
        holder_id = asset.scheduled_version_id
        holder = self.versions.get(holder_id) if holder_id else None
        if holder is None or holder.status != VersionStatus.SCHEDULED:
            log.warning("schedule_slot_stale", asset_id=asset_id, holder_id=holder_id)
            if holder_id:
                self.assets.release_schedule_slot(asset_id, holder_id)
            if self.assets.claim_schedule_slot(asset_id, version_id):
                return
        LIFECYCLE_TRANSITIONS.labels(transition="schedule", result="conflict").inc()
        raise ScheduleConflictError(
            "Only one version can be scheduled per asset at a time",
            {"asset_id": asset_id, "scheduled_version_id": holder_id},
        )

    def set_expire_at(
        self, version_id: str, expire_at: str | datetime | None, actor_id: str | None = None
    ) -> AssetVersion:
        """Pose (ou efface avec None) la date d'expiration automatique d'une version."""
        version = self.get_version(version_id)
        version.expire_at = (
            lifecycle.parse_iso_datetime(expire_at, field="expire_at")
            if expire_at is not None
            else None
        )
        version.updated_at = self.clock.now()
        if actor_id:
            version.updated_by = actor_id
        saved = self.versions.update(version)
        log.info("version_expire_at_set", version_id=version_id, expire_at=str(saved.expire_at))
        return saved

    def expire_version(
        self, version_id: str, actor_id: str | None = None, now: datetime | None = None
    ) -> AssetVersion:
        """Expire une version publiée et recalcule le pointeur de l'asset si besoin.

        Raises:
            IllegalTransitionError: la version n'est pas `published`.
        """
        version = self.get_version(version_id)
        now = now or self.clock.now()
        try:
            expired = lifecycle.expire(version, now)
        except LifecycleError:
            LIFECYCLE_TRANSITIONS.labels(transition="expire", result="rejected").inc()
            raise
        if actor_id:
            expired.updated_by = actor_id
        saved = self.versions.update(expired)
        asset = self._repoint_current_published(version.asset_id, version_id, now)
        LIFECYCLE_TRANSITIONS.labels(transition="expire", result="ok").inc()
        log.info("version_expired", asset_id=version.asset_id, version_id=version_id)
        if asset is not None:
            self._notify_safely("expired", self.notifier.notify_expired, asset, saved)
        return saved

    def archive_version(
        self, version_id: str, actor_id: str | None = None, now: datetime | None = None
    ) -> AssetVersion:
        """Archive une version, libère son créneau de planification et répare le pointeur.

        Raises:
            IllegalTransitionError: la version est déjà archivée.
        """
        version = self.get_version(version_id)
        now = now or self.clock.now()
        try:
            archived = lifecycle.archive(version, now)
        except LifecycleError:
            LIFECYCLE_TRANSITIONS.labels(transition="archive", result="rejected").inc()
            raise
        if actor_id:
            archived.updated_by = actor_id
        saved = self.versions.update(archived)
        self.assets.release_schedule_slot(version.asset_id, version_id)
        self._repoint_current_published(version.asset_id, version_id, now)
        LIFECYCLE_TRANSITIONS.labels(transition="archive", result="ok").inc()
        log.info("version_archived", asset_id=version.asset_id, version_id=version_id)
        return saved

    def _repoint_current_published(
        self, asset_id: str, version_id: str, now: datetime
    ) -> Asset | None:
        """Si l'asset pointait sur `version_id`, le faire pointer sur la dernière version encore
        publiée (ou None)."""
        asset = self.assets.get(asset_id)
        if asset is None or asset.current_published_version_id != version_id:
            return asset
        latest = self.versions.get_latest_published(asset_id)
        new_pointer = latest.version_id if latest else None
        log.info(
            "current_published_repointed",
            asset_id=asset_id,
            previous=version_id,
            current=new_pointer,
        )
        return self.assets.update(
            asset_id, {"current_published_version_id": new_pointer, "updated_at": now}
        )

    # ------------------------------------------------------------------ accès

    def check_download(
        self, version_id: str, actor: Actor
    ) -> tuple[AssetVersion, Asset, AccessDecision]:
        """Charge version + asset et évalue `can_download` pour l'acteur."""
        version = self.get_version(version_id)
        asset = self.get_asset(version.asset_id)
        decision = can_download(version, asset, actor.role, actor.user_id)
        status = getattr(version.status, "value", str(version.status))
        DOWNLOAD_DECISIONS.labels(
            status=status, result="allowed" if decision.allowed else "denied"
        ).inc()
        if not decision.allowed:
            log.info(
                "download_denied",
                asset_id=asset.asset_id,
                version_id=version_id,
                user_id=actor.user_id,
                role=actor.role.value,
                reason=decision.reason.value if decision.reason else None,
            )
        return version, asset, decision

    # ------------------------------------------------------------------ notifications

    def _notify_safely(
        self,
        kind: str,
        send: Callable[[Asset, AssetVersion], None],
        asset: Asset,
        version: AssetVersion,
    ) -> None:
        # Une notification en échec ne fait jamais échouer la transition
        try:
            send(asset, version)
        except Exception as exc:
            NOTIFICATIONS_TOTAL.labels(kind=kind, result="dispatch_failed").inc()
            log.warning(
                "notification_failed",
                kind=kind,
                asset_id=asset.asset_id,
                version_id=version.version_id,
                error=type(exc).__name__,
            )
