"""SQLAlchemy models for persistence layer (assets, versions, subscriptions, notifications)."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """DateTime stocké naïf en UTC, relu conscient du fuseau (UTC).

    SQLite ne conserve pas le fuseau: on normalise à l'écriture et on le restaure à la lecture.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):  # type: ignore[no-untyped-def]
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(UTC).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):  # type: ignore[no-untyped-def]
        if value is None:
            return None
        return value.replace(tzinfo=UTC)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Classe de base pour tous les modèles SQLAlchemy."""

    metadata = MetaData()


class AssetORM(Base):
    """Modèle ORM pour les assets."""

    __tablename__ = "assets"

    asset_id = Column(String(64), primary_key=True)
    title = Column(String(512), nullable=False, default="")
    description = Column(Text, nullable=True)
    asset_type = Column(String(32), nullable=False, default="")
    owner_id = Column(String(64), nullable=False, default="")
    source_type = Column(String(32), nullable=False, default="UPLOAD")
    current_published_version_id = Column(String(64), nullable=True)
    # Créneau "version planifiée": écrit par UPDATE conditionnel uniquement
    scheduled_version_id = Column(String(64), nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)
    created_by = Column(String(64), nullable=True)
    updated_at = Column(UTCDateTime, nullable=False, default=_utcnow)
    updated_by = Column(String(64), nullable=True)


class AssetVersionORM(Base):
    """Modèle ORM pour les versions d'assets."""

    __tablename__ = "asset_versions"

    version_id = Column(String(64), primary_key=True)
    asset_id = Column(String(64), ForeignKey("assets.asset_id"), nullable=False, index=True)
    version_number = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default="draft", index=True)
    publish_at = Column(UTCDateTime, nullable=True)
    expire_at = Column(UTCDateTime, nullable=True)
    published_at = Column(UTCDateTime, nullable=True)
    published_by = Column(String(64), nullable=True)
    expired_at = Column(UTCDateTime, nullable=True)
    archived_at = Column(UTCDateTime, nullable=True)
    change_log = Column(Text, nullable=True)
    storage_key = Column(String(1024), nullable=True)
    mime_type = Column(String(255), nullable=True)
    size_bytes = Column(Integer, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)
    created_by = Column(String(64), nullable=True)
    updated_at = Column(UTCDateTime, nullable=False, default=_utcnow)
    updated_by = Column(String(64), nullable=True)

    __table_args__ = (
        UniqueConstraint("asset_id", "version_number", name="uq_asset_version_number"),
    )


class SubscriptionORM(Base):
    """Modèle ORM pour les abonnements aux assets."""

    __tablename__ = "subscriptions"

    subscription_id = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    asset_id = Column(String(64), nullable=False, index=True)
    notify_new_version = Column(Boolean, nullable=False, default=True)
    notify_expired = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)

    __table_args__ = (UniqueConstraint("user_id", "asset_id", name="uq_subscription_user_asset"),)


class NotificationORM(Base):
    """Modèle ORM pour les notifications in-app."""

    __tablename__ = "notifications"

    notification_id = Column(String(255), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    kind = Column(String(32), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    asset_id = Column(String(64), nullable=False)
    version_id = Column(String(64), nullable=False)
    extra = Column(JSON, nullable=False, default=dict)
    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)
