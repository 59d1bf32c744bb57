# Schémas Pydantic exposés par l'API (requêtes et réponses).

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from portal.domain.asset import AssetType, SourceType


class AssetCreateRequest(BaseModel):
    """Création d'un asset et de sa version 1 (brouillon).

    Champs:
    - title: str (obligatoire, requis aussi à la publication)
    - asset_type: deck | doc | image | video | logo | worksheet | link
    - source_type: UPLOAD | LINK | GOOGLE_DRIVE | RICHTEXT
    - filename / mime_type / size_bytes: fichier de la version 1 (optionnels)
    """

    title: str = Field(min_length=1)
    asset_type: AssetType
    source_type: SourceType = SourceType.UPLOAD
    description: str | None = None
    filename: str | None = None
    mime_type: str | None = None
    size_bytes: int | None = Field(default=None, ge=0)


class AssetUpdateRequest(BaseModel):
    """Mise à jour partielle des métadonnées; seuls les champs fournis sont modifiés."""

    model_config = ConfigDict(extra="forbid")

    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    asset_type: AssetType | None = None
    owner_id: str | None = None


class VersionCreateRequest(BaseModel):
    """Nouvelle version brouillon d'un asset existant."""

    filename: str | None = None
    mime_type: str | None = None
    size_bytes: int | None = Field(default=None, ge=0)


class PublishRequest(BaseModel):
    change_log: str | None = None


class ScheduleRequest(BaseModel):
    """`publish_at`: date ISO-8601 avec fuseau (ex: 2030-01-01T09:00:00Z)."""

    publish_at: str


class ExpireAtRequest(BaseModel):
    """`expire_at`: date ISO-8601 avec fuseau, ou null pour effacer."""

    expire_at: str | None = None


class SubscriptionCreateRequest(BaseModel):
    asset_id: str
    notify_new_version: bool = True
    notify_expired: bool = True


class AssetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    asset_id: str
    title: str
    asset_type: str
    owner_id: str
    source_type: str
    description: str | None = None
    current_published_version_id: str | None = None
    scheduled_version_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("asset_type", "source_type", mode="before")
    @classmethod
    def _enum_value(cls, value):
        return getattr(value, "value", value)


class VersionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    version_id: str
    asset_id: str
    version_number: int
    status: str
    publish_at: datetime | None = None
    expire_at: datetime | None = None
    published_at: datetime | None = None
    published_by: str | None = None
    expired_at: datetime | None = None
    archived_at: datetime | None = None
    change_log: str | None = None
    storage_key: str | None = None
    mime_type: str | None = None
    size_bytes: int | None = None
    created_at: datetime | None = None
    created_by: str | None = None
    updated_at: datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _status_value(cls, value):
        return getattr(value, "value", value)


class AssetCreatedResponse(BaseModel):
    asset: AssetResponse
    version: VersionResponse


class PublishResponse(BaseModel):
    """Version publiée et asset mis à jour (pointeur courant)."""

    version: VersionResponse
    asset: AssetResponse


class DownloadResponse(BaseModel):
    version_id: str
    asset_id: str
    storage_key: str | None = None
    mime_type: str | None = None


class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    subscription_id: str
    user_id: str
    asset_id: str
    notify_new_version: bool
    notify_expired: bool
    created_at: datetime | None = None


class SubscriptionCheckResponse(BaseModel):
    subscribed: bool
    subscription: SubscriptionResponse | None = None


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    notification_id: str
    kind: str
    title: str
    message: str
    asset_id: str
    version_id: str
    created_at: datetime | None = None
