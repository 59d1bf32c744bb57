"""
Erreurs métier du cycle de vie des versions d'assets.

Ce module définit la taxonomie d'exceptions levées par le domaine (transitions pures) et par la
couche service. Elles sont toujours remontées à l'appelant; la couche HTTP les traduit en réponses
400/403/404/409 (voir `portal.apigw.errors`).
"""

from __future__ import annotations


class LifecycleError(Exception):
    """Erreur de base du domaine, porte un code stable pour l'enveloppe API."""

    code = "LIFECYCLE_ERROR"

    def __init__(self, message: str, details: dict | None = None) -> None:
        """Initialise l'erreur avec un message lisible et des détails optionnels."""
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(LifecycleError):
    """Entrée malformée (datetime invalide, métadonnées obligatoires manquantes)."""

    code = "VALIDATION_ERROR"


class IllegalTransitionError(LifecycleError):
    """Le statut courant n'autorise pas la transition demandée."""

    code = "ILLEGAL_TRANSITION"

    def __init__(self, transition: str, status: str) -> None:
        """Construit l'erreur à partir du nom de transition et du statut courant."""
        super().__init__(
            f"Cannot {transition} version with status {status}",
            details={"transition": transition, "status": status},
        )
        self.transition = transition
        self.status = status


class InvalidStateError(LifecycleError):
    """Statut hors énumération connue (données corrompues en amont)."""

    code = "INVALID_STATE"


class NotFoundError(LifecycleError):
    """Asset ou version introuvable."""

    code = "NOT_FOUND"


class ScheduleConflictError(LifecycleError):
    """Une autre version du même asset occupe déjà le créneau de planification."""

    code = "SCHEDULE_CONFLICT"


class ConflictError(LifecycleError):
    """Écriture concurrente en collision avec une contrainte d'unicité (ex: numéro de version)."""

    code = "CONFLICT"


class PermissionDeniedError(LifecycleError):
    """L'acteur n'a pas le rôle ou la propriété requise pour l'opération."""

    code = "FORBIDDEN"


__all__ = [
    "ConflictError",
    "IllegalTransitionError",
    "InvalidStateError",
    "LifecycleError",
    "NotFoundError",
    "PermissionDeniedError",
    "ScheduleConflictError",
    "ValidationError",
]
