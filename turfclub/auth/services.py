"""Service layer for identity and role resolution."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore

from turfclub.core.constants import (
    CONFIG_COLLECTION,
    ROLE_PLAYER,
    ROLE_SUPERADMIN,
    SUPERADMIN_SETTINGS_DOC,
    USERS_COLLECTION,
)
from turfclub.errors import PermissionDeniedError

from .models import UserSession

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client

logger = logging.getLogger(__name__)


class AuthService:
    """Resolves who is acting and what they may do."""

    @staticmethod
    def get_superadmin_email(db: Client, configured: str | None = None) -> str | None:
        """Return the superadmin email from app config, falling back to Firestore."""
        if configured:
            return configured
        config_doc = cast(
            "DocumentSnapshot",
            db.collection(CONFIG_COLLECTION).document(SUPERADMIN_SETTINGS_DOC).get(),
        )
        if config_doc.exists:
            return (config_doc.to_dict() or {}).get("SUPERADMIN_EMAIL")
        return None

    @staticmethod
    def determine_user_role(
        db: Client, email: str | None, uid: str, superadmin_email: str | None
    ) -> str:
        """Determine the role for a signed-in user.

        The superadmin is recognised by email; everyone else carries a
        ``role`` field on their user document, defaulting to player.
        """
        if superadmin_email and email == superadmin_email:
            return ROLE_SUPERADMIN

        user_doc = cast(
            "DocumentSnapshot", db.collection(USERS_COLLECTION).document(uid).get()
        )
        if user_doc.exists:
            return (user_doc.to_dict() or {}).get("role") or ROLE_PLAYER
        logger.info(f"No user document for {uid}; defaulting to player role.")
        return ROLE_PLAYER

    @staticmethod
    def load_session(db: Client, uid: str, role: str | None = None) -> UserSession | None:
        """Build a UserSession for ``uid`` from the users collection."""
        user_doc = cast(
            "DocumentSnapshot", db.collection(USERS_COLLECTION).document(uid).get()
        )
        if not user_doc.exists:
            return None
        data: dict[str, Any] = user_doc.to_dict() or {}
        data["uid"] = uid
        if role:
            data["role"] = role
        return UserSession(data)


def require_role(actor: UserSession, *roles: str, message: str | None = None) -> None:
    """Raise PermissionDeniedError unless ``actor`` holds one of ``roles``."""
    if actor.role not in roles and actor.role != ROLE_SUPERADMIN:
        raise PermissionDeniedError(
            message or f"Only {' or '.join(roles)} accounts can perform this action."
        )


class PlayerDirectory:
    """Read access to club members for secretaries and treasurers."""

    @staticmethod
    def list_players(db: Client) -> list[dict[str, Any]]:
        """Return every user with the player role, by name."""
        docs = (
            db.collection(USERS_COLLECTION)
            .where(filter=firestore.FieldFilter("role", "==", ROLE_PLAYER))
            .stream()
        )
        players = []
        for doc in docs:
            data = doc.to_dict() or {}
            players.append(
                {
                    "id": doc.id,
                    "name": data.get("name", ""),
                    "email": data.get("email", ""),
                    "profileCompleted": bool(data.get("profileCompleted")),
                    "linkedGuests": data.get("linkedGuests") or [],
                    "createdAt": data.get("createdAt"),
                }
            )
        return sorted(players, key=lambda p: (p["name"] or p["email"]).lower())
