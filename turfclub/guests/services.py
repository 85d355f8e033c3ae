"""Service layer for guest players."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, cast

from firebase_admin import firestore

from turfclub.auth.services import require_role
from turfclub.core.constants import (
    GUESTS_COLLECTION,
    PLAYER_TYPE_GUEST,
    ROLE_PLAYER,
    ROLE_SECRETARY,
    USERS_COLLECTION,
)
from turfclub.errors import NotFoundError, ValidationError
from turfclub.utils import utcnow

from .models import Guest

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client

    from turfclub.auth.models import UserSession

logger = logging.getLogger(__name__)

MIN_GUEST_NAME_LENGTH = 2


class GuestService:
    """Service class for guest-related operations."""

    @staticmethod
    def create(
        db: Client,
        name: str,
        parent_ids: Iterable[str],
        notes: str | None,
        actor: UserSession,
    ) -> str:
        """Create a guest linked to one or more parent accounts."""
        require_role(actor, ROLE_SECRETARY, message="Only secretaries can add guests.")
        name = (name or "").strip()
        if len(name) < MIN_GUEST_NAME_LENGTH:
            raise ValidationError("Guest name is required (minimum 2 characters)")
        parent_ids = list(dict.fromkeys(p for p in parent_ids if p))
        if not parent_ids:
            raise ValidationError("Please select at least one parent account")

        now = utcnow()
        parents = {}
        for parent_id in parent_ids:
            snapshot = cast(
                "DocumentSnapshot",
                db.collection(USERS_COLLECTION).document(parent_id).get(),
            )
            parents[parent_id] = (snapshot.to_dict() or {}) if snapshot.exists else None

        guest_ref = db.collection(GUESTS_COLLECTION).document()
        guest_ref.set(
            {
                "guestName": name,
                "notes": (notes or "").strip() or None,
                "parentIds": parent_ids,
                "linkedParents": [
                    {
                        "parentId": parent_id,
                        "parentName": (parent or {}).get("name", ""),
                        "parentEmail": (parent or {}).get("email", ""),
                        "parentRole": (parent or {}).get("role", ROLE_PLAYER),
                        "linkedAt": now,
                        "linkedBy": actor.uid,
                    }
                    for parent_id, parent in parents.items()
                ],
                "playerType": PLAYER_TYPE_GUEST,
                "isActive": True,
                "addedBy": actor.uid,
                "createdAt": firestore.SERVER_TIMESTAMP,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            }
        )

        for parent_id, parent in parents.items():
            if parent is None:
                logger.info(f"Parent {parent_id} has no user document; not linked.")
                continue
            db.collection(USERS_COLLECTION).document(parent_id).update(
                {
                    "linkedGuests": firestore.ArrayUnion(
                        [{"guestId": guest_ref.id, "guestName": name, "linkedAt": now}]
                    )
                }
            )

        logger.info(
            f"Guest {guest_ref.id} created by {actor.uid} for parents {parent_ids}."
        )
        return guest_ref.id

    @staticmethod
    def get(db: Client, guest_id: str) -> Guest:
        """Return a guest by id."""
        snapshot = cast(
            "DocumentSnapshot", db.collection(GUESTS_COLLECTION).document(guest_id).get()
        )
        if not snapshot.exists:
            raise NotFoundError("Guest not found.")
        data = snapshot.to_dict() or {}
        data["id"] = snapshot.id
        return cast(Guest, data)

    @staticmethod
    def linked_guests(db: Client, parent_id: str) -> list[Guest]:
        """Return the active guests a parent may bring to events."""
        docs = (
            db.collection(GUESTS_COLLECTION)
            .where(filter=firestore.FieldFilter("parentIds", "array_contains", parent_id))
            .stream()
        )
        guests = []
        for doc in docs:
            data = doc.to_dict() or {}
            if not data.get("isActive", True):
                continue
            data["id"] = doc.id
            guests.append(cast(Guest, data))
        return sorted(guests, key=lambda g: (g.get("guestName") or "").lower())

    @staticmethod
    def list_guests(db: Client, include_inactive: bool = False) -> list[Guest]:
        """Return every guest, by name."""
        guests = []
        for doc in db.collection(GUESTS_COLLECTION).stream():
            data = doc.to_dict() or {}
            if not data or (not include_inactive and not data.get("isActive", True)):
                continue
            data["id"] = doc.id
            guests.append(cast(Guest, data))
        return sorted(guests, key=lambda g: (g.get("guestName") or "").lower())

    @staticmethod
    def deactivate(db: Client, guest_id: str, actor: UserSession) -> None:
        """Soft-delete a guest so parents can no longer bring them along."""
        require_role(
            actor, ROLE_SECRETARY, message="Only secretaries can deactivate guests."
        )
        ref = db.collection(GUESTS_COLLECTION).document(guest_id)
        if not ref.get().exists:
            raise NotFoundError("Guest not found.")
        ref.update(
            {
                "isActive": False,
                "deactivatedAt": firestore.SERVER_TIMESTAMP,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            }
        )
        logger.info(f"Guest {guest_id} deactivated by {actor.uid}.")
