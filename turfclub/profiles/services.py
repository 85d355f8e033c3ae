"""Service layer for player profiles."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore

from turfclub.core.constants import (
    PLAYER_TYPE_REGULAR,
    USER_PROFILES_COLLECTION,
    USERS_COLLECTION,
)
from turfclub.errors import ValidationError

from .models import GuestProfile, ProfileStatus, ProfileSubmission, UserProfile

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client

    from turfclub.auth.models import UserSession

logger = logging.getLogger(__name__)


class ProfileService:
    """Service class for player profile operations."""

    @staticmethod
    def get(db: Client, uid: str) -> UserProfile | None:
        """Return a player's profile, or None if they have not filled it in."""
        snapshot = cast(
            "DocumentSnapshot",
            db.collection(USER_PROFILES_COLLECTION).document(uid).get(),
        )
        if not snapshot.exists:
            return None
        data = snapshot.to_dict() or {}
        data["id"] = snapshot.id
        return cast(UserProfile, data)

    @staticmethod
    def linked_guests(db: Client, uid: str) -> list[dict[str, Any]]:
        """Return the guest links stored on the player's user document."""
        snapshot = cast(
            "DocumentSnapshot", db.collection(USERS_COLLECTION).document(uid).get()
        )
        if not snapshot.exists:
            return []
        return list((snapshot.to_dict() or {}).get("linkedGuests") or [])

    @staticmethod
    def check_complete(db: Client, uid: str) -> ProfileStatus:
        """Report whether the player and every guest linked to them have a profile.

        A guest linked after the profile was saved shows up as missing until
        the player saves their profile again.
        """
        profile = ProfileService.get(db, uid)
        if profile is None:
            return ProfileStatus(is_complete=False)

        profiled = {g.get("guestId") for g in profile.get("guestProfiles") or []}
        missing = [
            link["guestId"]
            for link in ProfileService.linked_guests(db, uid)
            if link.get("guestId") and link["guestId"] not in profiled
        ]
        return ProfileStatus(
            is_complete=not missing, profile=profile, missing_guest_profiles=missing
        )

    @staticmethod
    def save(db: Client, submission: ProfileSubmission, actor: UserSession) -> UserProfile:
        """Create or replace the actor's profile, covering each of their guests."""
        submission.validate()

        links = {
            link["guestId"]: link.get("guestName") or "Guest"
            for link in ProfileService.linked_guests(db, actor.uid)
            if link.get("guestId")
        }
        entries = {}
        for entry in submission.guest_profiles:
            if entry.guest_id not in links:
                raise ValidationError("Guest is not linked to your account.")
            entry.validate(links[entry.guest_id])
            entries[entry.guest_id] = entry
        for guest_id, guest_name in links.items():
            if guest_id not in entries:
                raise ValidationError(f"Please complete the profile for {guest_name}")

        guest_profiles: list[GuestProfile] = [
            {
                "guestId": guest_id,
                "guestName": links[guest_id],
                "fullName": entry.full_name.strip(),
                "jerseyNumber": entry.jersey_number,
                "position": entry.position,
            }
            for guest_id, entry in entries.items()
        ]

        profile_ref = db.collection(USER_PROFILES_COLLECTION).document(actor.uid)
        existing = cast("DocumentSnapshot", profile_ref.get())
        created_at = (
            (existing.to_dict() or {}).get("createdAt")
            if existing.exists
            else firestore.SERVER_TIMESTAMP
        )
        profile_ref.set(
            {
                "userId": actor.uid,
                "email": actor.email,
                "fullName": submission.full_name.strip(),
                "jerseyNumber": submission.jersey_number,
                "position": submission.position,
                "playerType": PLAYER_TYPE_REGULAR,
                "profileCompleted": True,
                "guestProfiles": guest_profiles,
                "createdAt": created_at,
                "updatedAt": firestore.SERVER_TIMESTAMP,
            }
        )
        db.collection(USERS_COLLECTION).document(actor.uid).set(
            {"profileCompleted": True, "updatedAt": firestore.SERVER_TIMESTAMP},
            merge=True,
        )
        logger.info(
            f"Profile saved for {actor.uid} with {len(guest_profiles)} guest profiles."
        )
        return cast(UserProfile, ProfileService.get(db, actor.uid))
