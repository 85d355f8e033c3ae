"""Data models for the profiles blueprint."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, TypedDict

from turfclub.core.constants import MAX_JERSEY_NUMBER, MIN_JERSEY_NUMBER, PLAYER_POSITIONS
from turfclub.core.types import FirestoreDocument
from turfclub.errors import ValidationError

MIN_NAME_LENGTH = 2


class GuestProfile(TypedDict, total=False):
    """Playing details a parent records for one of their guests."""

    guestId: str
    guestName: str
    fullName: str
    jerseyNumber: Optional[int]
    position: str


class UserProfile(FirestoreDocument, total=False):
    """A player's profile document in Firestore."""

    userId: str
    email: str
    fullName: str
    jerseyNumber: int
    position: str
    playerType: str
    profileCompleted: bool
    guestProfiles: list[GuestProfile]


def _check_jersey(number: Optional[int], label: str) -> None:
    if number is not None and not MIN_JERSEY_NUMBER <= number <= MAX_JERSEY_NUMBER:
        raise ValidationError(
            f"{label} must be between "
            f"{MIN_JERSEY_NUMBER} and {MAX_JERSEY_NUMBER}"
        )


@dataclass
class GuestProfileEntry:
    guest_id: str
    full_name: str
    position: str
    jersey_number: Optional[int] = None

    def validate(self, guest_name: str) -> None:
        if len((self.full_name or "").strip()) < MIN_NAME_LENGTH:
            raise ValidationError(f"Please enter the full name for {guest_name}")
        if self.position not in PLAYER_POSITIONS:
            raise ValidationError(f"Please select position for {guest_name}")
        _check_jersey(self.jersey_number, f"Jersey number for {guest_name}")


@dataclass
class ProfileSubmission:
    """A player's own details plus one entry per linked guest."""

    full_name: str
    jersey_number: Optional[int]
    position: str
    guest_profiles: list[GuestProfileEntry] = field(default_factory=list)

    def validate(self) -> None:
        """Validate the player's own fields; guests are checked against their links."""
        if len((self.full_name or "").strip()) < MIN_NAME_LENGTH:
            raise ValidationError("Please enter your full name (minimum 2 characters)")
        if self.jersey_number is None:
            raise ValidationError("Your jersey number is required")
        _check_jersey(self.jersey_number, "Your jersey number")
        if self.position not in PLAYER_POSITIONS:
            raise ValidationError("Please select your position")


@dataclass
class ProfileStatus:
    """Whether a player still has to fill in their profile."""

    is_complete: bool
    profile: Optional[UserProfile] = None
    missing_guest_profiles: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "isComplete": self.is_complete,
            "profile": self.profile,
            "missingGuestProfiles": self.missing_guest_profiles,
        }
