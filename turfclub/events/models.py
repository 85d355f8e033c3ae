"""Data models for the events blueprint."""

from __future__ import annotations

import datetime
from dataclasses import dataclass, field
from typing import Any, Optional, TypedDict

from turfclub.core.types import FirestoreDocument
from turfclub.errors import ValidationError


class EditHistoryEntry(TypedDict, total=False):
    """One append-only entry in an event's edit history."""

    action: str
    oldValue: Any
    newValue: Any
    editedBy: str
    editedByRole: str
    editedAt: Any
    recalculationTriggered: bool
    playerId: str
    playerName: str
    oldParticipantCount: int
    newParticipantCount: int
    oldPerPlayerAmount: int
    newPerPlayerAmount: int


class Event(FirestoreDocument, total=False):
    """An event document in Firestore."""

    title: str
    date: Any
    time: str
    durationHours: float
    totalAmount: float
    deadline: Any
    status: str
    participantCount: int
    originalParticipantCount: int
    totalCollected: float
    teamFund: float
    eventPaidToVendor: bool
    vendorPaidAt: Any
    vendorPaidBy: str
    createdBy: str
    createdByRole: str
    closedAt: Any
    lockedAt: Any
    lastEditedAt: Any
    editHistory: list[EditHistoryEntry]

    # UI and calculated fields
    perPlayerAmount: int
    hasJoined: bool
    canJoinLeave: bool


class Participant(TypedDict, total=False):
    """A join record linking one person to one event."""

    id: str
    eventId: str
    playerId: str
    playerName: str
    playerEmail: str
    playerType: str
    parentId: Optional[str]
    parentName: Optional[str]
    guestIds: list[str]
    joinedAt: Any
    currentStatus: str
    addedAfterClose: bool
    addedBy: str
    addedByRole: str


@dataclass
class EventSubmission:
    """Dataclass for a new event coming from the create form."""

    title: str
    date: datetime.datetime
    total_amount: float
    duration_hours: float
    deadline: datetime.datetime
    time: str = ""

    def validate(self) -> None:
        """Validate the event for obvious errors."""
        if not self.title or not self.title.strip():
            raise ValidationError("Event title is required.")
        if self.total_amount is None or self.total_amount <= 0:
            raise ValidationError("Total amount must be greater than 0.")
        if self.duration_hours is None or self.duration_hours <= 0:
            raise ValidationError("Duration must be greater than 0.")
        if self.deadline >= self.date:
            raise ValidationError("Registration deadline must be before the event.")


@dataclass
class EventChanges:
    """Editable fields of an event; ``None`` means unchanged."""

    title: Optional[str] = None
    total_amount: Optional[float] = None
    duration_hours: Optional[float] = None

    def validate(self) -> None:
        """Validate the requested changes."""
        if self.title is not None and not self.title.strip():
            raise ValidationError("Event title cannot be empty.")
        if self.total_amount is not None and self.total_amount <= 0:
            raise ValidationError("Total amount must be greater than 0.")
        if self.duration_hours is not None and self.duration_hours <= 0:
            raise ValidationError("Duration must be greater than 0.")


@dataclass
class JoinResult:
    """Outcome of a successful join."""

    event_id: str
    participant_ids: list[str]
    participant_count: int

    @property
    def guest_count(self) -> int:
        return len(self.participant_ids) - 1


@dataclass
class LeaveResult:
    """Outcome of a successful leave."""

    event_id: str
    removed_ids: list[str] = field(default_factory=list)
    participant_count: int = 0

    @property
    def removed_count(self) -> int:
        return len(self.removed_ids)
