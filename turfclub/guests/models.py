"""Data models for the guests blueprint."""

from __future__ import annotations

from typing import Any, Optional, TypedDict


class Guest(TypedDict, total=False):
    """A guest player document in Firestore."""

    id: str
    guestName: str
    notes: Optional[str]
    parentIds: list[str]
    linkedParents: list[dict[str, Any]]
    playerType: str
    isActive: bool
    addedBy: str
    createdAt: Any
    updatedAt: Any
    deactivatedAt: Any
