"""Data models for the payments blueprint."""

from __future__ import annotations

from typing import Any, Optional, TypedDict


class Payment(TypedDict, total=False):
    """One participant's amount owed and paid for one event."""

    id: str
    eventId: str
    eventTitle: str
    eventDate: Any
    eventTime: str
    playerId: str
    playerName: str
    playerType: str
    parentId: Optional[str]
    originalAmountDue: int
    currentAmountDue: int
    totalPaid: float
    paymentStatus: str
    paidAt: Any
    markedPaidBy: Optional[str]
    markedPaidByName: Optional[str]
    addedAfterClose: bool
    createdAt: Any
    updatedAt: Any


class PaymentSummary(TypedDict):
    """Aggregate figures for a list of payments."""

    paidCount: int
    partialCount: int
    pendingCount: int
    totalCollected: float
    totalExpected: float
    outstanding: float
