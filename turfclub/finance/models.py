"""Data models for the finance blueprint."""

from __future__ import annotations

from typing import Any, Optional, TypedDict

from turfclub.core.types import FirestoreDocument


class Expense(FirestoreDocument, total=False):
    """An expense ledger entry."""

    expenseType: str
    expenseName: str
    description: Optional[str]
    amount: float
    dateSpent: Any
    eventId: str
    eventTitle: str
    createdBy: str
    createdByEmail: str


class Income(FirestoreDocument, total=False):
    """An income ledger entry."""

    incomeName: str
    amount: float
    dateReceived: Any
    incomeSource: str
    description: Optional[str]
    createdBy: str
    createdByEmail: str


class FinancialSummary(TypedDict):
    """Club-wide income, expenses and balance."""

    eventIncome: float
    directIncome: float
    totalIncome: float
    totalExpenses: float
    availableBalance: float


class TeamFundSummary(TypedDict, total=False):
    """Surplus collected over per-player shares, less expenses."""

    totalFund: float
    totalExpenses: float
    balance: float
    lastUpdated: Any


class EventCollection(TypedDict):
    """What a settled event collected from players against its venue cost."""

    id: str
    title: str
    date: Any
    status: str
    participantCount: int
    totalAmount: float
    totalCollected: float
    margin: float


class ClubLedger(TypedDict):
    """The club's money as every member may see it."""

    summary: FinancialSummary
    eventCollections: list[EventCollection]
    eventExpenses: list[Expense]
    otherExpenses: list[Expense]
    income: list[Income]
