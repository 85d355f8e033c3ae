"""Service layer for the club ledger: expenses, income and vendor payments."""

from __future__ import annotations

import datetime
import logging
from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore

from turfclub.auth.services import require_role
from turfclub.core.constants import (
    EVENTS_COLLECTION,
    EXPENSE_EVENT_PAYMENT,
    EXPENSE_OTHER,
    EXPENSES_COLLECTION,
    INCOME_COLLECTION,
    INCOME_SOURCES,
    ROLE_TREASURER,
    SETTLED_EVENT_STATUSES,
    TEAM_FUND_SUMMARY_COLLECTION,
    TEAM_FUND_SUMMARY_DOC,
)
from turfclub.errors import NotFoundError, StateConflictError, ValidationError
from turfclub.utils import as_utc, format_currency, is_future_date, utcnow

from .models import (
    ClubLedger,
    EventCollection,
    Expense,
    FinancialSummary,
    Income,
    TeamFundSummary,
)

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client

    from turfclub.auth.models import UserSession

logger = logging.getLogger(__name__)

_EPOCH = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


def _validate_entry(name: str, amount: float, day: Any, what: str) -> None:
    if not name or not name.strip():
        raise ValidationError(f"{what} name is required")
    if amount is None or amount <= 0:
        raise ValidationError("Please enter a valid amount greater than 0")
    if day is None:
        raise ValidationError("Date is required")
    if is_future_date(day):
        raise ValidationError("Date cannot be in the future")


def _documents(db: Client, collection: str, date_field: str) -> list[dict[str, Any]]:
    documents = []
    for doc in db.collection(collection).stream():
        data = doc.to_dict() or {}
        if not data:
            continue
        data["id"] = doc.id
        documents.append(data)
    return sorted(
        documents,
        key=lambda d: as_utc(d.get(date_field)) or _EPOCH,
        reverse=True,
    )


class FinanceService:
    """Service class for treasurer finance operations."""

    @staticmethod
    def add_expense(  # noqa: PLR0913
        db: Client,
        name: str,
        amount: float,
        date_spent: datetime.datetime,
        description: str | None,
        actor: UserSession,
    ) -> str:
        """Record a club expense other than a vendor payment.

        The amount cannot exceed the available balance.
        """
        require_role(actor, ROLE_TREASURER, message="Only treasurers can add expenses.")
        _validate_entry(name, amount, date_spent, "Expense")
        balance = FinanceService.financial_summary(db)["availableBalance"]
        if amount > balance:
            raise ValidationError(
                f"Amount exceeds the available balance of {format_currency(balance)}"
            )

        expense_ref = db.collection(EXPENSES_COLLECTION).document()
        expense_ref.set(
            {
                "expenseType": EXPENSE_OTHER,
                "expenseName": name.strip(),
                "description": (description or "").strip() or None,
                "amount": amount,
                "dateSpent": date_spent,
                "createdBy": actor.uid,
                "createdByEmail": actor.email,
                "createdAt": firestore.SERVER_TIMESTAMP,
            }
        )
        logger.info(f"Expense {expense_ref.id} of {amount} added by {actor.uid}.")
        FinanceService.team_fund_summary(db, refresh=True)
        return expense_ref.id

    @staticmethod
    def add_income(  # noqa: PLR0913
        db: Client,
        name: str,
        amount: float,
        date_received: datetime.datetime,
        source: str,
        description: str | None,
        actor: UserSession,
    ) -> str:
        """Record income received outside event payments."""
        require_role(actor, ROLE_TREASURER, message="Only treasurers can add income.")
        _validate_entry(name, amount, date_received, "Income")
        if source not in INCOME_SOURCES:
            raise ValidationError(f"Unknown income source: {source}")

        income_ref = db.collection(INCOME_COLLECTION).document()
        income_ref.set(
            {
                "incomeName": name.strip(),
                "amount": amount,
                "dateReceived": date_received,
                "incomeSource": source,
                "description": (description or "").strip() or None,
                "createdBy": actor.uid,
                "createdByEmail": actor.email,
                "createdAt": firestore.SERVER_TIMESTAMP,
            }
        )
        logger.info(f"Income {income_ref.id} of {amount} added by {actor.uid}.")
        return income_ref.id

    @staticmethod
    def delete_expense(db: Client, expense_id: str, actor: UserSession) -> None:
        """Delete a manually entered expense."""
        require_role(
            actor, ROLE_TREASURER, message="Only treasurers can delete expenses."
        )
        ref = db.collection(EXPENSES_COLLECTION).document(expense_id)
        snapshot = cast("DocumentSnapshot", ref.get())
        if not snapshot.exists:
            raise NotFoundError("Expense not found.")
        if (snapshot.to_dict() or {}).get("expenseType") == EXPENSE_EVENT_PAYMENT:
            raise StateConflictError(
                "Event payments cannot be deleted. They are tied to an event."
            )
        ref.delete()
        logger.info(f"Expense {expense_id} deleted by {actor.uid}.")
        FinanceService.team_fund_summary(db, refresh=True)

    @staticmethod
    def mark_event_paid_to_vendor(
        db: Client,
        event_id: str,
        actor: UserSession,
        date_paid: datetime.datetime | None = None,
    ) -> str:
        """Mark a closed event as paid to the venue and record the expense."""
        require_role(
            actor, ROLE_TREASURER, message="Only treasurers can record vendor payments."
        )
        event_ref = db.collection(EVENTS_COLLECTION).document(event_id)
        snapshot = cast("DocumentSnapshot", event_ref.get())
        if not snapshot.exists:
            raise NotFoundError("Event not found")
        event = snapshot.to_dict() or {}
        if event.get("eventPaidToVendor"):
            raise StateConflictError("Event already marked as paid to vendor")
        if event.get("status") not in SETTLED_EVENT_STATUSES:
            raise StateConflictError("Only closed events can be paid to the vendor")
        if date_paid is not None and is_future_date(date_paid):
            raise ValidationError("Date cannot be in the future")

        paid_at = date_paid or utcnow()
        expense_ref = db.collection(EXPENSES_COLLECTION).document()
        expense_ref.set(
            {
                "expenseType": EXPENSE_EVENT_PAYMENT,
                "expenseName": f"Vendor payment: {event.get('title', '')}",
                "description": None,
                "amount": event.get("totalAmount", 0) or 0,
                "dateSpent": paid_at,
                "eventId": event_id,
                "eventTitle": event.get("title", ""),
                "createdBy": actor.uid,
                "createdByEmail": actor.email,
                "createdAt": firestore.SERVER_TIMESTAMP,
            }
        )
        event_ref.update(
            {
                "eventPaidToVendor": True,
                "vendorPaidAt": paid_at,
                "vendorPaidBy": actor.uid,
            }
        )
        logger.info(f"Event {event_id} paid to vendor; expense {expense_ref.id}.")
        FinanceService.team_fund_summary(db, refresh=True)
        return expense_ref.id

    @staticmethod
    def unpaid_events(db: Client) -> list[dict[str, Any]]:
        """Return closed and locked events not yet paid to the vendor."""
        docs = (
            db.collection(EVENTS_COLLECTION)
            .where(
                filter=firestore.FieldFilter("status", "in", list(SETTLED_EVENT_STATUSES))
            )
            .stream()
        )
        events = []
        for doc in docs:
            data = doc.to_dict() or {}
            if data.get("eventPaidToVendor"):
                continue
            data["id"] = doc.id
            events.append(data)
        return sorted(events, key=lambda e: as_utc(e.get("date")) or _EPOCH)

    @staticmethod
    def financial_summary(db: Client) -> FinancialSummary:
        """Total income (collected at events plus direct) against all expenses."""
        event_income = sum(
            (doc.to_dict() or {}).get("totalCollected", 0) or 0
            for doc in db.collection(EVENTS_COLLECTION).stream()
        )
        direct_income = sum(
            (doc.to_dict() or {}).get("amount", 0) or 0
            for doc in db.collection(INCOME_COLLECTION).stream()
        )
        total_expenses = sum(
            (doc.to_dict() or {}).get("amount", 0) or 0
            for doc in db.collection(EXPENSES_COLLECTION).stream()
        )
        total_income = event_income + direct_income
        return {
            "eventIncome": event_income,
            "directIncome": direct_income,
            "totalIncome": total_income,
            "totalExpenses": total_expenses,
            "availableBalance": total_income - total_expenses,
        }

    @staticmethod
    def team_fund_summary(db: Client, refresh: bool = False) -> TeamFundSummary:
        """Return the cached team fund summary, recomputing it when asked or missing."""
        summary_ref = db.collection(TEAM_FUND_SUMMARY_COLLECTION).document(
            TEAM_FUND_SUMMARY_DOC
        )
        if not refresh:
            snapshot = cast("DocumentSnapshot", summary_ref.get())
            if snapshot.exists:
                return cast(TeamFundSummary, snapshot.to_dict() or {})

        total_fund = 0
        for doc in db.collection(EVENTS_COLLECTION).stream():
            data = doc.to_dict() or {}
            if data.get("status") in SETTLED_EVENT_STATUSES:
                total_fund += data.get("teamFund", 0) or 0
        total_expenses = sum(
            (doc.to_dict() or {}).get("amount", 0) or 0
            for doc in db.collection(EXPENSES_COLLECTION).stream()
        )
        summary: TeamFundSummary = {
            "totalFund": total_fund,
            "totalExpenses": total_expenses,
            "balance": max(total_fund - total_expenses, 0),
            "lastUpdated": utcnow(),
        }
        summary_ref.set(dict(summary))
        logger.info(f"Team fund summary updated: {summary}")
        return summary

    @staticmethod
    def list_expenses(db: Client) -> list[Expense]:
        """Return every expense, most recent first."""
        return cast("list[Expense]", _documents(db, EXPENSES_COLLECTION, "dateSpent"))

    @staticmethod
    def list_income(db: Client) -> list[Income]:
        """Return every income entry, most recent first."""
        return cast("list[Income]", _documents(db, INCOME_COLLECTION, "dateReceived"))

    @staticmethod
    def event_collections(db: Client) -> list[EventCollection]:
        """Return what each settled event collected against its venue cost."""
        rows: list[EventCollection] = []
        for doc in db.collection(EVENTS_COLLECTION).stream():
            data = doc.to_dict() or {}
            collected = data.get("totalCollected", 0) or 0
            if data.get("status") not in SETTLED_EVENT_STATUSES or collected <= 0:
                continue
            total_amount = data.get("totalAmount", 0) or 0
            rows.append(
                {
                    "id": doc.id,
                    "title": data.get("title", ""),
                    "date": data.get("date"),
                    "status": data.get("status"),
                    "participantCount": data.get("participantCount", 0) or 0,
                    "totalAmount": total_amount,
                    "totalCollected": collected,
                    "margin": collected - total_amount,
                }
            )
        return sorted(
            rows, key=lambda e: as_utc(e.get("date")) or _EPOCH, reverse=True
        )

    @staticmethod
    def club_ledger(db: Client) -> ClubLedger:
        """Read-only view of the club's money for every member."""
        expenses = FinanceService.list_expenses(db)
        return {
            "summary": FinanceService.financial_summary(db),
            "eventCollections": FinanceService.event_collections(db),
            "eventExpenses": [
                e for e in expenses if e.get("expenseType") == EXPENSE_EVENT_PAYMENT
            ],
            "otherExpenses": [
                e for e in expenses if e.get("expenseType") != EXPENSE_EVENT_PAYMENT
            ],
            "income": FinanceService.list_income(db),
        }
