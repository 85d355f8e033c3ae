"""Service layer for payment records and the payment reconciler."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore

from turfclub.auth.services import require_role
from turfclub.core.constants import (
    EVENTS_COLLECTION,
    PARTICIPANT_JOINED,
    PARTICIPANTS_COLLECTION,
    PAYMENT_PAID,
    PAYMENT_PARTIAL,
    PAYMENT_PENDING,
    PAYMENTS_COLLECTION,
    PLAYER_TYPE_REGULAR,
    ROLE_TREASURER,
)
from turfclub.core.costs import allocate
from turfclub.errors import NotFoundError, ValidationError
from turfclub.utils import BatchWriter, as_utc, utcnow

from .models import Payment, PaymentSummary

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client

    from turfclub.auth.models import UserSession

logger = logging.getLogger(__name__)

_EPOCH = datetime.datetime.min.replace(tzinfo=datetime.timezone.utc)


def payment_id(event_id: str, player_id: str) -> str:
    """Return the deterministic payment document id for a player in an event."""
    return f"{event_id}_{player_id}"


class PaymentService:
    """Service class for payment-related operations."""

    @staticmethod
    def derive_status(total_paid: float, amount_due: float) -> str:
        """Derive the tri-state payment status from what is paid and what is due."""
        total_paid = total_paid or 0
        amount_due = amount_due or 0
        if total_paid > 0 and total_paid >= amount_due:
            return PAYMENT_PAID
        if 0 < total_paid < amount_due:
            return PAYMENT_PARTIAL
        return PAYMENT_PENDING

    @staticmethod
    def _event_snapshot(db: Client, event_id: str) -> DocumentSnapshot:
        snapshot = cast(
            "DocumentSnapshot", db.collection(EVENTS_COLLECTION).document(event_id).get()
        )
        if not snapshot.exists:
            raise NotFoundError("Event not found")
        return snapshot

    @staticmethod
    def _payment_docs(db: Client, event_id: str) -> list[DocumentSnapshot]:
        query = db.collection(PAYMENTS_COLLECTION).where(
            filter=firestore.FieldFilter("eventId", "==", event_id)
        )
        return list(query.stream())

    @staticmethod
    def recalculate(
        db: Client, event_id: str, new_total_cost: float, new_participant_count: int
    ) -> dict[str, Any]:
        """Recompute every payment of an event for a new cost or headcount.

        ``currentAmountDue`` becomes the new per-player share and the status is
        re-derived from ``totalPaid``. ``originalAmountDue`` and ``totalPaid``
        are never touched, so running this again with the same inputs changes
        nothing.
        """
        event_ref = PaymentService._event_snapshot(db, event_id).reference
        per_player = allocate(new_total_cost, new_participant_count)

        writer = BatchWriter(db)
        team_fund = 0.0
        updated = 0
        for doc in PaymentService._payment_docs(db, event_id):
            data = doc.to_dict() or {}
            total_paid = data.get("totalPaid", 0) or 0
            team_fund += max(total_paid - per_player, 0)
            writer.update(
                doc.reference,
                {
                    "currentAmountDue": per_player,
                    "paymentStatus": PaymentService.derive_status(
                        total_paid, per_player
                    ),
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                },
            )
            updated += 1
        writer.update(
            event_ref,
            {"teamFund": team_fund, "lastEditedAt": firestore.SERVER_TIMESTAMP},
        )
        writer.commit()

        logger.info(
            f"Recalculated {updated} payments for event {event_id}: "
            f"{per_player} per player, team fund {team_fund}."
        )
        return {
            "perPlayerAmount": per_player,
            "teamFund": team_fund,
            "paymentsUpdated": updated,
        }

    @staticmethod
    def update_collected_total(db: Client, event_id: str) -> float:
        """Sum ``totalPaid`` over the event's payments into ``totalCollected``."""
        event_ref = PaymentService._event_snapshot(db, event_id).reference
        total = 0.0
        team_fund = 0.0
        for doc in PaymentService._payment_docs(db, event_id):
            data = doc.to_dict() or {}
            paid = data.get("totalPaid", 0) or 0
            total += paid
            team_fund += max(paid - (data.get("currentAmountDue", 0) or 0), 0)
        event_ref.update({"totalCollected": total, "teamFund": team_fund})
        return total

    @staticmethod
    def build_payment(
        event_id: str,
        event: dict[str, Any],
        participant: dict[str, Any],
        amount_due: int,
        added_after_close: bool = False,
    ) -> dict[str, Any]:
        """Build a new pending payment document for a participant."""
        return {
            "eventId": event_id,
            "eventTitle": event.get("title", ""),
            "eventDate": event.get("date"),
            "eventTime": event.get("time", ""),
            "playerId": participant.get("playerId"),
            "playerName": participant.get("playerName", ""),
            "playerType": participant.get("playerType", PLAYER_TYPE_REGULAR),
            "parentId": participant.get("parentId"),
            "originalAmountDue": amount_due,
            "currentAmountDue": amount_due,
            "totalPaid": 0,
            "paymentStatus": PAYMENT_PENDING,
            "paidAt": None,
            "markedPaidBy": None,
            "markedPaidByName": None,
            "addedAfterClose": added_after_close,
            "createdAt": firestore.SERVER_TIMESTAMP,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        }

    @staticmethod
    def create_for_event(
        db: Client, event_id: str, event: dict[str, Any], participant_count: int
    ) -> int:
        """Create a payment for every joined participant that has none yet.

        Returns the number of payments created.
        """
        amount_due = allocate(event.get("totalAmount", 0) or 0, participant_count)
        participants = (
            db.collection(PARTICIPANTS_COLLECTION)
            .where(filter=firestore.FieldFilter("eventId", "==", event_id))
            .where(filter=firestore.FieldFilter("currentStatus", "==", PARTICIPANT_JOINED))
            .stream()
        )

        writer = BatchWriter(db)
        created = 0
        for doc in participants:
            participant = doc.to_dict() or {}
            player_id = participant.get("playerId")
            if not player_id:
                continue
            ref = db.collection(PAYMENTS_COLLECTION).document(
                payment_id(event_id, player_id)
            )
            if ref.get().exists:
                continue
            writer.set(
                ref,
                PaymentService.build_payment(
                    event_id,
                    event,
                    participant,
                    amount_due,
                    added_after_close=bool(participant.get("addedAfterClose")),
                ),
            )
            created += 1
        writer.commit()

        logger.info(
            f"Created {created} payments for event {event_id} at {amount_due} each."
        )
        return created

    @staticmethod
    def delete_for_event(db: Client, event_id: str) -> int:
        """Delete every payment of an event. Returns the number deleted."""
        writer = BatchWriter(db)
        for doc in PaymentService._payment_docs(db, event_id):
            writer.delete(doc.reference)
        writer.commit()
        return writer.committed

    @staticmethod
    def _load_event_payments(
        db: Client, event_id: str, payment_ids: Iterable[str]
    ) -> list[DocumentSnapshot]:
        snapshots = []
        for pid in payment_ids:
            snapshot = cast(
                "DocumentSnapshot",
                db.collection(PAYMENTS_COLLECTION).document(pid).get(),
            )
            if not snapshot.exists:
                raise NotFoundError(f"Payment {pid} not found.")
            if (snapshot.to_dict() or {}).get("eventId") != event_id:
                raise ValidationError(f"Payment {pid} does not belong to this event.")
            snapshots.append(snapshot)
        if not snapshots:
            raise ValidationError("Select at least one payment.")
        return snapshots

    @staticmethod
    def mark_paid(
        db: Client, event_id: str, payment_ids: Iterable[str], actor: UserSession
    ) -> int:
        """Mark payments as fully paid at their current amount due."""
        require_role(actor, ROLE_TREASURER, message="Only treasurers can update payments.")
        snapshots = PaymentService._load_event_payments(db, event_id, payment_ids)

        writer = BatchWriter(db)
        marked = 0
        for snapshot in snapshots:
            data = snapshot.to_dict() or {}
            amount_due = data.get("currentAmountDue", 0) or 0
            if amount_due <= 0:
                logger.info(f"Payment {snapshot.id} has nothing due; left unchanged.")
                continue
            writer.update(
                snapshot.reference,
                {
                    "totalPaid": amount_due,
                    "paymentStatus": PaymentService.derive_status(amount_due, amount_due),
                    "paidAt": utcnow(),
                    "markedPaidBy": actor.uid,
                    "markedPaidByName": actor.display_name,
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                },
            )
            marked += 1
        writer.commit()
        PaymentService.update_collected_total(db, event_id)
        logger.info(f"{actor.uid} marked {marked} payments paid for {event_id}.")
        return marked

    @staticmethod
    def mark_unpaid(
        db: Client, event_id: str, payment_ids: Iterable[str], actor: UserSession
    ) -> int:
        """Reset payments to nothing paid."""
        require_role(actor, ROLE_TREASURER, message="Only treasurers can update payments.")
        snapshots = PaymentService._load_event_payments(db, event_id, payment_ids)

        writer = BatchWriter(db)
        for snapshot in snapshots:
            writer.update(
                snapshot.reference,
                {
                    "totalPaid": 0,
                    "paymentStatus": PAYMENT_PENDING,
                    "paidAt": None,
                    "markedPaidBy": None,
                    "markedPaidByName": None,
                    "updatedAt": firestore.SERVER_TIMESTAMP,
                },
            )
        writer.commit()
        PaymentService.update_collected_total(db, event_id)
        logger.info(
            f"{actor.uid} marked {len(snapshots)} payments unpaid for {event_id}."
        )
        return len(snapshots)

    @staticmethod
    def record_amount(
        db: Client,
        payment_id: str,
        amount: float,
        actor: UserSession,
        event_id: str | None = None,
    ) -> Payment:
        """Record a cash amount against a payment, which may leave it partial."""
        require_role(actor, ROLE_TREASURER, message="Only treasurers can update payments.")
        if amount is None or amount <= 0:
            raise ValidationError("Amount must be greater than 0.")

        ref = db.collection(PAYMENTS_COLLECTION).document(payment_id)
        snapshot = cast("DocumentSnapshot", ref.get())
        if not snapshot.exists:
            raise NotFoundError("Payment not found.")
        data = snapshot.to_dict() or {}
        if event_id is not None and data.get("eventId") != event_id:
            raise ValidationError("Payment does not belong to this event.")

        total_paid = (data.get("totalPaid", 0) or 0) + amount
        status = PaymentService.derive_status(
            total_paid, data.get("currentAmountDue", 0) or 0
        )
        updates: dict[str, Any] = {
            "totalPaid": total_paid,
            "paymentStatus": status,
            "updatedAt": firestore.SERVER_TIMESTAMP,
        }
        if status == PAYMENT_PAID:
            updates.update(
                {
                    "paidAt": utcnow(),
                    "markedPaidBy": actor.uid,
                    "markedPaidByName": actor.display_name,
                }
            )
        ref.update(updates)
        PaymentService.update_collected_total(db, data["eventId"])

        data.update(updates)
        data["id"] = payment_id
        return cast(Payment, data)

    @staticmethod
    def list_for_event(db: Client, event_id: str) -> list[Payment]:
        """Return the event's payments sorted by player name."""
        payments = []
        for doc in PaymentService._payment_docs(db, event_id):
            data = doc.to_dict() or {}
            data["id"] = doc.id
            payments.append(cast(Payment, data))
        return sorted(payments, key=lambda p: (p.get("playerName") or "").lower())

    @staticmethod
    def list_for_player(db: Client, player_id: str) -> list[Payment]:
        """Return a player's payments and their guests' payments, newest first."""
        payments_ref = db.collection(PAYMENTS_COLLECTION)
        own = payments_ref.where(
            filter=firestore.FieldFilter("playerId", "==", player_id)
        ).stream()
        guests = payments_ref.where(
            filter=firestore.FieldFilter("parentId", "==", player_id)
        ).stream()

        payments: dict[str, Payment] = {}
        for doc in [*own, *guests]:
            data = doc.to_dict() or {}
            data["id"] = doc.id
            payments[doc.id] = cast(Payment, data)

        def event_date(payment: Payment) -> datetime.datetime:
            value = payment.get("eventDate")
            return as_utc(value) if value else _EPOCH

        return sorted(payments.values(), key=event_date, reverse=True)

    @staticmethod
    def summarize(payments: Iterable[Payment]) -> PaymentSummary:
        """Count statuses and total what is collected, expected and outstanding."""
        summary: PaymentSummary = {
            "paidCount": 0,
            "partialCount": 0,
            "pendingCount": 0,
            "totalCollected": 0,
            "totalExpected": 0,
            "outstanding": 0,
        }
        for payment in payments:
            paid = payment.get("totalPaid", 0) or 0
            due = payment.get("currentAmountDue", 0) or 0
            status = PaymentService.derive_status(paid, due)
            if status == PAYMENT_PAID:
                summary["paidCount"] += 1
            elif status == PAYMENT_PARTIAL:
                summary["partialCount"] += 1
            else:
                summary["pendingCount"] += 1
            summary["totalCollected"] += paid
            summary["totalExpected"] += due
            summary["outstanding"] += max(due - paid, 0)
        return summary
