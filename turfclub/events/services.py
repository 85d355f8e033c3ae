"""Service layer for the event lifecycle."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore

from turfclub.auth.services import require_role
from turfclub.core.constants import (
    EVENT_CLOSED,
    EVENT_LOCKED,
    EVENT_MANAGER_ROLES,
    EVENT_OPEN,
    EVENT_VIEW_JOINED,
    EVENT_VIEW_PAST,
    EVENT_VIEW_UPCOMING,
    EVENTS_COLLECTION,
    EXPENSES_COLLECTION,
    PARTICIPANT_JOINED,
    PARTICIPANTS_COLLECTION,
    ROLE_SECRETARY,
    SETTLED_EVENT_STATUSES,
)
from turfclub.core.costs import share_for
from turfclub.errors import NotFoundError, StateConflictError, ValidationError
from turfclub.payments.services import PaymentService
from turfclub.utils import BatchWriter, as_utc, utcnow

from .models import EditHistoryEntry, Event, EventChanges, EventSubmission, Participant

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction

    from turfclub.auth.models import UserSession

logger = logging.getLogger(__name__)


def participant_id(event_id: str, player_id: str) -> str:
    """Return the deterministic participant document id for a player in an event."""
    return f"{event_id}_{player_id}"


class EventService:
    """Service class for event-related operations."""

    @staticmethod
    def _snapshot(db: Client, event_id: str) -> DocumentSnapshot:
        snapshot = cast(
            "DocumentSnapshot", db.collection(EVENTS_COLLECTION).document(event_id).get()
        )
        if not snapshot.exists:
            raise NotFoundError("Event not found")
        return snapshot

    @staticmethod
    def create(db: Client, submission: EventSubmission, actor: UserSession) -> str:
        """Create an open event and return its id."""
        require_role(
            actor,
            *EVENT_MANAGER_ROLES,
            message="Only secretaries and treasurers can create events.",
        )
        submission.validate()

        event_ref = db.collection(EVENTS_COLLECTION).document()
        event_ref.set(
            {
                "title": submission.title.strip(),
                "date": submission.date,
                "time": submission.time,
                "durationHours": submission.duration_hours,
                "totalAmount": submission.total_amount,
                "deadline": submission.deadline,
                "status": EVENT_OPEN,
                "participantCount": 0,
                "originalParticipantCount": 0,
                "totalCollected": 0,
                "teamFund": 0,
                "eventPaidToVendor": False,
                "createdBy": actor.uid,
                "createdByRole": actor.role,
                "createdAt": firestore.SERVER_TIMESTAMP,
                "editHistory": [],
            }
        )
        logger.info(f"{actor.role} {actor.uid} created event {event_ref.id}.")
        return event_ref.id

    @staticmethod
    def get(db: Client, event_id: str) -> Event:
        """Return an event by id, raising NotFoundError if it is missing."""
        snapshot = EventService._snapshot(db, event_id)
        data = snapshot.to_dict() or {}
        data["id"] = snapshot.id
        return cast(Event, data)

    @staticmethod
    def list_events(db: Client) -> list[Event]:
        """Return every event, newest date first."""
        events = []
        for doc in db.collection(EVENTS_COLLECTION).stream():
            if not doc.exists:
                continue
            data = doc.to_dict() or {}
            data["id"] = doc.id
            events.append(cast(Event, data))
        return sorted(events, key=EventService._event_start, reverse=True)

    @staticmethod
    def _event_start(event: Event) -> datetime.datetime:
        return as_utc(event.get("date")) or datetime.datetime.min.replace(
            tzinfo=datetime.timezone.utc
        )

    @staticmethod
    def list_participants(db: Client, event_id: str) -> list[Participant]:
        """Return the joined participants of an event, by join time."""
        docs = (
            db.collection(PARTICIPANTS_COLLECTION)
            .where(filter=firestore.FieldFilter("eventId", "==", event_id))
            .where(filter=firestore.FieldFilter("currentStatus", "==", PARTICIPANT_JOINED))
            .stream()
        )
        participants = []
        for doc in docs:
            data = doc.to_dict() or {}
            data["id"] = doc.id
            participants.append(cast(Participant, data))

        def joined_at(participant: Participant) -> datetime.datetime:
            value = participant.get("joinedAt")
            if isinstance(value, datetime.datetime):
                return as_utc(value)
            return datetime.datetime.max.replace(tzinfo=datetime.timezone.utc)

        return sorted(participants, key=joined_at)

    @staticmethod
    def joined_event_ids(db: Client, uid: str) -> set[str]:
        """Return the ids of events the user joined, directly or through a guest."""
        participants = db.collection(PARTICIPANTS_COLLECTION)
        event_ids = set()
        for field in ("playerId", "parentId"):
            docs = participants.where(
                filter=firestore.FieldFilter(field, "==", uid)
            ).stream()
            for doc in docs:
                data = doc.to_dict() or {}
                if data.get("currentStatus") == PARTICIPANT_JOINED and data.get(
                    "eventId"
                ):
                    event_ids.add(data["eventId"])
        return event_ids

    @staticmethod
    def is_deadline_passed(event: Event, now: datetime.datetime | None = None) -> bool:
        """Return True when registration for the event has closed."""
        deadline = as_utc(event.get("deadline"))
        if deadline is None:
            return False
        return deadline <= (now or utcnow())

    @staticmethod
    def annotate_for_member(
        events: Iterable[Event],
        joined_ids: set[str],
        now: datetime.datetime | None = None,
    ) -> list[Event]:
        """Add the per-player share, hasJoined and canJoinLeave to each event."""
        now = now or utcnow()
        annotated = []
        for event in events:
            event = cast(Event, dict(event))
            event["perPlayerAmount"] = share_for(event)
            event["hasJoined"] = event.get("id") in joined_ids
            event["canJoinLeave"] = event.get(
                "status"
            ) == EVENT_OPEN and not EventService.is_deadline_passed(event, now)
            annotated.append(event)
        return annotated

    @staticmethod
    def filter_for_member(
        events: Iterable[Event],
        joined_ids: set[str],
        view: str = EVENT_VIEW_UPCOMING,
        now: datetime.datetime | None = None,
    ) -> list[Event]:
        """Filter events for a member's upcoming, joined or past view."""
        now = now or utcnow()
        if view == EVENT_VIEW_UPCOMING:
            return [
                e
                for e in events
                if EventService._event_start(e) >= now and e.get("status") == EVENT_OPEN
            ]
        if view == EVENT_VIEW_JOINED:
            return [e for e in events if e.get("id") in joined_ids]
        if view == EVENT_VIEW_PAST:
            return [
                e
                for e in events
                if EventService._event_start(e) < now or e.get("status") == EVENT_LOCKED
            ]
        raise ValidationError(f"Unknown event view: {view}")

    @staticmethod
    def _history_entry(
        action: str, old: Any, new: Any, actor: UserSession, recalculated: bool
    ) -> EditHistoryEntry:
        return {
            "action": action,
            "oldValue": old,
            "newValue": new,
            "editedBy": actor.uid,
            "editedByRole": actor.role,
            "editedAt": utcnow(),
            "recalculationTriggered": recalculated,
        }

    @staticmethod
    def edit(
        db: Client, event_id: str, changes: EventChanges, actor: UserSession
    ) -> Event:
        """Apply title, amount and duration changes, recording each in the history.

        An amount change on a closed or locked event recalculates every payment.
        """
        require_role(
            actor,
            *EVENT_MANAGER_ROLES,
            message="Only secretaries and treasurers can edit events.",
        )
        changes.validate()
        snapshot = EventService._snapshot(db, event_id)
        event = snapshot.to_dict() or {}
        status = event.get("status")

        updates: dict[str, Any] = {}
        history: list[EditHistoryEntry] = []
        recalculate = False

        if changes.title is not None and changes.title.strip() != event.get("title"):
            updates["title"] = changes.title.strip()
            history.append(
                EventService._history_entry(
                    "title_changed", event.get("title"), updates["title"], actor, False
                )
            )
        if (
            changes.total_amount is not None
            and changes.total_amount != event.get("totalAmount")
        ):
            recalculate = status in SETTLED_EVENT_STATUSES
            updates["totalAmount"] = changes.total_amount
            history.append(
                EventService._history_entry(
                    "amount_changed",
                    event.get("totalAmount"),
                    changes.total_amount,
                    actor,
                    recalculate,
                )
            )
        if (
            changes.duration_hours is not None
            and changes.duration_hours != event.get("durationHours")
        ):
            updates["durationHours"] = changes.duration_hours
            history.append(
                EventService._history_entry(
                    "duration_changed",
                    event.get("durationHours"),
                    changes.duration_hours,
                    actor,
                    False,
                )
            )

        if not updates:
            event["id"] = snapshot.id
            return cast(Event, event)

        updates["editHistory"] = list(event.get("editHistory") or []) + history
        updates["lastEditedAt"] = firestore.SERVER_TIMESTAMP
        snapshot.reference.update(updates)
        logger.info(f"{actor.uid} edited event {event_id}: {sorted(updates)}.")

        if recalculate:
            PaymentService.recalculate(
                db,
                event_id,
                updates["totalAmount"],
                event.get("participantCount", 0) or 0,
            )
            PaymentService.update_collected_total(db, event_id)

        return EventService.get(db, event_id)

    @staticmethod
    def count_joined(db: Client, event_id: str) -> int:
        """Count the joined participant records of an event."""
        docs = (
            db.collection(PARTICIPANTS_COLLECTION)
            .where(filter=firestore.FieldFilter("eventId", "==", event_id))
            .where(filter=firestore.FieldFilter("currentStatus", "==", PARTICIPANT_JOINED))
            .stream()
        )
        return sum(1 for _ in docs)

    @staticmethod
    def _close_in_transaction(
        transaction: Transaction, db: Client, event_id: str
    ) -> tuple[dict[str, Any], int]:
        """Flip an open event to closed and freeze its roster in one transaction.

        Every join and leave writes the event document, so one that commits
        first makes this transaction retry with a fresh count.
        """
        event_ref = db.collection(EVENTS_COLLECTION).document(event_id)
        snapshot = cast("DocumentSnapshot", event_ref.get(transaction=transaction))
        if not snapshot.exists:
            raise NotFoundError("Event not found")
        event = snapshot.to_dict() or {}
        if event.get("status") != EVENT_OPEN:
            raise StateConflictError("Only open events can be closed.")

        docs = (
            db.collection(PARTICIPANTS_COLLECTION)
            .where(filter=firestore.FieldFilter("eventId", "==", event_id))
            .where(filter=firestore.FieldFilter("currentStatus", "==", PARTICIPANT_JOINED))
            .stream(transaction=transaction)
        )
        count = sum(1 for _ in docs)

        transaction.update(
            event_ref,
            {
                "status": EVENT_CLOSED,
                "closedAt": firestore.SERVER_TIMESTAMP,
                "participantCount": count,
                "originalParticipantCount": count,
            },
        )
        return event, count

    @staticmethod
    def _close(db: Client, event_id: str) -> int:
        close_transaction = firestore.transactional(EventService._close_in_transaction)
        event, count = close_transaction(db.transaction(), db, event_id)
        created = 0
        if count > 0:
            created = PaymentService.create_for_event(db, event_id, event, count)
        logger.info(
            f"Closed event {event_id} with {count} participants, "
            f"{created} payments created."
        )
        return count

    @staticmethod
    def close(db: Client, event_id: str, actor: UserSession) -> int:
        """Close registration, freeze the roster and create the payments."""
        require_role(
            actor,
            *EVENT_MANAGER_ROLES,
            message="Only secretaries and treasurers can close events.",
        )
        return EventService._close(db, event_id)

    @staticmethod
    def reopen(db: Client, event_id: str, actor: UserSession) -> int:
        """Reopen a closed event, discarding its payments."""
        require_role(
            actor,
            *EVENT_MANAGER_ROLES,
            message="Only secretaries and treasurers can reopen events.",
        )
        snapshot = EventService._snapshot(db, event_id)
        status = (snapshot.to_dict() or {}).get("status")
        if status == EVENT_LOCKED:
            raise StateConflictError("Locked events cannot be reopened.")
        if status != EVENT_CLOSED:
            raise StateConflictError("Only closed events can be reopened.")

        deleted = PaymentService.delete_for_event(db, event_id)
        count = EventService.count_joined(db, event_id)
        snapshot.reference.update(
            {
                "status": EVENT_OPEN,
                "closedAt": None,
                "participantCount": count,
                "totalCollected": 0,
                "teamFund": 0,
            }
        )
        logger.info(f"Reopened event {event_id}; deleted {deleted} payments.")
        return deleted

    @staticmethod
    def lock(db: Client, event_id: str, actor: UserSession) -> None:
        """Freeze a closed event."""
        require_role(
            actor,
            *EVENT_MANAGER_ROLES,
            message="Only secretaries and treasurers can lock events.",
        )
        snapshot = EventService._snapshot(db, event_id)
        if (snapshot.to_dict() or {}).get("status") != EVENT_CLOSED:
            raise StateConflictError("Only closed events can be locked.")
        snapshot.reference.update(
            {"status": EVENT_LOCKED, "lockedAt": firestore.SERVER_TIMESTAMP}
        )
        logger.info(f"Locked event {event_id}.")

    @staticmethod
    def close_due_events(
        db: Client, now: datetime.datetime | None = None
    ) -> dict[str, list[str]]:
        """Close open events past their deadline and lock closed events in the past."""
        now = now or utcnow()
        closed: list[str] = []
        locked: list[str] = []

        open_docs = (
            db.collection(EVENTS_COLLECTION)
            .where(filter=firestore.FieldFilter("status", "==", EVENT_OPEN))
            .stream()
        )
        for doc in open_docs:
            if not EventService.is_deadline_passed(cast(Event, doc.to_dict() or {}), now):
                continue
            try:
                EventService._close(db, doc.id)
            except StateConflictError:
                logger.info(f"Event {doc.id} was closed by someone else; skipping.")
                continue
            closed.append(doc.id)

        closed_docs = (
            db.collection(EVENTS_COLLECTION)
            .where(filter=firestore.FieldFilter("status", "==", EVENT_CLOSED))
            .stream()
        )
        for doc in closed_docs:
            start = as_utc((doc.to_dict() or {}).get("date"))
            if start is not None and start < now:
                doc.reference.update(
                    {"status": EVENT_LOCKED, "lockedAt": firestore.SERVER_TIMESTAMP}
                )
                locked.append(doc.id)

        if closed or locked:
            logger.info(f"Auto-closed {closed}, auto-locked {locked}.")
        return {"closed": closed, "locked": locked}

    @staticmethod
    def delete(db: Client, event_id: str, actor: UserSession) -> dict[str, int]:
        """Delete an event with its participants, payments and expenses.

        Each step can be repeated, so a cascade that failed partway is finished
        by calling this again.
        """
        require_role(actor, ROLE_SECRETARY, message="Only secretaries can delete events.")
        event_ref = EventService._snapshot(db, event_id).reference

        removed = {}
        for name, collection in (
            ("participants", PARTICIPANTS_COLLECTION),
            ("expenses", EXPENSES_COLLECTION),
        ):
            writer = BatchWriter(db)
            docs = (
                db.collection(collection)
                .where(filter=firestore.FieldFilter("eventId", "==", event_id))
                .stream()
            )
            for doc in docs:
                writer.delete(doc.reference)
            writer.commit()
            removed[name] = writer.committed
            logger.info(f"Deleted {writer.committed} {name} of event {event_id}.")
        removed["payments"] = PaymentService.delete_for_event(db, event_id)

        event_ref.delete()
        logger.info(f"Deleted event {event_id}.")
        return removed

    @staticmethod
    def resync_participant_count(db: Client, event_id: str) -> tuple[int, int]:
        """Rewrite the cached participant count when it drifts from the records."""
        snapshot = EventService._snapshot(db, event_id)
        old = (snapshot.to_dict() or {}).get("participantCount", 0) or 0
        new = EventService.count_joined(db, event_id)
        if old != new:
            logger.warning(
                f"Participant count drift on event {event_id}: cached {old}, "
                f"actual {new}."
            )
            snapshot.reference.update({"participantCount": new})
        return old, new
