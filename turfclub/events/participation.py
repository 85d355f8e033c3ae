"""Joining and leaving events.

Self-service join and leave run inside a single Firestore transaction that
re-reads the event, checks every precondition, and then writes the participant
records together with the event's ``participantCount``. Firestore retries a
transaction that loses a conflict, and the retry sees the winner's records.

Adding a player to an event that has already closed is a treasurer or
secretary action made of several steps. Each step is safe to repeat, so a run
that failed partway is finished by running it again.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, cast

from firebase_admin import firestore

from turfclub.auth.services import require_role
from turfclub.core.constants import (
    EVENT_MANAGER_ROLES,
    EVENT_OPEN,
    EVENTS_COLLECTION,
    GUESTS_COLLECTION,
    PARTICIPANT_JOINED,
    PARTICIPANTS_COLLECTION,
    PAYMENTS_COLLECTION,
    PLAYER_TYPE_GUEST,
    PLAYER_TYPE_REGULAR,
    SETTLED_EVENT_STATUSES,
    USERS_COLLECTION,
)
from turfclub.core.costs import allocate
from turfclub.errors import (
    DuplicateResourceError,
    NotFoundError,
    StateConflictError,
    ValidationError,
)
from turfclub.payments.services import PaymentService, payment_id
from turfclub.utils import as_utc, utcnow

from .models import JoinResult, LeaveResult
from .services import participant_id

if TYPE_CHECKING:
    from google.cloud.firestore_v1.base_document import DocumentSnapshot
    from google.cloud.firestore_v1.client import Client
    from google.cloud.firestore_v1.transaction import Transaction

    from turfclub.auth.models import UserSession

logger = logging.getLogger(__name__)


class ParticipationService:
    """Service class for event sign-ups."""

    @staticmethod
    def _read_open_event(
        transaction: Transaction,
        db: Client,
        event_id: str,
        closed_message: str,
    ) -> tuple[Any, dict[str, Any]]:
        event_ref = db.collection(EVENTS_COLLECTION).document(event_id)
        snapshot = cast("DocumentSnapshot", event_ref.get(transaction=transaction))
        if not snapshot.exists:
            raise NotFoundError("Event not found")
        event = snapshot.to_dict() or {}
        if event.get("status") != EVENT_OPEN:
            raise StateConflictError(closed_message)
        return event_ref, event

    @staticmethod
    def _join_in_transaction(  # noqa: PLR0913
        transaction: Transaction,
        db: Client,
        event_id: str,
        actor: UserSession,
        guest_ids: list[str],
        now: datetime.datetime,
    ) -> JoinResult:
        """Check the join preconditions and write the records in one transaction."""
        event_ref, event = ParticipationService._read_open_event(
            transaction, db, event_id, "Event is no longer open for registration"
        )
        deadline = as_utc(event.get("deadline"))
        if deadline is not None and deadline <= now:
            raise StateConflictError("Registration deadline has passed")

        guests = []
        for guest_id in guest_ids:
            guest_snap = cast(
                "DocumentSnapshot",
                db.collection(GUESTS_COLLECTION)
                .document(guest_id)
                .get(transaction=transaction),
            )
            guest = (guest_snap.to_dict() or {}) if guest_snap.exists else {}
            if (
                not guest
                or not guest.get("isActive", True)
                or actor.uid not in (guest.get("parentIds") or [])
            ):
                raise ValidationError("Guest is not linked to your account.")
            guests.append((guest_id, guest))

        participants = db.collection(PARTICIPANTS_COLLECTION)
        player_ref = participants.document(participant_id(event_id, actor.uid))
        if player_ref.get(transaction=transaction).exists:
            raise DuplicateResourceError("You have already joined this event")

        guest_refs = []
        for guest_id, guest in guests:
            guest_ref = participants.document(participant_id(event_id, guest_id))
            if guest_ref.get(transaction=transaction).exists:
                raise DuplicateResourceError(
                    f"{guest.get('guestName', 'Guest')} has already joined this event"
                )
            guest_refs.append(guest_ref)

        # All reads are done; writes follow.
        new_count = (event.get("participantCount", 0) or 0) + 1 + len(guests)
        transaction.update(event_ref, {"participantCount": new_count})
        transaction.set(
            player_ref,
            {
                "eventId": event_id,
                "playerId": actor.uid,
                "playerName": actor.display_name,
                "playerEmail": actor.email,
                "playerType": PLAYER_TYPE_REGULAR,
                "parentId": None,
                "guestIds": [guest_id for guest_id, _ in guests],
                "joinedAt": now,
                "currentStatus": PARTICIPANT_JOINED,
                "addedAfterClose": False,
            },
        )
        for guest_ref, (guest_id, guest) in zip(guest_refs, guests):
            transaction.set(
                guest_ref,
                {
                    "eventId": event_id,
                    "playerId": guest_id,
                    "playerName": guest.get("guestName", ""),
                    "playerEmail": "",
                    "playerType": PLAYER_TYPE_GUEST,
                    "parentId": actor.uid,
                    "parentName": actor.display_name,
                    "guestIds": [],
                    "joinedAt": now,
                    "currentStatus": PARTICIPANT_JOINED,
                    "addedAfterClose": False,
                },
            )

        return JoinResult(
            event_id=event_id,
            participant_ids=[player_ref.id, *(ref.id for ref in guest_refs)],
            participant_count=new_count,
        )

    @staticmethod
    def join(
        db: Client,
        event_id: str,
        actor: UserSession,
        guest_ids: Iterable[str] = (),
    ) -> JoinResult:
        """Join an open event, optionally bringing linked guests along."""
        unique_guests = list(dict.fromkeys(g for g in guest_ids if g))
        transaction = db.transaction()
        join_transaction = firestore.transactional(
            ParticipationService._join_in_transaction
        )
        result = join_transaction(
            transaction, db, event_id, actor, unique_guests, utcnow()
        )
        logger.info(
            f"{actor.uid} joined event {event_id} with {result.guest_count} guests; "
            f"count is now {result.participant_count}."
        )
        return result

    @staticmethod
    def _leave_in_transaction(
        transaction: Transaction,
        db: Client,
        event_id: str,
        actor: UserSession,
    ) -> LeaveResult:
        """Remove the actor and the guests they brought in one transaction."""
        event_ref, event = ParticipationService._read_open_event(
            transaction, db, event_id, "Cannot leave a closed event"
        )

        participants = db.collection(PARTICIPANTS_COLLECTION)
        player_ref = participants.document(participant_id(event_id, actor.uid))
        player_snap = cast("DocumentSnapshot", player_ref.get(transaction=transaction))
        if not player_snap.exists:
            raise NotFoundError("Participant record not found")

        refs = [player_ref]
        for guest_id in (player_snap.to_dict() or {}).get("guestIds") or []:
            guest_ref = participants.document(participant_id(event_id, guest_id))
            guest_snap = cast(
                "DocumentSnapshot", guest_ref.get(transaction=transaction)
            )
            if guest_snap.exists and (guest_snap.to_dict() or {}).get(
                "parentId"
            ) == actor.uid:
                refs.append(guest_ref)

        for ref in refs:
            transaction.delete(ref)
        new_count = max((event.get("participantCount", 0) or 0) - len(refs), 0)
        transaction.update(event_ref, {"participantCount": new_count})

        return LeaveResult(
            event_id=event_id,
            removed_ids=[ref.id for ref in refs],
            participant_count=new_count,
        )

    @staticmethod
    def leave(db: Client, event_id: str, actor: UserSession) -> LeaveResult:
        """Leave an open event together with any guests brought along."""
        transaction = db.transaction()
        leave_transaction = firestore.transactional(
            ParticipationService._leave_in_transaction
        )
        result = leave_transaction(transaction, db, event_id, actor)
        logger.info(
            f"{actor.uid} left event {event_id}, removing {result.removed_count} "
            f"records; count is now {result.participant_count}."
        )
        return result

    @staticmethod
    def resolve_player(db: Client, player_id: str) -> dict[str, Any]:
        """Look up a registered player or a guest to add to an event."""
        user_snap = cast(
            "DocumentSnapshot", db.collection(USERS_COLLECTION).document(player_id).get()
        )
        if user_snap.exists:
            user = user_snap.to_dict() or {}
            email = user.get("email") or ""
            return {
                "playerId": player_id,
                "playerName": user.get("name")
                or user.get("displayName")
                or (email.split("@")[0] if email else "Player"),
                "playerEmail": email,
                "playerType": PLAYER_TYPE_REGULAR,
                "parentId": None,
            }

        guest_snap = cast(
            "DocumentSnapshot", db.collection(GUESTS_COLLECTION).document(player_id).get()
        )
        if guest_snap.exists:
            guest = guest_snap.to_dict() or {}
            if not guest.get("isActive", True):
                raise ValidationError("Guest is no longer active.")
            parent_ids = guest.get("parentIds") or []
            return {
                "playerId": player_id,
                "playerName": guest.get("guestName", ""),
                "playerEmail": "",
                "playerType": PLAYER_TYPE_GUEST,
                "parentId": parent_ids[0] if parent_ids else None,
            }

        raise NotFoundError("Player not found.")

    @staticmethod
    def _add_in_transaction(  # noqa: PLR0913
        transaction: Transaction,
        db: Client,
        event_id: str,
        player: dict[str, Any],
        actor: UserSession,
        now: datetime.datetime,
    ) -> tuple[dict[str, Any], int, bool]:
        """Create the participant record and bump the counter if it is new."""
        event_ref = db.collection(EVENTS_COLLECTION).document(event_id)
        snapshot = cast("DocumentSnapshot", event_ref.get(transaction=transaction))
        if not snapshot.exists:
            raise NotFoundError("Event not found")
        event = snapshot.to_dict() or {}
        if event.get("status") not in SETTLED_EVENT_STATUSES:
            raise StateConflictError(
                "Event is still open; players can join it themselves."
            )

        count = event.get("participantCount", 0) or 0
        record_ref = db.collection(PARTICIPANTS_COLLECTION).document(
            participant_id(event_id, player["playerId"])
        )
        if record_ref.get(transaction=transaction).exists:
            return event, count, False

        transaction.set(
            record_ref,
            {
                "eventId": event_id,
                "playerId": player["playerId"],
                "playerName": player.get("playerName", ""),
                "playerEmail": player.get("playerEmail", ""),
                "playerType": player.get("playerType", PLAYER_TYPE_REGULAR),
                "parentId": player.get("parentId"),
                "guestIds": [],
                "joinedAt": now,
                "currentStatus": PARTICIPANT_JOINED,
                "addedAfterClose": True,
                "addedBy": actor.uid,
                "addedByRole": actor.role,
            },
        )
        transaction.update(event_ref, {"participantCount": count + 1})
        return event, count + 1, True

    @staticmethod
    def add_after_close(
        db: Client, event_id: str, player_id: str, actor: UserSession
    ) -> dict[str, Any]:
        """Add a player to a closed or locked event and re-split the cost.

        Steps:
        1. transaction: participant record and counter;
        2. the player's payment, if missing;
        3. recalculate every payment for the new headcount;
        4. refresh the collected total;
        5. record a ``player_added`` history entry, if missing.
        """
        require_role(
            actor,
            *EVENT_MANAGER_ROLES,
            message="Only secretaries and treasurers can add players after close.",
        )
        player = ParticipationService.resolve_player(db, player_id)

        transaction = db.transaction()
        add_transaction = firestore.transactional(
            ParticipationService._add_in_transaction
        )
        event, new_count, created = add_transaction(
            transaction, db, event_id, player, actor, utcnow()
        )
        logger.info(
            f"Add-after-close {event_id}/{player_id} step 1: record "
            f"{'created' if created else 'already present'}, count {new_count}."
        )

        total_amount = event.get("totalAmount", 0) or 0
        per_player = allocate(total_amount, new_count)
        payment_ref = db.collection(PAYMENTS_COLLECTION).document(
            payment_id(event_id, player_id)
        )
        if not payment_ref.get().exists:
            payment_ref.set(
                PaymentService.build_payment(
                    event_id, event, player, per_player, added_after_close=True
                )
            )
            logger.info(f"Add-after-close {event_id}/{player_id} step 2: payment created.")

        recalculated = PaymentService.recalculate(db, event_id, total_amount, new_count)
        logger.info(f"Add-after-close {event_id}/{player_id} step 3: recalculated.")
        PaymentService.update_collected_total(db, event_id)
        logger.info(f"Add-after-close {event_id}/{player_id} step 4: totals updated.")

        event_ref = db.collection(EVENTS_COLLECTION).document(event_id)
        history = (event_ref.get().to_dict() or {}).get("editHistory") or []
        already_recorded = any(
            entry.get("action") == "player_added"
            and entry.get("playerId") == player_id
            for entry in history
        )
        if not already_recorded:
            old_count = new_count - 1
            event_ref.update(
                {
                    "editHistory": firestore.ArrayUnion(
                        [
                            {
                                "action": "player_added",
                                "playerId": player_id,
                                "playerName": player.get("playerName", ""),
                                "editedBy": actor.uid,
                                "editedByRole": actor.role,
                                "editedAt": utcnow(),
                                "recalculationTriggered": True,
                                "oldParticipantCount": old_count,
                                "newParticipantCount": new_count,
                                "oldPerPlayerAmount": allocate(total_amount, old_count),
                                "newPerPlayerAmount": per_player,
                            }
                        ]
                    ),
                    "lastEditedAt": firestore.SERVER_TIMESTAMP,
                }
            )
            logger.info(f"Add-after-close {event_id}/{player_id} step 5: history recorded.")

        return {
            "eventId": event_id,
            "playerId": player_id,
            "created": created,
            "participantCount": new_count,
            "perPlayerAmount": recalculated["perPlayerAmount"],
            "teamFund": recalculated["teamFund"],
        }
