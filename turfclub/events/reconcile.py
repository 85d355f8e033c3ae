"""Repairs events left inconsistent by an interrupted multi-step write."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from turfclub.core.constants import EVENTS_COLLECTION, SETTLED_EVENT_STATUSES
from turfclub.payments.services import PaymentService

from .services import EventService

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Brings cached counters and payments back in line with the records."""

    @staticmethod
    def reconcile_event(db: Client, event_id: str) -> dict[str, Any]:
        """Resync the counter and, once closed, the payments of one event."""
        old_count, count = EventService.resync_participant_count(db, event_id)
        report: dict[str, Any] = {
            "eventId": event_id,
            "countBefore": old_count,
            "countAfter": count,
            "paymentsCreated": 0,
        }

        event = EventService.get(db, event_id)
        if event.get("status") in SETTLED_EVENT_STATUSES:
            report["paymentsCreated"] = PaymentService.create_for_event(
                db, event_id, dict(event), count
            )
            recalculated = PaymentService.recalculate(
                db, event_id, event.get("totalAmount", 0) or 0, count
            )
            report["perPlayerAmount"] = recalculated["perPlayerAmount"]
            report["totalCollected"] = PaymentService.update_collected_total(
                db, event_id
            )

        if old_count != count or report["paymentsCreated"]:
            logger.warning(f"Reconciled event {event_id}: {report}")
        return report

    @staticmethod
    def reconcile_all(db: Client) -> list[dict[str, Any]]:
        """Reconcile every event."""
        reports = []
        for doc in db.collection(EVENTS_COLLECTION).stream():
            if doc.exists:
                reports.append(ReconciliationService.reconcile_event(db, doc.id))
        return reports
