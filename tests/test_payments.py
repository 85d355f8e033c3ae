"""Tests for payment records and the payment reconciler."""

from __future__ import annotations

import datetime
import unittest

from turfclub.errors import NotFoundError, PermissionDeniedError, ValidationError
from turfclub.payments.services import PaymentService, payment_id

from tests.conftest import make_mock_db, make_user, start_firestore_patches

UTC = datetime.timezone.utc


class PaymentTestCase(unittest.TestCase):
    """Shared fixtures for payment tests."""

    def setUp(self) -> None:
        self.db = make_mock_db()
        start_firestore_patches(self, self.db)
        self.treasurer = make_user("tina", "treasurer")

    def _seed_closed_event(
        self, paid_amounts: list[float], total_amount: float = 1500, due: int = 150
    ) -> str:
        event_id = "e1"
        self.db.collection("events").document(event_id).set(
            {
                "title": "Sunday Game",
                "totalAmount": total_amount,
                "participantCount": len(paid_amounts),
                "status": "closed",
                "totalCollected": sum(paid_amounts),
            }
        )
        for i, paid in enumerate(paid_amounts):
            player_id = f"p{i}"
            self.db.collection("eventPayments").document(
                payment_id(event_id, player_id)
            ).set(
                {
                    "eventId": event_id,
                    "playerId": player_id,
                    "playerName": f"Player {i}",
                    "originalAmountDue": due,
                    "currentAmountDue": due,
                    "totalPaid": paid,
                    "paymentStatus": PaymentService.derive_status(paid, due),
                }
            )
        return event_id

    def _payment(self, event_id: str, player_id: str) -> dict:
        return (
            self.db.collection("eventPayments")
            .document(payment_id(event_id, player_id))
            .get()
            .to_dict()
        )

    def _event(self, event_id: str) -> dict:
        return self.db.collection("events").document(event_id).get().to_dict()


class DeriveStatusTestCase(unittest.TestCase):
    def test_tri_state(self) -> None:
        cases = [
            (0, 150, "pending"),
            (50, 150, "partial"),
            (150, 150, "paid"),
            (200, 150, "paid"),
            (0, 0, "pending"),
            (10, 0, "paid"),
            (None, 150, "pending"),
        ]
        for paid, due, expected in cases:
            with self.subTest(paid=paid, due=due):
                self.assertEqual(PaymentService.derive_status(paid, due), expected)


class RecalculateTestCase(PaymentTestCase):
    """Tests for PaymentService.recalculate and update_collected_total."""

    def test_cost_edit_rederives_every_payment(self) -> None:
        paid = [150, 150, 100, 50, 0, 0, 0, 0, 0, 0]
        event_id = self._seed_closed_event(paid)

        result = PaymentService.recalculate(self.db, event_id, 900, 10)

        # 900 / 10 = 90, lifted to the 100 floor.
        self.assertEqual(result["perPlayerAmount"], 100)
        self.assertEqual(result["paymentsUpdated"], 10)
        expected_status = ["paid", "paid", "paid", "partial"] + ["pending"] * 6
        for i, status in enumerate(expected_status):
            payment = self._payment(event_id, f"p{i}")
            self.assertEqual(payment["currentAmountDue"], 100)
            self.assertEqual(payment["originalAmountDue"], 150)
            self.assertEqual(payment["totalPaid"], paid[i])
            self.assertEqual(payment["paymentStatus"], status)

        total = PaymentService.update_collected_total(self.db, event_id)
        self.assertEqual(total, 450)
        event = self._event(event_id)
        self.assertEqual(event["totalCollected"], 450)
        self.assertEqual(event["teamFund"], 100)

    def test_recalculate_is_idempotent(self) -> None:
        event_id = self._seed_closed_event([150, 60, 0, 0, 0, 0, 0])

        PaymentService.recalculate(self.db, event_id, 1000, 7)
        first = {f"p{i}": self._payment(event_id, f"p{i}") for i in range(7)}
        PaymentService.recalculate(self.db, event_id, 1000, 7)
        second = {f"p{i}": self._payment(event_id, f"p{i}") for i in range(7)}

        self.assertEqual(first, second)
        self.assertEqual(first["p0"]["paymentStatus"], "paid")
        self.assertEqual(first["p1"]["paymentStatus"], "partial")
        self.assertEqual(first["p2"]["currentAmountDue"], 150)

    def test_zero_participants_collapses_amount_due(self) -> None:
        event_id = self._seed_closed_event([50, 0])

        result = PaymentService.recalculate(self.db, event_id, 1000, 0)

        self.assertEqual(result["perPlayerAmount"], 0)
        self.assertEqual(self._payment(event_id, "p0")["paymentStatus"], "paid")
        self.assertEqual(self._payment(event_id, "p1")["paymentStatus"], "pending")

    def test_recalculate_missing_event(self) -> None:
        with self.assertRaises(NotFoundError):
            PaymentService.recalculate(self.db, "missing", 1000, 5)

    def test_recalculate_rejects_bad_inputs(self) -> None:
        event_id = self._seed_closed_event([0])
        with self.assertRaises(ValidationError):
            PaymentService.recalculate(self.db, event_id, -5, 1)

    def test_batches_are_committed(self) -> None:
        event_id = self._seed_closed_event([0, 0, 0])
        PaymentService.recalculate(self.db, event_id, 600, 3)
        self.assertTrue(self.db.batch.called)


class CreatePaymentsTestCase(PaymentTestCase):
    """Tests for creating payments when an event closes."""

    def setUp(self) -> None:
        super().setUp()
        self.db.collection("events").document("e2").set(
            {"title": "Friday Night", "totalAmount": 1000, "status": "closed"}
        )
        for player_id in ("a", "b", "c"):
            self.db.collection("eventParticipants").document(f"e2_{player_id}").set(
                {
                    "eventId": "e2",
                    "playerId": player_id,
                    "playerName": player_id.upper(),
                    "playerType": "regular",
                    "parentId": None,
                    "currentStatus": "joined",
                }
            )

    def test_creates_one_payment_per_participant(self) -> None:
        event = self._event("e2")
        created = PaymentService.create_for_event(self.db, "e2", event, 3)

        self.assertEqual(created, 3)
        payment = self._payment("e2", "a")
        self.assertEqual(payment["originalAmountDue"], 340)
        self.assertEqual(payment["currentAmountDue"], 340)
        self.assertEqual(payment["totalPaid"], 0)
        self.assertEqual(payment["paymentStatus"], "pending")
        self.assertEqual(payment["eventTitle"], "Friday Night")

    def test_existing_payments_are_kept(self) -> None:
        self.db.collection("eventPayments").document("e2_b").set(
            {"eventId": "e2", "playerId": "b", "totalPaid": 340, "currentAmountDue": 340}
        )
        created = PaymentService.create_for_event(self.db, "e2", self._event("e2"), 3)

        self.assertEqual(created, 2)
        self.assertEqual(self._payment("e2", "b")["totalPaid"], 340)

    def test_running_twice_creates_nothing_more(self) -> None:
        event = self._event("e2")
        PaymentService.create_for_event(self.db, "e2", event, 3)
        self.assertEqual(PaymentService.create_for_event(self.db, "e2", event, 3), 0)

    def test_delete_for_event(self) -> None:
        PaymentService.create_for_event(self.db, "e2", self._event("e2"), 3)
        self.assertEqual(PaymentService.delete_for_event(self.db, "e2"), 3)
        self.assertEqual(PaymentService.list_for_event(self.db, "e2"), [])


class MarkPaymentsTestCase(PaymentTestCase):
    """Tests for the treasurer's payment actions."""

    def setUp(self) -> None:
        super().setUp()
        self.event_id = self._seed_closed_event([0, 0, 0])

    def test_mark_paid(self) -> None:
        count = PaymentService.mark_paid(
            self.db, self.event_id, ["e1_p0", "e1_p1"], self.treasurer
        )

        self.assertEqual(count, 2)
        payment = self._payment(self.event_id, "p0")
        self.assertEqual(payment["totalPaid"], 150)
        self.assertEqual(payment["paymentStatus"], "paid")
        self.assertEqual(payment["markedPaidBy"], "tina")
        self.assertEqual(self._event(self.event_id)["totalCollected"], 300)

    def test_mark_paid_leaves_nothing_due_untouched(self) -> None:
        self.db.collection("eventPayments").document("e1_p0").update(
            {"currentAmountDue": 0}
        )

        count = PaymentService.mark_paid(
            self.db, self.event_id, ["e1_p0", "e1_p1"], self.treasurer
        )

        self.assertEqual(count, 1)
        payment = self._payment(self.event_id, "p0")
        self.assertEqual(payment["paymentStatus"], "pending")
        self.assertIsNone(payment.get("paidAt"))
        self.assertIsNone(payment.get("markedPaidBy"))
        self.assertEqual(self._event(self.event_id)["totalCollected"], 150)

    def test_mark_unpaid(self) -> None:
        PaymentService.mark_paid(self.db, self.event_id, ["e1_p0"], self.treasurer)
        PaymentService.mark_unpaid(self.db, self.event_id, ["e1_p0"], self.treasurer)

        payment = self._payment(self.event_id, "p0")
        self.assertEqual(payment["totalPaid"], 0)
        self.assertEqual(payment["paymentStatus"], "pending")
        self.assertIsNone(payment["markedPaidBy"])
        self.assertEqual(self._event(self.event_id)["totalCollected"], 0)

    def test_only_treasurers_mark_payments(self) -> None:
        with self.assertRaises(PermissionDeniedError):
            PaymentService.mark_paid(
                self.db, self.event_id, ["e1_p0"], make_user("sam", "secretary")
            )

    def test_superadmin_may_mark_payments(self) -> None:
        count = PaymentService.mark_paid(
            self.db, self.event_id, ["e1_p2"], make_user("root", "superadmin")
        )
        self.assertEqual(count, 1)

    def test_payment_from_another_event(self) -> None:
        self.db.collection("eventPayments").document("other_p0").set(
            {"eventId": "other", "playerId": "p0", "currentAmountDue": 100}
        )
        with self.assertRaises(ValidationError):
            PaymentService.mark_paid(
                self.db, self.event_id, ["e1_p0", "other_p0"], self.treasurer
            )
        self.assertEqual(self._payment(self.event_id, "p0")["totalPaid"], 0)

    def test_no_payments_selected(self) -> None:
        with self.assertRaises(ValidationError):
            PaymentService.mark_paid(self.db, self.event_id, [], self.treasurer)

    def test_unknown_payment(self) -> None:
        with self.assertRaises(NotFoundError):
            PaymentService.mark_paid(self.db, self.event_id, ["nope"], self.treasurer)

    def test_record_amount_partial_then_paid(self) -> None:
        payment = PaymentService.record_amount(self.db, "e1_p1", 100, self.treasurer)
        self.assertEqual(payment["paymentStatus"], "partial")
        self.assertEqual(payment["totalPaid"], 100)

        payment = PaymentService.record_amount(self.db, "e1_p1", 50, self.treasurer)
        self.assertEqual(payment["paymentStatus"], "paid")
        self.assertEqual(payment["markedPaidBy"], "tina")
        self.assertEqual(self._event(self.event_id)["totalCollected"], 150)

    def test_record_amount_validation(self) -> None:
        with self.assertRaises(ValidationError):
            PaymentService.record_amount(self.db, "e1_p1", 0, self.treasurer)
        with self.assertRaises(NotFoundError):
            PaymentService.record_amount(self.db, "nope", 10, self.treasurer)
        with self.assertRaises(ValidationError):
            PaymentService.record_amount(
                self.db, "e1_p1", 10, self.treasurer, event_id="other"
            )
        self.assertEqual(self._payment(self.event_id, "p1")["totalPaid"], 0)


class PlayerPaymentsTestCase(PaymentTestCase):
    """Tests for the member's payment list and the summary totals."""

    def test_list_for_player_includes_guests(self) -> None:
        payments = self.db.collection("eventPayments")
        payments.document("old_alice").set(
            {
                "eventId": "old",
                "playerId": "alice",
                "eventDate": datetime.datetime(2024, 1, 1, tzinfo=UTC),
                "currentAmountDue": 100,
                "totalPaid": 100,
            }
        )
        payments.document("new_alice").set(
            {
                "eventId": "new",
                "playerId": "alice",
                "eventDate": datetime.datetime(2024, 3, 1, tzinfo=UTC),
                "currentAmountDue": 150,
                "totalPaid": 0,
            }
        )
        payments.document("new_g1").set(
            {
                "eventId": "new",
                "playerId": "g1",
                "parentId": "alice",
                "eventDate": datetime.datetime(2024, 3, 1, tzinfo=UTC),
                "currentAmountDue": 150,
                "totalPaid": 50,
            }
        )
        payments.document("new_bob").set(
            {"eventId": "new", "playerId": "bob", "currentAmountDue": 150}
        )

        result = PaymentService.list_for_player(self.db, "alice")

        ids = [p["id"] for p in result]
        self.assertEqual(len(ids), 3)
        self.assertEqual(ids[-1], "old_alice")
        self.assertNotIn("new_bob", ids)

        summary = PaymentService.summarize(result)
        self.assertEqual(summary["paidCount"], 1)
        self.assertEqual(summary["partialCount"], 1)
        self.assertEqual(summary["pendingCount"], 1)
        self.assertEqual(summary["totalCollected"], 150)
        self.assertEqual(summary["totalExpected"], 400)
        self.assertEqual(summary["outstanding"], 250)

    def test_list_for_event_sorted_by_name(self) -> None:
        event_id = self._seed_closed_event([0, 0])
        self.db.collection("eventPayments").document("e1_p0").update(
            {"playerName": "zed"}
        )
        names = [p["playerName"] for p in PaymentService.list_for_event(self.db, event_id)]
        self.assertEqual(names, ["Player 1", "zed"])


if __name__ == "__main__":
    unittest.main()
