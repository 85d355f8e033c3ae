"""Tests for GuestService."""

from __future__ import annotations

import unittest

from turfclub.errors import NotFoundError, PermissionDeniedError, ValidationError
from turfclub.guests.services import GuestService

from tests.conftest import make_mock_db, make_user, start_firestore_patches


class GuestServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_mock_db()
        start_firestore_patches(self, self.db)
        self.secretary = make_user("sam", "secretary")
        self.db.collection("users").document("alice").set(
            {"name": "Alice", "email": "alice@example.com", "role": "player"}
        )
        self.db.collection("users").document("bob").set(
            {"name": "Bob", "email": "bob@example.com", "role": "treasurer"}
        )

    def test_create_links_parents(self) -> None:
        guest_id = GuestService.create(
            self.db, "  Zoe  ", ["alice", "bob", "alice"], "Plays keeper", self.secretary
        )

        guest = GuestService.get(self.db, guest_id)
        self.assertEqual(guest["guestName"], "Zoe")
        self.assertEqual(guest["parentIds"], ["alice", "bob"])
        self.assertTrue(guest["isActive"])
        self.assertEqual(guest["linkedParents"][1]["parentRole"], "treasurer")
        alice = self.db.collection("users").document("alice").get().to_dict()
        self.assertEqual(alice["linkedGuests"][0]["guestId"], guest_id)

    def test_create_validation(self) -> None:
        with self.assertRaisesRegex(ValidationError, "minimum 2 characters"):
            GuestService.create(self.db, "Z", ["alice"], None, self.secretary)
        with self.assertRaisesRegex(ValidationError, "parent"):
            GuestService.create(self.db, "Zoe", [], None, self.secretary)

    def test_only_secretaries_create(self) -> None:
        with self.assertRaises(PermissionDeniedError):
            GuestService.create(self.db, "Zoe", ["alice"], None, make_user("alice"))

    def test_linked_guests(self) -> None:
        zoe = GuestService.create(self.db, "Zoe", ["alice"], None, self.secretary)
        amy = GuestService.create(self.db, "amy", ["alice", "bob"], None, self.secretary)
        GuestService.create(self.db, "Max", ["bob"], None, self.secretary)
        GuestService.deactivate(self.db, zoe, self.secretary)

        guests = GuestService.linked_guests(self.db, "alice")

        self.assertEqual([g["id"] for g in guests], [amy])
        self.assertEqual(len(GuestService.list_guests(self.db)), 2)
        self.assertEqual(len(GuestService.list_guests(self.db, include_inactive=True)), 3)

    def test_deactivate_missing(self) -> None:
        with self.assertRaises(NotFoundError):
            GuestService.deactivate(self.db, "nobody", self.secretary)


if __name__ == "__main__":
    unittest.main()
