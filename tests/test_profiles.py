"""Tests for ProfileService."""

from __future__ import annotations

import datetime
import unittest

from turfclub.errors import ValidationError
from turfclub.profiles.models import GuestProfileEntry, ProfileSubmission
from turfclub.profiles.services import ProfileService

from tests.conftest import make_mock_db, make_user, start_firestore_patches

UTC = datetime.timezone.utc
LINKED_AT = datetime.datetime(2024, 3, 1, tzinfo=UTC)


class ProfileServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_mock_db()
        start_firestore_patches(self, self.db)
        self.alice = make_user("alice")
        self.bob = make_user("bob")
        users = self.db.collection("users")
        users.document("alice").set(
            {
                "name": "Alice",
                "role": "player",
                "linkedGuests": [
                    {"guestId": "g1", "guestName": "Guest One", "linkedAt": LINKED_AT}
                ],
            }
        )
        users.document("bob").set({"name": "Bob", "role": "player"})

    def _submission(self, *guests: GuestProfileEntry, **overrides) -> ProfileSubmission:
        fields = {"full_name": "Alice Smith", "jersey_number": 7, "position": "MID"}
        fields.update(overrides)
        return ProfileSubmission(guest_profiles=list(guests), **fields)

    def test_no_profile_is_incomplete(self) -> None:
        status = ProfileService.check_complete(self.db, "alice")

        self.assertFalse(status.is_complete)
        self.assertIsNone(status.profile)
        self.assertEqual(status.missing_guest_profiles, [])

    def test_save_without_guests(self) -> None:
        profile = ProfileService.save(
            self.db, self._submission(full_name="  Bob Jones "), self.bob
        )

        self.assertEqual(profile["fullName"], "Bob Jones")
        self.assertEqual(profile["playerType"], "regular")
        self.assertTrue(profile["profileCompleted"])
        self.assertEqual(profile["guestProfiles"], [])
        user = self.db.collection("users").document("bob").get().to_dict()
        self.assertTrue(user["profileCompleted"])
        self.assertTrue(ProfileService.check_complete(self.db, "bob").is_complete)

    def test_save_covers_linked_guests(self) -> None:
        guest = GuestProfileEntry("g1", "Guest Person", "GK")

        profile = ProfileService.save(self.db, self._submission(guest), self.alice)

        self.assertEqual(
            profile["guestProfiles"],
            [
                {
                    "guestId": "g1",
                    "guestName": "Guest One",
                    "fullName": "Guest Person",
                    "jerseyNumber": None,
                    "position": "GK",
                }
            ],
        )
        status = ProfileService.check_complete(self.db, "alice")
        self.assertTrue(status.is_complete)
        self.assertEqual(status.to_dict()["missingGuestProfiles"], [])

    def test_every_linked_guest_needs_a_profile(self) -> None:
        with self.assertRaisesRegex(ValidationError, "profile for Guest One"):
            ProfileService.save(self.db, self._submission(), self.alice)

    def test_unlinked_guest_is_rejected(self) -> None:
        stranger = GuestProfileEntry("g9", "Someone Else", "DEF")
        with self.assertRaisesRegex(ValidationError, "not linked"):
            ProfileService.save(self.db, self._submission(stranger), self.bob)

    def test_validation(self) -> None:
        cases = [
            ({"full_name": "A"}, "full name"),
            ({"jersey_number": None}, "jersey number is required"),
            ({"jersey_number": 0}, "between 1 and 99"),
            ({"jersey_number": 100}, "between 1 and 99"),
            ({"position": "STRIKER"}, "position"),
        ]
        for overrides, message in cases:
            with self.subTest(message=message):
                with self.assertRaisesRegex(ValidationError, message):
                    ProfileService.save(self.db, self._submission(**overrides), self.bob)

    def test_guest_validation(self) -> None:
        cases = [
            (GuestProfileEntry("g1", "G", "GK"), "full name for Guest One"),
            (GuestProfileEntry("g1", "Guest Person", ""), "position for Guest One"),
            (
                GuestProfileEntry("g1", "Guest Person", "GK", jersey_number=120),
                "Jersey number for Guest One",
            ),
        ]
        for guest, message in cases:
            with self.subTest(message=message):
                with self.assertRaisesRegex(ValidationError, message):
                    ProfileService.save(self.db, self._submission(guest), self.alice)

    def test_guest_linked_later_is_missing(self) -> None:
        ProfileService.save(
            self.db,
            self._submission(GuestProfileEntry("g1", "Guest Person", "GK")),
            self.alice,
        )
        self.db.collection("users").document("alice").update(
            {
                "linkedGuests": [
                    {"guestId": "g1", "guestName": "Guest One", "linkedAt": LINKED_AT},
                    {"guestId": "g2", "guestName": "Guest Two", "linkedAt": LINKED_AT},
                ]
            }
        )

        status = ProfileService.check_complete(self.db, "alice")

        self.assertFalse(status.is_complete)
        self.assertEqual(status.missing_guest_profiles, ["g2"])

    def test_resave_keeps_created_at(self) -> None:
        ProfileService.save(self.db, self._submission(), self.bob)
        self.db.collection("userProfiles").document("bob").update(
            {"createdAt": LINKED_AT}
        )

        profile = ProfileService.save(
            self.db, self._submission(jersey_number=10), self.bob
        )

        self.assertEqual(profile["createdAt"], LINKED_AT)
        self.assertEqual(profile["jerseyNumber"], 10)

    def test_member_without_user_document(self) -> None:
        carol = make_user("carol")
        ProfileService.save(self.db, self._submission(), carol)

        user = self.db.collection("users").document("carol").get().to_dict()
        self.assertTrue(user["profileCompleted"])


if __name__ == "__main__":
    unittest.main()
