"""Data models for the auth blueprint."""

from __future__ import annotations

from collections import UserDict

from turfclub.core.constants import ROLE_PLAYER


class UserSession(UserDict):
    """The identity acting on a request.

    Services take this explicitly instead of reading ambient request state.
    """

    @property
    def uid(self) -> str:
        """Return the user ID."""
        return str(self.get("uid", ""))

    @property
    def role(self) -> str:
        """Return the resolved club role."""
        return self.get("role") or ROLE_PLAYER

    @property
    def display_name(self) -> str:
        """Return a human readable name for snapshots and messages."""
        email = self.get("email") or ""
        return (
            self.get("displayName")
            or self.get("name")
            or (email.split("@")[0] if email else "")
            or "Player"
        )

    @property
    def email(self) -> str:
        return self.get("email") or ""
