"""Utility functions for the application."""

from __future__ import annotations

import datetime
import math
from typing import TYPE_CHECKING, Any

from flask import current_app, has_app_context
from flask.json.provider import DefaultJSONProvider

from .core.constants import DEFAULT_CURRENCY_SYMBOL, FIRESTORE_BATCH_LIMIT

if TYPE_CHECKING:
    from google.cloud.firestore_v1.client import Client


def utcnow() -> datetime.datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def as_utc(value: Any) -> datetime.datetime | None:
    """Normalize dates, naive and aware datetimes to an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=datetime.timezone.utc)
        return value.astimezone(datetime.timezone.utc)
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time.min).replace(
            tzinfo=datetime.timezone.utc
        )
    raise TypeError(f"Cannot convert {type(value).__name__} to a datetime.")


def combine_date_time(
    day: datetime.date, time_of_day: datetime.time | None
) -> datetime.datetime:
    """Combine a form date and time into an aware UTC datetime."""
    return datetime.datetime.combine(day, time_of_day or datetime.time.min).replace(
        tzinfo=datetime.timezone.utc
    )


def is_future_date(day: datetime.date | datetime.datetime, now=None) -> bool:
    """Return True if ``day`` falls after today (end of day inclusive)."""
    now = now or utcnow()
    if isinstance(day, datetime.datetime):
        day = as_utc(day).date()
    return day > now.date()


def format_currency(amount: Any, symbol: str | None = None) -> str:
    """Format an amount as ``₹1,500``. Fractions are only shown when present."""
    if symbol is None:
        symbol = DEFAULT_CURRENCY_SYMBOL
        if has_app_context():
            symbol = current_app.config.get("CURRENCY_SYMBOL", symbol)
    try:
        value = float(amount or 0)
    except (TypeError, ValueError):
        value = 0.0
    if not math.isfinite(value):
        value = 0.0
    sign = "-" if value < 0 else ""
    value = abs(value)
    if value == int(value):
        body = f"{int(value):,}"
    else:
        body = f"{value:,.2f}"
    return f"{sign}{symbol}{body}"


def plural(count: int, word: str) -> str:
    """Return ``count word`` with a trailing 's' when count != 1."""
    return f"{count} {word}{'' if count == 1 else 's'}"


class BatchWriter:
    """Queues Firestore writes and commits them in chunks below the batch limit."""

    def __init__(self, db: Client, limit: int = FIRESTORE_BATCH_LIMIT):
        self.db = db
        self.limit = limit
        self.batch = db.batch()
        self.count = 0
        self.committed = 0

    def set(self, ref: Any, data: dict[str, Any], merge: bool = False) -> None:
        """Adds a set operation to the batch."""
        self.batch.set(ref, data, merge=merge)
        self._bump()

    def update(self, ref: Any, data: dict[str, Any]) -> None:
        """Adds an update operation to the batch."""
        self.batch.update(ref, data)
        self._bump()

    def delete(self, ref: Any) -> None:
        """Adds a delete operation to the batch."""
        self.batch.delete(ref)
        self._bump()

    def _bump(self) -> None:
        self.count += 1
        if self.count >= self.limit:
            self.commit()

    def commit(self) -> None:
        """Commits the current batch."""
        if self.count > 0:
            self.batch.commit()
            self.committed += self.count
            self.batch = self.db.batch()
            self.count = 0


def _first_message(messages: Any) -> str | None:
    # FieldList and FormField nest their errors in lists and dicts.
    if isinstance(messages, dict):
        messages = list(messages.values())
    if isinstance(messages, (list, tuple)):
        for message in messages:
            found = _first_message(message)
            if found:
                return found
        return None
    return str(messages) if messages else None


def first_form_error(form: Any) -> str:
    """Return the first validation message of a WTForms form."""
    for field_name, messages in form.errors.items():
        message = _first_message(messages)
        if not message:
            continue
        field = getattr(form, field_name, None)
        label = field.label.text if field is not None else field_name
        if message.startswith(label):
            return message
        return f"{label}: {message}"
    return "Invalid form submission."


class FirestoreJSONProvider(DefaultJSONProvider):
    """JSON provider that serializes Firestore values in API responses."""

    @staticmethod
    def default(o: Any) -> Any:
        if isinstance(o, (datetime.datetime, datetime.date)):
            return o.isoformat()
        if hasattr(o, "path") and hasattr(o, "id"):
            # DocumentReference
            return o.id
        return str(o)
