"""Common utilities for tests."""

import copy
import datetime
import unittest.mock
from typing import Any, Iterator, Optional

from firebase_admin import firestore
from google.api_core.exceptions import Aborted
from mockfirestore import CollectionReference, MockFirestore, Query
from mockfirestore.document import DocumentReference

from turfclub.auth.models import UserSession

FIXED_TIMESTAMP = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
MAX_TRANSACTION_ATTEMPTS = 5


class MockArrayUnion:
    def __init__(self, values: list[Any]) -> None:
        self.values = values

    def __iter__(self) -> Iterator[Any]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)


class MockArrayRemove:
    def __init__(self, values: list[Any]) -> None:
        self.values = values

    def __iter__(self) -> Iterator[Any]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)


def patch_mockfirestore() -> None:
    """Apply monkeypatches to mockfirestore for FieldFilter, sentinels and transactions."""

    def collection_where(
        self: Any,
        field_path: Optional[str] = None,
        op_string: Optional[str] = None,
        value: Any = None,
        filter: Any = None,
    ) -> Any:  # noqa: E501
        if filter:
            return self._where(filter.field_path, filter.op_string, filter.value)
        return self._where(field_path, op_string, value)

    if not hasattr(CollectionReference, "_where"):
        CollectionReference._where = CollectionReference.where
        CollectionReference.where = collection_where

    def query_where(
        self: Any,
        field_path: Optional[str] = None,
        op_string: Optional[str] = None,
        value: Any = None,
        filter: Any = None,
    ) -> Any:
        if filter:
            return self._where(filter.field_path, filter.op_string, filter.value)
        return self._where(field_path, op_string, value)

    if not hasattr(Query, "_where"):
        Query._where = Query.where
        Query.where = query_where

    def doc_ref_eq(self: Any, other: Any) -> bool:
        if not isinstance(other, DocumentReference):
            return False
        return self._path == other._path

    if not hasattr(DocumentReference, "_orig_eq"):
        DocumentReference._orig_eq = DocumentReference.__eq__
        DocumentReference.__eq__ = doc_ref_eq
        DocumentReference.__hash__ = lambda self: hash(tuple(self._path))

    # Reads made inside a transaction are remembered so commit can detect conflicts.
    if not hasattr(DocumentReference, "_orig_get"):
        DocumentReference._orig_get = DocumentReference.get

        def doc_ref_get(self: Any, transaction: Any = None) -> Any:
            snapshot = self._orig_get()
            if isinstance(transaction, MockTransaction):
                transaction.record_read(self, snapshot)
            return snapshot

        DocumentReference.get = doc_ref_get

    if not hasattr(DocumentReference, "_orig_update"):
        DocumentReference._orig_update = DocumentReference.update

        def patched_update(self: Any, data: dict[str, Any]) -> Any:
            current_data = self._orig_get().to_dict() or {}
            new_data = {}
            for k, v in data.items():
                if isinstance(v, MockArrayUnion):
                    existing = current_data.get(k, [])
                    if not isinstance(existing, list):
                        existing = []
                    merged = list(existing)
                    for item in v.values:
                        if item not in merged:
                            merged.append(item)
                    new_data[k] = merged
                elif isinstance(v, MockArrayRemove):
                    existing = current_data.get(k, [])
                    if not isinstance(existing, list):
                        existing = []
                    new_data[k] = [i for i in existing if i not in v.values]
                else:
                    new_data[k] = v
            return self._orig_update(new_data)

        DocumentReference.update = patched_update


class MockBatch:
    def __init__(self, db: Any) -> None:
        self.db = db
        self.updates: list[tuple[str, Any, Any, bool]] = []
        self.commit = unittest.mock.MagicMock(side_effect=self._real_commit)

    def update(self, ref: Any, data: Any) -> None:
        self.updates.append(("update", ref, data, False))

    def set(self, ref: Any, data: Any, merge: bool = False) -> None:
        self.updates.append(("set", ref, data, merge))

    def delete(self, ref: Any) -> None:
        self.updates.append(("delete", ref, None, False))

    def _real_commit(self) -> None:
        for op, ref, data, merge in self.updates:
            if op == "delete":
                ref.delete()
            elif op == "set":
                ref.set(data, merge=merge)
            else:
                ref.update(data)
        self.updates = []


class MockTransaction:
    """Queues writes until commit, and aborts if a document read has since changed."""

    def __init__(self, db: Any) -> None:
        self.db = db
        self.reads: list[tuple[Any, dict[str, Any]]] = []
        self.writes: list[tuple[str, Any, Any]] = []
        self.commits = 0

    def record_read(self, ref: Any, snapshot: Any) -> None:
        self.reads.append((ref, copy.deepcopy(snapshot.to_dict() or {})))

    def set(self, ref: Any, data: Any, merge: bool = False) -> None:
        self.writes.append(("set", ref, data))

    def update(self, ref: Any, data: Any) -> None:
        self.writes.append(("update", ref, data))

    def delete(self, ref: Any) -> None:
        self.writes.append(("delete", ref, None))

    def rollback(self) -> None:
        self.reads = []
        self.writes = []

    def commit(self) -> None:
        for ref, seen in self.reads:
            if (ref._orig_get().to_dict() or {}) != seen:
                self.rollback()
                raise Aborted(f"Document {ref.id} changed during the transaction.")
        for op, ref, data in self.writes:
            if op == "delete":
                ref.delete()
            elif op == "set":
                ref.set(data)
            else:
                ref.update(data)
        self.commits += 1
        self.rollback()


def mock_transactional(func: Any) -> Any:
    """Stand-in for firestore.transactional that retries aborted commits."""

    def wrapper(transaction: MockTransaction, *args: Any, **kwargs: Any) -> Any:
        for attempt in range(MAX_TRANSACTION_ATTEMPTS):
            transaction.rollback()
            try:
                result = func(transaction, *args, **kwargs)
            except Exception:
                transaction.rollback()
                raise
            try:
                transaction.commit()
            except Aborted:
                if attempt == MAX_TRANSACTION_ATTEMPTS - 1:
                    raise
                continue
            return result
        return None

    return wrapper


def make_mock_db() -> MockFirestore:
    """Return a MockFirestore whose batches and transactions apply their writes."""
    patch_mockfirestore()
    db = MockFirestore()
    db.batch = unittest.mock.MagicMock(side_effect=lambda: MockBatch(db))
    db.transaction = unittest.mock.MagicMock(side_effect=lambda: MockTransaction(db))
    return db


def start_firestore_patches(test_case: Any, db: Any) -> None:
    """Point firebase_admin.firestore at ``db`` for the duration of a test."""
    patchers = [
        unittest.mock.patch.object(firestore, "client", return_value=db),
        unittest.mock.patch.object(firestore, "transactional", mock_transactional),
        unittest.mock.patch.object(firestore, "ArrayUnion", MockArrayUnion),
        unittest.mock.patch.object(firestore, "ArrayRemove", MockArrayRemove),
        unittest.mock.patch.object(firestore, "SERVER_TIMESTAMP", FIXED_TIMESTAMP),
        unittest.mock.patch("firebase_admin.initialize_app"),
    ]
    for patcher in patchers:
        patcher.start()
        test_case.addCleanup(patcher.stop)


def make_user(uid: str, role: str = "player", name: Optional[str] = None) -> UserSession:
    """Build the session of a signed-in club member."""
    return UserSession(
        {
            "uid": uid,
            "role": role,
            "name": name or uid.title(),
            "email": f"{uid}@example.com",
        }
    )
