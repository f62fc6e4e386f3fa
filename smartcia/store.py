"""
Key-value persistence for exams, submissions, feedback and the current user.

Every collection lives under one fixed key as a JSON array (the current user
as a single JSON object). Writes are full read-modify-write of that key; there
is no partial update and no indexing.
"""
import json
import threading
from typing import Any, Dict, Generic, List, Optional, Protocol, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy.orm import sessionmaker

from smartcia import models, schemas

STORAGE_KEYS = {
    "EXAMS": "smartcia_exams",
    "SUBMISSIONS": "smartcia_submissions",
    "CURRENT_USER": "smartcia_current_user",
    "FEEDBACK": "smartcia_feedback",
}

T = TypeVar("T", bound=BaseModel)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemoryStore:
    """
    Dict-backed store. Values are kept as JSON text so that callers never
    share mutable state with the store.
    """

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value, ensure_ascii=False)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class SqlAlchemyStore:
    """
    One row per key in the kv_records table, value stored as JSON text.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, key: str) -> Optional[Any]:
        with self._session_factory() as db:
            row = db.get(models.Record, key)
            if row is None:
                return None
            return json.loads(row.value)

    def set(self, key: str, value: Any) -> None:
        with self._session_factory() as db:
            db.merge(models.Record(key=key, value=json.dumps(value, ensure_ascii=False)))
            db.commit()

    def remove(self, key: str) -> None:
        with self._session_factory() as db:
            row = db.get(models.Record, key)
            if row is not None:
                db.delete(row)
                db.commit()


class Repository(Generic[T]):
    """Typed view over one JSON-array collection, records addressed by ``id``."""

    def __init__(self, store: KeyValueStore, key: str, model: Type[T], lock=None):
        self.store = store
        self.key = key
        self.model = model
        self.lock = lock or threading.RLock()

    def all(self) -> List[T]:
        raw = self.store.get(self.key) or []
        return [self.model.model_validate(item) for item in raw]

    def get(self, record_id: str) -> Optional[T]:
        for record in self.all():
            if record.id == record_id:
                return record
        return None

    def put(self, record: T) -> None:
        """Insert, or replace the record with the same id in place."""
        with self.lock:
            records = self.all()
            for i, existing in enumerate(records):
                if existing.id == record.id:
                    records[i] = record
                    break
            else:
                records.append(record)
            self.save_all(records)

    def append(self, record: T) -> None:
        with self.lock:
            records = self.all()
            records.append(record)
            self.save_all(records)

    def save_all(self, records: List[T]) -> None:
        self.store.set(self.key, [r.model_dump(mode="json") for r in records])


class Repositories:
    def __init__(self, store: KeyValueStore):
        self.store = store
        # Shared by all collections; held across every read-modify-write.
        self.lock = threading.RLock()
        self.exams: Repository[schemas.Exam] = Repository(store, STORAGE_KEYS["EXAMS"], schemas.Exam, self.lock)
        self.submissions: Repository[schemas.Submission] = Repository(
            store, STORAGE_KEYS["SUBMISSIONS"], schemas.Submission, self.lock
        )
        self.feedback: Repository[schemas.Feedback] = Repository(
            store, STORAGE_KEYS["FEEDBACK"], schemas.Feedback, self.lock
        )

    def get_current_user(self) -> Optional[schemas.User]:
        raw = self.store.get(STORAGE_KEYS["CURRENT_USER"])
        return schemas.User.model_validate(raw) if raw else None

    def set_current_user(self, user: schemas.User) -> None:
        self.store.set(STORAGE_KEYS["CURRENT_USER"], user.model_dump(mode="json"))

    def clear_current_user(self) -> None:
        self.store.remove(STORAGE_KEYS["CURRENT_USER"])
