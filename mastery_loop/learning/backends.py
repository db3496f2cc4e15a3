"""
Key-value backends for the weakness profile.

The profile store only needs get/put per (user, topic), plus a listing for
snapshots and a multi-put that lands a whole session at once. Two
implementations:
- InMemoryProfileBackend: lock-guarded dict, for tests and ephemeral runs
- SqlProfileBackend: SQLAlchemy rows, one transaction per put_many
"""

from __future__ import annotations

import copy
import threading
from typing import Mapping, Protocol

from loguru import logger
from sqlalchemy import Engine, select

from mastery_loop.core.models import Trend, WeaknessRecord
from mastery_loop.db.database import init_db, session_scope
from mastery_loop.db.models import WeaknessRecordRow


def topic_key(topic: str) -> str:
    """Topics are matched case-insensitively."""
    return topic.strip().casefold()


class ProfileBackend(Protocol):
    """Storage contract for weakness records."""

    def get(self, user_id: str, topic: str) -> WeaknessRecord | None: ...

    def put(self, user_id: str, topic: str, record: WeaknessRecord) -> None: ...

    def put_many(self, user_id: str, records: Mapping[str, WeaknessRecord]) -> None: ...

    def list(self, user_id: str) -> list[WeaknessRecord]: ...


class InMemoryProfileBackend:
    """Dict-backed profile storage. Records are copied in and out."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, WeaknessRecord]] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str, topic: str) -> WeaknessRecord | None:
        with self._lock:
            record = self._data.get(user_id, {}).get(topic_key(topic))
            return copy.copy(record) if record else None

    def put(self, user_id: str, topic: str, record: WeaknessRecord) -> None:
        self.put_many(user_id, {topic: record})

    def put_many(self, user_id: str, records: Mapping[str, WeaknessRecord]) -> None:
        with self._lock:
            user_records = self._data.setdefault(user_id, {})
            for topic, record in records.items():
                user_records[topic_key(topic)] = copy.copy(record)

    def list(self, user_id: str) -> list[WeaknessRecord]:
        with self._lock:
            return [copy.copy(r) for r in self._data.get(user_id, {}).values()]


class SqlProfileBackend:
    """
    SQLAlchemy-backed profile storage.

    Each put_many runs in a single transaction, so a session's topic
    updates become visible together or not at all.
    """

    def __init__(self, engine: Engine | None = None, create_tables: bool = True):
        self._engine = engine
        if create_tables:
            init_db(engine)

    def get(self, user_id: str, topic: str) -> WeaknessRecord | None:
        with session_scope(self._engine) as session:
            row = session.get(WeaknessRecordRow, (user_id, topic_key(topic)))
            return self._to_record(row) if row else None

    def put(self, user_id: str, topic: str, record: WeaknessRecord) -> None:
        self.put_many(user_id, {topic: record})

    def put_many(self, user_id: str, records: Mapping[str, WeaknessRecord]) -> None:
        with session_scope(self._engine) as session:
            for topic, record in records.items():
                key = topic_key(topic)
                row = session.get(WeaknessRecordRow, (user_id, key))
                if row is None:
                    row = WeaknessRecordRow(user_id=user_id, topic_key=key)
                    session.add(row)
                row.topic = record.topic
                row.subject = record.subject
                row.score = record.score
                row.total_attempts = record.total_attempts
                row.correct_attempts = record.correct_attempts
                row.recent_trend = record.recent_trend.value
                row.last_attempted = record.last_attempted
        logger.debug(f"Persisted {len(records)} weakness record(s) for {user_id}")

    def list(self, user_id: str) -> list[WeaknessRecord]:
        with session_scope(self._engine) as session:
            rows = session.scalars(
                select(WeaknessRecordRow).where(WeaknessRecordRow.user_id == user_id)
            ).all()
            return [self._to_record(row) for row in rows]

    @staticmethod
    def _to_record(row: WeaknessRecordRow) -> WeaknessRecord:
        return WeaknessRecord(
            topic=row.topic,
            subject=row.subject,
            score=row.score,
            total_attempts=row.total_attempts,
            recent_trend=Trend(row.recent_trend),
            correct_attempts=row.correct_attempts,
            last_attempted=row.last_attempted,
        )
