"""
Weakness Profile Store with exponential smoothing.

Tracks a learner's performance per topic across sessions:
- First sample sets the score to 100 (correct) or 0 (incorrect)
- Later samples blend in: score' = round(a * score + (1 - a) * sample)
  with a = 0.7 by default, so recent struggle shows quickly without
  erasing older evidence
- Trend compares the new score with the score just before the update

The store is the only component with durable state. Updates from one
completed session are committed together under a single lock and a
single backend write, so readers never see half a session.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable

from loguru import logger

from mastery_loop.core.models import SessionResult, Trend, WeaknessRecord, round_half_up
from mastery_loop.learning.backends import InMemoryProfileBackend, ProfileBackend, topic_key

DEFAULT_SMOOTHING_FACTOR = 0.7
DEFAULT_TREND_DELTA = 5
DEFAULT_WEAK_THRESHOLD = 70


@dataclass(frozen=True)
class TopicSample:
    """One graded observation of a topic."""

    topic: str
    subject: str
    is_correct: bool


class WeaknessProfileStore:
    """
    Per-user topic -> WeaknessRecord mapping.

    Mutated only by completed sessions (upsert / record_session); read by
    quiz composition through weak_topics().
    """

    def __init__(
        self,
        user_id: str,
        backend: ProfileBackend | None = None,
        smoothing_factor: float = DEFAULT_SMOOTHING_FACTOR,
        trend_delta: int = DEFAULT_TREND_DELTA,
        weak_threshold: int = DEFAULT_WEAK_THRESHOLD,
    ):
        """
        Initialize the store.

        Args:
            user_id: Owner of the profile
            backend: Key-value storage (in-memory when omitted)
            smoothing_factor: Weight kept by the previous score per sample
            trend_delta: Score change beyond which the trend is not Stable
            weak_threshold: Default cutoff for weak_topics()
        """
        if not 0.0 < smoothing_factor < 1.0:
            raise ValueError(f"smoothing_factor must be in (0, 1), got {smoothing_factor}")
        self.user_id = user_id
        self.backend = backend or InMemoryProfileBackend()
        self.smoothing_factor = smoothing_factor
        self.trend_delta = trend_delta
        self.weak_threshold = weak_threshold
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, user_id: str, backend: ProfileBackend | None = None) -> WeaknessProfileStore:
        """Build a store using the smoothing/threshold values from config."""
        from config import get_settings

        cfg = get_settings().get_profile_config()
        return cls(
            user_id,
            backend=backend,
            smoothing_factor=cfg["smoothing_factor"],
            trend_delta=cfg["trend_delta"],
            weak_threshold=cfg["weak_score_threshold"],
        )

    # =========================================================================
    # Update rules
    # =========================================================================

    def _trend(self, previous: int, current: int) -> Trend:
        delta = current - previous
        if delta > self.trend_delta:
            return Trend.IMPROVING
        if delta < -self.trend_delta:
            return Trend.DECLINING
        return Trend.STABLE

    def _apply_sample(
        self,
        record: WeaknessRecord | None,
        sample: TopicSample,
        now: datetime,
    ) -> WeaknessRecord:
        """Return the record after one sample. Does not touch storage."""
        sample_score = 100 if sample.is_correct else 0

        if record is None:
            return WeaknessRecord(
                topic=sample.topic,
                subject=sample.subject,
                score=sample_score,
                total_attempts=1,
                recent_trend=Trend.STABLE,
                correct_attempts=1 if sample.is_correct else 0,
                last_attempted=now,
            )

        alpha = self.smoothing_factor
        new_score = round_half_up(alpha * record.score + (1 - alpha) * sample_score)
        new_score = max(0, min(100, new_score))

        return replace(
            record,
            score=new_score,
            total_attempts=record.total_attempts + 1,
            correct_attempts=record.correct_attempts + (1 if sample.is_correct else 0),
            recent_trend=self._trend(record.score, new_score),
            last_attempted=now,
        )

    # =========================================================================
    # Mutations
    # =========================================================================

    def upsert(self, topic: str, subject: str, is_correct_sample: bool) -> WeaknessRecord:
        """Apply one sample to one topic as a single atomic step."""
        updated = self.record_session([TopicSample(topic, subject, is_correct_sample)])
        return updated[topic_key(topic)]

    def record_session(self, samples: Iterable[TopicSample]) -> dict[str, WeaknessRecord]:
        """
        Apply every sample of one completed session atomically.

        Samples for the same topic are applied in order. All resulting
        records are written with one backend call while the store lock is
        held, so concurrent readers see either none or all of the session.

        Returns:
            Updated records keyed by case-folded topic
        """
        samples = list(samples)
        if not samples:
            return {}

        now = datetime.now(timezone.utc)
        with self._lock:
            working: dict[str, WeaknessRecord | None] = {}
            for sample in samples:
                key = topic_key(sample.topic)
                if key not in working:
                    working[key] = self.backend.get(self.user_id, sample.topic)
                working[key] = self._apply_sample(working[key], sample, now)

            updated = {key: record for key, record in working.items() if record is not None}
            self.backend.put_many(self.user_id, updated)

        logger.info(
            f"Weakness profile for {self.user_id}: {len(samples)} sample(s) across {len(updated)} topic(s)"
        )
        return updated

    def record_result(self, result: SessionResult, subject: str = "") -> dict[str, WeaknessRecord]:
        """Feed every scored item of a session into the profile."""
        return self.record_session(
            TopicSample(item.topic, subject, item.is_correct) for item in result.items
        )

    # =========================================================================
    # Reads
    # =========================================================================

    def snapshot(self) -> list[WeaknessRecord]:
        """All records for this user, worst score first."""
        with self._lock:
            records = self.backend.list(self.user_id)
        return sorted(records, key=lambda r: (r.score, -r.total_attempts, r.topic.casefold()))

    def weak_topics(
        self,
        max_count: int,
        score_below: int | None = None,
        subject: str | None = None,
    ) -> list[str]:
        """
        Topics that need work, worst first.

        Args:
            max_count: Maximum number of topics to return
            score_below: Cutoff score (defaults to the store's weak threshold)
            subject: Optional case-insensitive subject filter

        Returns:
            Topic names ordered by ascending score, ties broken by higher
            total_attempts (better-evidenced weaknesses first)
        """
        if max_count <= 0:
            return []
        cutoff = self.weak_threshold if score_below is None else score_below

        weak = [r for r in self.snapshot() if r.score < cutoff]
        if subject:
            weak = [r for r in weak if r.subject.casefold() == subject.casefold()]
        return [r.topic for r in weak[:max_count]]

    def topic_mastery(self, topic: str) -> int:
        """Current score for a topic, or -1 when it has never been attempted."""
        with self._lock:
            record = self.backend.get(self.user_id, topic)
        return record.score if record else -1
