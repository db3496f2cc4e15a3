"""
Weakness Profile Models.

SQLAlchemy models backing the durable per-user weakness profile. One row
per (user, topic); rows are only ever inserted or updated, never deleted.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Index, Integer, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all mastery-loop tables."""


class WeaknessRecordRow(Base):
    """
    Rolling performance record for one learner on one topic.

    topic_key is the case-folded topic used for lookups; topic keeps the
    display name first seen for it.
    """

    __tablename__ = "weakness_records"

    user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    topic_key: Mapped[str] = mapped_column(Text, primary_key=True)
    topic: Mapped[str] = mapped_column(Text, nullable=False)
    subject: Mapped[str] = mapped_column(Text, nullable=False, default="")

    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    recent_trend: Mapped[str] = mapped_column(Text, nullable=False, default="stable")  # improving/declining/stable

    last_attempted: Mapped[datetime | None] = mapped_column()
    updated_at: Mapped[datetime] = mapped_column(default=func.now(), onupdate=func.now())

    __table_args__ = (Index("idx_weakness_user_score", "user_id", "score"),)

    def __repr__(self) -> str:
        return f"<WeaknessRecordRow user={self.user_id} topic={self.topic} score={self.score}>"
