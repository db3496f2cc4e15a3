"""
Learning: cross-session weakness tracking.

- weakness_profile: exponential-smoothing store of per-topic scores
- backends: in-memory and SQLAlchemy key-value storage for the profile
"""

from mastery_loop.learning.backends import (
    InMemoryProfileBackend,
    ProfileBackend,
    SqlProfileBackend,
    topic_key,
)
from mastery_loop.learning.weakness_profile import TopicSample, WeaknessProfileStore

__all__ = [
    "InMemoryProfileBackend",
    "ProfileBackend",
    "SqlProfileBackend",
    "TopicSample",
    "WeaknessProfileStore",
    "topic_key",
]
