"""Database layer: engine/session setup, ORM models and repositories."""

from sourcing_matcher.db.base import Base, create_engine, create_session_factory
from sourcing_matcher.db.models import MatcherJobRecord, MatchResultRecord
from sourcing_matcher.db.repositories import SqlJobRepository, SqlResultRepository

__all__ = [
    "Base",
    "create_engine",
    "create_session_factory",
    "MatcherJobRecord",
    "MatchResultRecord",
    "SqlJobRepository",
    "SqlResultRepository",
]
