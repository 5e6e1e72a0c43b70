"""ORM models for matcher jobs and per-row match results."""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from sourcing_matcher.db.base import Base, TimestampMixin, utcnow


class MatcherJobRecord(Base, TimestampMixin):
    """A bulk matching job.

    ``progress`` is stored as ``{"processed": int, "total": int}`` and read
    by pollers between row completions.
    """

    __tablename__ = "product_matcher_jobs"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="check_matcher_job_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    sheet_data: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    providers: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    criteria: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    progress: Mapped[Dict[str, int]] = mapped_column(JSON, nullable=False, default=dict)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<MatcherJobRecord(id={self.id}, status='{self.status}')>"


class MatchResultRecord(Base):
    """Outcome of one row of a matcher job."""

    __tablename__ = "product_match_results"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'searching', 'found', 'not_found', 'error')",
            name="check_match_result_status",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("product_matcher_jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    row_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    original_product: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    matches: Mapped[List[Dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    best_match_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    sku: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    landed_cost_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    landed_cost_currency: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
    eta_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reliability_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    ranking_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<MatchResultRecord(id={self.id}, job_id={self.job_id}, status='{self.status}')>"
