"""
SQLAlchemy Models for Agent Storage

Async-compatible SQLAlchemy 2.0 ORM model for durable agent identity.

Designed to work with:
- SQLite (via aiosqlite)
- PostgreSQL (via asyncpg)
- MySQL (via aiomysql)
"""

from datetime import datetime, timezone

from sqlalchemy import String, DateTime, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Base
# =============================================================================

class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# =============================================================================
# Agent Model
# =============================================================================

class AgentModel(Base):
    """
    Durable agent identity.

    One row per created agent; rows are never updated.
    """
    __tablename__ = "mathmcp_agents"

    # agent-<timestamp>-<random>
    agent_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow
    )

    __table_args__ = (
        Index("ix_agents_created_at", "created_at"),
    )
