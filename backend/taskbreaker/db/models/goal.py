"""Goal ORM model; the task tree is stored as one JSON document per goal."""
from __future__ import annotations

from sqlalchemy import JSON, Column, DateTime, Index, Integer, Text, func

from taskbreaker.db.base import Base


class GoalRecord(Base):
    __tablename__ = "goals"
    __table_args__ = (Index("ix_goals_user_id", "user_id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=True)
    title = Column(Text, nullable=False)
    tasks = Column(JSON, nullable=False, default=list)
    progress = Column(Integer, nullable=False, default=0)
    total_estimated_minutes = Column(Integer, nullable=True)
    time_constraint_minutes = Column(Integer, nullable=True)
    additional_info = Column(Text, nullable=True)
    overall_suggestions = Column(Text, nullable=True)
    notification_channels = Column(JSON, nullable=True)
    last_progress_update = Column(Text, nullable=True)
    roadblocks = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
