"""ORM models exposed for metadata discovery."""
from taskbreaker.db.models.goal import GoalRecord

__all__ = ["GoalRecord"]
