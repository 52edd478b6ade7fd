"""Database utilities and models."""

from taskbreaker.db.base import Base
from taskbreaker.db import models  # noqa: F401  (imported for side effects)

__all__ = ["Base"]
