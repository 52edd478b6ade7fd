"""FastAPI dependencies for database sessions."""
from typing import Iterator

from sqlalchemy.orm import Session

from taskbreaker.db.session import SessionLocal


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
