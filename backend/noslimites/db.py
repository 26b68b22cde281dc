from typing import Generator

from sqlalchemy.orm import Session

from .models import db as models_db


def get_db() -> Generator[Session, None, None]:
    """Dependency for getting a database session per request."""
    db = models_db.SessionLocal()
    try:
        yield db
    finally:
        db.close()
