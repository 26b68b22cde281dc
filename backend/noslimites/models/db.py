import uuid
from datetime import datetime, timezone

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from ..config import DATABASE_URL

# Create engine
# SQLite needs check_same_thread=False for FastAPI
if DATABASE_URL.lower().startswith("sqlite"):
    engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False})
else:
    engine = create_engine(DATABASE_URL, pool_pre_ping=True)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE unless this is set per connection
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Create base class for models
Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def as_utc(value):
    """SQLite returns naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# Dialects with INSERT ... ON CONFLICT, used for seeding and choice upserts
SUPPORTED_DIALECTS = ("sqlite", "postgresql")


class UnsupportedDatabase(RuntimeError):
    pass


def check_supported_dialect(bind) -> None:
    """Refuse to start on a database without ON CONFLICT support."""
    name = bind.dialect.name
    if name not in SUPPORTED_DIALECTS:
        raise UnsupportedDatabase(
            f"Database dialect '{name}' is not supported (expected one of: {', '.join(SUPPORTED_DIALECTS)})"
        )


def dialect_insert(db):
    """``insert()`` supporting ON CONFLICT for the bound dialect."""
    bind = db.get_bind()
    check_supported_dialect(bind)
    if bind.dialect.name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
        return insert
    from sqlalchemy.dialects.sqlite import insert
    return insert
