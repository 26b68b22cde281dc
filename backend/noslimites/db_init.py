"""
Schema creation and catalog seeding, run once per process.

Concurrent callers share one lock: the first one does the work, the others
wait for it and then return without touching the database.
"""
import logging
import threading

from .models import Base
from .models import db as models_db
from .services.catalog import seed_catalog, repair_duplicate_catalog

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()
_initialized = False


def ensure_database_initialized(engine=None, session_factory=None) -> bool:
    """Create tables, seed and repair the catalog. Returns True if this call did the work."""
    global _initialized
    if _initialized:
        return False

    with _init_lock:
        if _initialized:
            return False

        engine = engine or models_db.engine
        session_factory = session_factory or models_db.SessionLocal

        models_db.check_supported_dialect(engine)
        logger.info("Initializing database (schema + seed)...")
        Base.metadata.create_all(bind=engine)
        with session_factory() as db:
            seed_catalog(db)
            repair_duplicate_catalog(db)
        _initialized = True
        logger.info("Database initialization complete.")
        return True


def reset_initialization_state() -> None:
    """Forget that initialization ran (used when the engine is swapped)."""
    global _initialized
    with _init_lock:
        _initialized = False
