"""TodoHub Database — SQLAlchemy base, engine registry, session scope, models."""

from todohub.db.base import Base, engine_registry  # noqa: F401
from todohub.db.session import init_db, session_scope  # noqa: F401
