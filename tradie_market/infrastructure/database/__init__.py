"""Database infrastructure helpers (engine, sessions, migrations)."""

from .base import Base
from .session import (
    build_engine,
    build_session_factory,
    init_db,
    run_in_transaction,
)

__all__ = [
    "Base",
    "build_engine",
    "build_session_factory",
    "init_db",
    "run_in_transaction",
]
