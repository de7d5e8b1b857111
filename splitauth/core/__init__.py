# splitauth Core Module
from .config import get_settings, settings
from .database import (
    Base,
    build_engine,
    build_session_factory,
    check_db_connection,
    get_db,
    init_db,
)
from .logging import setup_logging

__all__ = [
    "settings",
    "get_settings",
    "setup_logging",
    "Base",
    "build_engine",
    "build_session_factory",
    "get_db",
    "init_db",
    "check_db_connection",
]
