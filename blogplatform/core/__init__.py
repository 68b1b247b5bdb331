# Blog Platform Core Module
from .config import JwtSettings, get_settings, settings
from .database import Base, async_session_maker, create_tables, engine, get_db
from .logging import get_logger, setup_logging

__all__ = [
    "settings",
    "get_settings",
    "JwtSettings",
    "setup_logging",
    "get_logger",
    "Base",
    "engine",
    "async_session_maker",
    "create_tables",
    "get_db",
]
