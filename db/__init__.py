from .engine import engine, async_session_maker, Base
from .session import get_db
from . import models  # noqa: F401 - регистрация таблиц в Base.metadata

__all__ = ["engine", "async_session_maker", "Base", "get_db", "models"]
