from docwatch.db.base import Base
from docwatch.db.session import SessionLocal, engine, get_db, init_db
from docwatch.db.tables import ALL_TABLE_NAMES

__all__ = ["get_db", "engine", "SessionLocal", "Base", "init_db", "ALL_TABLE_NAMES"]
