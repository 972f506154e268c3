"""Append-only history: one row per check, never updated after insert."""
from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from docwatch.db.base import Base


class CheckHistory(Base):
    __tablename__ = "check_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    document_url = Column(Text, nullable=True)
    search_number = Column(String(64), nullable=False)
    found = Column(Boolean, nullable=False, default=False)
    match_count = Column(Integer, nullable=False, default=0)
    error = Column(Text, nullable=True)
    success = Column(Boolean, nullable=False, default=True)
    email_sent = Column(Boolean, nullable=False, default=False)
    contexts_json = Column(Text, nullable=True)  # JSON array of strings, at most 10
    source = Column(String(16), nullable=False, index=True)  # manual | scheduled | cron
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
