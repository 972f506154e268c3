"""Singleton monitoring state: one row, updated by upsert after every check."""
from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, Text

from docwatch.db.base import Base


STATUS_ROW_ID = 1


class AutomationStatus(Base):
    __tablename__ = "automation_status"
    __table_args__ = (CheckConstraint(f"id = {STATUS_ROW_ID}", name="ck_automation_status_singleton"),)

    id = Column(Integer, primary_key=True, autoincrement=False, default=STATUS_ROW_ID)
    is_running = Column(Boolean, nullable=False, default=True)  # display only
    search_number = Column(String(64), nullable=False)
    cached_document_url = Column(Text, nullable=True)  # last resolved PDF URL
    cached_at = Column(DateTime(timezone=True), nullable=True)
    last_check_at = Column(DateTime(timezone=True), nullable=True)
    next_check_at = Column(DateTime(timezone=True), nullable=True)
    last_result_json = Column(Text, nullable=True)  # copy of the newest check_history row
    # Run lease: set by a conditional UPDATE so overlapping triggers cannot both run
    lease_owner = Column(String(64), nullable=True)
    lease_expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, index=True)
