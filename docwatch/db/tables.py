"""
Single source of truth for database tables that exist after migrations.

Use these names when writing raw SQL. Must match models and alembic/versions.
"""
ALL_TABLE_NAMES = (
    "automation_status",
    "check_history",
)
