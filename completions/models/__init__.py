"""
Completions Tracker
SQLAlchemy extension instance and shared column helpers.

All model modules import ``db`` from here:
    from completions.models import db
"""

import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def new_uuid() -> str:
    """Primary-key default: random UUID4 as a 36-char string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso(value):
    """Serialize a date/datetime (or None) for API responses."""
    return value.isoformat() if value else None
