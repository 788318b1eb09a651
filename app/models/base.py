"""
Declarative base.

All ORM models inherit from Base so a single metadata object holds
every table.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
