"""Declarative base for ORM models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models.

    Tables are created by the SQL migration units, never by
    ``Base.metadata.create_all``.
    """
