"""Import all models here so metadata is complete before table creation."""

from crowdup.db.base_class import Base
from crowdup.models import auth, user  # noqa: F401

__all__ = ["Base"]
