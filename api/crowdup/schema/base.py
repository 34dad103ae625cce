"""Shared schema base classes for API payloads."""

from pydantic import BaseModel, ConfigDict


class ORMModel(BaseModel):
    """Base model that reads attributes straight off SQLAlchemy objects."""

    model_config = ConfigDict(from_attributes=True)


class CamelModel(BaseModel):
    """Request body accepting camelCase keys (and snake_case field names)."""

    model_config = ConfigDict(populate_by_name=True)
