"""
Base models and common mixins.
Provides reusable functionality for all models.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from grimoire.core.id_generator import generate_id
from grimoire.core.utils.datetime_utils import utc_now


class GrimoireBaseModel(BaseModel):
    """
    Base model for all GRIMOIRE models.
    Common configuration and enhanced validation.
    """

    model_config = ConfigDict(
        # Validate values on assignment
        validate_assignment=True,
        # Use enum values
        use_enum_values=True,
        # Prevent extra fields
        extra="forbid",
    )


class TimestampMixin(BaseModel):
    """
    Mixin for automatic timestamps.
    Adds created_at and updated_at to any model.
    """

    created_at: datetime = Field(default_factory=utc_now, description="UTC creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="UTC last update timestamp")


class StandardIdMixin(BaseModel):
    """Generated hex32 'id' field for rows this system creates."""

    id: str = Field(
        default_factory=generate_id, description="Unique hex32 identifier (SQLite compatible)"
    )

    @property
    def primary_key(self) -> str:
        return self.id
