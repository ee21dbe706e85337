# src/schemas/base_schemas.py
from pydantic import BaseModel, ConfigDict
from typing import Optional


class BaseSchema(BaseModel):
    """Base schema with common configuration"""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        use_enum_values=True,
    )


class FrozenSchema(BaseSchema):
    """Immutable record; changes go through model_copy(update=...)"""

    model_config = ConfigDict(frozen=True)


class ResponseBase(BaseSchema):
    """Base response schema"""

    success: bool = True
    message: Optional[str] = None
