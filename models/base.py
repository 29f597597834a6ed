"""
Base schemas for all models.
"""

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """
    Base for all schemas.

    Features:
        - Auto-trim whitespace from strings
        - Validate on attribute assignment
        - Allow ORM objects (from_attributes)
    """
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        validate_assignment=True
    )


class FrozenSchema(BaseModel):
    """
    Base for immutable values that must keep their raw text.

    Strings are stored exactly as received (no trimming), so a trailing
    space in an uploaded code stays observable to the matcher.
    """
    model_config = ConfigDict(
        from_attributes=True,
        frozen=True
    )
