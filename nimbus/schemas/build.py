"""
Pydantic schemas for the build API.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator

from nimbus.core.workspace import COMPONENT_ID_MAX_LENGTH, is_safe_component_id


class BuildRequest(BaseModel):
    """Request body for POST /build."""

    component_id: str = Field(
        ...,
        description="Caller-chosen id; becomes the storage prefix and preview subdomain",
        min_length=1,
        max_length=COMPONENT_ID_MAX_LENGTH,
    )
    code: str = Field(
        ...,
        description="TSX source whose default export is the component to render",
    )

    @field_validator("component_id")
    @classmethod
    def validate_component_id(cls, v: str) -> str:
        if not is_safe_component_id(v):
            raise ValueError(
                "component_id must be a valid hostname label: lowercase letters, "
                "digits, and hyphens, not starting or ending with a hyphen "
                "(max 63 chars)"
            )
        return v


class BuildResponse(BaseModel):
    """Response body for a published build."""

    model_config = ConfigDict(populate_by_name=True)

    render_url: str = Field(..., alias="renderUrl")
    original_url: str = Field(..., alias="originalUrl")
