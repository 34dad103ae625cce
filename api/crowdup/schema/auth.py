"""Authentication-related response schemas."""

from pydantic import BaseModel, Field

from crowdup.schema.user import UserRead


class UserEnvelope(BaseModel):
    """Response carrying the signed-in user, or null when anonymous."""
    user: UserRead | None = None


class SuccessResponse(BaseModel):
    success: bool = True


class CsrfTokenResponse(BaseModel):
    csrf_token: str = Field(serialization_alias="csrfToken")
