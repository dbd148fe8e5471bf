from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

# Request fields are Optional so that missing values reach the workflows and
# come back as the endpoint's own 400 message instead of a generic 422.


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: Optional[str] = None
    password: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class CheckUsernameRequest(BaseModel):
    username: Optional[str] = None


class UserSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uid: str
    username: str
    display_name: str = Field(alias="displayName")


class AuthResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    custom_token: str = Field(alias="customToken")
    user: UserSummary


class AvailabilityResponse(BaseModel):
    available: bool


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str
