"""Pydantic request schemas used by the API.

Field aliases accept the camelCase keys sent by the web frontend
(`dateOfBirth`, `keepLoggedIn`) while the snake_case names keep working.
Blank or missing values are left for the services to reject so that
the error messages stay consistent across endpoints.
"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SignupIn(BaseModel):
    """Payload for starting a signup."""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    email: Optional[str] = None
    date_of_birth: Optional[date] = Field(default=None, alias="dateOfBirth")

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def _blank_date_is_missing(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class VerifyOtpIn(BaseModel):
    """Email plus the code received by email."""
    email: Optional[str] = None
    otp: Optional[str] = None


class SigninIn(BaseModel):
    email: Optional[str] = None


class SigninVerifyIn(VerifyOtpIn):
    model_config = ConfigDict(populate_by_name=True)

    keep_logged_in: bool = Field(default=False, alias="keepLoggedIn")


class LogoutIn(BaseModel):
    token: Optional[str] = None


class NoteIn(BaseModel):
    """Create payload; `content` defaults to an empty string."""
    title: Optional[str] = None
    content: Optional[str] = ""


class NoteUpdateIn(BaseModel):
    """Partial update; omitted fields are left unchanged."""
    title: Optional[str] = None
    content: Optional[str] = None
