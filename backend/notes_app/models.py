"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Identifiers are uuid4 hex strings and every timestamp is a
timezone-aware UTC datetime (see `utcnow`).
"""

import enum
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


class OtpType(str, enum.Enum):
    SIGNUP = "SIGNUP"
    SIGNIN = "SIGNIN"


class User(SQLModel, table=True):
    """A registered account.

    Fields:
    - `email`: unique, stored lower-cased and trimmed
    - `verified`: set once the signup OTP has been confirmed
    - `is_active`: deactivated accounts cannot sign in or use sessions
    """
    id: str = Field(default_factory=new_id, primary_key=True)
    email: str = Field(index=True, nullable=False, unique=True)
    name: str
    date_of_birth: date
    verified: bool = False
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


class Otp(SQLModel, table=True):
    """A one-time passcode sent by email.

    Only a hash of the code is kept. `signup_data` holds the pending
    account details for SIGNUP codes until the code is confirmed.
    """
    id: str = Field(default_factory=new_id, primary_key=True)
    code_hash: str
    email: str = Field(index=True)
    type: OtpType = Field(index=True)
    expires_at: datetime = Field(index=True)
    verified: bool = False
    attempts: int = 0
    user_id: Optional[str] = Field(default=None, foreign_key="user.id")
    signup_data: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


class UserSession(SQLModel, table=True):
    """A login session backing one issued bearer token."""
    __tablename__ = "session"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(foreign_key="user.id", index=True)
    token: str = Field(unique=True, index=True)
    expires_at: datetime = Field(index=True)
    is_active: bool = True
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})


class Note(SQLModel, table=True):
    """A short text note owned by a single user."""
    id: str = Field(default_factory=new_id, primary_key=True)
    title: str
    content: str = ""
    user_id: str = Field(foreign_key="user.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})
