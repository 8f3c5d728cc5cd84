"""Pydantic v2 request/response schemas for FastAPI."""

import re
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator


def _check_password(v: str) -> str:
    if not re.search(r"[A-Z]", v):
        raise ValueError("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", v):
        raise ValueError("Password must contain at least one lowercase letter")
    if not re.search(r"[0-9]", v):
        raise ValueError("Password must contain at least one number")
    return v


class SignupRequest(BaseModel):
    name: str = ""
    email: str = Field(min_length=1)
    password: str = Field(min_length=8)

    @field_validator("email")
    @classmethod
    def email_format(cls, v: str) -> str:
        v = v.strip().lower()
        parts = v.split("@")
        if len(parts) != 2 or not parts[0] or "." not in parts[1]:
            raise ValueError("Invalid email address")
        return v

    @field_validator("password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return _check_password(v)


class LoginRequest(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def email_format(cls, v: str) -> str:
        return v.strip().lower()


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=8)

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, v: str) -> str:
        return _check_password(v)


class HistoryEntry(BaseModel):
    role: str
    content: str = ""


class MathSolverRequest(BaseModel):
    """Body of the stateless tutor proxy; camelCase keys match the web client."""
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(min_length=1)
    note_content: Optional[str] = Field(None, alias="noteContent")
    conversation_history: List[HistoryEntry] = Field(default_factory=list, alias="conversationHistory")


class NoteMessageCreate(BaseModel):
    message: str = Field(min_length=1)

    @field_validator("message")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message must not be empty")
        return v


class MessageUpdate(BaseModel):
    content: str = Field(min_length=1)


class CalculateRequest(BaseModel):
    expression: str = Field(min_length=1, max_length=500)


class ConvertRequest(BaseModel):
    category: str = Field(min_length=1)
    value: float
    from_unit: str = Field(min_length=1)
    to_unit: str = Field(min_length=1)


class RenderRequest(BaseModel):
    content: str = ""
