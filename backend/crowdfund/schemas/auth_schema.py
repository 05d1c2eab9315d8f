"""Authentication request/response schemas."""

from __future__ import annotations

import re
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator


# ---------------------------------------------------------------------------
# Password policy
# ---------------------------------------------------------------------------
COMMON_PASSWORDS = {
    "password", "password1", "123456", "12345678", "123456789",
    "qwerty", "abc123", "letmein", "welcome", "admin",
    "monkey", "master", "dragon", "login", "princess",
    "football", "shadow", "sunshine", "trustno1", "iloveyou",
}

_PW_MIN_LENGTH = 8
_PW_RULES = [
    (r"[A-Z]", "one uppercase letter"),
    (r"[a-z]", "one lowercase letter"),
    (r"[0-9]", "one number"),
    (r"[!@#$%^&*()_+\-=\[\]{};':\"\\|,.<>/?]", "one special character"),
]


def validate_password_strength(password: str) -> str:
    """Validate password meets strength requirements. Returns password or raises ValueError."""
    errors: list[str] = []
    if len(password) < _PW_MIN_LENGTH:
        errors.append(f"at least {_PW_MIN_LENGTH} characters")
    for pattern, label in _PW_RULES:
        if not re.search(pattern, password):
            errors.append(label)
    pw_lower = password.lower()
    pw_alpha = re.sub(r"[^a-z]", "", pw_lower)
    if pw_lower in COMMON_PASSWORDS or pw_alpha in COMMON_PASSWORDS:
        errors.append("not be a common password")
    if errors:
        raise ValueError(
            f"Password must contain {', '.join(errors)}."
        )
    return password


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------

SignupRole = Literal["startup", "investor", "committee"]
LoginRole = Literal["admin", "investor", "startup", "committee", "super_admin"]


class SignupRequest(BaseModel):
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., description="Strong password")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: SignupRole = Field(..., description="Account role; admins are provisioned separately")
    phone: Optional[str] = Field(default=None, max_length=32)

    # Startup-only
    company_name: Optional[str] = Field(default=None, max_length=255)
    sector: Optional[str] = Field(default=None, max_length=255)
    tax_number: Optional[str] = Field(default=None, max_length=32)

    # Investor-only
    investor_type: Optional[Literal["individual", "corporate"]] = None
    investment_capacity: Optional[int] = Field(default=None, ge=0)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password_strength(v)

    @model_validator(mode="after")
    def check_role_fields(self) -> "SignupRequest":
        if self.role == "startup" and not (self.company_name or "").strip():
            raise ValueError("Startup accounts require a company_name.")
        if self.role == "investor" and self.investor_type is None:
            raise ValueError("Investor accounts require an investor_type.")
        return self


class LoginRequest(BaseModel):
    email: EmailStr = Field(..., description="User email address")
    password: str = Field(..., description="Password")
    role: LoginRole = Field(..., description="Role the user is signing in as")


class UserPublic(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    role: str
    is_active: bool
    startup_id: Optional[str] = None


class AuthResponse(BaseModel):
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer")
    user: UserPublic


class MessageResponse(BaseModel):
    message: str
