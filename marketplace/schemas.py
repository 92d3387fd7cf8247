"""
Pydantic schemas for request / response serialization.

The wire format is camelCase (``newPassword``, ``resetToken``) to stay
compatible with the existing frontend; Python code uses snake_case via
aliases.  String inputs are trimmed before validation.  Validator
messages are written for end users; the error handler shows them
verbatim.
"""

import re
import uuid
from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError

from marketplace.core import messages

PASSWORD_PATTERN = re.compile(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*#?&])[A-Za-z\d@$!%*#?&]{8,16}$"
)
NAME_PATTERN = re.compile(r"^[A-Za-z]+( [A-Za-z]+)*$")
OTP_PATTERN = re.compile(r"^\d{6}$")


def normalize_email(value: str) -> str:
    try:
        _, email = validate_email(value)
    except PydanticCustomError:
        raise ValueError(messages.ERROR.INVALID_EMAIL)
    return email.strip().lower()


def check_password_policy(value: str) -> str:
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(messages.ERROR.PASSWORD_POLICY)
    return value


Email = Annotated[str, AfterValidator(normalize_email)]
Password = Annotated[str, AfterValidator(check_password_policy)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ── Auth ─────────────────────────────────────────────────────────────
class LoginRequest(CamelModel):
    email: Email
    password: str = Field(min_length=1)


class RefreshTokenRequest(CamelModel):
    refresh_token: str | None = None


class ForgotPasswordRequest(CamelModel):
    email: Email


class ResetPasswordRequest(CamelModel):
    email: Email
    otp: str
    new_password: Password
    reset_token: str = Field(min_length=10)

    @field_validator("otp")
    @classmethod
    def _check_otp(cls, value: str) -> str:
        if not value:
            raise ValueError(messages.ERROR.OTP_REQUIRED)
        if not OTP_PATTERN.match(value):
            raise ValueError(messages.ERROR.INVALID_OTP)
        return value


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: Password


class TokenPair(CamelModel):
    access_token: str
    refresh_token: str


class ResetTokenOut(CamelModel):
    reset_token: str


class SessionStatusOut(CamelModel):
    user_id: str
    role: str


# ── User ─────────────────────────────────────────────────────────────
class SignupRequest(CamelModel):
    name: str
    email: Email
    password: Password
    phone_number: str
    role: str

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not NAME_PATTERN.match(value):
            raise ValueError(messages.ERROR.NAME_POLICY)
        return value

    @field_validator("phone_number")
    @classmethod
    def _check_phone(cls, value: str) -> str:
        if len(value) < 10:
            raise ValueError(messages.ERROR.PHONE_TOO_SHORT)
        return value

    @field_validator("role")
    @classmethod
    def _check_role(cls, value: str) -> str:
        # Admins are provisioned out-of-band, never through signup.
        if value not in ("vendor", "buyer"):
            raise ValueError(messages.ERROR.ROLE_NOT_ALLOWED)
        return value


class UserOut(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    phone_number: str
    role: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("role", mode="before")
    @classmethod
    def _role_value(cls, value):
        return getattr(value, "value", value)


class LoginOut(CamelModel):
    access_token: str
    user: UserOut
    session_id: str
