"""Registration and login payload validation.

The validators never raise for bad input. They return a ``ValidationResult``
holding either the parsed request or the message for the first field that
failed, in declaration order.
"""

import re
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, EmailStr, ValidationError, field_validator
from pydantic_core import PydanticCustomError

PASSWORD_MIN_LENGTH = 8
PASSWORD_PATTERN = re.compile(
    r"(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]+",
    re.ASCII,
)

FIELD_MESSAGES = {
    "name": "Name is required",
    "email": "Invalid email format",
    "password": "Password is required",
    "role": "Role must be one of: student, teacher, parent",
}

RequestT = TypeVar("RequestT", bound=BaseModel)


@dataclass(frozen=True)
class ValidationResult(Generic[RequestT]):
    data: RequestT | None
    error: str | None

    @property
    def ok(self) -> bool:
        return self.error is None


def _normalize_email(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


class RegisterRequest(BaseModel):
    name: str
    email: EmailStr
    password: str
    role: Literal["student", "teacher", "parent"]

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise PydanticCustomError("auth_field", FIELD_MESSAGES["name"])
        return normalized

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> Any:
        return _normalize_email(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < PASSWORD_MIN_LENGTH:
            raise PydanticCustomError(
                "auth_field",
                f"Password must be at least {PASSWORD_MIN_LENGTH} characters long",
            )
        if not PASSWORD_PATTERN.fullmatch(value):
            raise PydanticCustomError(
                "auth_field",
                "Password must include at least one uppercase letter, one lowercase letter, "
                "one number, and one special character",
            )
        return value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> Any:
        return _normalize_email(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if not value:
            raise PydanticCustomError("auth_field", FIELD_MESSAGES["password"])
        return value


def _first_error_message(exc: ValidationError) -> str:
    error = exc.errors()[0]
    if error["type"] == "auth_field":
        return error["msg"]
    field = error["loc"][0] if error["loc"] else None
    return FIELD_MESSAGES.get(field, "Invalid request body")


def _validate(model: type[RequestT], payload: Any) -> ValidationResult[RequestT]:
    if not isinstance(payload, dict):
        return ValidationResult(None, "Invalid request body")
    try:
        return ValidationResult(model.model_validate(payload), None)
    except ValidationError as exc:
        return ValidationResult(None, _first_error_message(exc))


def validate_registration(payload: Any) -> ValidationResult[RegisterRequest]:
    return _validate(RegisterRequest, payload)


def validate_login(payload: Any) -> ValidationResult[LoginRequest]:
    return _validate(LoginRequest, payload)
