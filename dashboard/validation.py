"""Form validation performed before any request reaches the network."""
from __future__ import annotations

import re
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, ValidationInfo, field_validator

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PASSWORD_MIN_LENGTH = 6
NAME_MIN_LENGTH = 2

FormT = TypeVar("FormT", bound=BaseModel)


class FormValidationError(ValueError):
    """Raised when a form draft fails validation; ``errors`` maps field to message."""

    def __init__(self, errors: Dict[str, str]) -> None:
        super().__init__("; ".join(f"{field}: {message}" for field, message in errors.items()))
        self.errors = errors


def _check_email(value: str) -> str:
    if not EMAIL_PATTERN.match(value):
        raise ValueError("Please enter a valid email address")
    return value


def _check_password(value: str) -> str:
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    return value


class _Form(BaseModel):
    model_config = ConfigDict(validate_default=True)


class LoginForm(_Form):
    email: str = ""
    password: str = ""

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        return _check_email(value.strip())

    @field_validator("password")
    @classmethod
    def _validate_password(cls, value: str) -> str:
        return _check_password(value)


class RegisterForm(_Form):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = ""

    @field_validator("first_name")
    @classmethod
    def _validate_first_name(cls, value: str) -> str:
        if len(value.strip()) < NAME_MIN_LENGTH:
            raise ValueError(f"First name must be at least {NAME_MIN_LENGTH} characters")
        return value.strip()

    @field_validator("last_name")
    @classmethod
    def _validate_last_name(cls, value: str) -> str:
        if len(value.strip()) < NAME_MIN_LENGTH:
            raise ValueError(f"Last name must be at least {NAME_MIN_LENGTH} characters")
        return value.strip()

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        return _check_email(value.strip())

    @field_validator("password")
    @classmethod
    def _validate_password(cls, value: str) -> str:
        return _check_password(value)

    @field_validator("confirm_password")
    @classmethod
    def _validate_confirmation(cls, value: str, info: ValidationInfo) -> str:
        if len(value) < PASSWORD_MIN_LENGTH:
            raise ValueError("Please confirm your password")
        password = info.data.get("password")
        if password is not None and value != password:
            raise ValueError("Passwords do not match")
        return value


class UserForm(_Form):
    """Fields editable from the user create/edit dialog."""

    first_name: str = ""
    last_name: str = ""
    email: str = ""
    job: Optional[str] = None

    @field_validator("first_name")
    @classmethod
    def _require_first_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("First name is required")
        return value.strip()

    @field_validator("last_name")
    @classmethod
    def _require_last_name(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Last name is required")
        return value.strip()

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Email is required")
        return _check_email(value.strip())

    @field_validator("job")
    @classmethod
    def _normalise_job(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


def _error_message(error: Mapping[str, Any]) -> str:
    if error.get("type") == "value_error":
        ctx = error.get("ctx") or {}
        if "error" in ctx:
            return str(ctx["error"])
    return str(error.get("msg", "Invalid value"))


def validate_form(form_type: Type[FormT], data: Mapping[str, Any]) -> FormT:
    """Validate ``data`` against ``form_type``.

    Raises :class:`FormValidationError` with one message per failing field.
    """

    try:
        return form_type.model_validate(dict(data))
    except ValidationError as exc:
        errors: Dict[str, str] = {}
        for error in exc.errors():
            location = error.get("loc") or ("__all__",)
            field = str(location[0])
            errors.setdefault(field, _error_message(error))
        raise FormValidationError(errors) from exc


__all__ = [
    "EMAIL_PATTERN",
    "FormValidationError",
    "LoginForm",
    "RegisterForm",
    "UserForm",
    "validate_form",
]
