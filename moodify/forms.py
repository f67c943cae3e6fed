from __future__ import annotations

"""Login and registration flows: local validation, backend call, error mapping."""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, ValidationError, field_validator
from pydantic_core import PydanticCustomError

from .errors import FormValidationError, GatewayError
from .gateway import SessionGateway
from .schemas import Session

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(
    r"^(?!\.)(?!.*\.\.)([A-Z0-9_'+\-\.]*)[A-Z0-9_+-]@([A-Z0-9][A-Z0-9\-]*\.)+[A-Z]{2,}$",
    re.IGNORECASE,
)
PASSWORD_SPECIALS = "?!@*"
MIN_PASSWORD_LENGTH = 6
MIN_USERNAME_LENGTH = 2

MSG_EMAIL_INVALID = "정확한 이메일을 입력해주세요!"
MSG_PASSWORD_SHORT = "비밀번호는 최소 6자리 이상 입력해주세요!"
MSG_PASSWORD_SPECIAL = "비밀번호에는 특수문자(?,!,@,*)를 포함해주세요."
MSG_USERNAME_SHORT = "이름은 최소 2글자 이상 입력해주세요."

MSG_LOGIN_MISMATCH = "이메일 또는 비밀번호가 일치하지 않습니다."
MSG_EMAIL_UNCONFIRMED = "이메일 인증을 완료해주세요!"
MSG_LOGIN_FAILED = "로그인 실패: {}"

MSG_ALREADY_REGISTERED = "이미 가입된 계정입니다."
MSG_REGISTER_FAILED = "회원가입 실패: {}"
MSG_REGISTER_DONE = "회원가입이 완료됐습니다! 이메일을 확인해주세요."

MAIN_ROUTE = "/main"
LOGIN_ROUTE = "/login"
REGISTER_REDIRECT_DELAY = 1.5


# -----------------------------------------------------------------------------
# Declarative rules
# -----------------------------------------------------------------------------


def _check_email(value: str) -> str:
    if not EMAIL_PATTERN.match(value or ""):
        raise PydanticCustomError("email", MSG_EMAIL_INVALID)
    return value


def _check_password_length(value: str) -> str:
    if len(value or "") < MIN_PASSWORD_LENGTH:
        raise PydanticCustomError("too_short", MSG_PASSWORD_SHORT)
    return value


class LoginForm(BaseModel):
    email: str = ""
    password: str = ""

    @field_validator("email")
    @classmethod
    def email_format(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def password_length(cls, v: str) -> str:
        return _check_password_length(v)


class RegisterForm(BaseModel):
    username: str = ""
    email: str = ""
    password: str = ""

    @field_validator("username")
    @classmethod
    def username_length(cls, v: str) -> str:
        if len(v or "") < MIN_USERNAME_LENGTH:
            raise PydanticCustomError("too_short", MSG_USERNAME_SHORT)
        return v

    @field_validator("email")
    @classmethod
    def email_format(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def password_rules(cls, v: str) -> str:
        _check_password_length(v)
        if not any(ch in PASSWORD_SPECIALS for ch in v):
            raise PydanticCustomError("special_char", MSG_PASSWORD_SPECIAL)
        return v


def _field_errors(exc: ValidationError) -> Dict[str, str]:
    errors: Dict[str, str] = {}
    for err in exc.errors():
        loc = err.get("loc") or ("__root__",)
        name = str(loc[0])
        # Keep the first message per field, the form shows one line per input
        errors.setdefault(name, err.get("msg", ""))
    return errors


def _validate(model: type[BaseModel], data: Mapping[str, Any]) -> Any:
    # Validators only run on provided keys, so fill in blanks for missing ones
    payload = {name: data.get(name) or "" for name in model.model_fields}
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise FormValidationError(_field_errors(exc)) from exc


def validate_login(data: Mapping[str, Any]) -> LoginForm:
    return _validate(LoginForm, data)


def validate_register(data: Mapping[str, Any]) -> RegisterForm:
    return _validate(RegisterForm, data)


# -----------------------------------------------------------------------------
# Submission
# -----------------------------------------------------------------------------


@dataclass
class LoginOutcome:
    session: Optional[Session] = None
    submitted: bool = False
    field_errors: Dict[str, str] = field(default_factory=dict)
    navigate_to: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.session is not None


@dataclass
class RegisterOutcome:
    ok: bool = False
    submitted: bool = False
    message: Optional[str] = None
    tone: Literal["info", "error"] = "error"
    field_errors: Dict[str, str] = field(default_factory=dict)
    navigate_to: Optional[str] = None
    navigate_delay: Optional[float] = None


def map_login_error(message: str) -> Dict[str, str]:
    if "Invalid login credentials" in message:
        return {"password": MSG_LOGIN_MISMATCH}
    if "Email not confirmed" in message:
        return {"email": MSG_EMAIL_UNCONFIRMED}
    return {"password": MSG_LOGIN_FAILED.format(message)}


async def submit_login(gateway: SessionGateway, email: str, password: str) -> LoginOutcome:
    try:
        form = validate_login({"email": email, "password": password})
    except FormValidationError as exc:
        return LoginOutcome(field_errors=exc.field_errors)

    try:
        auth = await gateway.sign_in(form.email, form.password)
    except GatewayError as exc:
        logger.info("Sign-in rejected", extra={"email": form.email, "error": exc.message[:200]})
        return LoginOutcome(submitted=True, field_errors=map_login_error(exc.message))

    return LoginOutcome(session=auth.user.to_session(auth.access_token), submitted=True, navigate_to=MAIN_ROUTE)


async def submit_register(
    gateway: SessionGateway,
    username: str,
    email: str,
    password: str,
    redirect_to: str,
) -> RegisterOutcome:
    try:
        form = validate_register({"username": username, "email": email, "password": password})
    except FormValidationError as exc:
        return RegisterOutcome(field_errors=exc.field_errors)

    try:
        result = await gateway.sign_up(
            form.email,
            form.password,
            profile={"username": form.username},
            redirect_to=redirect_to,
        )
    except GatewayError as exc:
        logger.info("Sign-up rejected", extra={"email": form.email, "error": exc.message[:200]})
        return RegisterOutcome(submitted=True, message=MSG_REGISTER_FAILED.format(exc.message))

    if result.already_registered:
        return RegisterOutcome(submitted=True, message=MSG_ALREADY_REGISTERED)

    return RegisterOutcome(
        ok=True,
        submitted=True,
        message=MSG_REGISTER_DONE,
        tone="info",
        navigate_to=LOGIN_ROUTE,
        navigate_delay=REGISTER_REDIRECT_DELAY,
    )
