"""
Typed command objects and their request-body parsers

Every mutation reaches the services as one of the commands below. Each
supported content type has its own parser; both produce the same command and
validation happens before any service runs.
"""

from pydantic import BaseModel, EmailStr, Field, ValidationError, field_validator, model_validator
from typing import Any, Awaitable, Callable, Dict, Literal, Optional, Type, TypeVar
from datetime import datetime
import json
import uuid

from fastapi import Request

from keystone.core.errors import CommandParseError, UnsupportedContentType
from keystone.models import MembershipRank, PlatformRank, TenantStatus

CommandT = TypeVar("CommandT", bound=BaseModel)


class MembershipCommand(BaseModel):
    """Requested changes to one membership"""
    name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    rank: Optional[MembershipRank] = None
    is_active: Optional[bool] = None
    supervisor_id: Optional[uuid.UUID] = None
    clear_supervisor: bool = False
    intent: Optional[Literal["update", "delete"]] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v is not None else v

    @model_validator(mode="after")
    def supervisor_or_clear(self) -> "MembershipCommand":
        if self.clear_supervisor and self.supervisor_id is not None:
            raise ValueError("supervisor_id and clear_supervisor are mutually exclusive")
        return self


class SupervisorCommand(BaseModel):
    """Assign a member's supervisor"""
    supervisor_id: Optional[uuid.UUID] = None


class MemberCreateCommand(BaseModel):
    """Add a member: link an existing user or provision a new one"""
    user_id: Optional[uuid.UUID] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=8, max_length=100)
    rank: MembershipRank = MembershipRank.MEMBER
    supervisor_id: Optional[uuid.UUID] = None

    @model_validator(mode="after")
    def existing_or_new(self) -> "MemberCreateCommand":
        if self.user_id is None and not (self.name and self.email and self.password):
            raise ValueError("either user_id or name, email and password are required")
        return self


class OwnershipTransferCommand(BaseModel):
    new_owner_id: uuid.UUID


class EntitlementCommand(BaseModel):
    """Tenant master switch and/or limits for a module"""
    module_key: str = Field(..., min_length=1, max_length=64)
    is_enabled: Optional[bool] = None
    limits: Optional[Dict[str, Any]] = None

    @field_validator("limits", mode="before")
    @classmethod
    def parse_limits(cls, v: Any) -> Any:
        # Form posts carry limits as JSON text; blank clears them
        if isinstance(v, str):
            text = v.strip()
            if not text:
                return None
            try:
                v = json.loads(text)
            except ValueError:
                raise ValueError("limits is not valid JSON")
        if v is not None and not isinstance(v, dict):
            raise ValueError("limits must be a JSON object")
        return v


class UserEntitlementCommand(BaseModel):
    module_key: str = Field(..., min_length=1, max_length=64)
    is_enabled: bool


class PlatformRoleCommand(BaseModel):
    user_id: uuid.UUID
    role: PlatformRank
    action: Literal["grant", "revoke"]

    @field_validator("role", "action", mode="before")
    @classmethod
    def normalize_case(cls, v: Any, info) -> Any:
        if isinstance(v, str):
            return v.strip().upper() if info.field_name == "role" else v.strip().lower()
        return v


class TenantCreateCommand(BaseModel):
    """New tenant together with its owner"""
    name: str = Field(..., min_length=1, max_length=255)
    industry: Optional[str] = Field(default=None, max_length=50)
    active_until: Optional[datetime] = None
    owner_name: str = Field(..., min_length=1, max_length=150)
    owner_email: EmailStr
    owner_password: str = Field(..., min_length=8, max_length=100)


class TenantStatusCommand(BaseModel):
    status: TenantStatus
    active_until: Optional[datetime] = None


class SignInCommand(BaseModel):
    tenant_id: uuid.UUID
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=100)


class PreviewCommand(BaseModel):
    user_id: uuid.UUID


# Empty form values that mean "clear this field" rather than "not provided"
FORM_CLEAR_FLAGS = {
    MembershipCommand: {"supervisor_id": "clear_supervisor"},
}

# Empty form values that are passed through as-is (the validator gives them meaning)
FORM_KEEP_BLANK = {
    EntitlementCommand: {"limits"},
}


def build_command(model: Type[CommandT], data: Dict[str, Any], from_form: bool = False) -> CommandT:
    """Validate decoded body data into a command"""
    if from_form:
        clear_flags = FORM_CLEAR_FLAGS.get(model, {})
        keep_blank = FORM_KEEP_BLANK.get(model, set())
        normalized: Dict[str, Any] = {}
        for key, value in data.items():
            if isinstance(value, str):
                value = value.strip()
            if value == "" and key not in keep_blank:
                if key in clear_flags:
                    normalized[clear_flags[key]] = True
                continue
            normalized[key] = value
        data = normalized
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise CommandParseError(
            [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]
        )


async def _parse_json(request: Request) -> Dict[str, Any]:
    try:
        data = await request.json()
    except ValueError:
        raise CommandParseError([{"loc": [], "msg": "malformed JSON body"}])
    if not isinstance(data, dict):
        raise CommandParseError([{"loc": [], "msg": "JSON body must be an object"}])
    return data


async def _parse_form(request: Request) -> Dict[str, Any]:
    form = await request.form()
    # File uploads are not part of any command
    return {key: value for key, value in form.items() if isinstance(value, str)}


BODY_PARSERS: Dict[str, Callable[[Request], Awaitable[Dict[str, Any]]]] = {
    "application/json": _parse_json,
    "application/x-www-form-urlencoded": _parse_form,
    "multipart/form-data": _parse_form,
}


def media_type_of(content_type: Optional[str]) -> str:
    return (content_type or "").split(";")[0].strip().lower()


async def read_command(request: Request, model: Type[CommandT]) -> CommandT:
    """Pick the parser for the request content type and build the command"""
    media_type = media_type_of(request.headers.get("content-type"))
    parser = BODY_PARSERS.get(media_type)
    if parser is None:
        raise UnsupportedContentType(media_type)
    data = await parser(request)
    return build_command(model, data, from_form=parser is _parse_form)


def command_body(model: Type[CommandT]) -> Callable[[Request], Awaitable[CommandT]]:
    """FastAPI dependency reading the request body as the given command"""

    async def dependency(request: Request) -> CommandT:
        return await read_command(request, model)

    return dependency
