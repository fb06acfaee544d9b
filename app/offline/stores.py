"""Store roles, version-qualified store names and cached response snapshots."""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import List, Tuple

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Headers describing the wire encoding of the original body. Snapshots hold the
# decoded body, so these no longer apply once captured.
TRANSFER_HEADERS = frozenset(
    {"content-encoding", "content-length", "transfer-encoding"}
)

# Per-user state that is relayed live but never written to a store.
PRIVATE_HEADERS = frozenset({"set-cookie", "set-cookie2"})

_NAME_TOKEN = re.compile(r"^[A-Za-z0-9._-]+$")


class StoreRole(str, Enum):
    STATIC = "static"
    API = "api"
    MEDIA = "media"


class StoreNames(BaseModel):
    """Maps each store role to its version-qualified name.

    The media role uses the bare ``<prefix>-<version>`` name; it is the shared
    general-purpose store.
    """

    model_config = ConfigDict(frozen=True)

    prefix: str
    version: str

    @field_validator("prefix", "version")
    @classmethod
    def validate_token(cls, value: str) -> str:
        if not _NAME_TOKEN.match(value):
            raise ValueError(
                f"{value!r} may only contain letters, digits, '.', '_' and '-'"
            )
        return value

    @model_validator(mode="after")
    def validate_distinct(self) -> "StoreNames":
        if len(set(self.allow_list)) != len(StoreRole):
            raise ValueError("Store names must be distinct for every role")
        return self

    def name_for(self, role: StoreRole) -> str:
        if role is StoreRole.MEDIA:
            return f"{self.prefix}-{self.version}"
        return f"{self.prefix}-{role.value}-{self.version}"

    @property
    def allow_list(self) -> List[str]:
        return [self.name_for(role) for role in StoreRole]


def request_key(request: httpx.Request) -> str:
    return f"{request.method.upper()} {request.url}"


class ResponseSnapshot(BaseModel):
    """A buffered HTTP response, as stored in a cache store."""

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")

    status_code: int
    headers: List[Tuple[str, str]] = Field(default_factory=list)
    body: bytes = b""
    captured_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def header(self, name: str) -> str | None:
        name = name.lower()
        for key, value in self.headers:
            if key.lower() == name:
                return value
        return None

    @classmethod
    def capture(cls, response: httpx.Response, body: bytes) -> "ResponseSnapshot":
        headers = [
            (key, value)
            for key, value in response.headers.multi_items()
            if key.lower() not in TRANSFER_HEADERS
        ]
        return cls(status_code=response.status_code, headers=headers, body=body)

    def shareable(self) -> "ResponseSnapshot":
        """Copy of this snapshot without headers that belong to one user."""
        headers = [
            (key, value)
            for key, value in self.headers
            if key.lower() not in PRIVATE_HEADERS
        ]
        return self.model_copy(update={"headers": headers})

    def to_response(self, request: httpx.Request | None = None) -> httpx.Response:
        return httpx.Response(
            self.status_code,
            headers=self.headers,
            content=self.body,
            request=request,
        )

    def dumps(self) -> str:
        return self.model_dump_json()

    @classmethod
    def loads(cls, raw: str | bytes) -> "ResponseSnapshot":
        return cls.model_validate_json(raw)
