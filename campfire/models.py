import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeyValuePair(BaseModel):
    key: str = ""
    value: str = ""
    enabled: bool = True


# ── Auth ──────────────────────────────────────────────────────────────────────

class NoAuth(BaseModel):
    type: Literal["none"] = "none"


class BasicAuth(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["basic"] = "basic"
    username: str = Field(default="", alias="basicUsername")
    password: str = Field(default="", alias="basicPassword")


class BearerAuth(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["bearer"] = "bearer"
    token: str = Field(default="", alias="bearerToken")
    prefix: str = Field(default="", alias="bearerPrefix")


class ApiKeyAuth(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["apikey"] = "apikey"
    key: str = Field(default="", alias="apiKeyKey")
    value: str = Field(default="", alias="apiKeyValue")
    location: Literal["header", "query"] = Field(default="header", alias="apiKeyLocation")


AuthConfig = Annotated[
    Union[NoAuth, BasicAuth, BearerAuth, ApiKeyAuth],
    Field(discriminator="type"),
]


# ── Requests ──────────────────────────────────────────────────────────────────

class RequestData(BaseModel):
    method: str = "GET"
    url: str = ""
    headers: list[KeyValuePair] = Field(default_factory=list)
    params: list[KeyValuePair] = Field(default_factory=list)
    body: str = ""
    auth: AuthConfig | None = None


# ── Collection tree ───────────────────────────────────────────────────────────

class _ItemBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    name: str
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")


class Folder(_ItemBase):
    type: Literal["folder"] = "folder"
    children: list["CollectionItem"] = Field(default_factory=list)


class RequestItem(_ItemBase):
    type: Literal["request"] = "request"
    # persisted under "request"; "requestData" is accepted on load
    request_data: RequestData = Field(
        default_factory=RequestData,
        alias="request",
        validation_alias=AliasChoices("request", "requestData", "request_data"),
    )


CollectionItem = Annotated[Union[Folder, RequestItem], Field(discriminator="type")]

Folder.model_rebuild()


class Collection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_new_id)
    name: str
    items: list[CollectionItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")

    def to_json(self) -> str:
        # auth is the only optional field; an absent auth stays absent on disk
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


class OpenCollection(BaseModel):
    """A loaded collection together with the file backing it."""

    collection: Collection
    file_path: Path


# ── Responses ─────────────────────────────────────────────────────────────────

class ResponseHeader(BaseModel):
    key: str
    value: str


class HTTPResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: int = 0
    status_text: str = Field(default="", alias="statusText")
    headers: list[ResponseHeader] = Field(default_factory=list)
    body: str = ""
    elapsed_ms: int = Field(default=0, alias="elapsedMs")
    size_bytes: int = Field(default=0, alias="sizeBytes")
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
