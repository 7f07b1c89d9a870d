"""Request and response schemas.

Field names on the wire are camelCase; Python attributes are snake_case.
"""

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ServerInfo(WireModel):
    """One registry entry with the caller's access status."""

    server: str
    url: str
    has_access: bool = Field(serialization_alias="hasAccess")
    has_auth: bool = Field(serialization_alias="hasAuth")


class ServerCreate(WireModel):
    user_id: str | None = Field(default=None, alias="userId")
    server_name: str | None = Field(default=None, alias="serverName")
    server_url: str | None = Field(default=None, alias="serverUrl")
    api_key: str | None = Field(default=None, alias="apiKey")


class ServerDelete(WireModel):
    server_name: str | None = Field(default=None, alias="serverName")


class ApiKeySubmit(WireModel):
    server_name: str | None = Field(default=None, alias="serverName")
    api_key: str | None = Field(default=None, alias="apiKey")


class ChatRequest(WireModel):
    message: str | None = None
    thread_id: str | None = Field(default=None, alias="threadId")
    user_id: str | None = Field(default=None, alias="userId")


class ChatResponse(WireModel):
    reply: str
    thread_id: str = Field(serialization_alias="threadId")
    user_id: str | None = Field(serialization_alias="userId")


class MessageResponse(BaseModel):
    message: str
