"""Pydantic schemas for the relay wire protocol.

Learn: The browser extension speaks camelCase (extensionId, apiKey,
requestId, newConversation). Request models accept both the extension's
names and the snake_case ones via AliasChoices; response models emit
camelCase through an alias generator, which FastAPI applies when it
serializes a response_model.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from chatrelay.services.broker import WorkerStatus
from chatrelay.services.registry import Result, WorkItem


def _to_datetime(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ─── Worker → relay ─────────────────────────────────────


class RegisterRequest(BaseModel):
    """Worker announces itself."""
    identity: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("identity", "extensionId", "extension_id"),
        description="Worker-reported id (the extension id)",
    )
    credential: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("credential", "apiKey", "api_key"),
        description="API key — both the bearer secret and the lookup key",
    )


class ResultPost(BaseModel):
    """Worker reports the outcome of one request. Error wins if non-empty."""
    response: Optional[str] = None
    error: Optional[str] = None


# ─── Caller → relay ─────────────────────────────────────


class QueryRequest(BaseModel):
    """External caller submits a message and blocks for the answer."""
    credential: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("credential", "apiKey", "api_key"),
    )
    message: str = Field(..., min_length=1)
    new_conversation: bool = Field(
        False,
        validation_alias=AliasChoices("newConversation", "new_conversation"),
        description="Start a fresh chat before sending",
    )

    @field_validator("new_conversation", mode="before")
    @classmethod
    def null_means_false(cls, v):
        """Callers may send null for an unset flag."""
        return False if v is None else v


# ─── Relay → clients ────────────────────────────────────


class SuccessResponse(BaseModel):
    success: bool = True


class WorkItemRead(_CamelModel):
    request_id: str
    action: str
    message: str
    new_conversation: bool

    @classmethod
    def from_item(cls, item: WorkItem) -> "WorkItemRead":
        return cls(
            request_id=item.request_id,
            action=item.action,
            message=item.message,
            new_conversation=item.new_conversation,
        )


class WaitingResponse(BaseModel):
    waiting: bool = True


class QueryResponse(_CamelModel):
    request_id: str
    response: Optional[str]
    error: Optional[str]
    completed_at: datetime

    @classmethod
    def from_result(cls, result: Result) -> "QueryResponse":
        return cls(
            request_id=result.request_id,
            response=result.response,
            error=result.error,
            completed_at=_to_datetime(result.completed_at),
        )


class StatusResponse(_CamelModel):
    active: bool
    identity: str
    last_seen: datetime
    pending_count: int

    @classmethod
    def from_status(cls, status: WorkerStatus) -> "StatusResponse":
        return cls(
            active=status.active,
            identity=status.identity,
            last_seen=_to_datetime(status.last_seen),
            pending_count=status.pending_count,
        )


class HealthResponse(_CamelModel):
    status: str
    version: str
    uptime: float
    active_worker_count: int
    timestamp: datetime
