"""Provider-agnostic email record.

`CanonicalEmail` is the only shape handed to the downstream query layer. Every
field is always populated so consumers never branch on field absence; the body
is capped to bound the payload sent on to an LLM.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from inbox_bridge.models.identity import ProviderKind

BODY_MAX_CHARS = 2000
NO_SUBJECT = "(No Subject)"
RETRIEVAL_ERROR = "error retrieving email"


class CanonicalEmail(BaseModel):
    """One normalized email message."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(description="Message id, unique within one provider's batch")
    thread_id: str = Field(alias="threadId", description="Thread/conversation id")
    occurred_at: datetime = Field(alias="date", description="Received or sent time")
    sender: str = Field(default="", alias="from", description="Display string of the sender")
    to: str = Field(default="", description="Display string of the recipients")
    subject: str = Field(default=NO_SUBJECT, description="Subject line")
    snippet: str = Field(default="", description="Short preview")
    body: str = Field(default="", description="Plain-text excerpt, at most 2000 characters")

    @field_validator("id", "thread_id", "sender", "to", "snippet", "body", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("subject", mode="before")
    @classmethod
    def _default_subject(cls, v: Any) -> Any:
        return v if v else NO_SUBJECT

    @field_validator("body")
    @classmethod
    def _cap_body(cls, v: str) -> str:
        return v[:BODY_MAX_CHARS]

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict using the camelCase keys the frontend expects."""

        return self.model_dump(by_alias=True, mode="json")


@dataclass(frozen=True)
class RawMessage:
    """Provider-native message as returned by an adapter.

    `error` is set when the message could not be retrieved; `payload` is then
    None and only `message_id` (if known) survives into the sentinel record.
    """

    kind: ProviderKind
    message_id: str | None
    payload: dict[str, Any] | None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None or self.payload is None
