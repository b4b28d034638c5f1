from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

from threadfork.lib.roles import Role
from threadfork.types import MAIN_BRANCH, ConversationBranchId, MessageId, ThreadId


class MessageStatus(str, Enum):
    """Content lifecycle of a message; identity fields never change."""

    PENDING = "pending"
    COMPLETE = "complete"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_message_id() -> MessageId:
    return MessageId(uuid4().hex)


def format_timestamp(value: datetime) -> str:
    """Fixed-width UTC ISO-8601 so lexicographic order equals chronological order."""
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(raw: str) -> datetime:
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class MessageRecord(BaseModel):
    """A single message in a thread, either a root or a variant of one."""

    message_id: MessageId | None = None
    thread_id: ThreadId
    content: str = ""
    role: Role
    created_at: datetime = Field(default_factory=utc_now)
    parent_message_id: MessageId | None = None
    # Variant support: always points at the root, never at another variant
    variant_of_id: MessageId | None = None
    variant_sequence: int | None = None
    branch_id: str | None = None  # "b1", "b2", ... local to the root
    # Conversation timeline membership
    conversation_branch_id: ConversationBranchId = MAIN_BRANCH
    branch_point: MessageId | None = None
    model: str | None = None
    status: MessageStatus = MessageStatus.COMPLETE
    error: str | None = None

    @field_validator("thread_id", "conversation_branch_id")
    @classmethod
    def non_empty_string(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Field cannot be empty")
        return v

    @field_validator("message_id", "parent_message_id", "variant_of_id", "branch_point")
    @classmethod
    def non_empty_id(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("Message id cannot be blank")
        return v

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v: object) -> object:
        if isinstance(v, str):
            return Role.normalize(v)
        return v

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @field_validator("variant_sequence")
    @classmethod
    def positive_sequence(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError("variant_sequence must be >= 1")
        return v

    @model_validator(mode="after")
    def variant_fields_together(self) -> "MessageRecord":
        markers = (self.variant_of_id, self.variant_sequence, self.branch_id)
        if any(m is not None for m in markers) and not all(m is not None for m in markers):
            raise ValueError("variant_of_id, variant_sequence and branch_id must be set together")
        return self

    @property
    def is_root(self) -> bool:
        return self.variant_of_id is None

    @property
    def is_main(self) -> bool:
        return self.conversation_branch_id == MAIN_BRANCH

    @property
    def id(self) -> MessageId:
        """Identifier of a persisted record."""
        if self.message_id is None:
            raise ValueError("Message has not been persisted yet")
        return self.message_id


__all__ = [
    "MessageRecord",
    "MessageStatus",
    "format_timestamp",
    "new_message_id",
    "parse_timestamp",
    "utc_now",
]
