"""Role normalization for threadfork.

Only two authors take part in a thread: the user and the assistant.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Canonical message roles."""

    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def normalize(cls, raw: str | Role) -> Role:
        """Normalize a role string to a canonical Role.

        Accepts the common provider spellings ("human", "model", "ai").

        Raises:
            ValueError: If raw is empty or not a known role.
        """
        if isinstance(raw, Role):
            return raw
        lowered = raw.strip().lower()
        if not lowered:
            raise ValueError("Role cannot be empty")
        if lowered in {"user", "human"}:
            return cls.USER
        if lowered in {"assistant", "model", "ai"}:
            return cls.ASSISTANT
        raise ValueError(f"Unknown role '{raw}'. Expected 'user' or 'assistant'.")

    def __str__(self) -> str:
        return self.value


__all__ = ["Role"]
