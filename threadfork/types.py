"""Type aliases for threadfork."""
from __future__ import annotations

from typing import NewType

# Semantic ID types - provides compile-time distinction
MessageId = NewType("MessageId", str)
ThreadId = NewType("ThreadId", str)
ConversationBranchId = NewType("ConversationBranchId", str)

# Every message belongs to the main timeline until a retry forks it.
MAIN_BRANCH = ConversationBranchId("main")

# A root carries at most this many variants (10 renderable forms with the root).
MAX_VARIANTS = 9

__all__ = ["MessageId", "ThreadId", "ConversationBranchId", "MAIN_BRANCH", "MAX_VARIANTS"]
