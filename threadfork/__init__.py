"""threadfork - retry and edit messages as variants on sticky conversation branches.

Example:
    from threadfork import RetryCoordinator, SQLiteMessageStore, list_variants

    store = SQLiteMessageStore("chat.db")
    chat = RetryCoordinator(store)

    question = chat.append_message("thread-1", "user", "What is a monad?")
    answer = chat.append_message("thread-1", "assistant", "...", parent_message_id=question.id)

    retry = chat.retry(answer.id)          # forks a new conversation branch
    again = chat.retry(retry.id)           # stays in that branch, sequence 2
    forms = list_variants(store, answer.id)  # [answer, retry, again]
"""

from threadfork.branching import (
    BranchSummary,
    RetryCoordinator,
    VariantPosition,
    list_branch_messages,
    list_branches,
    list_variants,
    resolve_root,
    summarize_branches,
    variant_position,
)
from threadfork.config import Settings, load_settings
from threadfork.errors import (
    BranchLimitExceeded,
    ConfigError,
    ConstraintViolation,
    DatabaseError,
    DataIntegrityError,
    InvalidOperationError,
    MessageNotFoundError,
    RetryExhaustedError,
    ThreadforkError,
)
from threadfork.lib.roles import Role
from threadfork.storage import MessageRecord, MessageStatus, SQLiteMessageStore, create_store
from threadfork.types import MAIN_BRANCH
from threadfork.version import THREADFORK_VERSION

__version__ = THREADFORK_VERSION

__all__ = [
    "MAIN_BRANCH",
    "BranchLimitExceeded",
    "BranchSummary",
    "ConfigError",
    "ConstraintViolation",
    "DataIntegrityError",
    "DatabaseError",
    "InvalidOperationError",
    "MessageNotFoundError",
    "MessageRecord",
    "MessageStatus",
    "RetryCoordinator",
    "RetryExhaustedError",
    "Role",
    "SQLiteMessageStore",
    "Settings",
    "ThreadforkError",
    "VariantPosition",
    "__version__",
    "create_store",
    "list_branch_messages",
    "list_branches",
    "list_variants",
    "load_settings",
    "resolve_root",
    "summarize_branches",
    "variant_position",
]
