"""Message variants and conversation branches.

- resolver: trace any message to its root
- assigner: choose the conversation branch and branch point for a new variant
- sequencer: allocate variant sequences under the per-root ceiling
- coordinator: retry / edit / append orchestration
- queries: read-only views for rendering variant and branch switchers
"""

from threadfork.branching.assigner import BranchAssignment, assign_branch, mint_branch_id
from threadfork.branching.coordinator import RetryCoordinator
from threadfork.branching.queries import (
    BranchSummary,
    VariantPosition,
    list_branch_messages,
    list_branches,
    list_variants,
    summarize_branches,
    variant_position,
)
from threadfork.branching.resolver import resolve_root
from threadfork.branching.sequencer import VariantSequencer

__all__ = [
    "BranchAssignment",
    "BranchSummary",
    "RetryCoordinator",
    "VariantPosition",
    "VariantSequencer",
    "assign_branch",
    "list_branch_messages",
    "list_branches",
    "list_variants",
    "mint_branch_id",
    "resolve_root",
    "summarize_branches",
    "variant_position",
]
