"""
Examination Services Package

This package contains the business logic of the examination engine.

Structure:
├── cache/        # Explicit listing cache with TTL and invalidation
├── modules/      # Module version registry (draft/publish lifecycle)
├── groups/       # Group sequencer (unlock rules, member ordering)
└── sessions/     # Time budget, answer submission, progress tracking

Author: Exam Delivery Development Team
Version: 1.0.0
"""

from .cache import ListingCache
from .modules import ModuleVersionRegistry
from .groups import GroupSequencer, GroupMemberState, ModuleStatus
from .sessions import (
    AnswerSubmissionProcessor,
    SessionProgressTracker,
    TimeBudget,
    compute_remaining,
)

__all__ = [
    "ListingCache",
    "ModuleVersionRegistry",
    "GroupSequencer",
    "GroupMemberState",
    "ModuleStatus",
    "AnswerSubmissionProcessor",
    "SessionProgressTracker",
    "TimeBudget",
    "compute_remaining",
]
