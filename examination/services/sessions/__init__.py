"""
Session Services Package

Services used while an exam taker works on a module:
- Time budget computation
- Answer submission
- Progress tracking and completion

Author: Exam Delivery Development Team
Version: 1.0.0
"""

from .time_budget import TimeBudget, compute_remaining, deadline
from .answer_submission import AnswerSubmissionProcessor, is_response_correct
from .progress_tracker import SessionProgressTracker

__all__ = [
    "TimeBudget",
    "compute_remaining",
    "deadline",
    "AnswerSubmissionProcessor",
    "is_response_correct",
    "SessionProgressTracker",
]
