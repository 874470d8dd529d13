"""
Group Services Package

Module unlock rules and member ordering of groups.

Author: Exam Delivery Development Team
Version: 1.0.0
"""

from .group_sequencer import GroupMemberState, GroupSequencer, ModuleStatus

__all__ = ["GroupSequencer", "GroupMemberState", "ModuleStatus"]
