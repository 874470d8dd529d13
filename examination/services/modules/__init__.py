"""
Module Services Package

Draft and publish lifecycle of assessment module versions.

Author: Exam Delivery Development Team
Version: 1.0.0
"""

from .version_registry import ModuleVersionRegistry, validate_version_structure

__all__ = ["ModuleVersionRegistry", "validate_version_structure"]
