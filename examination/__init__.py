"""
Examination Package

This package contains the exam session and module-versioning engine of the
exam delivery platform.

Features:
- Draft and published lifecycle of assessment module content
- Exam taker progress pinned to an immutable module version
- Server-side time budgets
- Module availability gated by group ordering rules

Structure:
- modules/: Assessment modules, versions and question content
- groups/: Groups, assignments and member ordering
- sessions/: Module progress and question responses
- services/: Business logic of the engine
- management/: Django management commands

Author: Exam Delivery Development Team
Version: 1.0.0
"""
