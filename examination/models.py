"""
Examination Application Models Registry

This module serves as the central models registry for the examination
application. It imports and exposes all models from the logical submodules
(modules, groups, sessions) so they are registered with Django's ORM.

Architecture:
- modules/: Assessment modules, versions, questions and answers
- groups/: Groups, group members and assignments
- sessions/: Module progress and question responses

Author: Exam Delivery Development Team
Version: 1.0.0
"""

# Import all authoring models for registration with Django ORM
from .modules.models import *

# Import all group and assignment models for registration with Django ORM
from .groups.models import *

# Import all session models for registration with Django ORM
from .sessions.models import *
