"""
Assessment Modules Package

Authoring side of the examination engine.

Structure:
- models.py: Modules, versions, questions and possible answers
- serializers.py: Content validation and API serialization
- views.py: Authoring endpoints (draft, update, publish)

Author: Exam Delivery Development Team
Version: 1.0.0
"""
