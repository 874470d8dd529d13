"""
Shared fixtures for the examination test-suite.

Builders create published modules, groups and assignments through the same
services the API uses, so every fixture satisfies the publish rules.
"""

from datetime import timedelta

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone

from examination.models import Assignment, ExamTakerAssignment, Group
from examination.services.modules.version_registry import ModuleVersionRegistry

EXAM_TAKER = "taker-1"


def single_choice_question(text="Pick A", correct="A", options=("A", "B")):
    return {
        "text": text,
        "type": "SingleChoice",
        "answers": [{"text": option, "is_correct": option == correct} for option in options],
    }


def multiple_choice_question(text="Pick the vowels", correct=("A", "E"), options=("A", "B", "E")):
    return {
        "text": text,
        "type": "MultipleChoice",
        "answers": [{"text": option, "is_correct": option in correct} for option in options],
    }


def free_text_question(text="Capital of France?", variants=("Paris",)):
    return {
        "text": text,
        "type": "FreeText",
        "answers": [{"text": variant} for variant in variants],
    }


class ExaminationTestCase(TestCase):
    """Base test case with builders for modules, groups and assignments."""

    def setUp(self):
        super().setUp()
        cache.clear()
        self.registry = ModuleVersionRegistry()

    def build_published_version(self, title, questions=None, duration_in_minutes=10):
        content = {
            "duration_in_minutes": duration_in_minutes,
            "questions": questions if questions is not None else [single_choice_question()],
        }
        version = self.registry.create_module(title, content=content)
        return self.registry.publish_version(version.pk)

    def build_group(self, modules, is_member_order_locked=False, wait_module_completion=False):
        group = Group.objects.create(
            title="Test Group",
            is_member_order_locked=is_member_order_locked,
            wait_module_completion=wait_module_completion,
        )
        members = [group.append_module(module) for module in modules]
        return group, members

    def build_assignment(self, group, exam_takers=(EXAM_TAKER,), starts_in=None, ends_in=None, **kwargs):
        now = timezone.now()
        assignment = Assignment.objects.create(
            title="Test Assignment",
            group=group,
            start_date_utc=now + (starts_in if starts_in is not None else timedelta(days=-1)),
            end_date_utc=now + (ends_in if ends_in is not None else timedelta(days=1)),
            **kwargs,
        )
        for exam_taker_id in exam_takers:
            ExamTakerAssignment.objects.create(assignment=assignment, exam_taker_id=exam_taker_id)
        return assignment
