"""
Exam Session Models

This module defines the records describing an exam taker's attempt at an
assessment module.

Models:
- ModuleProgress: One exam taker's attempt, pinned to a single module version
- QuestionResponse: The live response to one question of that attempt

Lifecycle:
- NotStarted: No progress record exists yet
- InProgress: Created lazily on first access, answers may be submitted
- Completed: Terminal, ``completed_at_utc`` is set and responses are frozen
- Expired: Derived at read time from ``started_at_utc`` and the duration,
  never stored

Author: Exam Delivery Development Team
Version: 1.0.0
"""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from examination.groups.models import Assignment, GroupMember
from examination.modules.models import (
    AssessmentModuleVersion,
    Question,
    QuestionType,
)


class ModuleProgress(models.Model):
    """
    Exam taker's attempt at a module.

    The pinned ``module_version`` never changes after creation; later
    publishes of the module do not affect an existing attempt. The
    duration is copied from the pinned version at creation time so that
    the time budget is fully described by this row.

    Attributes:
        exam_taker_id: Opaque id supplied by the identity layer
        assignment: Assignment the attempt belongs to
        group_member: Group position of the module at creation time
        module_version: Pinned, immutable version reference
        started_at_utc: Start of the time budget
        completed_at_utc: Terminal completion timestamp
        duration_in_minutes: Time budget, ``None`` when untimed
        question_seed / answer_seed: Seeds for per-taker shuffling
        row_version: Counter bumped on every mutation of the attempt
    """

    exam_taker_id = models.CharField(
        max_length=64,
        db_index=True,
        verbose_name=_("Exam Taker Id"),
    )

    assignment = models.ForeignKey(
        Assignment,
        on_delete=models.CASCADE,
        related_name="module_progress",
        verbose_name=_("Assignment"),
    )

    group_member = models.ForeignKey(
        GroupMember,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="module_progress",
        verbose_name=_("Group Member"),
    )

    module_version = models.ForeignKey(
        AssessmentModuleVersion,
        on_delete=models.PROTECT,
        related_name="module_progress",
        verbose_name=_("Pinned Module Version"),
    )

    started_at_utc = models.DateTimeField(
        default=timezone.now,
        verbose_name=_("Started At (UTC)"),
    )

    completed_at_utc = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_("Completed At (UTC)"),
    )

    duration_in_minutes = models.PositiveIntegerField(
        null=True,
        blank=True,
        verbose_name=_("Duration (minutes)"),
    )

    question_seed = models.BigIntegerField(null=True, blank=True)
    answer_seed = models.BigIntegerField(null=True, blank=True)

    row_version = models.PositiveIntegerField(
        default=0,
        verbose_name=_("Row Version"),
    )

    class Meta:
        verbose_name = _("Module Progress")
        verbose_name_plural = _("Module Progress")
        ordering = ["-started_at_utc"]
        constraints = [
            models.UniqueConstraint(
                fields=["exam_taker_id", "assignment", "module_version"],
                name="unique_progress_per_taker_assignment_and_version",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.exam_taker_id} on {self.module_version}"

    @property
    def is_completed(self) -> bool:
        return self.completed_at_utc is not None

    def time_budget(self, now=None):
        """Remaining time of this attempt as seen at ``now``."""
        from examination.services.sessions.time_budget import compute_remaining

        return compute_remaining(
            self.started_at_utc, self.duration_in_minutes, now or timezone.now()
        )


class QuestionResponse(models.Model):
    """
    Live response to one question of a progress record.

    There is at most one response per question and progress; a new
    submission replaces the previous one.
    """

    progress = models.ForeignKey(
        ModuleProgress,
        on_delete=models.CASCADE,
        related_name="responses",
        verbose_name=_("Module Progress"),
    )

    question = models.ForeignKey(
        Question,
        on_delete=models.PROTECT,
        related_name="responses",
        verbose_name=_("Question"),
    )

    question_type = models.CharField(
        max_length=20,
        choices=QuestionType.choices,
        verbose_name=_("Question Type"),
    )

    selected_answer_ids = models.JSONField(
        default=list,
        blank=True,
        verbose_name=_("Selected Answer Ids"),
    )

    text_response = models.TextField(
        blank=True,
        null=True,
        verbose_name=_("Text Response"),
    )

    is_correct = models.BooleanField(
        default=False,
        verbose_name=_("Correct"),
    )

    responded_at_utc = models.DateTimeField(
        default=timezone.now,
        verbose_name=_("Responded At (UTC)"),
    )

    class Meta:
        verbose_name = _("Question Response")
        verbose_name_plural = _("Question Responses")
        ordering = ["progress", "question__order"]
        constraints = [
            models.UniqueConstraint(
                fields=["progress", "question"],
                name="unique_response_per_question",
            ),
        ]

    def __str__(self) -> str:
        return f"Response to question {self.question_id} in progress {self.progress_id}"
