"""
Assessment Module Models

This module defines the authoring side of the examination engine: reusable
assessment modules and their versioned question content.

Models:
- AssessmentModule: A reusable assessment unit owning one or more versions
- AssessmentModuleVersion: Draft or published snapshot of the module content
- Question: Ordered question within a version
- PossibleAnswer: Ordered answer option (or accepted variant) of a question

Features:
- One-way draft to published lifecycle
- Immutable content once a version is published
- Closed question type variant resolved once at the system boundary
- Opaque attachment references (file ids), file bytes are never touched

Author: Exam Delivery Development Team
Version: 1.0.0
"""

from typing import Optional

from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from examination.exceptions import ConflictError


class QuestionType(models.TextChoices):
    """
    Closed set of supported question types.

    Integer codes follow the declaration order below, so legacy payloads
    sending ``0``, ``1`` or ``2`` resolve to the same variants as the names.
    """

    SINGLE_CHOICE = "SingleChoice", _("Single Choice")
    MULTIPLE_CHOICE = "MultipleChoice", _("Multiple Choice")
    FREE_TEXT = "FreeText", _("Free Text")

    @classmethod
    def from_raw(cls, raw) -> "QuestionType":
        """
        Resolve a question type from a name, value or legacy integer code.

        Args:
            raw: ``QuestionType`` member, value string (any case, with or
                without separators) or integer code

        Returns:
            The matching QuestionType member

        Raises:
            ValueError: If the input does not name a known question type
        """
        if isinstance(raw, cls):
            return raw

        members = list(cls)
        if isinstance(raw, bool):
            raise ValueError(f"Unknown question type: {raw!r}")
        if isinstance(raw, int):
            if 0 <= raw < len(members):
                return members[raw]
            raise ValueError(f"Unknown question type code: {raw}")

        if isinstance(raw, str):
            key = raw.strip()
            if key.isdigit():
                return cls.from_raw(int(key))
            normalized = key.replace("_", "").replace("-", "").replace(" ", "").lower()
            for member in members:
                if member.value.lower() == normalized:
                    return member

        raise ValueError(f"Unknown question type: {raw!r}")


class AssessmentModule(models.Model):
    """
    Reusable assessment unit.

    A module only carries identifying information; all examinable content
    lives on its versions.

    Example:
        >>> module = AssessmentModule.objects.create(title="Networking Basics")
        >>> module.versions.count()
        0
    """

    title = models.CharField(
        max_length=200,
        unique=True,
        verbose_name=_("Module Title"),
        help_text=_("The unique title of the assessment module"),
    )

    description = models.TextField(
        blank=True,
        verbose_name=_("Description"),
    )

    created_at = models.DateTimeField(
        auto_now_add=True,
        verbose_name=_("Created At"),
    )

    class Meta:
        verbose_name = _("Assessment Module")
        verbose_name_plural = _("Assessment Modules")
        ordering = ["title"]

    def __str__(self) -> str:
        return self.title

    @property
    def next_version_number(self) -> int:
        """Version number the next draft of this module receives."""
        latest = self.versions.aggregate(latest=models.Max("version"))["latest"]
        return (latest or 0) + 1


class AssessmentModuleVersion(models.Model):
    """
    Snapshot of the questions, answers and duration of a module.

    Versions start as drafts and may be edited freely until they are
    published. Publishing is a one-way transition; afterwards the version
    and its questions are immutable and may be pinned by exam progress.

    Attributes:
        module: Owning assessment module
        version: 1-based version number, unique per module
        is_published: Publication flag
        duration_in_minutes: Time budget, ``None`` for untimed modules
        created_at: Creation timestamp, used to resolve the latest version
        published_at: Timestamp of the publish transition
    """

    module = models.ForeignKey(
        AssessmentModule,
        on_delete=models.CASCADE,
        related_name="versions",
        verbose_name=_("Module"),
    )

    version = models.PositiveIntegerField(
        verbose_name=_("Version Number"),
    )

    is_published = models.BooleanField(
        default=False,
        verbose_name=_("Published"),
    )

    duration_in_minutes = models.PositiveIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1)],
        verbose_name=_("Duration (minutes)"),
        help_text=_("Leave empty for an untimed module"),
    )

    created_at = models.DateTimeField(
        default=timezone.now,
        verbose_name=_("Created At"),
    )

    published_at = models.DateTimeField(
        null=True,
        blank=True,
        verbose_name=_("Published At"),
    )

    class Meta:
        verbose_name = _("Module Version")
        verbose_name_plural = _("Module Versions")
        ordering = ["module", "-version"]
        constraints = [
            models.UniqueConstraint(
                fields=["module", "version"], name="unique_module_version_number"
            ),
        ]

    def __str__(self) -> str:
        state = "published" if self.is_published else "draft"
        return f"{self.module.title} v{self.version} ({state})"

    # Fields frozen by the publish transition
    PUBLISHED_FIELDS = ("module_id", "version", "is_published", "duration_in_minutes", "published_at")

    def save(self, *args, **kwargs):
        if self.pk is not None:
            stored = (
                type(self).objects.filter(pk=self.pk).values(*self.PUBLISHED_FIELDS).first()
            )
            if stored is not None and stored["is_published"]:
                changed = [
                    field for field in self.PUBLISHED_FIELDS if getattr(self, field) != stored[field]
                ]
                if changed:
                    raise ConflictError(
                        f"Module version {self.pk} is published and cannot be modified.",
                        details={"version_id": self.pk, "fields": changed},
                    )
        super().save(*args, **kwargs)


class Question(models.Model):
    """
    Ordered question inside a module version.

    Questions of a published version cannot be saved or deleted; the
    registry service replaces draft questions wholesale instead.
    """

    version = models.ForeignKey(
        AssessmentModuleVersion,
        on_delete=models.CASCADE,
        related_name="questions",
        verbose_name=_("Module Version"),
    )

    order = models.PositiveIntegerField(
        default=0,
        verbose_name=_("Order"),
    )

    text = models.TextField(
        blank=True,
        verbose_name=_("Question Text"),
    )

    type = models.CharField(
        max_length=20,
        choices=QuestionType.choices,
        verbose_name=_("Question Type"),
    )

    attachments = models.JSONField(
        default=list,
        blank=True,
        verbose_name=_("Attachments"),
        help_text=_("Opaque file ids resolved by the attachment store"),
    )

    class Meta:
        verbose_name = _("Question")
        verbose_name_plural = _("Questions")
        ordering = ["version", "order", "id"]

    def __str__(self) -> str:
        return f"Q{self.order} ({self.type}) of {self.version}"

    @property
    def question_type(self) -> QuestionType:
        return QuestionType.from_raw(self.type)

    def _guard_published(self, version: Optional[AssessmentModuleVersion] = None) -> None:
        version = version or self.version
        if version.is_published:
            raise ConflictError(
                f"Module version {version.pk} is published and cannot be modified.",
                details={"version_id": version.pk, "question_id": self.pk},
            )

    def save(self, *args, **kwargs):
        self._guard_published()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        self._guard_published()
        return super().delete(*args, **kwargs)


class PossibleAnswer(models.Model):
    """
    Answer option of a question.

    For FreeText questions every listed answer is an accepted variant of the
    expected text.
    """

    question = models.ForeignKey(
        Question,
        on_delete=models.CASCADE,
        related_name="answers",
        verbose_name=_("Question"),
    )

    order = models.PositiveIntegerField(
        default=0,
        verbose_name=_("Order"),
    )

    text = models.TextField(
        blank=True,
        verbose_name=_("Answer Text"),
    )

    is_correct = models.BooleanField(
        default=False,
        verbose_name=_("Correct"),
    )

    attachments = models.JSONField(
        default=list,
        blank=True,
        verbose_name=_("Attachments"),
    )

    class Meta:
        verbose_name = _("Possible Answer")
        verbose_name_plural = _("Possible Answers")
        ordering = ["question", "order", "id"]

    def __str__(self) -> str:
        return f"{self.text[:30]} ({'correct' if self.is_correct else 'incorrect'})"

    def save(self, *args, **kwargs):
        self.question._guard_published()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        self.question._guard_published()
        return super().delete(*args, **kwargs)
