"""
Group and Assignment Models

This module defines how assessment modules are bundled and handed out to
exam takers.

Models:
- Group: Ordered collection of modules with sequencing settings
- GroupMember: Position of a module inside a group
- Assignment: Time-boxed delivery of a group to exam takers
- ExamTakerAssignment: Membership of an exam taker in an assignment

Sequencing settings:
- is_member_order_locked: Modules must be completed strictly in order
- wait_module_completion: The next module stays locked until the full
  duration of the previous one has elapsed, even if it was finished early

Author: Exam Delivery Development Team
Version: 1.0.0
"""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from examination.modules.models import AssessmentModule


class Group(models.Model):
    """
    Ordered collection of assessment modules assigned together.

    Example:
        >>> group = Group.objects.create(title="Onboarding", is_member_order_locked=True)
        >>> GroupSequencer().add_member(group.pk, module.pk)
    """

    title = models.CharField(
        max_length=200,
        verbose_name=_("Group Title"),
    )

    description = models.TextField(
        blank=True,
        verbose_name=_("Description"),
    )

    wait_module_completion = models.BooleanField(
        default=False,
        verbose_name=_("Wait For Module Duration"),
        help_text=_(
            "If True, the next module unlocks only after the full duration of the "
            "previous module has elapsed."
        ),
    )

    is_member_order_locked = models.BooleanField(
        default=False,
        verbose_name=_("Order Locked"),
        help_text=_("If True, modules must be completed in their order."),
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Group")
        verbose_name_plural = _("Groups")
        ordering = ["title"]

    def __str__(self) -> str:
        return self.title

    def append_module(self, module: AssessmentModule) -> "GroupMember":
        """
        Add a module at the end of the member order.

        Publication and duplicate checks live in ``GroupSequencer.add_member``.
        """
        last = self.members.aggregate(last=models.Max("order_number"))["last"]
        return GroupMember.objects.create(
            group=self, module=module, order_number=(last or 0) + 1
        )


class GroupMember(models.Model):
    """Position of a module within a group. Order numbers start at 1."""

    group = models.ForeignKey(
        Group,
        on_delete=models.CASCADE,
        related_name="members",
        verbose_name=_("Group"),
    )

    module = models.ForeignKey(
        AssessmentModule,
        on_delete=models.PROTECT,
        related_name="group_memberships",
        verbose_name=_("Module"),
    )

    order_number = models.PositiveIntegerField(
        verbose_name=_("Order Number"),
    )

    class Meta:
        verbose_name = _("Group Member")
        verbose_name_plural = _("Group Members")
        ordering = ["group", "order_number"]
        constraints = [
            models.UniqueConstraint(
                fields=["group", "order_number"], name="unique_group_member_order"
            ),
            models.UniqueConstraint(
                fields=["group", "module"], name="unique_group_member_module"
            ),
        ]

    def __str__(self) -> str:
        return f"{self.order_number}. {self.module.title} in {self.group.title}"


class Assignment(models.Model):
    """
    Delivery of a group to a set of exam takers within a time window.

    Attributes:
        group: Group of modules being delivered
        start_date_utc: First moment modules may be started
        end_date_utc: Moment after which no new module may be started
        randomize_questions: Shuffle question order per exam taker
        randomize_answers: Shuffle answer order per exam taker
    """

    title = models.CharField(
        max_length=200,
        verbose_name=_("Assignment Title"),
    )

    group = models.ForeignKey(
        Group,
        on_delete=models.PROTECT,
        related_name="assignments",
        verbose_name=_("Group"),
    )

    start_date_utc = models.DateTimeField(verbose_name=_("Start Date (UTC)"))
    end_date_utc = models.DateTimeField(verbose_name=_("End Date (UTC)"))

    randomize_questions = models.BooleanField(default=False)
    randomize_answers = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Assignment")
        verbose_name_plural = _("Assignments")
        ordering = ["-start_date_utc"]

    def __str__(self) -> str:
        return self.title

    def has_started(self, now=None) -> bool:
        return (now or timezone.now()) >= self.start_date_utc

    def has_ended(self, now=None) -> bool:
        return (now or timezone.now()) > self.end_date_utc

    def includes_exam_taker(self, exam_taker_id: str) -> bool:
        return self.exam_takers.filter(exam_taker_id=str(exam_taker_id)).exists()


class ExamTakerAssignment(models.Model):
    """
    Exam taker enrolled in an assignment.

    Exam taker ids are opaque identifiers supplied by the identity layer.
    """

    assignment = models.ForeignKey(
        Assignment,
        on_delete=models.CASCADE,
        related_name="exam_takers",
        verbose_name=_("Assignment"),
    )

    exam_taker_id = models.CharField(
        max_length=64,
        db_index=True,
        verbose_name=_("Exam Taker Id"),
    )

    class Meta:
        verbose_name = _("Exam Taker Assignment")
        verbose_name_plural = _("Exam Taker Assignments")
        constraints = [
            models.UniqueConstraint(
                fields=["assignment", "exam_taker_id"],
                name="unique_exam_taker_assignment",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.exam_taker_id} in {self.assignment.title}"
