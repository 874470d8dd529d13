"""
Examination Application Django Admin Configuration

This module provides the Django admin interface for all examination models.

The admin interface is organized into logical sections:
- Module Authoring: Modules, versions, questions and answers
- Groups & Assignments: Member ordering and exam taker enrollment
- Sessions: Read-only inspection of progress records and responses

Published versions are shown read-only; their content can only change
through a new draft version.

Author: Exam Delivery Development Team
Version: 1.0.0
"""

from typing import Optional

from django.contrib import admin
from django.db.models import Count, QuerySet
from django.http import HttpRequest
from django.utils.translation import gettext_lazy as _

from .models import (
    AssessmentModule,
    AssessmentModuleVersion,
    Assignment,
    ExamTakerAssignment,
    Group,
    GroupMember,
    ModuleProgress,
    PossibleAnswer,
    Question,
    QuestionResponse,
)

# --- Module Authoring Administration ---


class AssessmentModuleVersionInline(admin.TabularInline):
    """Inline listing of the versions of a module."""

    model = AssessmentModuleVersion
    extra = 0
    fields = ("version", "is_published", "duration_in_minutes", "created_at", "published_at")
    readonly_fields = fields
    ordering = ("-version",)
    show_change_link = True
    can_delete = False

    def has_add_permission(self, request: HttpRequest, obj=None) -> bool:
        return False


class QuestionInline(admin.StackedInline):
    """Inline admin for the questions of a version."""

    model = Question
    extra = 0
    fields = ("order", "type", "text", "attachments")
    ordering = ("order",)
    show_change_link = True


class PossibleAnswerInline(admin.TabularInline):
    model = PossibleAnswer
    extra = 1
    fields = ("order", "text", "is_correct", "attachments")
    ordering = ("order",)


def _is_published(obj) -> bool:
    version = getattr(obj, "version", obj)
    return bool(version and getattr(version, "is_published", False))


@admin.register(AssessmentModule)
class AssessmentModuleAdmin(admin.ModelAdmin):
    list_display = ("title", "version_count", "created_at")
    search_fields = ("title", "description")
    inlines = [AssessmentModuleVersionInline]

    def get_queryset(self, request: HttpRequest) -> QuerySet:
        return super().get_queryset(request).annotate(_version_count=Count("versions"))

    @admin.display(description=_("Versions"), ordering="_version_count")
    def version_count(self, obj: AssessmentModule) -> int:
        return obj._version_count


@admin.register(AssessmentModuleVersion)
class AssessmentModuleVersionAdmin(admin.ModelAdmin):
    """
    Administration interface for module versions.

    Drafts are editable; published versions are read-only. Publishing is
    done through the API so that the structural checks always run.
    """

    list_display = ("module", "version", "is_published", "duration_in_minutes", "published_at")
    list_filter = ("is_published", "module")
    search_fields = ("module__title",)
    inlines = [QuestionInline]
    readonly_fields = ("is_published", "published_at", "created_at")

    def get_readonly_fields(self, request: HttpRequest, obj: Optional[AssessmentModuleVersion] = None):
        if _is_published(obj):
            return ("module", "version", "duration_in_minutes") + tuple(self.readonly_fields)
        return self.readonly_fields

    def has_delete_permission(self, request: HttpRequest, obj=None) -> bool:
        if _is_published(obj):
            return False
        return super().has_delete_permission(request, obj)

    def get_inline_instances(self, request: HttpRequest, obj=None):
        if _is_published(obj):
            return []
        return super().get_inline_instances(request, obj)


@admin.register(Question)
class QuestionAdmin(admin.ModelAdmin):
    list_display = ("__str__", "version", "type", "order")
    list_filter = ("type", "version__is_published")
    search_fields = ("text", "version__module__title")
    inlines = [PossibleAnswerInline]

    def has_change_permission(self, request: HttpRequest, obj=None) -> bool:
        if _is_published(obj):
            return False
        return super().has_change_permission(request, obj)

    def has_delete_permission(self, request: HttpRequest, obj=None) -> bool:
        if _is_published(obj):
            return False
        return super().has_delete_permission(request, obj)


# --- Groups & Assignments Administration ---


class GroupMemberInline(admin.TabularInline):
    """Members are read-only here; add, remove and swap go through the group member API."""

    model = GroupMember
    extra = 0
    fields = ("order_number", "module")
    readonly_fields = ("order_number", "module")
    ordering = ("order_number",)

    def has_add_permission(self, request: HttpRequest, obj=None) -> bool:
        return False

    def has_delete_permission(self, request: HttpRequest, obj=None) -> bool:
        return False


class ExamTakerAssignmentInline(admin.TabularInline):
    model = ExamTakerAssignment
    extra = 1
    fields = ("exam_taker_id",)


@admin.register(Group)
class GroupAdmin(admin.ModelAdmin):
    list_display = ("title", "is_member_order_locked", "wait_module_completion", "updated_at")
    list_filter = ("is_member_order_locked", "wait_module_completion")
    search_fields = ("title", "description")
    inlines = [GroupMemberInline]


@admin.register(Assignment)
class AssignmentAdmin(admin.ModelAdmin):
    list_display = ("title", "group", "start_date_utc", "end_date_utc")
    list_filter = ("group", "randomize_questions", "randomize_answers")
    search_fields = ("title", "group__title")
    inlines = [ExamTakerAssignmentInline]


# --- Session Administration ---


class QuestionResponseInline(admin.TabularInline):
    model = QuestionResponse
    extra = 0
    fields = ("question", "question_type", "selected_answer_ids", "text_response", "is_correct", "responded_at_utc")
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request: HttpRequest, obj=None) -> bool:
        return False


@admin.register(ModuleProgress)
class ModuleProgressAdmin(admin.ModelAdmin):
    """Read-only inspection of exam taker progress records."""

    list_display = ("exam_taker_id", "assignment", "module_version", "started_at_utc", "completed_at_utc")
    list_filter = ("assignment", "completed_at_utc")
    search_fields = ("exam_taker_id", "module_version__module__title")
    inlines = [QuestionResponseInline]

    def get_queryset(self, request: HttpRequest) -> QuerySet:
        return super().get_queryset(request).select_related("assignment", "module_version__module")

    def has_add_permission(self, request: HttpRequest) -> bool:
        return False

    def has_change_permission(self, request: HttpRequest, obj=None) -> bool:
        return False
