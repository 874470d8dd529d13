"""
Module Version Registry

Service owning the draft/published lifecycle of assessment module content.

Responsibilities:
- Creating modules and draft versions (optionally copied forward from the
  latest published version)
- Replacing the content of drafts
- Publishing drafts after structural validation, atomically
- Resolving the latest published version of a module
- Serving the cached listing of latest published versions

Published versions are immutable. Every mutating operation locks the
version row so that an edit can never interleave with a publish.

Author: Exam Delivery Development Team
Version: 1.0.0
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from django.db import IntegrityError, transaction
from django.utils import timezone

from examination.exceptions import (
    ConflictError,
    NotFoundError,
    StructuralPublishError,
    ValidationError,
)
from examination.modules.models import (
    AssessmentModule,
    AssessmentModuleVersion,
    PossibleAnswer,
    Question,
    QuestionType,
)
from examination.modules.serializers import VersionContentSerializer
from examination.services.cache.listing_cache import ListingCache

logger = logging.getLogger(__name__)

published_listing_cache = ListingCache(
    "published_modules", "EXAMINATION_LISTING_CACHE_TTL"
)


def validate_version_structure(
    version: AssessmentModuleVersion,
) -> Tuple[List[str], List[Dict[str, Any]]]:
    """
    Check whether a version satisfies the rules required for publishing.

    Rules:
        - the version contains at least one question
        - every question has at least one answer
        - SingleChoice questions have exactly one correct answer
        - MultipleChoice and FreeText questions have at least one correct answer
        - every question has text or at least one attachment
        - every answer has text or at least one attachment, FreeText
          variants always need text

    Returns:
        Tuple of version-level problems and per-question problem entries
        ``{"question_id", "order", "errors"}``
    """
    version_problems: List[str] = []
    question_problems: List[Dict[str, Any]] = []

    questions = list(version.questions.prefetch_related("answers").order_by("order", "id"))
    if not questions:
        version_problems.append("A module version needs at least one question.")

    for question in questions:
        errors: List[str] = []
        answers = list(question.answers.all())
        question_type = question.question_type
        correct_count = sum(1 for answer in answers if answer.is_correct)

        if not answers:
            errors.append("Answers are required.")

        if question_type == QuestionType.SINGLE_CHOICE and correct_count != 1:
            errors.append(
                "Exactly one answer must be marked as correct for single-choice questions."
            )
        elif question_type != QuestionType.SINGLE_CHOICE and answers and correct_count == 0:
            errors.append(
                "At least one answer must be marked as correct for multiple-choice or free text questions."
            )

        if not question.text.strip() and not question.attachments:
            errors.append("Question text or at least one attachment is required.")

        for answer in answers:
            if question_type == QuestionType.FREE_TEXT:
                if not answer.text.strip():
                    errors.append(f"Accepted answer {answer.order} must not be empty.")
            elif not answer.text.strip() and not answer.attachments:
                errors.append(f"Answer {answer.order} needs text or an attachment.")

        if errors:
            question_problems.append(
                {"question_id": question.pk, "order": question.order, "errors": errors}
            )

    return version_problems, question_problems


class ModuleVersionRegistry:
    """
    Service for module and module version lifecycle operations.

    Example:
        >>> registry = ModuleVersionRegistry()
        >>> draft = registry.create_draft_version(module.pk)
        >>> registry.update_draft(draft.pk, {"duration_in_minutes": 10, "questions": [...]})
        >>> registry.publish_version(draft.pk)
    """

    def __init__(self):
        self.logger = logger

    # --- Content handling ---

    def _validate_content(self, content: Any) -> Dict[str, Any]:
        serializer = VersionContentSerializer(data=content)
        if not serializer.is_valid():
            raise ValidationError(
                "Module version content is invalid.", details=serializer.errors
            )
        return serializer.validated_data

    def _write_questions(
        self, version: AssessmentModuleVersion, questions: List[Dict[str, Any]]
    ) -> None:
        for question_order, question_data in enumerate(questions, start=1):
            question_type = question_data["type"]
            question = Question.objects.create(
                version=version,
                order=question_order,
                text=question_data.get("text", ""),
                type=question_type,
                attachments=list(question_data.get("attachments", [])),
            )
            PossibleAnswer.objects.bulk_create(
                [
                    PossibleAnswer(
                        question=question,
                        order=answer_order,
                        text=answer_data.get("text", ""),
                        # Every listed free text answer is an accepted variant.
                        is_correct=(
                            True
                            if question_type == QuestionType.FREE_TEXT
                            else answer_data.get("is_correct", False)
                        ),
                        attachments=list(answer_data.get("attachments", [])),
                    )
                    for answer_order, answer_data in enumerate(
                        question_data.get("answers", []), start=1
                    )
                ]
            )

    def _copy_content(
        self, source: AssessmentModuleVersion, target: AssessmentModuleVersion
    ) -> None:
        questions = [
            {
                "text": question.text,
                "type": question.question_type,
                "attachments": question.attachments,
                "answers": [
                    {
                        "text": answer.text,
                        "is_correct": answer.is_correct,
                        "attachments": answer.attachments,
                    }
                    for answer in question.answers.all()
                ],
            }
            for question in source.questions.prefetch_related("answers")
        ]
        self._write_questions(target, questions)

    # --- Lookups ---

    def get_module(self, module_id: int) -> AssessmentModule:
        try:
            return AssessmentModule.objects.get(pk=module_id)
        except AssessmentModule.DoesNotExist:
            raise NotFoundError(
                f"Assessment module {module_id} does not exist.",
                details={"module_id": module_id},
            )

    def get_version(self, version_id: int) -> AssessmentModuleVersion:
        try:
            return AssessmentModuleVersion.objects.select_related("module").get(pk=version_id)
        except AssessmentModuleVersion.DoesNotExist:
            raise NotFoundError(
                f"Module version {version_id} does not exist.",
                details={"version_id": version_id},
            )

    def _lock_version(self, version_id: int) -> AssessmentModuleVersion:
        try:
            return AssessmentModuleVersion.objects.select_for_update().get(pk=version_id)
        except AssessmentModuleVersion.DoesNotExist:
            raise NotFoundError(
                f"Module version {version_id} does not exist.",
                details={"version_id": version_id},
            )

    def get_latest_published(self, module_id: int) -> AssessmentModuleVersion:
        """
        Return the most recently created published version of a module.

        Raises:
            NotFoundError: If the module does not exist or has no published version
        """
        module = self.get_module(module_id)
        version = (
            module.versions.filter(is_published=True)
            .order_by("-created_at", "-version")
            .first()
        )
        if version is None:
            raise NotFoundError(
                f"Assessment module '{module.title}' has no published version.",
                details={"module_id": module_id},
            )
        return version

    def list_latest_published(self) -> List[Dict[str, Any]]:
        """
        Return one entry per module describing its latest published version.

        The result is served from the listing cache and rebuilt after every
        publish.
        """
        return published_listing_cache.get_or_set("latest", self._build_published_listing)

    def _build_published_listing(self) -> List[Dict[str, Any]]:
        listing = []
        latest_by_module: Dict[int, AssessmentModuleVersion] = {}
        versions = (
            AssessmentModuleVersion.objects.filter(is_published=True)
            .select_related("module")
            .order_by("module_id", "-created_at", "-version")
        )
        for version in versions:
            latest_by_module.setdefault(version.module_id, version)

        for version in sorted(latest_by_module.values(), key=lambda v: v.module.title):
            listing.append(
                {
                    "module_id": version.module_id,
                    "module_title": version.module.title,
                    "version_id": version.pk,
                    "version": version.version,
                    "duration_in_minutes": version.duration_in_minutes,
                    "published_at": version.published_at.isoformat() if version.published_at else None,
                    "question_count": version.questions.count(),
                }
            )
        self.logger.debug(f"Built published module listing with {len(listing)} entries")
        return listing

    # --- Lifecycle ---

    def create_module(
        self, title: str, description: str = "", content: Optional[Dict[str, Any]] = None
    ) -> AssessmentModuleVersion:
        """
        Create a module together with its first draft version.

        Raises:
            ConflictError: If a module with the same title exists
            ValidationError: If the content is malformed
        """
        validated = self._validate_content(content if content is not None else {})

        try:
            with transaction.atomic():
                module = AssessmentModule.objects.create(title=title, description=description)
                version = AssessmentModuleVersion.objects.create(
                    module=module,
                    version=1,
                    duration_in_minutes=validated["duration_in_minutes"],
                )
                self._write_questions(version, validated["questions"])
        except IntegrityError:
            raise ConflictError(
                f"An assessment module titled '{title}' already exists.",
                details={"title": title},
            )

        self.logger.info(f"Created assessment module '{title}' with draft version {version.pk}")
        return version

    def create_draft_version(
        self, module_id: int, content: Optional[Dict[str, Any]] = None
    ) -> AssessmentModuleVersion:
        """
        Create a new draft version of a module.

        Without explicit content the duration, questions and answers of the
        latest published version are copied into the draft.

        Args:
            module_id: Module receiving the draft
            content: Optional draft content

        Returns:
            The new draft version

        Raises:
            NotFoundError: If the module does not exist
            ConflictError: If the module already has an unpublished draft
            ValidationError: If the content is malformed
        """
        validated = self._validate_content(content) if content is not None else None

        with transaction.atomic():
            try:
                module = AssessmentModule.objects.select_for_update().get(pk=module_id)
            except AssessmentModule.DoesNotExist:
                raise NotFoundError(
                    f"Assessment module {module_id} does not exist.",
                    details={"module_id": module_id},
                )

            open_draft = module.versions.filter(is_published=False).first()
            if open_draft is not None:
                raise ConflictError(
                    f"Assessment module '{module.title}' already has draft version {open_draft.version}. "
                    "Publish it before creating a new one.",
                    details={"module_id": module.pk, "version_id": open_draft.pk},
                )

            source = (
                module.versions.filter(is_published=True)
                .order_by("-created_at", "-version")
                .first()
            )
            version = AssessmentModuleVersion.objects.create(
                module=module,
                version=module.next_version_number,
                duration_in_minutes=(
                    validated["duration_in_minutes"]
                    if validated is not None
                    else getattr(source, "duration_in_minutes", None)
                ),
            )

            if validated is not None:
                self._write_questions(version, validated["questions"])
            elif source is not None:
                self._copy_content(source, version)

        self.logger.info(
            f"Created draft version {version.version} (id {version.pk}) of module '{module.title}'"
        )
        return version

    def update_draft(self, version_id: int, content: Dict[str, Any]) -> AssessmentModuleVersion:
        """
        Replace the duration and questions of a draft version.

        Raises:
            NotFoundError: If the version does not exist
            ConflictError: If the version is published
            ValidationError: If the content is malformed
        """
        validated = self._validate_content(content)

        with transaction.atomic():
            version = self._lock_version(version_id)
            if version.is_published:
                raise ConflictError(
                    f"Module version {version_id} is published and cannot be modified.",
                    details={"version_id": version_id},
                )

            version.questions.all().delete()
            version.duration_in_minutes = validated["duration_in_minutes"]
            version.save(update_fields=["duration_in_minutes"])
            self._write_questions(version, validated["questions"])

        self.logger.info(
            f"Updated draft version {version_id} with {len(validated['questions'])} questions"
        )
        return version

    def publish_version(self, version_id: int) -> AssessmentModuleVersion:
        """
        Publish a draft version.

        The structural checks and the state change run in one transaction
        with the version row locked, so readers never observe a published
        version with partially written content.

        Raises:
            NotFoundError: If the version does not exist
            ConflictError: If the version is already published
            StructuralPublishError: If the content fails the structural checks
        """
        with transaction.atomic():
            version = self._lock_version(version_id)
            if version.is_published:
                raise ConflictError(
                    f"Module version {version_id} is already published.",
                    details={"version_id": version_id},
                )

            version_problems, question_problems = validate_version_structure(version)
            if version_problems or question_problems:
                self.logger.warning(
                    f"Publishing version {version_id} rejected: "
                    f"{len(version_problems) + len(question_problems)} problem(s)"
                )
                raise StructuralPublishError(version_id, question_problems, version_problems)

            version.is_published = True
            version.published_at = timezone.now()
            version.save(update_fields=["is_published", "published_at"])
            transaction.on_commit(published_listing_cache.invalidate)

        self.logger.info(f"Published module version {version_id}")
        return version
