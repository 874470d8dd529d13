"""
Session Progress Tracker

Service managing exam taker progress records.

Responsibilities:
- Lazily creating progress records pinned to the latest published version
- Idempotent module completion and group re-evaluation
- Read-only projection of the pinned content for the exam taker, including
  the server-computed time budget

Progress states:
- NotStarted -> InProgress on first ``get_or_create_progress``
- InProgress -> Completed on ``complete_module`` (terminal)
- Expired is derived from the time budget at read time and never stored

Author: Exam Delivery Development Team
Version: 1.0.0
"""

import logging
import random
from datetime import datetime
from typing import Any, Dict, List, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from examination.exceptions import ConflictError, ExpiredError, NotFoundError
from examination.groups.models import Assignment
from examination.modules.models import QuestionType
from examination.services.groups.group_sequencer import GroupSequencer
from examination.services.modules.version_registry import ModuleVersionRegistry
from examination.sessions.models import ModuleProgress

logger = logging.getLogger(__name__)

SEED_RANGE = 2**31 - 1


class SessionProgressTracker:
    """
    Service for exam taker progress lifecycle operations.

    Example:
        >>> tracker = SessionProgressTracker()
        >>> progress = tracker.get_or_create_progress("taker-1", assignment.pk, module.pk)
        >>> tracker.complete_module(progress.pk)
    """

    def __init__(
        self,
        registry: Optional[ModuleVersionRegistry] = None,
        sequencer: Optional[GroupSequencer] = None,
    ):
        self.registry = registry or ModuleVersionRegistry()
        self.sequencer = sequencer or GroupSequencer()
        self.logger = logger

    # --- Lookups ---

    def get_progress(self, progress_id: int) -> ModuleProgress:
        try:
            return ModuleProgress.objects.select_related(
                "module_version", "assignment"
            ).get(pk=progress_id)
        except ModuleProgress.DoesNotExist:
            raise NotFoundError(
                f"Module progress {progress_id} does not exist.",
                details={"progress_id": progress_id},
            )

    def get_progress_for_exam_taker(self, progress_id: int, exam_taker_id: str) -> ModuleProgress:
        """
        Return a progress record owned by the exam taker.

        Records of other exam takers are reported as missing.
        """
        progress = self.get_progress(progress_id)
        if progress.exam_taker_id != str(exam_taker_id):
            raise NotFoundError(
                f"Module progress {progress_id} does not exist.",
                details={"progress_id": progress_id},
            )
        return progress

    def _get_assignment(self, assignment_id: int, exam_taker_id: str) -> Assignment:
        try:
            assignment = Assignment.objects.select_related("group").get(pk=assignment_id)
        except Assignment.DoesNotExist:
            raise NotFoundError(
                f"Assignment {assignment_id} does not exist.",
                details={"assignment_id": assignment_id},
            )
        if not assignment.includes_exam_taker(exam_taker_id):
            raise NotFoundError(
                f"Exam taker {exam_taker_id} is not assigned to '{assignment.title}'.",
                details={"assignment_id": assignment_id},
            )
        return assignment

    # --- Lifecycle ---

    def get_or_create_progress(
        self,
        exam_taker_id: str,
        assignment_id: int,
        module_id: int,
        now: Optional[datetime] = None,
    ) -> ModuleProgress:
        """
        Return the exam taker's progress for a module, creating it on first access.

        A new record pins the latest published version of the module, copies
        its duration and starts the time budget. Existing records are
        returned unchanged.

        Args:
            exam_taker_id: Exam taker id from the identity layer
            assignment_id: Assignment delivering the module
            module_id: Assessment module to start
            now: Reference time, defaults to the server clock

        Returns:
            Existing or newly created ModuleProgress

        Raises:
            NotFoundError: If the assignment, membership or a published version is missing
            ConflictError: If the assignment window is closed or the module is locked
        """
        now = now or timezone.now()
        exam_taker_id = str(exam_taker_id)
        assignment = self._get_assignment(assignment_id, exam_taker_id)

        member = assignment.group.members.filter(module_id=module_id).first()
        if member is None:
            raise NotFoundError(
                f"Module {module_id} is not part of assignment '{assignment.title}'.",
                details={"assignment_id": assignment_id, "module_id": module_id},
            )

        existing = (
            ModuleProgress.objects.filter(
                exam_taker_id=exam_taker_id,
                assignment=assignment,
                module_version__module_id=module_id,
            )
            .order_by("-started_at_utc")
            .first()
        )
        if existing is not None:
            return existing

        if not assignment.has_started(now):
            raise ConflictError(
                f"Assignment '{assignment.title}' has not started yet.",
                details={
                    "assignment_id": assignment_id,
                    "start_date_utc": assignment.start_date_utc.isoformat(),
                },
            )
        if assignment.has_ended(now):
            raise ConflictError(
                f"Assignment '{assignment.title}' has ended.",
                details={
                    "assignment_id": assignment_id,
                    "end_date_utc": assignment.end_date_utc.isoformat(),
                },
            )

        if not self.sequencer.is_module_unlocked_for_user(
            assignment.group_id, module_id, exam_taker_id, assignment_id=assignment.pk, now=now
        ):
            raise ConflictError(
                f"Module {module_id} is locked for exam taker {exam_taker_id}.",
                details={"assignment_id": assignment_id, "module_id": module_id},
            )

        version = self.registry.get_latest_published(module_id)

        try:
            with transaction.atomic():
                progress = ModuleProgress.objects.create(
                    exam_taker_id=exam_taker_id,
                    assignment=assignment,
                    group_member=member,
                    module_version=version,
                    started_at_utc=now,
                    duration_in_minutes=version.duration_in_minutes,
                    question_seed=(
                        random.randint(1, SEED_RANGE) if assignment.randomize_questions else None
                    ),
                    answer_seed=(
                        random.randint(1, SEED_RANGE) if assignment.randomize_answers else None
                    ),
                )
        except IntegrityError:
            # Another request created the record for this assignment and version first.
            self.logger.info(
                f"Concurrent start of version {version.pk} by {exam_taker_id}, reusing existing progress"
            )
            return ModuleProgress.objects.get(
                exam_taker_id=exam_taker_id, assignment=assignment, module_version=version
            )

        self.logger.info(
            f"Exam taker {exam_taker_id} started module version {version.pk} "
            f"(progress {progress.pk}, duration {version.duration_in_minutes} min)"
        )
        return progress

    def complete_module(self, progress_id: int, now: Optional[datetime] = None) -> ModuleProgress:
        """
        Mark a progress record as completed.

        Completing an already completed record returns it unchanged.

        Raises:
            NotFoundError: If the progress record does not exist
            ExpiredError: If the time budget ran out before completion
        """
        now = now or timezone.now()

        with transaction.atomic():
            try:
                progress = ModuleProgress.objects.select_for_update().get(pk=progress_id)
            except ModuleProgress.DoesNotExist:
                raise NotFoundError(
                    f"Module progress {progress_id} does not exist.",
                    details={"progress_id": progress_id},
                )

            if progress.is_completed:
                self.logger.debug(f"Module progress {progress_id} already completed")
                return progress

            budget = progress.time_budget(now)
            if budget.is_expired:
                raise ExpiredError(
                    progress.pk,
                    budget.deadline_utc,
                    message=f"Module progress {progress.pk} has expired and cannot be completed.",
                )

            progress.completed_at_utc = now
            progress.row_version += 1
            progress.save(update_fields=["completed_at_utc", "row_version"])

        self.logger.info(f"Module progress {progress_id} marked as completed.")
        self.sequencer.on_module_completed(progress, now=now)
        return progress

    # --- Exam taker projection ---

    def _shuffled(self, items: List[Any], seed) -> List[Any]:
        items = list(items)
        random.Random(seed).shuffle(items)
        return items

    def get_module_version_for_exam_taker(
        self,
        exam_taker_id: str,
        assignment_id: int,
        version_id: int,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Build the exam taker's view of a pinned module version.

        The projection never exposes correctness flags or the accepted
        variants of free text questions, and applies the per-taker shuffles
        of the assignment. It never modifies any record.

        Raises:
            NotFoundError: If the exam taker has no progress on this version
                within the assignment
        """
        now = now or timezone.now()
        progress = (
            ModuleProgress.objects.filter(
                exam_taker_id=str(exam_taker_id),
                assignment_id=assignment_id,
                module_version_id=version_id,
            )
            .select_related("module_version__module")
            .first()
        )
        if progress is None:
            raise NotFoundError(
                f"No progress on module version {version_id} for exam taker {exam_taker_id}.",
                details={"assignment_id": assignment_id, "version_id": version_id},
            )

        version = progress.module_version
        questions = list(version.questions.prefetch_related("answers").order_by("order", "id"))
        if progress.question_seed is not None:
            questions = self._shuffled(questions, progress.question_seed)

        responses = {response.question_id: response for response in progress.responses.all()}

        question_payload = []
        for question in questions:
            answers = list(question.answers.all())
            if question.question_type == QuestionType.FREE_TEXT:
                answers = []
            elif progress.answer_seed is not None:
                answers = self._shuffled(answers, f"{progress.answer_seed}:{question.pk}")

            response = responses.get(question.pk)
            question_payload.append(
                {
                    "id": question.pk,
                    "order": question.order,
                    "text": question.text,
                    "type": question.question_type.value,
                    "attachments": question.attachments,
                    "answers": [
                        {"id": answer.pk, "text": answer.text, "attachments": answer.attachments}
                        for answer in answers
                    ],
                    "response": (
                        {
                            "selected_answer_ids": response.selected_answer_ids,
                            "text_response": response.text_response,
                            "responded_at_utc": response.responded_at_utc.isoformat(),
                        }
                        if response is not None
                        else None
                    ),
                }
            )

        budget = progress.time_budget(now)
        return {
            "progress_id": progress.pk,
            "module_id": version.module_id,
            "module_title": version.module.title,
            "version_id": version.pk,
            "version": version.version,
            "duration_in_minutes": progress.duration_in_minutes,
            "started_at_utc": progress.started_at_utc.isoformat(),
            "completed_at_utc": (
                progress.completed_at_utc.isoformat() if progress.completed_at_utc else None
            ),
            "remaining_seconds": budget.remaining_seconds,
            "is_expired": budget.is_expired,
            "deadline_utc": budget.deadline_utc.isoformat() if budget.deadline_utc else None,
            "questions": question_payload,
        }
