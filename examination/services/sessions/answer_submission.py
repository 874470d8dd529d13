"""
Answer Submission Processor

Service validating a single question response and storing it on a progress
record.

Every submission runs in one transaction holding a row lock on the progress
record. Concurrent submissions for the same progress therefore serialize,
and a submission racing a completion either lands first or sees the
completion and fails with LockedError.

Author: Exam Delivery Development Team
Version: 1.0.0
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from examination.exceptions import (
    ConflictError,
    ExpiredError,
    LockedError,
    NotFoundError,
    ValidationError,
)
from examination.modules.models import Question, QuestionType
from examination.sessions.models import ModuleProgress, QuestionResponse
from examination.sessions.serializers import AnswerPayloadSerializer

logger = logging.getLogger(__name__)


def normalize_text(value: str) -> str:
    return value.strip().casefold()


def is_response_correct(
    question: Question,
    selected_answer_ids: List[int],
    text_response: Optional[str],
) -> bool:
    """
    Correctness check of a validated response.

    - SingleChoice: the selected answer is correct
    - MultipleChoice: the selected set equals the set of correct answers
    - FreeText: the normalized text equals one of the accepted variants
    """
    answers = list(question.answers.all())
    question_type = question.question_type

    if question_type == QuestionType.FREE_TEXT:
        if text_response is None:
            return False
        accepted = {normalize_text(answer.text) for answer in answers}
        return normalize_text(text_response) in accepted

    correct_ids = {answer.pk for answer in answers if answer.is_correct}
    if question_type == QuestionType.SINGLE_CHOICE:
        return len(selected_answer_ids) == 1 and selected_answer_ids[0] in correct_ids
    return set(selected_answer_ids) == correct_ids


class AnswerSubmissionProcessor:
    """
    Service for storing exam taker answers.

    Example:
        >>> processor = AnswerSubmissionProcessor()
        >>> processor.submit_answer(progress.pk, question.pk, {"selected_answer_ids": [42]})
    """

    def __init__(self):
        self.logger = logger

    @property
    def free_text_max_length(self) -> int:
        return getattr(settings, "EXAMINATION_FREE_TEXT_MAX_LENGTH", 1000)

    def _validate_payload(
        self, question: Question, payload: Dict[str, Any]
    ) -> Tuple[List[int], Optional[str]]:
        """
        Validate a payload against the question type.

        Returns:
            Tuple of selected answer ids and text response to store

        Raises:
            ValidationError: If the payload does not fit the question type
        """
        serializer = AnswerPayloadSerializer(data=payload if payload is not None else {})
        if not serializer.is_valid():
            raise ValidationError(
                "Answer payload is malformed.",
                details={"question_id": question.pk, "errors": serializer.errors},
            )
        data = serializer.validated_data
        question_type = question.question_type
        answer_ids = set(question.answers.values_list("pk", flat=True))

        if question_type == QuestionType.FREE_TEXT:
            text = data.get("text_response")
            if text is None or not text.strip():
                raise ValidationError(
                    "A non-empty text response is required for free text questions.",
                    details={"question_id": question.pk},
                )
            if len(text) > self.free_text_max_length:
                raise ValidationError(
                    f"Text response must not exceed {self.free_text_max_length} characters.",
                    details={"question_id": question.pk},
                )
            return [], text

        selected = data.get("selected_answer_ids") or []
        unknown = [pk for pk in selected if pk not in answer_ids]

        if question_type == QuestionType.SINGLE_CHOICE:
            if len(selected) != 1:
                raise ValidationError(
                    "Exactly one answer must be selected for single-choice questions.",
                    details={"question_id": question.pk, "selected_answer_ids": selected},
                )
            if unknown:
                raise ValidationError(
                    f"Answer {selected[0]} does not belong to question {question.pk}.",
                    details={"question_id": question.pk, "unknown_answer_ids": unknown},
                )
            return list(selected), None

        if unknown:
            raise ValidationError(
                f"Answers {unknown} do not belong to question {question.pk}.",
                details={"question_id": question.pk, "unknown_answer_ids": unknown},
            )
        return sorted(set(selected)), None

    def submit_answer(
        self,
        progress_id: int,
        question_id: int,
        payload: Dict[str, Any],
        now: Optional[datetime] = None,
    ) -> QuestionResponse:
        """
        Validate and store the response to one question.

        A second submission for the same question replaces the first one.

        Args:
            progress_id: Progress record receiving the response
            question_id: Answered question of the pinned version
            payload: ``selected_answer_ids`` and/or ``text_response``
            now: Reference time, defaults to the server clock

        Returns:
            The stored QuestionResponse

        Raises:
            NotFoundError: If the progress or question does not exist
            LockedError: If the progress is completed
            ExpiredError: If the time budget has run out
            ConflictError: If the question belongs to another version
            ValidationError: If the payload does not fit the question type
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
                raise LockedError(progress.pk)

            budget = progress.time_budget(now)
            if budget.is_expired:
                raise ExpiredError(progress.pk, budget.deadline_utc)

            question = Question.objects.filter(pk=question_id).first()
            if question is None:
                raise NotFoundError(
                    f"Question {question_id} does not exist.",
                    details={"question_id": question_id},
                )
            if question.version_id != progress.module_version_id:
                raise ConflictError(
                    f"Question {question_id} does not belong to module version {progress.module_version_id}.",
                    details={
                        "question_id": question_id,
                        "progress_id": progress.pk,
                        "version_id": progress.module_version_id,
                    },
                )

            selected_answer_ids, text_response = self._validate_payload(question, payload)

            response, created = QuestionResponse.objects.update_or_create(
                progress=progress,
                question=question,
                defaults={
                    "question_type": question.question_type,
                    "selected_answer_ids": selected_answer_ids,
                    "text_response": text_response,
                    "is_correct": is_response_correct(
                        question, selected_answer_ids, text_response
                    ),
                    "responded_at_utc": now,
                },
            )

            progress.row_version += 1
            progress.save(update_fields=["row_version"])

        self.logger.info(
            f"{'Stored' if created else 'Replaced'} response to question {question_id} "
            f"in progress {progress_id}"
        )
        return response
