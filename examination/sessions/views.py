from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from examination.services.sessions.answer_submission import AnswerSubmissionProcessor
from examination.services.sessions.progress_tracker import SessionProgressTracker

from .serializers import (
    ModuleProgressSerializer,
    QuestionResponseSerializer,
    SubmitAnswerSerializer,
)


class ModuleProgressStartView(APIView):
    """Start a module of an assignment, or return the already started progress."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, assignment_id, module_id):
        progress = SessionProgressTracker().get_or_create_progress(
            str(request.user.pk), assignment_id, module_id
        )
        return Response(ModuleProgressSerializer(progress).data, status=status.HTTP_200_OK)


class ExamTakerModuleVersionView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, assignment_id, version_id):
        projection = SessionProgressTracker().get_module_version_for_exam_taker(
            str(request.user.pk), assignment_id, version_id
        )
        return Response(projection)


class SubmitAnswerView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, progress_id):
        serializer = SubmitAnswerSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        SessionProgressTracker().get_progress_for_exam_taker(progress_id, str(request.user.pk))
        response = AnswerSubmissionProcessor().submit_answer(
            progress_id,
            serializer.validated_data["question_id"],
            request.data,
        )
        return Response(QuestionResponseSerializer(response).data, status=status.HTTP_200_OK)


class CompleteModuleView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, progress_id):
        tracker = SessionProgressTracker()
        tracker.get_progress_for_exam_taker(progress_id, str(request.user.pk))
        progress = tracker.complete_module(progress_id)
        return Response(ModuleProgressSerializer(progress).data, status=status.HTTP_200_OK)
