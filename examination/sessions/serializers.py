from rest_framework import serializers

from .models import ModuleProgress, QuestionResponse


class AnswerPayloadSerializer(serializers.Serializer):
    """
    Raw answer payload of a single question.

    Any other keys sent by clients (for example a local expiry flag) are
    dropped here and never reach the submission logic.
    """

    selected_answer_ids = serializers.ListField(
        child=serializers.IntegerField(), required=False, allow_empty=True
    )
    text_response = serializers.CharField(
        required=False, allow_blank=True, allow_null=True, trim_whitespace=False
    )


class SubmitAnswerSerializer(AnswerPayloadSerializer):
    question_id = serializers.IntegerField()


class QuestionResponseSerializer(serializers.ModelSerializer):
    class Meta:
        model = QuestionResponse
        fields = [
            "id",
            "progress",
            "question",
            "question_type",
            "selected_answer_ids",
            "text_response",
            "responded_at_utc",
        ]


class ModuleProgressSerializer(serializers.ModelSerializer):
    module_id = serializers.IntegerField(source="module_version.module_id", read_only=True)
    remaining_seconds = serializers.SerializerMethodField()
    is_expired = serializers.SerializerMethodField()

    class Meta:
        model = ModuleProgress
        fields = [
            "id",
            "exam_taker_id",
            "assignment",
            "module_id",
            "module_version",
            "started_at_utc",
            "completed_at_utc",
            "duration_in_minutes",
            "remaining_seconds",
            "is_expired",
        ]

    def _budget(self, obj):
        now = self.context.get("now")
        return obj.time_budget(now)

    def get_remaining_seconds(self, obj):
        return self._budget(obj).remaining_seconds

    def get_is_expired(self, obj):
        return self._budget(obj).is_expired
