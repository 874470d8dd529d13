from rest_framework import serializers

from .models import (
    AssessmentModule,
    AssessmentModuleVersion,
    PossibleAnswer,
    Question,
    QuestionType,
)


class QuestionTypeField(serializers.Field):
    """
    Accepts question type names, values or legacy integer codes and
    resolves them to a ``QuestionType`` member.
    """

    default_error_messages = {"invalid": "Unknown question type: {value!r}."}

    def to_internal_value(self, data):
        try:
            return QuestionType.from_raw(data)
        except ValueError:
            self.fail("invalid", value=data)

    def to_representation(self, value):
        return QuestionType.from_raw(value).value


class AttachmentListField(serializers.ListField):
    child = serializers.CharField(max_length=255)

    def __init__(self, **kwargs):
        kwargs.setdefault("required", False)
        kwargs.setdefault("default", list)
        super().__init__(**kwargs)


# --- Authoring input ---


class PossibleAnswerContentSerializer(serializers.Serializer):
    text = serializers.CharField(
        allow_blank=True, required=False, default="", max_length=2000
    )
    is_correct = serializers.BooleanField(required=False, default=False)
    attachments = AttachmentListField()


class QuestionContentSerializer(serializers.Serializer):
    text = serializers.CharField(
        allow_blank=True, required=False, default="", max_length=5000
    )
    type = QuestionTypeField()
    attachments = AttachmentListField()
    answers = PossibleAnswerContentSerializer(many=True, required=False, default=list)


class VersionContentSerializer(serializers.Serializer):
    """
    Content of a draft version as sent by authors.

    Only shape is validated here; the structural rules that make a version
    publishable are checked by the registry at publish time so that drafts
    can be saved while incomplete.
    """

    duration_in_minutes = serializers.IntegerField(
        min_value=1, allow_null=True, required=False, default=None
    )
    questions = QuestionContentSerializer(many=True, required=False, default=list)


class ModuleCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=200)
    description = serializers.CharField(allow_blank=True, required=False, default="")
    content = VersionContentSerializer(required=False)


# --- Authoring output ---


class PossibleAnswerSerializer(serializers.ModelSerializer):
    class Meta:
        model = PossibleAnswer
        fields = ["id", "order", "text", "is_correct", "attachments"]


class QuestionSerializer(serializers.ModelSerializer):
    type = QuestionTypeField()
    answers = PossibleAnswerSerializer(many=True, read_only=True)

    class Meta:
        model = Question
        fields = ["id", "order", "text", "type", "attachments", "answers"]


class AssessmentModuleVersionSerializer(serializers.ModelSerializer):
    module_title = serializers.CharField(source="module.title", read_only=True)
    questions = QuestionSerializer(many=True, read_only=True)

    class Meta:
        model = AssessmentModuleVersion
        fields = [
            "id",
            "module",
            "module_title",
            "version",
            "is_published",
            "duration_in_minutes",
            "created_at",
            "published_at",
            "questions",
        ]


class AssessmentModuleSerializer(serializers.ModelSerializer):
    class Meta:
        model = AssessmentModule
        fields = ["id", "title", "description", "created_at"]
