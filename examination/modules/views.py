from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from examination.services.modules.version_registry import ModuleVersionRegistry

from .serializers import (
    AssessmentModuleVersionSerializer,
    ModuleCreateSerializer,
)


class ModuleCreateView(APIView):
    """Create a module together with its first draft version."""

    permission_classes = [permissions.IsAdminUser]

    def post(self, request):
        serializer = ModuleCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        version = ModuleVersionRegistry().create_module(
            title=serializer.validated_data["title"],
            description=serializer.validated_data["description"],
            content=request.data.get("content"),
        )
        return Response(
            AssessmentModuleVersionSerializer(version).data,
            status=status.HTTP_201_CREATED,
        )


class PublishedModuleListView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request):
        return Response(ModuleVersionRegistry().list_latest_published())


class LatestPublishedVersionView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request, module_id):
        version = ModuleVersionRegistry().get_latest_published(module_id)
        return Response(AssessmentModuleVersionSerializer(version).data)


class DraftVersionCreateView(APIView):
    """
    Create a draft version of a module.

    Without a request body the content of the latest published version is
    copied into the draft.
    """

    permission_classes = [permissions.IsAdminUser]

    def post(self, request, module_id):
        content = request.data if request.data else None
        version = ModuleVersionRegistry().create_draft_version(module_id, content)
        return Response(
            AssessmentModuleVersionSerializer(version).data,
            status=status.HTTP_201_CREATED,
        )


class VersionDetailView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def get(self, request, version_id):
        version = ModuleVersionRegistry().get_version(version_id)
        return Response(AssessmentModuleVersionSerializer(version).data)

    def put(self, request, version_id):
        version = ModuleVersionRegistry().update_draft(version_id, request.data)
        return Response(AssessmentModuleVersionSerializer(version).data)


class VersionPublishView(APIView):
    permission_classes = [permissions.IsAdminUser]

    def post(self, request, version_id):
        version = ModuleVersionRegistry().publish_version(version_id)
        return Response(
            {
                "message": f"Module version {version.version} published.",
                "version": AssessmentModuleVersionSerializer(version).data,
            },
            status=status.HTTP_200_OK,
        )
