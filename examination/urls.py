"""
Examination Application URL Configuration

This module defines the URL routing structure of the examination engine.
Each functional area has its own URL namespace.

URL Structure:
- /api/examination/token/: Authentication endpoints (JWT token management)
- /api/examination/modules/: Module authoring (create, draft, latest published)
- /api/examination/versions/: Version authoring (read, update draft, publish)
- /api/examination/groups/: Group membership and member ordering
- /api/examination/assignments/: Exam taker entry points (start module, content, states)
- /api/examination/progress/: Answer submission and completion

Author: Exam Delivery Development Team
Version: 1.0.0
"""

from typing import List

from django.urls import URLPattern, include, path
from rest_framework_simplejwt.views import (
    TokenObtainPairView,
    TokenRefreshView,
    TokenVerifyView,
)

from .groups import views as group_views
from .modules import views as module_views
from .sessions import views as session_views

app_name = "examination"

# --- Module Authoring URL Patterns ---

modules_urlpatterns: List[URLPattern] = [
    path("", module_views.ModuleCreateView.as_view(), name="module-create"),
    path("published/", module_views.PublishedModuleListView.as_view(), name="published-list"),
    path(
        "<int:module_id>/latest-published/",
        module_views.LatestPublishedVersionView.as_view(),
        name="latest-published",
    ),
    path(
        "<int:module_id>/versions/",
        module_views.DraftVersionCreateView.as_view(),
        name="draft-create",
    ),
]

versions_urlpatterns: List[URLPattern] = [
    path("<int:version_id>/", module_views.VersionDetailView.as_view(), name="version-detail"),
    path(
        "<int:version_id>/publish/",
        module_views.VersionPublishView.as_view(),
        name="version-publish",
    ),
]

# --- Group URL Patterns ---

groups_urlpatterns: List[URLPattern] = [
    path("<int:group_id>/members/", group_views.GroupMemberListView.as_view(), name="member-add"),
    path(
        "<int:group_id>/members/<int:member_id>/",
        group_views.GroupMemberDetailView.as_view(),
        name="member-remove",
    ),
    path(
        "<int:group_id>/members/swap/",
        group_views.GroupMemberSwapView.as_view(),
        name="member-swap",
    ),
]

# --- Exam Taker URL Patterns ---

assignments_urlpatterns: List[URLPattern] = [
    path(
        "<int:assignment_id>/modules/<int:module_id>/progress/",
        session_views.ModuleProgressStartView.as_view(),
        name="progress-start",
    ),
    path(
        "<int:assignment_id>/versions/<int:version_id>/",
        session_views.ExamTakerModuleVersionView.as_view(),
        name="module-version",
    ),
    path(
        "<int:assignment_id>/groups/<int:group_id>/states/",
        group_views.GroupMemberStatesView.as_view(),
        name="group-member-states",
    ),
]

progress_urlpatterns: List[URLPattern] = [
    path("<int:progress_id>/answers/", session_views.SubmitAnswerView.as_view(), name="submit-answer"),
    path("<int:progress_id>/complete/", session_views.CompleteModuleView.as_view(), name="complete"),
]

# --- Main URL Configuration for the Examination Application ---

urlpatterns: List[URLPattern] = [
    # Authentication endpoints (JWT token management)
    path("token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("token/verify/", TokenVerifyView.as_view(), name="token_verify"),

    path("modules/", include((modules_urlpatterns, "modules"))),
    path("versions/", include((versions_urlpatterns, "versions"))),
    path("groups/", include((groups_urlpatterns, "groups"))),
    path("assignments/", include((assignments_urlpatterns, "assignments"))),
    path("progress/", include((progress_urlpatterns, "progress"))),
]
