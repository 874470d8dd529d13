"""
URL configuration for the exam delivery backend.

Author: Exam Delivery Development Team
Version: 1.0.0
"""

from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path("admin/", admin.site.urls),
    path("api/examination/", include("examination.urls")),
]
