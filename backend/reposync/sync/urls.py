"""API URL routes for repository synchronization."""

from __future__ import annotations

from django.urls import path

from reposync.sync.views import (
    GitHubExportView,
    GitHubImportView,
    GitHubRepositoriesView,
    GitHubStatusView,
)

urlpatterns = [
    path("github/import", GitHubImportView.as_view(), name="github-import"),
    path("github/export", GitHubExportView.as_view(), name="github-export"),
    path("github/status", GitHubStatusView.as_view(), name="github-status"),
    path("github/repositories", GitHubRepositoriesView.as_view(), name="github-repositories"),
]
