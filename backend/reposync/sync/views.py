from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from reposync import bootstrap
from reposync.domain.errors import ErrorKind, SyncError
from reposync.domain.models.repository import Failed, Ok
from reposync.domain.models.workspace import WorkspaceRef
from reposync.sync.credentials import resolve_session_identity
from reposync.sync.errors import classify_failure, failed
from reposync.sync.locks import workspace_lease
from reposync.sync.serializers import (
    ExportRequestSerializer,
    ImportRequestSerializer,
    RepositoryListQuerySerializer,
    StatusQuerySerializer,
)
from reposync.sync.session import require_authenticated_user, require_github_session
from reposync.sync.validation import MISSING_SCOPE_MESSAGE, has_repo_scope

logger = logging.getLogger(__name__)


def failure_response(outcome: Failed) -> Response:
    return Response(outcome.as_dict(), status=outcome.status_code)


def invalid_response(errors) -> Response:
    return failure_response(failed(ErrorKind.VALIDATION, _first_error(errors)))


def _first_error(errors) -> str:
    if isinstance(errors, dict) and errors:
        field_name, value = next(iter(errors.items()))
        message = _first_error(value)
        return message if field_name == "non_field_errors" else f"{field_name}: {message}"
    if isinstance(errors, (list, tuple)) and errors:
        return _first_error(errors[0])
    return str(errors) or "Invalid request."


class GitHubSyncView(APIView):
    # Authentication failures are reported with their own sub-kinds.
    permission_classes = [AllowAny]

    def resolve_identity(self, request):
        session = require_github_session(request)
        return resolve_session_identity(
            bootstrap.container.resolve_hosting(),
            session.access_token,
            session.refresh_token,
        )


class GitHubImportView(GitHubSyncView):
    def post(self, request):
        serializer = ImportRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_response(serializer.errors)
        try:
            credential, author = self.resolve_identity(request)
        except SyncError as exc:
            return failure_response(classify_failure(exc))
        data = serializer.validated_data
        handle = (data.get("workspaceHandle") or "").strip() or None
        pipeline = bootstrap.build_import_pipeline()

        def run():
            return pipeline(
                handle,
                data["repository"],
                data.get("branch") or None,
                credential=credential,
                author=author,
            )

        try:
            if handle:
                with workspace_lease(handle):
                    outcome = run()
            else:
                outcome = run()
        except SyncError as exc:
            return failure_response(classify_failure(exc))
        if isinstance(outcome, Failed):
            return failure_response(outcome)
        return Response(outcome.value.as_dict(), status=status.HTTP_200_OK)


class GitHubExportView(GitHubSyncView):
    def post(self, request):
        serializer = ExportRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return invalid_response(serializer.errors)
        try:
            credential, author = self.resolve_identity(request)
        except SyncError as exc:
            return failure_response(classify_failure(exc))
        export_request = serializer.to_request()
        pipeline = bootstrap.build_export_pipeline()
        try:
            with workspace_lease(export_request.workspace_handle):
                outcome = pipeline(export_request, credential=credential, author=author)
        except SyncError as exc:
            return failure_response(classify_failure(exc))
        if isinstance(outcome, Failed):
            return failure_response(outcome)
        if isinstance(outcome, Ok):
            return Response({"status": "ok", **outcome.value.as_dict()}, status=status.HTTP_200_OK)
        payload = {"status": "noop", "message": outcome.reason}
        if outcome.value is not None:
            payload.update(outcome.value.as_dict())
        return Response(payload, status=status.HTTP_200_OK)


class GitHubStatusView(GitHubSyncView):
    def get(self, request):
        try:
            require_authenticated_user(request)
        except SyncError as exc:
            return failure_response(classify_failure(exc))
        serializer = StatusQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return invalid_response(serializer.errors)
        handle = serializer.validated_data["workspaceHandle"].strip()
        try:
            WorkspaceRef.parse(handle)
        except ValueError as exc:
            return invalid_response({"workspaceHandle": [str(exc)]})
        workspace_status = bootstrap.build_status_inspector().inspect(handle)
        return Response({"workspaceHandle": handle, **workspace_status.as_dict()})


class GitHubRepositoriesView(GitHubSyncView):
    def get(self, request):
        serializer = RepositoryListQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return invalid_response(serializer.errors)
        try:
            session = require_github_session(request)
            page = bootstrap.container.resolve_hosting().list_repositories(
                session.access_token,
                page=serializer.validated_data["page"],
                per_page=serializer.validated_data["per_page"],
            )
        except SyncError as exc:
            return failure_response(classify_failure(exc))
        if not has_repo_scope(page.scopes):
            return failure_response(failed(ErrorKind.AUTHORIZATION, MISSING_SCOPE_MESSAGE))
        logger.debug(
            "Listed repositories",
            extra={"page": page.page, "count": len(page.repositories)},
        )
        return Response(
            {
                "page": page.page,
                "perPage": page.per_page,
                "hasMore": page.has_more,
                "repositories": [repository.as_dict() for repository in page.repositories],
            }
        )
