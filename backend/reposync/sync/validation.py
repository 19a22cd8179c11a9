"""Input validation and token scope checks shared by the import and export pipelines."""

from __future__ import annotations

import re
from typing import Iterable
from urllib.parse import urlparse

from reposync.domain.errors import AuthorizationError, ValidationError
from reposync.domain.models.repository import (
    Credential,
    ExistingRepositorySpec,
    ExportMode,
    ExportRequest,
    NewRepositorySpec,
)

FULL_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
BRANCH_PATTERN = re.compile(r"^[A-Za-z0-9_./-]+$")
REPOSITORY_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")

MAX_BRANCH_LENGTH = 255
MAX_COMMIT_MESSAGE_LENGTH = 500
MAX_REPOSITORY_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 256

REPO_SCOPES = frozenset({"repo", "public_repo"})
MISSING_SCOPE_MESSAGE = (
    "GitHub token is missing the 'repo' scope. Reconnect GitHub and grant repository access."
)


def validate_full_name(value: str | None) -> str:
    full_name = (value or "").strip()
    if len(full_name) < 3 or not FULL_NAME_PATTERN.match(full_name):
        raise ValidationError("Repository must look like 'owner/name'.")
    return full_name


def validate_branch(value: str | None, *, field_name: str = "branch") -> str:
    branch = (value or "").strip()
    if not branch or len(branch) > MAX_BRANCH_LENGTH or not BRANCH_PATTERN.match(branch):
        raise ValidationError(f"Invalid {field_name} name.")
    if ".." in branch or branch.startswith("-") or branch.startswith("/") or branch.endswith("/"):
        raise ValidationError(f"Invalid {field_name} name.")
    return branch


def validate_optional_branch(value: str | None, *, field_name: str = "branch") -> str | None:
    if value is None or not value.strip():
        return None
    return validate_branch(value, field_name=field_name)


def validate_commit_message(value: str | None) -> str:
    message = value or ""
    if not message.strip():
        raise ValidationError("Commit message is required.")
    if len(message) > MAX_COMMIT_MESSAGE_LENGTH:
        raise ValidationError(
            f"Commit message must be at most {MAX_COMMIT_MESSAGE_LENGTH} characters."
        )
    return message


def validate_repository_name(value: str | None) -> str:
    name = (value or "").strip()
    if (
        not name
        or len(name) > MAX_REPOSITORY_NAME_LENGTH
        or not REPOSITORY_NAME_PATTERN.match(name)
    ):
        raise ValidationError(
            "Repository name may only contain letters, digits, '.', '_' and '-'."
        )
    return name


def validate_remote_url(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    url = value.strip()
    parsed = urlparse(url)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValidationError("Remote URL must be an http(s) URL.")
    return url


def validate_export_request(request: ExportRequest) -> ExportRequest:
    """Return a normalized copy of ``request`` or raise ``ValidationError``."""
    if not (request.workspace_handle or "").strip():
        raise ValidationError("workspaceHandle is required.")
    message = validate_commit_message(request.commit_message)
    try:
        mode = ExportMode(request.mode)
    except ValueError as exc:
        raise ValidationError("Mode must be 'existing' or 'new'.") from exc

    repository = request.repository
    if mode is ExportMode.EXISTING:
        if not isinstance(repository, ExistingRepositorySpec):
            raise ValidationError("An existing repository needs a full name.")
        branch = validate_branch(request.branch)
        repository = ExistingRepositorySpec(
            full_name=validate_full_name(repository.full_name),
            remote_url=validate_remote_url(repository.remote_url),
        )
    else:
        if not isinstance(repository, NewRepositorySpec):
            raise ValidationError("A new repository needs a name.")
        description = (repository.description or "").strip() or None
        if description and len(description) > MAX_DESCRIPTION_LENGTH:
            raise ValidationError(
                f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters."
            )
        branch = validate_optional_branch(request.branch)
        repository = NewRepositorySpec(
            name=validate_repository_name(repository.name),
            description=description,
            private=bool(repository.private),
            default_branch=validate_optional_branch(
                repository.default_branch, field_name="default branch"
            ),
        )
    return ExportRequest(
        workspace_handle=request.workspace_handle.strip(),
        commit_message=message,
        mode=mode,
        repository=repository,
        branch=branch,
    )


def has_repo_scope(scopes: Iterable[str]) -> bool:
    return any(scope.strip().lower() in REPO_SCOPES for scope in scopes)


def require_repo_scope(credential: Credential) -> None:
    if not has_repo_scope(credential.scopes):
        raise AuthorizationError(MISSING_SCOPE_MESSAGE)
