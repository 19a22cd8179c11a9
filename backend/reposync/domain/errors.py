"""Error taxonomy shared by the executor, the hosting client and the sync pipelines."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    VALIDATION = "validation"
    COMMAND_FAILED = "command_failed"
    NOT_FOUND = "not_found"
    HOSTING_API = "hosting_api"
    WORKSPACE_UNAVAILABLE = "workspace_unavailable"
    WORKSPACE_BUSY = "workspace_busy"


class SyncError(RuntimeError):
    """Base error for repository synchronization failures."""

    kind: ErrorKind = ErrorKind.COMMAND_FAILED
    status_code: int = 500


class AuthenticationError(SyncError):
    """Raised when no usable hosting-provider session backs the request."""

    kind = ErrorKind.AUTHENTICATION

    NOT_AUTHENTICATED = "not-authenticated"
    NOT_CONNECTED = "github-not-connected"
    MISSING_TOKEN = "missing-access-token"

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = 401 if code == self.NOT_AUTHENTICATED else 403


class AuthorizationError(SyncError):
    """Raised when the bearer token lacks the scopes an operation needs."""

    kind = ErrorKind.AUTHORIZATION
    status_code = 403


class ValidationError(SyncError):
    """Raised for malformed repository names, branches or commit messages."""

    kind = ErrorKind.VALIDATION
    status_code = 400


class CommandFailedError(SyncError):
    """Raised when a workspace command that must succeed exits non-zero."""

    kind = ErrorKind.COMMAND_FAILED
    status_code = 500

    def __init__(self, message: str, *, exit_code: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class NotFoundError(SyncError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class WorkspaceUnavailableError(SyncError):
    """Raised when the workspace cannot be reached (expired, removed, transport down)."""

    kind = ErrorKind.WORKSPACE_UNAVAILABLE
    status_code = 502


class WorkspaceBusyError(SyncError):
    """Raised when another import or export already holds the workspace lease."""

    kind = ErrorKind.WORKSPACE_BUSY
    status_code = 409
