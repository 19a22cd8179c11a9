"""Normalization of pipeline exceptions into ``Failed`` outcomes."""

from __future__ import annotations

import logging
import re

from reposync.domain.errors import AuthenticationError, ErrorKind, SyncError
from reposync.domain.models.repository import Failed
from reposync.infrastructure.vcs.github import GitHubAPIError

logger = logging.getLogger(__name__)

_NOT_FOUND_PATTERN = re.compile(r"not found|404", re.IGNORECASE)

_HOSTING_STATUS_KINDS = {
    401: ErrorKind.AUTHENTICATION,
    403: ErrorKind.AUTHORIZATION,
    404: ErrorKind.NOT_FOUND,
    422: ErrorKind.VALIDATION,
}

_STATUS_BY_KIND = {
    ErrorKind.AUTHENTICATION: 401,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.VALIDATION: 400,
    ErrorKind.COMMAND_FAILED: 500,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.HOSTING_API: 502,
    ErrorKind.WORKSPACE_UNAVAILABLE: 502,
    ErrorKind.WORKSPACE_BUSY: 409,
}


def failed(kind: ErrorKind, message: str, *, code: str | None = None, status_code: int | None = None) -> Failed:
    return Failed(
        kind=kind.value,
        message=message,
        code=code,
        status_code=status_code or _STATUS_BY_KIND[kind],
    )


def classify_failure(exc: BaseException) -> Failed:
    """Map any exception raised by a pipeline step to a ``Failed`` outcome."""
    message = str(exc) or exc.__class__.__name__
    if isinstance(exc, GitHubAPIError):
        kind = _HOSTING_STATUS_KINDS.get(exc.status, ErrorKind.HOSTING_API)
        return failed(kind, message, status_code=exc.status_code)
    if isinstance(exc, AuthenticationError):
        return failed(exc.kind, message, code=exc.code, status_code=exc.status_code)
    if isinstance(exc, SyncError):
        if exc.kind is ErrorKind.COMMAND_FAILED and _NOT_FOUND_PATTERN.search(message):
            return failed(ErrorKind.NOT_FOUND, message)
        return failed(exc.kind, message)
    if isinstance(exc, ValueError):
        return failed(ErrorKind.VALIDATION, message)
    logger.exception("Unexpected sync failure", exc_info=exc)
    if _NOT_FOUND_PATTERN.search(message):
        return failed(ErrorKind.NOT_FOUND, message)
    return failed(ErrorKind.COMMAND_FAILED, message)
