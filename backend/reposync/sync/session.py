"""Looks up the hosting-provider session that backs an authenticated request."""

from __future__ import annotations

from dataclasses import dataclass

from reposync.domain.errors import AuthenticationError
from reposync.integrations.models import HostingIdentity


@dataclass(slots=True)
class GitHubSession:
    access_token: str
    refresh_token: str | None = None


def require_authenticated_user(request):
    user = getattr(request, "user", None)
    if user is None or not user.is_authenticated:
        raise AuthenticationError(
            AuthenticationError.NOT_AUTHENTICATED, "Authentication required."
        )
    return user


def require_github_session(request) -> GitHubSession:
    user = require_authenticated_user(request)
    identity = HostingIdentity.objects.filter(
        user=user, provider=HostingIdentity.Provider.GITHUB
    ).first()
    if identity is None:
        raise AuthenticationError(
            AuthenticationError.NOT_CONNECTED, "Connect a GitHub account first."
        )
    if not identity.access_token:
        raise AuthenticationError(
            AuthenticationError.MISSING_TOKEN,
            "The GitHub connection has no access token. Reconnect GitHub.",
        )
    return GitHubSession(
        access_token=identity.access_token,
        refresh_token=identity.refresh_token or None,
    )
