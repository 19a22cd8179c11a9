"""GitHub REST client used for identity lookup, repository listing and creation."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping

import requests
from requests import Response, Session

from reposync.domain.errors import ErrorKind, SyncError

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
USER_AGENT = "reposync"


class GitHubAPIError(SyncError):
    """Raised for any non-2xx answer (or transport failure) from the GitHub API."""

    kind = ErrorKind.HOSTING_API

    def __init__(self, status: int, url: str, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.url = url
        self.status_code = status if status in {401, 403, 404, 422} else 502


def parse_scopes(header: str | None) -> List[str]:
    """Split an ``X-OAuth-Scopes`` value on commas/whitespace, lowercased."""
    if not header:
        return []
    return [scope.lower() for scope in re.split(r"[,\s]+", header.strip()) if scope]


def has_next_page(headers: Mapping[str, str]) -> bool:
    link = headers.get("link") or headers.get("Link")
    if not link:
        return False
    return any('rel="next"' in part.strip().lower() for part in link.split(","))


@dataclass
class GitHubResponse:
    data: Any
    scopes: List[str]
    headers: Mapping[str, str]


@dataclass
class GitHubUser:
    login: str
    name: str | None
    email: str | None
    scopes: List[str] = field(default_factory=list)


@dataclass
class CreatedRepository:
    full_name: str
    clone_url: str
    html_url: str
    default_branch: str | None


@dataclass
class RepositorySummary:
    id: int
    name: str
    full_name: str
    description: str | None
    private: bool
    default_branch: str | None
    updated_at: str | None
    owner: str | None
    html_url: str | None

    def as_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "fullName": self.full_name,
            "description": self.description,
            "private": self.private,
            "defaultBranch": self.default_branch,
            "updatedAt": self.updated_at,
            "owner": self.owner,
            "htmlUrl": self.html_url,
        }


@dataclass
class RepositoryPage:
    page: int
    per_page: int
    has_more: bool
    repositories: List[RepositorySummary]
    scopes: List[str]


class GitHubClient:
    """Thin synchronous client for the handful of GitHub endpoints the engine needs.

    Every non-2xx response becomes a :class:`GitHubAPIError` carrying the HTTP
    status and the ``message`` field of the JSON error body when present.
    """

    def __init__(
        self,
        *,
        base_url: str = GITHUB_API_BASE,
        timeout: float | None = 30.0,
        session: Session | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: Session = session or requests.Session()

    # Public API ------------------------------------------------------------

    def request(
        self,
        path: str,
        token: str,
        *,
        method: str = "GET",
        json_body: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> GitHubResponse:
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {token}",
            "User-Agent": USER_AGENT,
            "X-GitHub-Api-Version": "2022-11-28",
        }
        try:
            response = self._session.request(
                method,
                url,
                headers=headers,
                json=json_body,
                params=params,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.warning("GitHub request failed", extra={"url": url, "error": str(exc)})
            raise GitHubAPIError(0, url, f"GitHub is unreachable: {exc}") from exc
        self._ensure_ok(response)
        data = None
        if response.status_code != 204 and response.content:
            try:
                data = response.json()
            except ValueError as exc:  # pragma: no cover - network edge case
                raise GitHubAPIError(response.status_code, url, "Invalid JSON response from GitHub") from exc
        return GitHubResponse(
            data=data,
            scopes=parse_scopes(response.headers.get("x-oauth-scopes")),
            headers=response.headers,
        )

    def get_user(self, token: str) -> GitHubUser:
        result = self.request("/user", token)
        data = result.data or {}
        return GitHubUser(
            login=str(data.get("login") or ""),
            name=data.get("name"),
            email=data.get("email"),
            scopes=result.scopes,
        )

    def create_repository(
        self,
        token: str,
        *,
        name: str,
        description: str | None = None,
        private: bool = False,
    ) -> CreatedRepository:
        payload: dict[str, Any] = {"name": name, "private": bool(private)}
        if description:
            payload["description"] = description
        result = self.request("/user/repos", token, method="POST", json_body=payload)
        data = result.data or {}
        logger.info("Created GitHub repository", extra={"repository": data.get("full_name")})
        return CreatedRepository(
            full_name=str(data.get("full_name") or ""),
            clone_url=str(data.get("clone_url") or ""),
            html_url=str(data.get("html_url") or ""),
            default_branch=data.get("default_branch"),
        )

    def list_repositories(self, token: str, *, page: int = 1, per_page: int = 50) -> RepositoryPage:
        result = self.request(
            "/user/repos",
            token,
            params={"sort": "updated", "direction": "desc", "page": page, "per_page": per_page},
        )
        repositories = [
            RepositorySummary(
                id=int(item.get("id") or 0),
                name=str(item.get("name") or ""),
                full_name=str(item.get("full_name") or ""),
                description=item.get("description"),
                private=bool(item.get("private")),
                default_branch=item.get("default_branch"),
                updated_at=item.get("updated_at"),
                owner=(item.get("owner") or {}).get("login"),
                html_url=item.get("html_url"),
            )
            for item in (result.data or [])
        ]
        return RepositoryPage(
            page=page,
            per_page=per_page,
            has_more=has_next_page(result.headers),
            repositories=repositories,
            scopes=result.scopes,
        )

    # Internal helpers ------------------------------------------------------

    def _ensure_ok(self, response: Response) -> None:
        if 200 <= response.status_code < 300:
            return
        message = response.reason or f"GitHub request failed with status {response.status_code}"
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("message"), str):
            message = body["message"]
        raise GitHubAPIError(response.status_code, str(response.url), message)


def from_env(*, base_url: str | None = None, timeout: float | None = None) -> GitHubClient:
    return GitHubClient(
        base_url=base_url or os.getenv("GITHUB_API_URL", GITHUB_API_BASE),
        timeout=timeout if timeout is not None else float(os.getenv("GITHUB_TIMEOUT", "30")),
    )
