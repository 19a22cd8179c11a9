"""Repository, credential and pipeline outcome models used by the sync engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Generic, List, TypeVar

T = TypeVar("T")

NOREPLY_EMAIL_DOMAIN = "users.noreply.github.com"


@dataclass(slots=True, frozen=True)
class Credential:
    """OAuth bearer credential for the hosting provider; built per request, never stored."""

    access_token: str
    refresh_token: str | None = None
    scopes: FrozenSet[str] = frozenset()

    def __repr__(self) -> str:
        return f"Credential(scopes={sorted(self.scopes)!r})"


@dataclass(slots=True, frozen=True)
class AuthorIdentity:
    login: str
    name: str
    email: str

    @classmethod
    def from_profile(cls, login: str, name: str | None, email: str | None) -> "AuthorIdentity":
        return cls(
            login=login,
            name=(name or "").strip() or login,
            email=(email or "").strip() or f"{login}@{NOREPLY_EMAIL_DOMAIN}",
        )


@dataclass(slots=True)
class RepositoryRef:
    full_name: str
    remote_url: str | None = None
    branch: str | None = None

    def as_dict(self) -> dict[str, object]:
        return {"fullName": self.full_name, "remoteUrl": self.remote_url}


class ExportMode(str, Enum):
    EXISTING = "existing"
    NEW = "new"


@dataclass(slots=True)
class ExistingRepositorySpec:
    full_name: str
    remote_url: str | None = None


@dataclass(slots=True)
class NewRepositorySpec:
    name: str
    description: str | None = None
    private: bool = False
    default_branch: str | None = None


@dataclass(slots=True)
class ExportRequest:
    workspace_handle: str
    commit_message: str
    mode: ExportMode
    repository: ExistingRepositorySpec | NewRepositorySpec
    branch: str | None = None


@dataclass(slots=True)
class ImportResult:
    workspace_handle: str
    repository: RepositoryRef
    branch: str | None
    paths: List[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, object]:
        return {
            "workspaceHandle": self.workspace_handle,
            "repository": self.repository.as_dict(),
            "branch": self.branch,
            "paths": list(self.paths),
        }


@dataclass(slots=True)
class ExportResult:
    repository_full_name: str
    branch: str
    remote_url: str

    def as_dict(self) -> dict[str, object]:
        return {
            "repository": self.repository_full_name,
            "branch": self.branch,
            "remoteUrl": self.remote_url,
        }


# pipeline outcomes -------------------------------------------------------


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class NoOp:
    """The pipeline had nothing to do; not an error."""

    reason: str
    value: ExportResult | None = None


@dataclass(frozen=True)
class Failed:
    kind: str
    message: str
    code: str | None = None
    status_code: int = 500

    def as_dict(self) -> dict[str, object]:
        return {"error": self.message, "kind": self.code or self.kind}


PipelineOutcome = Ok[T] | NoOp | Failed
