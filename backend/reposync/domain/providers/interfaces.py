"""Domain provider interfaces that drive the reposync plugin architecture."""

from __future__ import annotations

from typing import Mapping, Protocol, Sequence

from reposync.domain.models.workspace import CommandResult


class CommandExecutor(Protocol):
    """Runs a single command inside a named workspace and reports how it ended."""

    def run(
        self,
        workspace: str,
        command: str,
        args: Sequence[str] = (),
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> CommandResult:  # pragma: no cover - interface
        ...


class Provisioner(Protocol):
    """Starts ephemeral execution workspaces (e.g., Kubernetes pods) and returns their handle.

    Teardown belongs to the workspace lifecycle owner, never to the sync engine.
    """

    def spawn(self, repo: str, toolchain: str) -> str:  # pragma: no cover
        ...


class HostingProvider(Protocol):
    """Git hosting REST API used for identity lookup and repository creation."""

    def get_user(self, token: str):  # pragma: no cover
        ...

    def create_repository(
        self,
        token: str,
        *,
        name: str,
        description: str | None = None,
        private: bool = False,
    ):  # pragma: no cover
        ...

    def list_repositories(self, token: str, *, page: int = 1, per_page: int = 50):  # pragma: no cover
        ...
