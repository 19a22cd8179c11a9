"""Domain-level workspace abstractions describing ephemeral execution environments."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Tuple

OutputSource = str | Callable[[], str]

DOCKER_MODE = "docker"
K8S_MODE = "k8s"


class CommandResult:
    """Outcome of a command executed inside a workspace.

    ``stdout`` and ``stderr`` may be handed over as loaders; they are fetched on
    first access only, so success paths that just look at ``exit_code`` never
    pay for transferring output.
    """

    __slots__ = ("exit_code", "_stdout", "_stderr")

    def __init__(self, exit_code: int, stdout: OutputSource = "", stderr: OutputSource = "") -> None:
        self.exit_code = int(exit_code)
        self._stdout = stdout
        self._stderr = stderr

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def stdout(self) -> str:
        if callable(self._stdout):
            self._stdout = self._stdout() or ""
        return self._stdout

    @property
    def stderr(self) -> str:
        if callable(self._stderr):
            self._stderr = self._stderr() or ""
        return self._stderr

    def __repr__(self) -> str:
        return f"CommandResult(exit_code={self.exit_code})"


@dataclass(slots=True, frozen=True)
class WorkspaceRef:
    """Parsed form of an opaque workspace handle such as ``docker://name``."""

    handle: str
    mode: str
    identifier: str

    @classmethod
    def parse(cls, handle: str) -> "WorkspaceRef":
        raw = (handle or "").strip()
        if not raw:
            raise ValueError("workspace handle is required")
        if "://" in raw:
            mode, identifier = raw.split("://", 1)
        else:
            mode, identifier = DOCKER_MODE, raw
        mode = mode.lower()
        if mode == "kubernetes":
            mode = K8S_MODE
        if mode not in {DOCKER_MODE, K8S_MODE} or not identifier.strip("/"):
            raise ValueError(f"Unsupported workspace handle {handle!r}")
        return cls(handle=raw, mode=mode, identifier=identifier)

    def split_k8s_identifier(self) -> Tuple[str | None, str]:
        if "/" in self.identifier:
            namespace, pod = self.identifier.split("/", 1)
            return (namespace or None, pod)
        return None, self.identifier


@dataclass(slots=True)
class WorkspaceStatus:
    """Git state of a workspace as observed by the status inspector."""

    is_git_repo: bool = False
    has_changes: bool = False
    branch: str | None = None
    remote_url: str | None = None
    remote_full_name: str | None = None
    tracked_files: List[str] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "WorkspaceStatus":
        return cls()

    def as_dict(self) -> dict[str, object]:
        return {
            "isGitRepo": self.is_git_repo,
            "hasChanges": self.has_changes,
            "branch": self.branch,
            "remoteUrl": self.remote_url,
            "remoteFullName": self.remote_full_name,
            "trackedFiles": list(self.tracked_files),
        }
