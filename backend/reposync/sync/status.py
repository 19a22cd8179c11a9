"""Read-only inspection of a workspace's git state."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, TypeVar
from urllib.parse import urlparse

from reposync.domain.errors import SyncError
from reposync.domain.models.workspace import WorkspaceStatus
from reposync.domain.providers.interfaces import CommandExecutor
from reposync.sync.credentials import DEFAULT_GITHUB_HOST

logger = logging.getLogger(__name__)

T = TypeVar("T")

_SCP_REMOTE = re.compile(r"^(?:[^@/]+@)?(?P<host>[^:/]+):(?P<path>[^/].*)$")


def parse_remote_full_name(url: str | None, host: str = DEFAULT_GITHUB_HOST) -> str | None:
    """Return ``owner/name`` for remotes on ``host``; ``None`` for anything else."""
    raw = (url or "").strip()
    if not raw:
        return None
    if "://" in raw:
        parsed = urlparse(raw)
        if parsed.scheme not in {"http", "https", "ssh", "git"}:
            return None
        remote_host = parsed.hostname or ""
        path = parsed.path
    else:
        match = _SCP_REMOTE.match(raw)
        if not match:
            return None
        remote_host = match.group("host")
        path = match.group("path")
    if remote_host.lower() != host.lower():
        return None
    path = path.strip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    parts = path.split("/")
    if len(parts) != 2 or not all(parts):
        return None
    return "/".join(parts)


def _lines(text: str) -> List[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


@dataclass
class StatusInspector:
    """Runs independent git probes; a failed probe leaves only its own field empty."""

    executor: CommandExecutor
    host: str = DEFAULT_GITHUB_HOST

    def inspect(self, workspace: str) -> WorkspaceStatus:
        if not self._probe(workspace, "work_tree", self._is_work_tree, False):
            return WorkspaceStatus.empty()
        remote_url = self._probe(workspace, "remote", self._remote_url, None)
        return WorkspaceStatus(
            is_git_repo=True,
            has_changes=self._probe(workspace, "changes", self._has_changes, False),
            branch=self._probe(workspace, "branch", self._branch, None),
            remote_url=remote_url,
            remote_full_name=parse_remote_full_name(remote_url, self.host),
            tracked_files=self._probe(workspace, "tracked_files", self._tracked_files, []),
        )

    def _probe(self, workspace: str, name: str, probe: Callable[[str], T], default: T) -> T:
        try:
            return probe(workspace)
        except (SyncError, ValueError) as exc:
            logger.warning(
                "Status probe failed",
                extra={"workspace": workspace, "probe": name, "error": str(exc)},
            )
        except Exception:  # noqa: BLE001
            logger.exception("Status probe crashed", extra={"workspace": workspace, "probe": name})
        return default

    def _git(self, workspace: str, *args: str):
        return self.executor.run(workspace, "git", list(args))

    def _is_work_tree(self, workspace: str) -> bool:
        result = self._git(workspace, "rev-parse", "--is-inside-work-tree")
        return result.exit_code == 0 and result.stdout.strip() == "true"

    def _has_changes(self, workspace: str) -> bool:
        result = self._git(workspace, "status", "--porcelain")
        if result.exit_code != 0:
            self._warn(workspace, "changes", result.exit_code)
            return False
        return bool(result.stdout.strip())

    def _branch(self, workspace: str) -> str | None:
        result = self._git(workspace, "symbolic-ref", "--short", "-q", "HEAD")
        if result.exit_code == 0 and result.stdout.strip():
            return result.stdout.strip()
        result = self._git(workspace, "rev-parse", "--abbrev-ref", "HEAD")
        if result.exit_code != 0:
            self._warn(workspace, "branch", result.exit_code)
            return None
        return result.stdout.strip() or None

    def _remote_url(self, workspace: str) -> str | None:
        result = self._git(workspace, "config", "--get", "remote.origin.url")
        if result.exit_code != 0:
            return None
        return result.stdout.strip() or None

    def _tracked_files(self, workspace: str) -> List[str]:
        result = self._git(workspace, "ls-files")
        if result.exit_code != 0:
            self._warn(workspace, "tracked_files", result.exit_code)
            return []
        return [path for path in _lines(result.stdout) if path != ".git" and not path.startswith(".git/")]

    def _warn(self, workspace: str, probe: str, exit_code: int) -> None:
        logger.warning(
            "Status probe exited non-zero",
            extra={"workspace": workspace, "probe": probe, "exit_code": exit_code},
        )
