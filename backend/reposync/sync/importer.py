"""Import pipeline: clone a hosted repository into a workspace, replacing its contents."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from reposync.domain.models.repository import (
    AuthorIdentity,
    Credential,
    Failed,
    ImportResult,
    Ok,
    RepositoryRef,
)
from reposync.domain.providers.interfaces import CommandExecutor, Provisioner
from reposync.infrastructure.workspaces.executor import (
    DEFAULT_WORKSPACE_DIR,
    ensure_success,
    shell_script,
)
from reposync.sync.credentials import DEFAULT_GITHUB_HOST, CredentialProvisioner
from reposync.sync.errors import classify_failure
from reposync.sync.validation import (
    require_repo_scope,
    validate_full_name,
    validate_optional_branch,
)

logger = logging.getLogger(__name__)

DEFAULT_IMPORT_DIR = "/tmp/github-import"
IMPORT_TOOLCHAIN = "git"

REPLACE_WORKSPACE_SCRIPT = shell_script(
    [
        "find \"$WORKSPACE_DIR\" -mindepth 1 -maxdepth 1 -exec rm -rf {} +",
        "cp -a \"$IMPORT_DIR/.\" \"$WORKSPACE_DIR/\"",
        "rm -rf \"$IMPORT_DIR\"",
    ]
)


@dataclass
class ImportPipeline:
    """Replaces a workspace's contents with a fresh clone of ``owner/name``.

    Without a workspace handle a new workspace is spawned through the
    provisioner first. The previous contents are only removed once the clone
    into the staging directory has succeeded.
    """

    executor: CommandExecutor
    provisioner: Provisioner
    credentials: CredentialProvisioner
    workdir: str = DEFAULT_WORKSPACE_DIR
    tmp_dir: str = DEFAULT_IMPORT_DIR
    host: str = DEFAULT_GITHUB_HOST

    def __call__(
        self,
        workspace_handle: str | None,
        repository_full_name: str,
        branch: str | None = None,
        *,
        credential: Credential,
        author: AuthorIdentity,
    ) -> Ok[ImportResult] | Failed:
        try:
            return Ok(
                self._run(
                    workspace_handle,
                    repository_full_name,
                    branch,
                    credential=credential,
                    author=author,
                )
            )
        except Exception as exc:  # noqa: BLE001
            outcome = classify_failure(exc)
            logger.warning(
                "Repository import failed",
                extra={
                    "workspace": workspace_handle,
                    "repository": repository_full_name,
                    "kind": outcome.kind,
                },
            )
            return outcome

    def _run(
        self,
        workspace_handle: str | None,
        repository_full_name: str,
        branch: str | None,
        *,
        credential: Credential,
        author: AuthorIdentity,
    ) -> ImportResult:
        full_name = validate_full_name(repository_full_name)
        requested_branch = validate_optional_branch(branch)
        require_repo_scope(credential)

        workspace = (workspace_handle or "").strip()
        if not workspace:
            workspace = self.provisioner.spawn(full_name, IMPORT_TOOLCHAIN)
            logger.info("Spawned workspace for import", extra={"workspace": workspace})

        self.credentials.provision(workspace, credential, author)

        remote_url = f"https://{self.host}/{full_name}.git"
        self._clone(workspace, remote_url, requested_branch)
        resolved_branch = self._current_branch(workspace) or requested_branch
        paths = self._tracked_files(workspace)
        logger.info(
            "Imported repository",
            extra={
                "workspace": workspace,
                "repository": full_name,
                "branch": resolved_branch,
                "files": len(paths),
            },
        )
        return ImportResult(
            workspace_handle=workspace,
            repository=RepositoryRef(full_name=full_name, remote_url=remote_url, branch=resolved_branch),
            branch=resolved_branch,
            paths=paths,
        )

    def _clone(self, workspace: str, remote_url: str, branch: str | None) -> None:
        ensure_success(self.executor.run(workspace, "rm", ["-rf", self.tmp_dir]))
        args: List[str] = ["clone"]
        if branch:
            args.extend(["--branch", branch])
        args.extend(["--", remote_url, self.tmp_dir])
        ensure_success(
            self.executor.run(workspace, "git", args, env={"GIT_TERMINAL_PROMPT": "0"})
        )
        ensure_success(
            self.executor.run(
                workspace,
                "sh",
                ["-c", REPLACE_WORKSPACE_SCRIPT],
                env={"IMPORT_DIR": self.tmp_dir, "WORKSPACE_DIR": self.workdir},
            )
        )

    def _current_branch(self, workspace: str) -> str | None:
        result = self.executor.run(workspace, "git", ["rev-parse", "--abbrev-ref", "HEAD"])
        if result.exit_code != 0:
            return None
        return result.stdout.strip() or None

    def _tracked_files(self, workspace: str) -> List[str]:
        result = ensure_success(self.executor.run(workspace, "git", ["ls-files"]))
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]
