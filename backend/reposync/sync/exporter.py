"""Export pipeline: commit workspace changes and push them to a hosted repository."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from reposync.domain.errors import CommandFailedError
from reposync.domain.models.repository import (
    AuthorIdentity,
    Credential,
    ExportRequest,
    ExportResult,
    Failed,
    NewRepositorySpec,
    NoOp,
    Ok,
)
from reposync.domain.providers.interfaces import CommandExecutor, HostingProvider
from reposync.infrastructure.workspaces.executor import GENERIC_FAILURE_MESSAGE, ensure_success
from reposync.sync.credentials import DEFAULT_GITHUB_HOST, CredentialProvisioner
from reposync.sync.errors import classify_failure
from reposync.sync.validation import require_repo_scope, validate_export_request

logger = logging.getLogger(__name__)

NOTHING_TO_COMMIT = "Nothing to commit."
FALLBACK_BRANCH = "main"


class _NothingToCommit(Exception):
    pass


@dataclass
class ExportPipeline:
    executor: CommandExecutor
    hosting: HostingProvider
    credentials: CredentialProvisioner
    host: str = DEFAULT_GITHUB_HOST

    def __call__(
        self,
        request: ExportRequest,
        *,
        credential: Credential,
        author: AuthorIdentity,
    ) -> Ok[ExportResult] | NoOp | Failed:
        target: ExportResult | None = None
        try:
            request = validate_export_request(request)
            require_repo_scope(credential)
            workspace = request.workspace_handle
            self.credentials.provision(workspace, credential, author)
            target = self._resolve_target(request, credential, author)
            self._prepare_repository(workspace, target.remote_url)
            self._commit(workspace, request.commit_message, target.branch, credential)
            self._checkout(workspace, target.branch)
            self._push(workspace, target.branch, credential)
        except _NothingToCommit:
            logger.info(
                "Export skipped, nothing to commit",
                extra={"workspace": request.workspace_handle},
            )
            return NoOp(NOTHING_TO_COMMIT, value=target)
        except Exception as exc:  # noqa: BLE001
            outcome = classify_failure(exc)
            logger.warning(
                "Repository export failed",
                extra={"workspace": request.workspace_handle, "kind": outcome.kind},
            )
            return outcome
        logger.info(
            "Exported workspace",
            extra={
                "workspace": request.workspace_handle,
                "repository": target.repository_full_name,
                "branch": target.branch,
            },
        )
        return Ok(target)

    # steps ----------------------------------------------------------------

    def _resolve_target(
        self,
        request: ExportRequest,
        credential: Credential,
        author: AuthorIdentity,
    ) -> ExportResult:
        repository = request.repository
        if isinstance(repository, NewRepositorySpec):
            created = self.hosting.create_repository(
                credential.access_token,
                name=repository.name,
                description=repository.description,
                private=repository.private,
            )
            full_name = f"{author.login}/{repository.name}"
            branch = (
                repository.default_branch
                or request.branch
                or created.default_branch
                or FALLBACK_BRANCH
            )
            remote_url = created.clone_url or self._default_remote(full_name)
            return ExportResult(repository_full_name=full_name, branch=branch, remote_url=remote_url)
        return ExportResult(
            repository_full_name=repository.full_name,
            branch=request.branch or FALLBACK_BRANCH,
            remote_url=repository.remote_url or self._default_remote(repository.full_name),
        )

    def _default_remote(self, full_name: str) -> str:
        return f"https://{self.host}/{full_name}.git"

    def _prepare_repository(self, workspace: str, remote_url: str) -> None:
        probe = self._git(workspace, "rev-parse", "--is-inside-work-tree")
        if probe.exit_code != 0:
            ensure_success(self._git(workspace, "init"))
        self._git(workspace, "remote", "remove", "origin")
        ensure_success(self._git(workspace, "remote", "add", "origin", remote_url))
        ensure_success(self._git(workspace, "add", "--all"))

    def _commit(self, workspace: str, message: str, branch: str, credential: Credential) -> None:
        if self._git(workspace, "diff", "--cached", "--quiet").exit_code == 0:
            self._skip_commit(workspace, branch, credential)
            return
        result = self.executor.run(workspace, "git", ["commit", "-m", message], env={"LC_ALL": "C"})
        if result.exit_code == 0:
            return
        if "nothing to commit" in result.stderr.lower() or "nothing to commit" in result.stdout.lower():
            self._skip_commit(workspace, branch, credential)
            return
        stderr = result.stderr.strip()
        raise CommandFailedError(
            stderr or result.stdout.strip() or GENERIC_FAILURE_MESSAGE,
            exit_code=result.exit_code,
            stderr=stderr,
        )

    def _skip_commit(self, workspace: str, branch: str, credential: Credential) -> None:
        """Raise ``_NothingToCommit`` unless HEAD still has to reach the remote branch.

        A previous export may have committed and then failed to push; that
        commit is pushed now instead of reporting a no-op.
        """
        head = self._git(workspace, "rev-parse", "--verify", "-q", "HEAD")
        local = head.stdout.strip() if head.exit_code == 0 else ""
        if not local:
            raise _NothingToCommit()
        listing = ensure_success(
            self.executor.run(
                workspace,
                "git",
                ["ls-remote", "origin", f"refs/heads/{branch}"],
                env=self._remote_env(credential),
            )
        )
        published = listing.stdout.split()
        if published and published[0] == local:
            raise _NothingToCommit()
        logger.info(
            "Nothing staged, pushing unpublished commits",
            extra={"workspace": workspace, "branch": branch},
        )

    def _checkout(self, workspace: str, branch: str) -> None:
        result = self._git(workspace, "branch", "--show-current")
        current = result.stdout.strip() if result.exit_code == 0 else ""
        if not current:
            ensure_success(self._git(workspace, "checkout", "-B", branch))
            return
        if current == branch:
            return
        if self._git(workspace, "checkout", branch).exit_code != 0:
            ensure_success(self._git(workspace, "checkout", "-b", branch))

    def _push(self, workspace: str, branch: str, credential: Credential) -> None:
        ensure_success(
            self.executor.run(
                workspace,
                "git",
                ["push", "-u", "origin", branch],
                env=self._remote_env(credential),
            )
        )

    @staticmethod
    def _remote_env(credential: Credential) -> dict:
        return {"GITHUB_TOKEN": credential.access_token, "GIT_TERMINAL_PROMPT": "0"}

    def _git(self, workspace: str, *args: str):
        return self.executor.run(workspace, "git", list(args))
