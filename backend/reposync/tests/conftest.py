from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

import pytest

from reposync.domain.models.repository import AuthorIdentity, Credential
from reposync.domain.models.workspace import CommandResult
from reposync.infrastructure.vcs.github import CreatedRepository, GitHubUser, RepositoryPage
from reposync.sync.credentials import CREDENTIAL_SCRIPT, CredentialProvisioner
from reposync.sync.exporter import ExportPipeline
from reposync.sync.importer import REPLACE_WORKSPACE_SCRIPT, ImportPipeline
from reposync.sync.status import StatusInspector

GITHUB_PREFIX = "https://github.com/"
CLONED_HEAD = "1-clone"


def _full_name(url: str | None) -> str:
    return (url or "")[len(GITHUB_PREFIX):].removesuffix(".git")


@dataclass
class FakeRemote:
    files: Dict[str, str]
    default_branch: str = "main"
    branches: Set[str] = field(default_factory=set)
    heads: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.branches = set(self.branches) | {self.default_branch}
        for branch in self.branches:
            self.heads.setdefault(branch, CLONED_HEAD)


@dataclass
class FakeWorkspace:
    """In-memory stand-in for the filesystem and git state of one workspace."""

    files: Dict[str, str] = field(default_factory=dict)
    index: Dict[str, str] = field(default_factory=dict)
    committed: Dict[str, str] = field(default_factory=dict)
    is_repo: bool = False
    branch: Optional[str] = None
    branches: Set[str] = field(default_factory=set)
    remote_url: Optional[str] = None
    staging: Optional[dict] = None
    credentials: Optional[Dict[str, str]] = None
    commits: List[str] = field(default_factory=list)
    pushes: List[tuple] = field(default_factory=list)

    @property
    def head(self) -> Optional[str]:
        if not self.commits:
            return None
        return f"{len(self.commits)}-{self.commits[-1]}"

    @classmethod
    def clean_repository(cls, files: Dict[str, str], *, branch: str = "main", remote_url: str | None = None):
        return cls(
            files=dict(files),
            index=dict(files),
            committed=dict(files),
            is_repo=True,
            branch=branch,
            branches={branch},
            remote_url=remote_url,
            commits=["clone"],
        )


def _result(exit_code: int = 0, stdout: str = "", stderr: str = "") -> CommandResult:
    return CommandResult(exit_code=exit_code, stdout=stdout, stderr=stderr)


class FakeExecutor:
    """Command executor answering git and shell commands against ``FakeWorkspace`` state."""

    def __init__(self, remotes: Dict[str, FakeRemote] | None = None):
        self.remotes = remotes or {}
        self.workspaces: Dict[str, FakeWorkspace] = {}
        self.calls: List[dict] = []
        self.push_failures: List[str] = []

    def run(self, workspace, command, args=(), *, env=None, cwd=None):
        if not command or not command.strip():
            raise ValueError("command is required")
        args = list(args)
        self.calls.append({"workspace": workspace, "command": command, "args": args, "env": dict(env or {})})
        state = self.workspaces.setdefault(workspace, FakeWorkspace())
        if command == "sh":
            return self._shell(state, args, env or {})
        if command == "rm":
            state.staging = None
            return _result()
        if command == "git":
            return self._git(state, args)
        raise AssertionError(f"unexpected command {command} {args}")

    def argv(self, workspace: str | None = None) -> List[List[str]]:
        return [
            [call["command"], *call["args"]]
            for call in self.calls
            if workspace is None or call["workspace"] == workspace
        ]

    def git_subcommands(self) -> List[str]:
        return [call["args"][0] for call in self.calls if call["command"] == "git"]

    # shell scripts ---------------------------------------------------------

    def _shell(self, state: FakeWorkspace, args, env):
        script = args[1]
        if script == CREDENTIAL_SCRIPT:
            state.credentials = dict(env)
            return _result()
        if script == REPLACE_WORKSPACE_SCRIPT:
            staged = state.staging
            assert staged is not None, "replace script ran without a clone"
            state.files = dict(staged["files"])
            state.index = dict(staged["files"])
            state.committed = dict(staged["files"])
            state.is_repo = True
            state.branch = staged["branch"]
            state.branches = {staged["branch"]}
            state.remote_url = staged["remote_url"]
            state.commits = ["clone"]
            state.staging = None
            return _result()
        raise AssertionError(f"unexpected script {script}")

    # git -------------------------------------------------------------------

    def _git(self, state: FakeWorkspace, args):
        sub = args[0]
        if sub == "clone":
            return self._clone(state, args)
        if sub == "init":
            if not state.is_repo:
                state.is_repo = True
                state.branch = "main"
            return _result(stdout="Initialized empty Git repository\n")
        if not state.is_repo:
            return _result(128, stderr="fatal: not a git repository (or any of the parent directories): .git\n")
        handler = getattr(self, f"_git_{sub.replace('-', '_')}", None)
        if handler is None:
            raise AssertionError(f"unexpected git command {args}")
        return handler(state, args[1:])

    def _clone(self, state: FakeWorkspace, args):
        branch = None
        if "--branch" in args:
            branch = args[args.index("--branch") + 1]
        url = args[args.index("--") + 1]
        remote = self.remotes.get(_full_name(url))
        if remote is None:
            return _result(
                128,
                stderr=f"remote: Repository not found.\nfatal: repository '{url}/' not found\n",
            )
        if branch and branch not in remote.branches:
            return _result(128, stderr=f"fatal: Remote branch {branch} not found in upstream origin\n")
        state.staging = {
            "files": dict(remote.files),
            "branch": branch or remote.default_branch,
            "remote_url": url,
        }
        return _result(stderr="Cloning into '/tmp/github-import'...\n")

    def _git_rev_parse(self, state: FakeWorkspace, args):
        if args == ["--is-inside-work-tree"]:
            return _result(stdout="true\n")
        if args == ["--abbrev-ref", "HEAD"]:
            if not state.commits:
                return _result(128, stderr="fatal: ambiguous argument 'HEAD': unknown revision\n")
            return _result(stdout=f"{state.branch or 'HEAD'}\n")
        if args == ["--verify", "-q", "HEAD"]:
            if state.head is None:
                return _result(1)
            return _result(stdout=f"{state.head}\n")
        raise AssertionError(f"unexpected rev-parse {args}")

    def _git_symbolic_ref(self, state: FakeWorkspace, args):
        if state.branch:
            return _result(stdout=f"{state.branch}\n")
        return _result(1)

    def _git_status(self, state: FakeWorkspace, args):
        paths = sorted(set(state.files) | set(state.index) | set(state.committed))
        lines = []
        for path in paths:
            if state.files.get(path) != state.committed.get(path) or state.index.get(path) != state.committed.get(path):
                lines.append(f" M {path}")
        return _result(stdout="\n".join(lines) + ("\n" if lines else ""))

    def _git_config(self, state: FakeWorkspace, args):
        if args == ["--get", "remote.origin.url"]:
            if state.remote_url:
                return _result(stdout=f"{state.remote_url}\n")
            return _result(1)
        raise AssertionError(f"unexpected config {args}")

    def _git_ls_files(self, state: FakeWorkspace, args):
        return _result(stdout="".join(f"{path}\n" for path in sorted(state.index)))

    def _git_remote(self, state: FakeWorkspace, args):
        if args[:2] == ["remove", "origin"]:
            if state.remote_url is None:
                return _result(2, stderr="error: No such remote: 'origin'\n")
            state.remote_url = None
            return _result()
        if args[:2] == ["add", "origin"]:
            if state.remote_url is not None:
                return _result(3, stderr="error: remote origin already exists.\n")
            state.remote_url = args[2]
            return _result()
        raise AssertionError(f"unexpected remote {args}")

    def _git_add(self, state: FakeWorkspace, args):
        state.index = dict(state.files)
        return _result()

    def _git_diff(self, state: FakeWorkspace, args):
        return _result(0 if state.index == state.committed else 1)

    def _git_commit(self, state: FakeWorkspace, args):
        if state.index == state.committed:
            return _result(1, stdout="On branch main\nnothing to commit, working tree clean\n")
        state.committed = dict(state.index)
        state.commits.append(args[1])
        if state.branch:
            state.branches.add(state.branch)
        return _result(stdout=f"[{state.branch} abc1234] {args[1]}\n")

    def _git_branch(self, state: FakeWorkspace, args):
        if args == ["--show-current"]:
            return _result(stdout=f"{state.branch}\n" if state.branch else "\n")
        raise AssertionError(f"unexpected branch {args}")

    def _git_checkout(self, state: FakeWorkspace, args):
        if args[0] == "-B":
            state.branch = args[1]
            state.branches.add(args[1])
            return _result()
        if args[0] == "-b":
            if args[1] in state.branches:
                return _result(128, stderr=f"fatal: a branch named '{args[1]}' already exists\n")
            state.branch = args[1]
            state.branches.add(args[1])
            return _result()
        if args[0] in state.branches:
            state.branch = args[0]
            return _result()
        return _result(1, stderr=f"error: pathspec '{args[0]}' did not match any file(s) known to git\n")

    def _git_ls_remote(self, state: FakeWorkspace, args):
        remote = self.remotes.get(_full_name(state.remote_url))
        ref = args[-1]
        branch = ref[len("refs/heads/"):]
        if remote is None or branch not in remote.heads:
            return _result()
        return _result(stdout=f"{remote.heads[branch]}\t{ref}\n")

    def _git_push(self, state: FakeWorkspace, args):
        if self.push_failures:
            return _result(128, stderr=self.push_failures.pop(0))
        branch = args[-1]
        state.pushes.append((state.remote_url, branch))
        full_name = _full_name(state.remote_url)
        remote = self.remotes.get(full_name)
        if remote is None:
            remote = self.remotes[full_name] = FakeRemote(files=dict(state.committed), default_branch=branch)
        remote.branches.add(branch)
        remote.heads[branch] = state.head
        return _result()


class StubProvisioner:
    def __init__(self, handle: str = "docker://workspace-octo-demo-git-abc123"):
        self.handle = handle
        self.spawned: List[tuple] = []

    def spawn(self, repo: str, toolchain: str) -> str:
        self.spawned.append((repo, toolchain))
        return self.handle


class StubHosting:
    def __init__(
        self,
        *,
        login: str = "octocat",
        name: str | None = "The Octocat",
        email: str | None = None,
        scopes: List[str] | None = None,
        default_branch: str | None = "main",
    ):
        self.user = GitHubUser(login=login, name=name, email=email, scopes=scopes or ["repo", "read:user"])
        self.default_branch = default_branch
        self.created: List[dict] = []
        self.pages: List[RepositoryPage] = []

    def get_user(self, token: str) -> GitHubUser:
        return self.user

    def create_repository(self, token: str, *, name: str, description=None, private=False) -> CreatedRepository:
        self.created.append({"name": name, "description": description, "private": private})
        full_name = f"{self.user.login}/{name}"
        return CreatedRepository(
            full_name=full_name,
            clone_url=f"https://github.com/{full_name}.git",
            html_url=f"https://github.com/{full_name}",
            default_branch=self.default_branch,
        )

    def list_repositories(self, token: str, *, page: int = 1, per_page: int = 50) -> RepositoryPage:
        return RepositoryPage(
            page=page,
            per_page=per_page,
            has_more=False,
            repositories=[],
            scopes=list(self.user.scopes),
        )


@pytest.fixture
def remotes():
    return {
        "octo/demo": FakeRemote(
            files={"README.md": "# demo\n", "src/app.py": "print('demo')\n"},
            branches={"develop"},
        ),
        "octo/other": FakeRemote(files={"other.txt": "other\n"}, default_branch="trunk"),
    }


@pytest.fixture
def executor(remotes):
    return FakeExecutor(remotes)


@pytest.fixture
def provisioner():
    return StubProvisioner()


@pytest.fixture
def hosting():
    return StubHosting()


@pytest.fixture
def credential():
    return Credential(access_token="gho_test_token", scopes=frozenset({"repo", "read:user"}))


@pytest.fixture
def author():
    return AuthorIdentity.from_profile("octocat", "The Octocat", None)


@pytest.fixture
def credentials_provisioner(executor):
    return CredentialProvisioner(executor=executor)


@pytest.fixture
def import_pipeline(executor, provisioner, credentials_provisioner):
    return ImportPipeline(executor=executor, provisioner=provisioner, credentials=credentials_provisioner)


@pytest.fixture
def export_pipeline(executor, hosting, credentials_provisioner):
    return ExportPipeline(executor=executor, hosting=hosting, credentials=credentials_provisioner)


@pytest.fixture
def inspector(executor):
    return StatusInspector(executor=executor)
