"""Command execution inside provisioned workspaces over docker/kubectl exec."""

from __future__ import annotations

import logging
import os
import re
import shlex
import subprocess
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Sequence

from reposync.domain.errors import CommandFailedError, WorkspaceUnavailableError
from reposync.domain.models.workspace import DOCKER_MODE, CommandResult, WorkspaceRef

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Command failed inside the workspace."
DEFAULT_WORKSPACE_DIR = "/workspace"

# kubectl has no --workdir flag; this literal script changes into "$1" and
# execs the remaining positional arguments untouched.
_K8S_CD_EXEC = 'cd "$1" && shift && exec "$@"'

# kubectl exec cannot forward local environment variables. Variable names
# arrive as positional arguments up to "--" and their values are read from
# stdin, one line each, so secrets never appear on a command line.
_K8S_ENV_CD_EXEC = (
    'cd "$1" && shift && '
    'while [ "$1" != "--" ]; do IFS= read -r _value || exit 1; export "$1=$_value"; shift; done'
    ' && shift && unset _value && exec "$@"'
)
_ENV_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_TRANSPORT_FAILURE_PATTERNS = [
    r"error response from daemon: no such container",
    r"error response from daemon: container .+ is not running",
    r"cannot connect to the docker daemon",
    r"error from server \(notfound\): pods? \"[^\"]+\" not found",
    r"unable to upgrade connection",
    r"container not found",
]


def _redact(text: str, secrets: Iterable[str]) -> str:
    for secret in secrets:
        if secret:
            text = text.replace(secret, "****")
    return text


@dataclass
class CommandRunner:
    """Utility for executing local client commands (docker, kubectl)."""

    def run(
        self,
        command: Iterable[str],
        *,
        env: Mapping[str, str] | None = None,
        redact: Sequence[str] = (),
        allow_failure: bool = False,
        input: str | None = None,
    ) -> CommandResult:
        args = list(command)
        rendered = _redact(" ".join(shlex.quote(arg) for arg in args), redact)
        logger.debug("Executing command", extra={"command": rendered})
        process_env = os.environ.copy()
        if env:
            process_env.update(env)
        try:
            if input is None:
                process = subprocess.run(
                    args,
                    env=process_env,
                    stdin=subprocess.DEVNULL,
                    capture_output=True,
                    text=True,
                )
            else:
                process = subprocess.run(
                    args,
                    env=process_env,
                    input=input,
                    capture_output=True,
                    text=True,
                )
        except OSError as exc:
            raise WorkspaceUnavailableError(f"Unable to launch {args[0]}: {exc}") from exc
        if process.returncode != 0 and not allow_failure:
            logger.error(
                "Command failed",
                extra={
                    "command": rendered,
                    "exit_code": process.returncode,
                    "stderr": _redact(process.stderr or "", redact)[:500],
                },
            )
            raise subprocess.CalledProcessError(
                process.returncode, args, output=process.stdout, stderr=process.stderr
            )
        logger.debug(
            "Command completed",
            extra={"command": rendered, "exit_code": process.returncode},
        )
        return CommandResult(
            exit_code=process.returncode,
            stdout=process.stdout or "",
            stderr=process.stderr or "",
        )


@dataclass
class ContainerCommandExecutor:
    """Runs argv commands inside docker containers or Kubernetes pods.

    Environment values never appear on the docker command line: ``-e NAME``
    without a value makes the docker client copy the variable from its own
    process environment, which the runner populates per call. Kubernetes pods
    receive the values on stdin and bind them before exec, so values are
    limited to a single line.
    """

    runner: CommandRunner = field(default_factory=CommandRunner)
    workdir: str = DEFAULT_WORKSPACE_DIR

    def run(
        self,
        workspace: str,
        command: str,
        args: Sequence[str] = (),
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> CommandResult:
        if not command or not command.strip():
            raise ValueError("command is required")
        ref = WorkspaceRef.parse(workspace)
        variables: Dict[str, str] = {key: str(value) for key, value in (env or {}).items()}
        for name, value in variables.items():
            if not _ENV_NAME.match(name):
                raise ValueError(f"Invalid environment variable name: {name!r}")
            if "\n" in value or "\r" in value:
                raise ValueError(f"Environment variable {name} must be a single line")
        argv = [command, *(str(arg) for arg in args)]
        wrapped = self._wrap_exec(ref, argv, env=variables, cwd=cwd or self.workdir)
        if ref.mode == DOCKER_MODE:
            result = self.runner.run(
                wrapped,
                env=variables,
                redact=list(variables.values()),
                allow_failure=True,
            )
        else:
            stdin = "".join(f"{value}\n" for value in variables.values())
            result = self.runner.run(
                wrapped,
                redact=list(variables.values()),
                allow_failure=True,
                input=stdin or None,
            )
        if result.exit_code != 0:
            self._raise_for_transport(ref, result)
        return result

    def _wrap_exec(
        self,
        ref: WorkspaceRef,
        argv: List[str],
        *,
        env: Mapping[str, str],
        cwd: str,
    ) -> List[str]:
        if ref.mode == DOCKER_MODE:
            command = ["docker", "exec", "-w", cwd]
            for name in env:
                command.extend(["-e", name])
            command.append(ref.identifier)
            return [*command, *argv]
        namespace, pod = ref.split_k8s_identifier()
        command = ["kubectl", "exec"]
        if env:
            command.append("-i")
        if namespace:
            command.extend(["-n", namespace])
        command.extend([pod, "--"])
        if env:
            return [*command, "sh", "-c", _K8S_ENV_CD_EXEC, "sh", cwd, *env, "--", *argv]
        return [*command, "sh", "-c", _K8S_CD_EXEC, "sh", cwd, *argv]

    def _raise_for_transport(self, ref: WorkspaceRef, result: CommandResult) -> None:
        text = (result.stderr or "").strip().lower()
        if any(re.search(pattern, text) for pattern in _TRANSPORT_FAILURE_PATTERNS):
            logger.warning(
                "Workspace unreachable",
                extra={"workspace": ref.handle, "exit_code": result.exit_code},
            )
            raise WorkspaceUnavailableError(
                f"Workspace {ref.handle} is not reachable: {(result.stderr or '').strip()}"
            )


def ensure_success(call: CommandResult | Callable[[], CommandResult]) -> CommandResult:
    """Return the command result, raising ``CommandFailedError`` on a non-zero exit."""
    result = call() if callable(call) else call
    if result.exit_code != 0:
        stderr = (result.stderr or "").strip()
        raise CommandFailedError(
            stderr or GENERIC_FAILURE_MESSAGE,
            exit_code=result.exit_code,
            stderr=stderr,
        )
    return result


def shell_script(lines: Sequence[str]) -> str:
    """Join trusted, literal shell lines; values must come in through env vars."""
    return " && ".join(lines)


def from_env(*, workdir: str | None = None) -> ContainerCommandExecutor:
    return ContainerCommandExecutor(workdir=workdir or os.getenv("WORKSPACE_DIR", DEFAULT_WORKSPACE_DIR))
