"""Local Docker provisioner used to start fresh workspaces for imports."""

from __future__ import annotations

import logging
import os
import re
import secrets
import subprocess
from dataclasses import dataclass, field

from reposync.domain.providers.interfaces import Provisioner
from reposync.infrastructure.provisioners import WorkspaceProvisioningError
from reposync.infrastructure.workspaces.executor import DEFAULT_WORKSPACE_DIR, CommandRunner

logger = logging.getLogger(__name__)


@dataclass
class DockerProvisioner(Provisioner):
    name: str = "docker"
    image: str = "reposync/workspace:latest"
    workspace_path: str = DEFAULT_WORKSPACE_DIR
    network: str | None = None
    runner: CommandRunner = field(default_factory=CommandRunner)

    def spawn(self, repo: str, toolchain: str) -> str:
        suffix = secrets.token_hex(3)
        container_name = self._sanitize(f"workspace-{repo}-{toolchain}-{suffix}")
        self.runner.run(["docker", "rm", "-f", container_name], allow_failure=True)
        command = [
            "docker",
            "run",
            "-d",
            "--name",
            container_name,
            *(["--network", self.network] if self.network else []),
            "--label",
            "reposync.workspace=1",
            self.image,
            "sleep",
            "infinity",
        ]
        try:
            self.runner.run(command)
            self.runner.run(["docker", "exec", container_name, "mkdir", "-p", self.workspace_path])
        except subprocess.CalledProcessError as exc:
            self.runner.run(["docker", "rm", "-f", container_name], allow_failure=True)
            summary = (exc.stderr or exc.output or "").strip() or "Docker workspace startup failed"
            raise WorkspaceProvisioningError(
                f"Failed to start workspace container {container_name}: {summary}"
            ) from exc
        logger.info("Started workspace container", extra={"container": container_name, "image": self.image})
        return f"docker://{container_name}"

    def _sanitize(self, value: str) -> str:
        sanitized = re.sub(r"[^a-zA-Z0-9_.-]+", "-", value).strip("-")
        if not sanitized:
            sanitized = "workspace"
        return sanitized.lower()


def from_env(*, image: str | None = None, workspace_path: str | None = None) -> DockerProvisioner:
    return DockerProvisioner(
        image=image or os.getenv("WORKSPACE_IMAGE", "reposync/workspace:latest"),
        workspace_path=workspace_path or os.getenv("WORKSPACE_DIR", DEFAULT_WORKSPACE_DIR),
        network=os.getenv("WORKSPACE_NETWORK") or None,
    )
