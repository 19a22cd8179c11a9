"""Application bootstrap: dependency container and pipeline factories."""

from __future__ import annotations

from django.conf import settings

from reposync.infrastructure.provisioners import docker, k8s
from reposync.infrastructure.vcs import github
from reposync.infrastructure.workspaces import executor
from reposync.interfaces.providers.registry import Container
from reposync.sync.credentials import CredentialProvisioner
from reposync.sync.exporter import ExportPipeline
from reposync.sync.importer import ImportPipeline
from reposync.sync.status import StatusInspector

container = Container()
container.provisioners.register(
    "docker",
    lambda: docker.from_env(image=settings.WORKSPACE_IMAGE, workspace_path=settings.WORKSPACE_DIR),
)
container.provisioners.register(
    "k8s",
    lambda: k8s.from_env(image=settings.WORKSPACE_IMAGE, volume_mount_path=settings.WORKSPACE_DIR),
)
container.executors.register("container", lambda: executor.from_env(workdir=settings.WORKSPACE_DIR))
container.hosting.register(
    "github",
    lambda: github.from_env(base_url=settings.GITHUB_API_URL, timeout=settings.GITHUB_TIMEOUT),
)


def _credentials() -> CredentialProvisioner:
    return CredentialProvisioner(executor=container.resolve_executor(), host=settings.GITHUB_HOST)


def build_import_pipeline() -> ImportPipeline:
    return ImportPipeline(
        executor=container.resolve_executor(),
        provisioner=container.resolve_provisioner(),
        credentials=_credentials(),
        workdir=settings.WORKSPACE_DIR,
        tmp_dir=settings.IMPORT_TMP_DIR,
        host=settings.GITHUB_HOST,
    )


def build_export_pipeline() -> ExportPipeline:
    return ExportPipeline(
        executor=container.resolve_executor(),
        hosting=container.resolve_hosting(),
        credentials=_credentials(),
        host=settings.GITHUB_HOST,
    )


def build_status_inspector() -> StatusInspector:
    return StatusInspector(executor=container.resolve_executor(), host=settings.GITHUB_HOST)
