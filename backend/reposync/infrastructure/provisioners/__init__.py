from reposync.domain.errors import WorkspaceUnavailableError


class WorkspaceProvisioningError(WorkspaceUnavailableError):
    """Raised when a workspace cannot be created or becomes unhealthy."""


__all__ = ["WorkspaceProvisioningError"]
