"""Per-workspace lease serializing imports and exports on the same workspace."""

from __future__ import annotations

import hashlib
import logging
import secrets
from contextlib import contextmanager
from typing import Iterator

from django.conf import settings
from django.core.cache import cache

from reposync.domain.errors import WorkspaceBusyError

logger = logging.getLogger(__name__)

LEASE_KEY_PREFIX = "reposync:workspace-lease:"


def lease_key(workspace_handle: str) -> str:
    digest = hashlib.sha256(workspace_handle.strip().encode("utf-8")).hexdigest()
    return f"{LEASE_KEY_PREFIX}{digest}"


@contextmanager
def workspace_lease(workspace_handle: str, *, timeout: int | None = None) -> Iterator[str]:
    """Hold the lease for ``workspace_handle`` or raise ``WorkspaceBusyError``.

    ``cache.add`` only writes when the key is absent, which makes acquisition
    atomic on shared backends such as Redis. The lease expires after
    ``timeout`` seconds so a crashed worker cannot hold it forever.
    """
    key = lease_key(workspace_handle)
    owner = secrets.token_hex(16)
    ttl = timeout if timeout is not None else settings.WORKSPACE_LEASE_TIMEOUT
    if not cache.add(key, owner, ttl):
        logger.info("Workspace lease busy", extra={"workspace": workspace_handle})
        raise WorkspaceBusyError(
            "Another import or export is already running for this workspace."
        )
    try:
        yield owner
    finally:
        # The lease may have expired and been taken by another owner.
        if cache.get(key) == owner:
            cache.delete(key)
