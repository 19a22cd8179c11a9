"""Installs hosting-provider credentials and the git author identity in a workspace."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Tuple

from reposync.domain.models.repository import AuthorIdentity, Credential
from reposync.domain.providers.interfaces import CommandExecutor, HostingProvider
from reposync.infrastructure.workspaces.executor import ensure_success, shell_script

logger = logging.getLogger(__name__)

DEFAULT_GITHUB_HOST = "github.com"

CREDENTIAL_SCRIPT = shell_script(
    [
        "git config --global credential.helper store",
        "printf 'https://x-access-token:%s@%s\\n' \"$GITHUB_TOKEN\" \"$GIT_CREDENTIAL_HOST\""
        " > \"$HOME/.git-credentials\"",
        "chmod 600 \"$HOME/.git-credentials\"",
        "git config --global user.name \"$GIT_AUTHOR_NAME\"",
        "git config --global user.email \"$GIT_AUTHOR_EMAIL\"",
    ]
)


@dataclass
class CredentialProvisioner:
    executor: CommandExecutor
    host: str = DEFAULT_GITHUB_HOST

    def provision(self, workspace: str, credential: Credential, author: AuthorIdentity) -> None:
        """Write the credential store and git identity; rerunning overwrites both."""
        env = {
            "GITHUB_TOKEN": credential.access_token,
            "GIT_AUTHOR_NAME": author.name,
            "GIT_AUTHOR_EMAIL": author.email,
            "GIT_CREDENTIAL_HOST": self.host,
        }
        ensure_success(self.executor.run(workspace, "sh", ["-c", CREDENTIAL_SCRIPT], env=env))
        logger.info(
            "Provisioned git credentials",
            extra={"workspace": workspace, "login": author.login},
        )


def resolve_session_identity(
    client: HostingProvider,
    access_token: str,
    refresh_token: str | None = None,
) -> Tuple[Credential, AuthorIdentity]:
    user = client.get_user(access_token)
    credential = Credential(
        access_token=access_token,
        refresh_token=refresh_token,
        scopes=frozenset(user.scopes),
    )
    return credential, AuthorIdentity.from_profile(user.login, user.name, user.email)
