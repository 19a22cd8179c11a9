from __future__ import annotations

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.urls import reverse
from rest_framework.test import APIClient

from reposync.bootstrap import container
from reposync.infrastructure.vcs.github import GitHubAPIError, RepositoryPage, RepositorySummary
from reposync.integrations.models import HostingIdentity
from reposync.sync.locks import workspace_lease

from .conftest import FakeExecutor, FakeRemote, FakeWorkspace, StubHosting, StubProvisioner

pytestmark = pytest.mark.django_db

HANDLE = "docker://workspace-1"


@pytest.fixture
def user():
    return get_user_model().objects.create_user(username="operator", password="s3cretpass")


@pytest.fixture
def identity(user):
    return HostingIdentity.objects.create(user=user, login="octocat", access_token="gho_view_token")


@pytest.fixture
def api_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def fake_executor():
    return FakeExecutor({"octo/demo": FakeRemote(files={"README.md": "# demo\n"})})


@pytest.fixture
def fake_hosting():
    return StubHosting(login="octocat")


@pytest.fixture(autouse=True)
def providers(fake_executor, fake_hosting):
    registries = (container.executors, container.hosting, container.provisioners)
    saved = [(registry, dict(registry.factory_map), dict(registry._cache)) for registry in registries]
    container.executors.override("container", lambda: fake_executor)
    container.hosting.override("github", lambda: fake_hosting)
    container.provisioners.override("docker", StubProvisioner)
    cache.clear()
    yield
    for registry, factory_map, cached in saved:
        registry.factory_map.clear()
        registry.factory_map.update(factory_map)
        registry._cache.clear()
        registry._cache.update(cached)
    cache.clear()


def test_import_requires_authentication():
    response = APIClient().post(reverse("github-import"), {"repository": "octo/demo"}, format="json")
    assert response.status_code == 401
    assert response.json()["kind"] == "not-authenticated"


def test_import_requires_connected_github_account(api_client):
    response = api_client.post(reverse("github-import"), {"repository": "octo/demo"}, format="json")
    assert response.status_code == 403
    assert response.json()["kind"] == "github-not-connected"


def test_import_requires_access_token(api_client, identity):
    identity.access_token = ""
    identity.save(update_fields=["access_token"])
    response = api_client.post(reverse("github-import"), {"repository": "octo/demo"}, format="json")
    assert response.status_code == 403
    assert response.json()["kind"] == "missing-access-token"


def test_import_into_existing_workspace(api_client, identity, fake_executor):
    response = api_client.post(
        reverse("github-import"),
        {"workspaceHandle": HANDLE, "repository": "octo/demo"},
        format="json",
    )

    assert response.status_code == 200
    assert response.json() == {
        "workspaceHandle": HANDLE,
        "repository": {"fullName": "octo/demo", "remoteUrl": "https://github.com/octo/demo.git"},
        "branch": "main",
        "paths": ["README.md"],
    }
    assert fake_executor.calls[0]["env"]["GITHUB_TOKEN"] == "gho_view_token"


def test_import_rejects_invalid_repository(api_client, identity, fake_executor):
    response = api_client.post(
        reverse("github-import"),
        {"workspaceHandle": HANDLE, "repository": "not a repo"},
        format="json",
    )
    assert response.status_code == 400
    assert response.json()["kind"] == "validation"
    assert fake_executor.calls == []


def test_import_missing_repository_field_is_400(api_client, identity):
    response = api_client.post(reverse("github-import"), {}, format="json")
    assert response.status_code == 400
    assert response.json()["error"].startswith("repository")


def test_import_reports_missing_repository_as_404(api_client, identity):
    response = api_client.post(
        reverse("github-import"),
        {"workspaceHandle": HANDLE, "repository": "octo/missing"},
        format="json",
    )
    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"


def test_import_rejects_token_without_repo_scope(api_client, identity, fake_hosting, fake_executor):
    fake_hosting.user.scopes = ["read:user"]
    response = api_client.post(
        reverse("github-import"),
        {"workspaceHandle": HANDLE, "repository": "octo/demo"},
        format="json",
    )
    assert response.status_code == 403
    assert response.json()["kind"] == "authorization"
    assert fake_executor.calls == []


def test_bad_credentials_from_github_are_401(api_client, identity, fake_hosting):
    def _reject(token):
        raise GitHubAPIError(401, "https://api.github.com/user", "Bad credentials")

    fake_hosting.get_user = _reject
    response = api_client.post(reverse("github-import"), {"repository": "octo/demo"}, format="json")
    assert response.status_code == 401
    assert response.json() == {"error": "Bad credentials", "kind": "authentication"}


def test_malformed_body_is_rejected_before_github_lookup(api_client, identity, fake_hosting):
    lookups = []

    def _get_user(token):
        lookups.append(token)
        raise GitHubAPIError(401, "https://api.github.com/user", "Bad credentials")

    fake_hosting.get_user = _get_user
    for name, body in (
        ("github-import", {"workspaceHandle": HANDLE}),
        ("github-export", {"workspaceHandle": HANDLE, "mode": "existing"}),
    ):
        response = api_client.post(reverse(name), body, format="json")
        assert response.status_code == 400
        assert response.json()["kind"] == "validation"
    assert lookups == []


def test_export_noop_and_ok(api_client, identity, fake_executor):
    fake_executor.workspaces[HANDLE] = FakeWorkspace.clean_repository(
        {"README.md": "# demo\n"}, remote_url="https://github.com/octo/demo.git"
    )
    payload = {
        "workspaceHandle": HANDLE,
        "commitMessage": "Update readme",
        "mode": "existing",
        "branch": "main",
        "repository": {"fullName": "octo/demo"},
    }

    noop = api_client.post(reverse("github-export"), payload, format="json")
    assert noop.status_code == 200
    assert noop.json() == {
        "status": "noop",
        "message": "Nothing to commit.",
        "repository": "octo/demo",
        "branch": "main",
        "remoteUrl": "https://github.com/octo/demo.git",
    }

    fake_executor.workspaces[HANDLE].files["README.md"] = "# demo v2\n"
    ok = api_client.post(reverse("github-export"), payload, format="json")
    assert ok.status_code == 200
    assert ok.json()["status"] == "ok"
    assert fake_executor.workspaces[HANDLE].pushes == [("https://github.com/octo/demo.git", "main")]

    again = api_client.post(reverse("github-export"), payload, format="json")
    assert again.status_code == 200
    assert again.json()["status"] == "noop"
    assert fake_executor.workspaces[HANDLE].commits == ["clone", "Update readme"]
    assert fake_executor.workspaces[HANDLE].pushes == [("https://github.com/octo/demo.git", "main")]


def test_export_new_repository(api_client, identity, fake_executor, fake_hosting):
    fake_executor.workspaces[HANDLE] = FakeWorkspace(files={"app.py": "print(1)\n"})
    response = api_client.post(
        reverse("github-export"),
        {
            "workspaceHandle": HANDLE,
            "commitMessage": "Initial import",
            "mode": "new",
            "repository": {"name": "fresh", "private": True},
        },
        format="json",
    )
    assert response.status_code == 200
    assert response.json()["repository"] == "octocat/fresh"
    assert fake_hosting.created[0]["private"] is True


def test_export_validates_nested_repository(api_client, identity):
    response = api_client.post(
        reverse("github-export"),
        {
            "workspaceHandle": HANDLE,
            "commitMessage": "Update",
            "mode": "existing",
            "branch": "main",
            "repository": {"name": "fresh"},
        },
        format="json",
    )
    assert response.status_code == 400
    assert "fullName" in response.json()["error"]


def test_export_on_busy_workspace_is_409(api_client, identity, fake_executor):
    payload = {
        "workspaceHandle": HANDLE,
        "commitMessage": "Update",
        "mode": "existing",
        "branch": "main",
        "repository": {"fullName": "octo/demo"},
    }
    with workspace_lease(HANDLE):
        response = api_client.post(reverse("github-export"), payload, format="json")
    assert response.status_code == 409
    assert response.json()["kind"] == "workspace_busy"
    assert fake_executor.calls == []


def test_status_requires_workspace_handle(api_client):
    response = api_client.get(reverse("github-status"))
    assert response.status_code == 400


def test_status_rejects_unknown_handle_scheme(api_client):
    response = api_client.get(reverse("github-status"), {"workspaceHandle": "ftp://nope"})
    assert response.status_code == 400


def test_status_of_empty_workspace(api_client):
    response = api_client.get(reverse("github-status"), {"workspaceHandle": HANDLE})
    assert response.status_code == 200
    assert response.json() == {
        "workspaceHandle": HANDLE,
        "isGitRepo": False,
        "hasChanges": False,
        "branch": None,
        "remoteUrl": None,
        "remoteFullName": None,
        "trackedFiles": [],
    }


def test_status_requires_authentication():
    response = APIClient().get(reverse("github-status"), {"workspaceHandle": HANDLE})
    assert response.status_code == 401


def test_repositories_listing(api_client, identity, fake_hosting):
    def _list(token, *, page=1, per_page=50):
        return RepositoryPage(
            page=page,
            per_page=per_page,
            has_more=True,
            repositories=[
                RepositorySummary(
                    id=7,
                    name="demo",
                    full_name="octo/demo",
                    description=None,
                    private=True,
                    default_branch="main",
                    updated_at="2024-05-01T00:00:00Z",
                    owner="octo",
                    html_url="https://github.com/octo/demo",
                )
            ],
            scopes=["repo"],
        )

    fake_hosting.list_repositories = _list
    response = api_client.get(reverse("github-repositories"), {"page": 2, "per_page": 10})

    assert response.status_code == 200
    body = response.json()
    assert body["page"] == 2
    assert body["perPage"] == 10
    assert body["hasMore"] is True
    assert body["repositories"][0]["fullName"] == "octo/demo"


@pytest.mark.parametrize("query", [{"page": 11}, {"page": 0}, {"per_page": 101}, {"page": "x"}])
def test_repositories_rejects_out_of_range_paging(api_client, identity, query):
    response = api_client.get(reverse("github-repositories"), query)
    assert response.status_code == 400


def test_repositories_requires_repo_scope(api_client, identity, fake_hosting):
    fake_hosting.user.scopes = ["read:user"]
    response = api_client.get(reverse("github-repositories"))
    assert response.status_code == 403
    assert response.json()["kind"] == "authorization"
