# ABOUTME: Pytest fixtures and configuration for the ArgoCD image update tests
# ABOUTME: Provides mocked ArgoCD routes, logged-in clients and sample application payloads

import os
from typing import Any, AsyncIterator, Iterator

import httpx
import pytest
import respx

from argocd_update_image.config import ActionSettings
from argocd_update_image.utils.client import ArgocdClient

HOST = "argocd.example.com"
SERVER_URL = f"https://{HOST}"
BASE_URL = f"{SERVER_URL}/api/v1"


def app_payload(
    name: str = "test-app",
    namespace: str = "production",
    project: str = "default",
    source: dict[str, Any] | None = None,
    labels: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Build an ArgoCD application payload as returned by the list endpoint."""
    return {
        "metadata": {"name": name, "namespace": "argocd", "labels": labels or {}},
        "spec": {
            "project": project,
            "source": {
                "repoURL": "https://github.com/example/repo.git",
                "path": "manifests",
                "targetRevision": "main",
                **(source or {}),
            },
            "destination": {
                "server": "https://kubernetes.default.svc",
                "namespace": namespace,
            },
        },
        "status": {
            "sync": {"status": "Synced"},
            "health": {"status": "Healthy"},
        },
    }


@pytest.fixture
def argocd_mock() -> Iterator[respx.MockRouter]:
    """Route all httpx traffic through respx; unmatched requests fail the test."""
    with respx.mock(assert_all_called=False) as router:
        yield router


@pytest.fixture
def session_route(argocd_mock: respx.MockRouter) -> respx.Route:
    """Mock a successful session creation."""
    return argocd_mock.post(f"{BASE_URL}/session").mock(
        return_value=httpx.Response(200, json={"token": "test-token"})
    )


@pytest.fixture
async def client(session_route: respx.Route) -> AsyncIterator[ArgocdClient]:
    """Create a client logged in to the mocked server."""
    async with ArgocdClient() as argocd:
        assert await argocd.login("admin", "secret", HOST)
        yield argocd


@pytest.fixture
def helm_app() -> dict[str, Any]:
    """Create a Helm application carrying an image parameter."""
    return app_payload(
        name="dummy",
        source={"helm": {"parameters": [{"name": "name", "value": "some.image:1.0.3"}]}},
    )


@pytest.fixture
def kustomize_app() -> dict[str, Any]:
    """Create a Kustomize application carrying an image list."""
    return app_payload(
        name="dummy",
        source={"kustomize": {"images": ["registry.example.com/team/app:1.0.3"]}},
    )


@pytest.fixture
def action_settings(tmp_path) -> ActionSettings:
    """Create action settings without reading the environment."""
    return ActionSettings(
        argocd_host=HOST,
        argocd_username="admin",
        argocd_password="secret",
        app_name="dummy",
        app_labels="team=web",
        image="some.image:1.0.4",
        helm_param_key_name="name",
        audit_log=tmp_path / "audit.json",
        run_id="run-1234",
    )


# Integration test fixtures


@pytest.fixture
def live_server() -> dict[str, Any] | None:
    """Get live ArgoCD connection details from environment."""
    host = os.environ.get("ARGOCD_HOST")
    username = os.environ.get("ARGOCD_USERNAME")
    password = os.environ.get("ARGOCD_PASSWORD")
    if not host or not username or not password:
        return None
    return {
        "host": host,
        "port": int(os.environ.get("ARGOCD_PORT", "443")),
        "username": username,
        "password": password,
    }


@pytest.fixture
def make_app():
    """Factory fixture building application payloads."""
    return app_payload
