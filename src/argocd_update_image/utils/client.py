# ABOUTME: ArgoCD API client with session login and image update orchestration
# ABOUTME: Provides async interface to ArgoCD REST API with structured errors

"""
ArgoCD API client.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module provides the HTTP client for communicating with ArgoCD's REST
API. It handles:

1. SESSION: Logging in with username/password and attaching the returned
   token as a Bearer credential to every later request
2. HTTP COMMUNICATION: Making requests to ArgoCD endpoints
3. ERROR HANDLING: Converting HTTP errors to structured Python exceptions
4. IMAGE UPDATES: Finding out how an application is rendered (Helm or
   Kustomize) and patching its image reference

=============================================================================
ARGOCD REST API OVERVIEW
=============================================================================

ArgoCD exposes a REST API at /api/v1/. The endpoints used here:

    POST   /api/v1/session                       - Create session (login)
    GET    /api/v1/applications                  - List applications
    GET    /api/v1/applications/{name}/manifests - Rendered manifests
    POST   /api/v1/applications/{name}/sync      - Trigger sync
    PATCH  /api/v1/applications/{name}           - JSON-Patch an application
    POST   /api/v1/applications?validate=true    - Create application
    DELETE /api/v1/applications/{name}           - Delete application

Errors come back as JSON:
    {"message": "error description", "error": "additional details"}

=============================================================================
SESSION LIFECYCLE
=============================================================================

    async with ArgocdClient() as client:
        if await client.login("admin", "secret", "argocd.example.com"):
            await client.update_image(ctx, "registry/app:1.2.3", "image.tag")

One client holds at most one session. A second login() while a token is
held fails fast with AlreadyLoggedInError; call logout() first. Operations
run strictly one after another, and nothing is retried: a transient
failure surfaces to the caller immediately.

TLS verification is switched off because ArgoCD servers commonly run with
self-signed certificates.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from argocd_update_image.exceptions import (
    AlreadyLoggedInError,
    AmbiguousOrMissingAppError,
    MissingArgumentError,
    MissingMetadataError,
    NotAuthenticatedError,
    RequestFailedError,
)
from argocd_update_image.models import AppInfo, ArgocdContext, SyncSourceType
from argocd_update_image.utils.labels import format_selector
from argocd_update_image.utils.logging import mask_secrets
from argocd_update_image.utils.patches import build_image_patch

logger = structlog.get_logger(__name__)

API_PATH = "/api/v1"


# =============================================================================
# TRANSPORT OUTCOMES
# =============================================================================


@dataclass(frozen=True)
class NotFound:
    """
    Outcome of a request the server answered with HTTP 404.

    Only returned to callers that opted in with allow_not_found=True; they
    turn it into False or an empty list. Every other failure is raised as
    RequestFailedError.
    """

    path: str


def build_server_url(host: str, port: int = 443, use_https: bool = True) -> str:
    """
    Build the server base URL.

    The scheme is https when the port is 443 or use_https is set, http
    otherwise. The port is left out for 443 and 80.

    Example:
        >>> build_server_url("argocd.local", 4444)
        'https://argocd.local:4444'
        >>> build_server_url("argocd.local", 80, use_https=False)
        'http://argocd.local'
    """
    scheme = "https" if port == 443 or use_https else "http"
    suffix = "" if port in (443, 80) else f":{port}"
    return f"{scheme}://{host}{suffix}"


def _parse_error(response: httpx.Response) -> RequestFailedError:
    """Build a RequestFailedError from ArgoCD's error body."""
    error_body = response.text
    message = f"HTTP {response.status_code}"
    details = None
    try:
        error_json = response.json()
        message = error_json.get("message", message)
        details = error_json.get("error")
    except (ValueError, AttributeError):
        # Not a JSON object, keep the raw body
        details = error_body[:200] if error_body else None
    return RequestFailedError(code=response.status_code, message=message, details=details)


def _decode_json(response: httpx.Response) -> Any:
    """
    Decode a successful response body ({} when empty).

    A proxy or the ArgoCD UI can answer a wrong path with an HTML page and
    a 2xx status; that surfaces as RequestFailedError like any other API
    failure.
    """
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError as e:
        raise RequestFailedError(
            code=response.status_code,
            message="response body is not valid JSON",
            details=response.text[:200],
        ) from e


# =============================================================================
# ARGOCD CLIENT
# =============================================================================


class ArgocdClient:
    """
    Async ArgoCD API client.

    LIFECYCLE:
    ----------
    1. Create client: client = ArgocdClient()
    2. Enter context: async with client: ...
    3. Log in: await client.login(...)
    4. Use client: await client.update_image(...)
    5. Exit context: HTTP connections cleaned up

    The session (server URL, token) belongs to this object. Nothing is kept
    at module level, so tests and callers can hold independent clients.
    """

    def __init__(self, timeout: float = 30.0) -> None:
        """
        Initialize ArgoCD client.

        NOTE: This only creates the client object. The HTTP connection
        pool is created later in __aenter__ (when using 'async with').

        Args:
            timeout: HTTP request timeout in seconds.
        """
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self._server_url = ""
        self._api_path = API_PATH
        self._token: str | None = None

    async def __aenter__(self) -> ArgocdClient:
        """Create the HTTP client; TLS verification is off for self-signed servers."""
        self._client = httpx.AsyncClient(
            headers={"Content-Type": "application/json"},
            timeout=self._timeout,
            verify=False,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        """Close the HTTP client. The session is dropped with it."""
        if self._client:
            await self._client.aclose()
            self._client = None
        self.logout()

    # =========================================================================
    # SESSION
    # =========================================================================

    @property
    def is_logged_in(self) -> bool:
        """True while a session token is held."""
        return self._token is not None

    @property
    def server_url(self) -> str:
        """Base URL of the current session ("" when logged out)."""
        return self._server_url

    def _http(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")
        return self._client

    async def login(
        self,
        username: str,
        password: str,
        host: str,
        port: int = 443,
        use_https: bool = True,
    ) -> bool:
        """
        Create an ArgoCD session.

        ArgoCD API: POST /api/v1/session

        Args:
            username: ArgoCD user
            password: ArgoCD password
            host: Server host name
            port: Server port (443 and 80 are left out of the URL)
            use_https: Use https on ports other than 443

        Returns:
            True when the server returned a token (HTTP 200).
            False on HTTP 404 (bad credentials) or another 2xx status.

        Raises:
            AlreadyLoggedInError: A token is already held; no request is made
            RequestFailedError: Any other non-2xx status (redirects included),
                or a 200 body that is not a JSON object
            httpx.TransportError: Connection problems
        """
        if self._token:
            raise AlreadyLoggedInError()

        http = self._http()
        self._server_url = build_server_url(host, port, use_https)
        url = f"{self._server_url}{self._api_path}/session"

        log = logger.bind(server=self._server_url, username=username)
        log.info("Creating session")

        try:
            response = await http.post(url, json={"username": username, "password": password})
        except httpx.TransportError as e:
            log.error("Session request failed", error=str(e))
            raise

        if response.status_code == 404:
            log.error("Login rejected", status=response.status_code)
            return False
        if not response.is_success:
            error = _parse_error(response)
            log.error("Login failed", status=response.status_code, error=mask_secrets(str(error)))
            raise error
        if response.status_code != 200:
            log.warning("Unexpected login status", status=response.status_code)
            return False

        body = _decode_json(response)
        if not isinstance(body, dict):
            raise RequestFailedError(
                code=response.status_code,
                message="unexpected session response",
                details=response.text[:200],
            )

        self._token = body.get("token") or None
        if not self._token:
            log.error("Session response carries no token")
            return False

        http.headers["Authorization"] = f"Bearer {self._token}"
        log.debug("Session created")
        return True

    def logout(self) -> None:
        """Forget the session locally. Idempotent, no network call."""
        self._token = None
        self._server_url = ""
        if self._client:
            self._client.headers.pop("Authorization", None)

    # =========================================================================
    # REQUESTS
    # =========================================================================

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_data: Any = None,
        allow_not_found: bool = False,
    ) -> Any:
        """
        Make an authenticated HTTP request to the ArgoCD API.

        This is the CORE REQUEST METHOD. All API operations use it.

        Args:
            method: HTTP method ("GET", "POST", "PATCH", "DELETE")
            path: API path (e.g., "/applications")
            params: URL query parameters (optional)
            json_data: JSON request body (optional)
            allow_not_found: Return NotFound on HTTP 404 instead of raising

        Returns:
            Decoded JSON body ({} for an empty body), or NotFound

        Raises:
            NotAuthenticatedError: login() has not succeeded
            RequestFailedError: Any non-2xx status (3xx, 4xx, 5xx) or a body
                that is not JSON
            httpx.TransportError: Connection problems
        """
        if not self._token:
            raise NotAuthenticatedError()

        http = self._http()
        url = f"{self._server_url}{self._api_path}{path}"

        log = logger.bind(method=method, path=path)
        log.debug("Making ArgoCD API request", params=params, body=mask_secrets(json_data))

        response = await http.request(method, url, params=params, json=json_data)

        if response.status_code == 404 and allow_not_found:
            log.debug("ArgoCD API returned not found")
            return NotFound(path)

        if not response.is_success:
            log.warning(
                "ArgoCD API error",
                status=response.status_code,
                body=mask_secrets(response.text[:200]),
            )
            raise _parse_error(response)

        return _decode_json(response)

    # =========================================================================
    # APPLICATION OPERATIONS
    # =========================================================================

    async def list_applications(
        self,
        context: ArgocdContext,
        full_info: bool = False,
    ) -> list[AppInfo] | list[dict[str, Any]]:
        """
        List ArgoCD applications matching the context.

        ArgoCD API: GET /api/v1/applications

        Args:
            context: Filters; selector, name and project are sent only
                     when they have a value
            full_info: Return the raw application records instead of AppInfo

        Returns:
            AppInfo list, or the untransformed items when full_info is True.
            HTTP 404 means "no matches" and yields an empty list.
        """
        params: dict[str, str] = {}
        if context.selector:
            params["selector"] = format_selector(context.selector)
        if context.app_name:
            params["name"] = context.app_name
        if context.project:
            params["project"] = context.project

        data = await self._request(
            "GET",
            "/applications",
            params=params or None,
            allow_not_found=True,
        )
        if isinstance(data, NotFound):
            return []

        # API returns {"items": [...]}; items is null when nothing matches
        items = (data.get("items") if isinstance(data, dict) else None) or []

        if full_info:
            return list(items)
        return [AppInfo.from_api_response(item) for item in items]

    async def app_exists(self, context: ArgocdContext) -> bool:
        """
        Check that the context resolves to exactly one application.

        The same name can exist in several projects, so "exists" means one
        and only one match.
        """
        if not context.app_name:
            raise MissingArgumentError("appName must be provided in context")
        apps = await self.list_applications(context)
        return len(apps) == 1

    async def get_app_manifests(self, app_name: str) -> dict[str, Any]:
        """
        Get the rendered manifests of an application.

        ArgoCD API: GET /api/v1/applications/{name}/manifests

        Returns:
            {"manifests": [...], "sourceType": "Helm" | "Kustomize" | ...}
        """
        data = await self._request("GET", f"/applications/{app_name}/manifests")
        return data if isinstance(data, dict) else {}

    async def get_sync_source_type(self, app_name: str) -> SyncSourceType:
        """
        Find out whether an application is rendered by Helm or Kustomize.

        Only an exact "Helm" marker means HELM. Every other marker is
        treated as KUSTOMIZE.

        Raises:
            MissingMetadataError: The manifests response has no sourceType
        """
        manifests = await self.get_app_manifests(app_name)
        source_type = manifests.get("sourceType")
        if not source_type:
            raise MissingMetadataError(
                f"don't know much about {app_name}, manifest is missing sourceType"
            )

        if source_type == SyncSourceType.HELM.value:
            return SyncSourceType.HELM
        if source_type != SyncSourceType.KUSTOMIZE.value:
            logger.warning(
                "Unrecognized source type, treating as Kustomize",
                app=app_name,
                source_type=source_type,
            )
        return SyncSourceType.KUSTOMIZE

    async def update_image(
        self,
        context: ArgocdContext,
        new_image: str,
        helm_param_key_name: str | None = None,
    ) -> bool:
        """
        Point an application at a new image.

        Runs three requests one after another: manifests (source type),
        application list (full record), and the JSON-Patch itself.

        Args:
            context: Must carry app_name; selector/project narrow the lookup
            new_image: Image reference to set
            helm_param_key_name: For Helm applications, the parameter holding
                the image (e.g. "deployments[0].containers[0].image.tag")

        Returns:
            True once the patch request succeeded. The resulting application
            state is not re-read.

        Raises:
            MissingArgumentError: No app_name, or no helm key for a Helm app
            AmbiguousOrMissingAppError: The context matched 0 or 2+ apps
            MissingSourceError: The record lacks the helm/kustomize sub-tree
        """
        if not context.app_name:
            raise MissingArgumentError("appName is mandatory for updateImage procedure")

        log = logger.bind(app=context.app_name, image=new_image)

        source_type = await self.get_sync_source_type(context.app_name)
        log.debug("Resolved sync source type", source_type=source_type.value)

        apps = await self.list_applications(context, full_info=True)
        if len(apps) != 1:
            raise AmbiguousOrMissingAppError(
                f"in update image, can't find a single app {context.app_name} "
                f"({len(apps)} matches)"
            )

        operation = build_image_patch(source_type, apps[0], new_image, helm_param_key_name)
        payload = {
            "name": context.app_name,
            "patch": json.dumps([operation.to_dict()]),
            "patchType": "json",
        }

        await self._request("PATCH", f"/applications/{context.app_name}", json_data=payload)
        log.info("Application image updated", op=operation.op, path=operation.path)
        return True

    # =========================================================================
    # WRITE OPERATIONS
    # =========================================================================

    async def sync(
        self,
        context: ArgocdContext,
        create_namespace: bool = False,
        dry_run: bool = False,
    ) -> bool:
        """
        Trigger application sync.

        ArgoCD API: POST /api/v1/applications/{name}/sync

        Resources missing from Git are never pruned.

        Args:
            context: Must carry app_name
            create_namespace: Ask ArgoCD to create the destination namespace
            dry_run: Preview without applying

        Returns:
            True when the sync was accepted, False on HTTP 404
        """
        if not context.app_name:
            raise MissingArgumentError("appName must be provided in context")

        body: dict[str, Any] = {
            "prune": False,
            "dryRun": dry_run,
        }
        if create_namespace:
            body["syncOptions"] = {"items": ["CreateNamespace=true"]}

        result = await self._request(
            "POST",
            f"/applications/{context.app_name}/sync",
            json_data=body,
            allow_not_found=True,
        )
        return not isinstance(result, NotFound)

    async def create_app(self, app_data: dict[str, Any]) -> dict[str, Any]:
        """
        Create an ArgoCD application.

        ArgoCD API: POST /api/v1/applications?validate=true

        app_data is sent as-is; ArgoCD validates it server side.

        Returns:
            The created application as returned by ArgoCD
        """
        data = await self._request(
            "POST",
            "/applications",
            params={"validate": "true"},
            json_data=app_data,
        )
        return data if isinstance(data, dict) else {}

    async def add_app_labels(self, context: ArgocdContext, labels: dict[str, str]) -> bool:
        """
        Set labels on an existing application.

        ArgoCD API: PATCH /api/v1/applications/{name}

        The JSON-Patch "add" on /metadata/labels replaces the label map.

        Returns:
            True on success, False on HTTP 404
        """
        if not context.app_name:
            raise MissingArgumentError("appName must be provided in context")

        patch = [{"op": "add", "path": "/metadata/labels", "value": labels}]
        payload = {
            "name": context.app_name,
            "patch": json.dumps(patch),
            "patchType": "json",
        }
        result = await self._request(
            "PATCH",
            f"/applications/{context.app_name}",
            json_data=payload,
            allow_not_found=True,
        )
        return not isinstance(result, NotFound)

    async def delete_app(self, app_name: str) -> bool:
        """
        Delete an application.

        ArgoCD API: DELETE /api/v1/applications/{name}

        The API addresses applications by name only, so no context here.

        Returns:
            True when deleted, False on HTTP 404
        """
        result = await self._request(
            "DELETE",
            f"/applications/{app_name}",
            allow_not_found=True,
        )
        return not isinstance(result, NotFound)
