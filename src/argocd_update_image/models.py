# ABOUTME: Data records shared by the client, patch builders and action
# ABOUTME: Selection context, application read model, source type and JSON-Patch operation

"""
Domain records for the ArgoCD image update action.

=============================================================================
WHAT LIVES HERE?
=============================================================================

Plain data classes, no I/O:

- ArgocdContext: which application(s) an API call is about
- AppInfo: a flattened, read-only view of one ArgoCD Application
- SyncSourceType: how the application renders its manifests
- PatchOperation: one RFC 6902 JSON-Patch operation

The raw ArgoCD Application payload ("full info") is NOT modelled. It is
passed around as a plain dict because the image update logic only looks at
two nested paths of it (see utils/patches.py).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal


@dataclass
class ArgocdContext:
    """
    Selection context addressing one or more ArgoCD applications.

    Every field is optional because list operations may filter on any mix
    of them. Single-application operations (app_exists, update_image, sync)
    need app_name and raise MissingArgumentError without it.
    """

    app_name: str | None = None
    selector: dict[str, str] | None = None
    project: str | None = None
    # Carried along for callers; the client does not read it.
    image_id: str | None = None


@dataclass
class AppInfo:
    """
    ArgoCD Application read model.

    ArgoCD's API returns deeply nested JSON:

        {
            "metadata": {"name": "myapp", "labels": {...}},
            "spec": {
                "project": "default",
                "source": {"repoURL": "...", "path": "...", "targetRevision": "..."},
                "destination": {"namespace": "..."},
            },
            "status": {"sync": {"status": "Synced"}, "health": {"status": "Healthy"}},
        }

    AppInfo flattens the parts callers care about. It is rebuilt from the
    payload on every list call and never stored.
    """

    name: str
    namespace: str
    repo_url: str
    repo_path: str
    repo_branch: str
    project: str
    sync_status: str
    health_status: str
    labels: dict[str, str] = field(default_factory=dict)
    # Not derived from the payload: an application may run many images and
    # none of them is authoritative.
    image: str | None = None

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> AppInfo:
        """
        Create AppInfo from one item of the ArgoCD applications list.

        Missing sections fall back to empty values instead of raising, so a
        partially populated payload still yields a usable record.

        Args:
            data: Raw JSON object for a single application

        Returns:
            AppInfo instance with extracted fields
        """
        metadata = data.get("metadata") or {}
        spec = data.get("spec") or {}
        status = data.get("status") or {}

        source = spec.get("source") or {}
        destination = spec.get("destination") or {}

        return cls(
            name=metadata.get("name", ""),
            namespace=destination.get("namespace", ""),
            repo_url=source.get("repoURL", ""),
            repo_path=source.get("path", ""),
            repo_branch=source.get("targetRevision", ""),
            project=spec.get("project", ""),
            sync_status=(status.get("sync") or {}).get("status", ""),
            health_status=(status.get("health") or {}).get("status", ""),
            labels=dict(metadata.get("labels") or {}),
        )


class SyncSourceType(str, Enum):
    """How an application's manifests are rendered."""

    HELM = "Helm"
    KUSTOMIZE = "Kustomize"


@dataclass(frozen=True)
class PatchOperation:
    """
    A single JSON-Patch operation.

    "replace" overwrites an existing array element; "add" either creates
    the whole array (value is a list) or appends one element at an index.
    """

    op: Literal["add", "replace"]
    path: str
    value: Any

    def to_dict(self) -> dict[str, Any]:
        """Return the wire form sent to ArgoCD."""
        return {"op": self.op, "path": self.path, "value": self.value}
