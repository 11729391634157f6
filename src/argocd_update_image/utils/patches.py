# ABOUTME: JSON-Patch builders for Helm and Kustomize image updates
# ABOUTME: Looks up the helm or kustomize source, then picks add or replace operations

"""
Image update decision logic.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

Given a full ArgoCD Application record and a new image reference, this
module decides WHERE the image lives in the application spec and builds the
JSON-Patch operation that puts the new value there.

ArgoCD applications render manifests in one of two ways:

HELM:
    spec.source.helm.parameters = [
        {"name": "deployments[0].containers[0].image.tag", "value": "1.0.3"},
        ...
    ]
    The image is addressed by the parameter NAME. There can be many
    parameters, so the caller must say which one holds the image.

KUSTOMIZE:
    spec.source.kustomize.images = [
        "registry.example.com/team/app:1.0.3",
        ...
    ]
    The image is addressed by its repository prefix (the text before the
    first "/"), so "registry.example.com/team/app:1.0.4" replaces the entry
    above.

=============================================================================
ADD VS REPLACE
=============================================================================

JSON-Patch (RFC 6902) "replace" requires the target to exist, "add" does
not. So:

    entry found at index i        -> replace .../{i}
    array missing or empty        -> add .../parameters  with [new entry]
    array holds other entries     -> add .../parameters/{len} with new entry

The last rule appends. Adding the whole array when it already has members
would silently drop every other parameter or image.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from argocd_update_image.exceptions import MissingArgumentError, MissingSourceError
from argocd_update_image.models import PatchOperation, SyncSourceType

HELM_PARAMETERS_PATH = "/spec/source/helm/parameters"
KUSTOMIZE_IMAGES_PATH = "/spec/source/kustomize/images"


# =============================================================================
# SOURCE VARIANTS
# =============================================================================


@dataclass(frozen=True)
class HelmSource:
    """spec.source.helm of an application."""

    parameters: list[Any] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> HelmSource | None:
        """Return the helm sub-tree of a full record, or None when absent."""
        helm = _source(record).get("helm")
        if helm is None:
            return None
        return cls(parameters=list(helm.get("parameters") or []))


@dataclass(frozen=True)
class KustomizeSource:
    """spec.source.kustomize of an application."""

    images: list[Any] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> KustomizeSource | None:
        """Return the kustomize sub-tree of a full record, or None when absent."""
        kustomize = _source(record).get("kustomize")
        if kustomize is None:
            return None
        return cls(images=list(kustomize.get("images") or []))


@dataclass(frozen=True)
class UnknownSource:
    """Neither a helm nor a kustomize sub-tree is present."""


Source = HelmSource | KustomizeSource | UnknownSource


def _source(record: dict[str, Any]) -> dict[str, Any]:
    return (record.get("spec") or {}).get("source") or {}


def decode_source(record: dict[str, Any]) -> Source:
    """
    Decode the source variant of a full application record.

    A helm sub-tree wins over a kustomize one when a record carries both.
    The patch builders don't rely on this order: each one looks up the
    sub-tree it needs with from_record().
    """
    return (
        HelmSource.from_record(record)
        or KustomizeSource.from_record(record)
        or UnknownSource()
    )


# =============================================================================
# PATCH BUILDERS
# =============================================================================


def build_helm_image_patch(
    record: dict[str, Any],
    new_image: str,
    param_key_name: str,
) -> PatchOperation:
    """
    Build the patch setting a helm parameter to the new image.

    Args:
        record: Full (untransformed) application record
        new_image: Image reference to store as the parameter value
        param_key_name: Helm parameter holding the image
            (e.g. "deployments[0].containers[0].image.tag")

    Returns:
        A replace operation when the parameter exists, an add otherwise

    Raises:
        MissingSourceError: The record has no spec.source.helm
    """
    source = HelmSource.from_record(record)
    if source is None:
        raise MissingSourceError("unable to find the helm key on the source spec data")

    entry = {"name": param_key_name, "value": new_image}

    for index, parameter in enumerate(source.parameters):
        if isinstance(parameter, dict) and parameter.get("name") == param_key_name:
            return PatchOperation("replace", f"{HELM_PARAMETERS_PATH}/{index}", entry)

    if not source.parameters:
        return PatchOperation("add", HELM_PARAMETERS_PATH, [entry])
    return PatchOperation("add", f"{HELM_PARAMETERS_PATH}/{len(source.parameters)}", entry)


def image_repository(image: str) -> str:
    """Return the repository prefix of an image, up to and including the first "/"."""
    return f"{image.split('/')[0]}/"


def build_kustomize_image_patch(record: dict[str, Any], new_image: str) -> PatchOperation:
    """
    Build the patch pointing a kustomize image entry at the new image.

    Raises:
        MissingSourceError: The record has no spec.source.kustomize
    """
    source = KustomizeSource.from_record(record)
    if source is None:
        raise MissingSourceError("unable to find the kustomize key on the source spec data")

    repository = image_repository(new_image)

    for index, image in enumerate(source.images):
        # Null or malformed entries never match
        if isinstance(image, str) and image.startswith(repository):
            return PatchOperation("replace", f"{KUSTOMIZE_IMAGES_PATH}/{index}", new_image)

    if not source.images:
        return PatchOperation("add", KUSTOMIZE_IMAGES_PATH, [new_image])
    return PatchOperation("add", f"{KUSTOMIZE_IMAGES_PATH}/{len(source.images)}", new_image)


def build_image_patch(
    source_type: SyncSourceType,
    record: dict[str, Any],
    new_image: str,
    helm_param_key_name: str | None = None,
) -> PatchOperation:
    """Dispatch to the helm or kustomize builder for the given source type."""
    if source_type is SyncSourceType.HELM:
        if not helm_param_key_name:
            raise MissingArgumentError("helm parameter key name must be provided")
        return build_helm_image_patch(record, new_image, helm_param_key_name)
    return build_kustomize_image_patch(record, new_image)
