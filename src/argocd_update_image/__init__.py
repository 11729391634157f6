# ABOUTME: ArgoCD image update action package initialization
# ABOUTME: Exposes version information

"""
ArgoCD image update action - patch a running application's image via the ArgoCD API.

=============================================================================
WHAT DOES IT DO?
=============================================================================

One invocation performs one read-then-patch against an ArgoCD server:

1. LOGIN with username/password (POST /api/v1/session)
2. ASK how the application is rendered: Helm or Kustomize
3. READ the full application record
4. PATCH the image reference with a JSON-Patch document:
   - Helm: the named entry of spec.source.helm.parameters
   - Kustomize: the matching entry of spec.source.kustomize.images

It is meant to run as a CI step right after a new image is pushed, so the
GitOps controller rolls the new image out.

=============================================================================
PACKAGE STRUCTURE OVERVIEW
=============================================================================

argocd_update_image/
├── __init__.py          <- Package entry point
├── action.py            <- CI entry point (inputs -> login -> update_image)
├── config.py            <- Action inputs (env vars, validation)
├── exceptions.py        <- Error taxonomy
├── models.py            <- Context, AppInfo, source type, patch operation
└── utils/
    ├── __init__.py      <- Utils subpackage marker
    ├── client.py        <- HTTP client for ArgoCD REST API
    ├── labels.py        <- "a=1,b=2" label strings
    ├── logging.py       <- Structured logging with audit trails
    └── patches.py       <- Helm/Kustomize image patch decisions
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
