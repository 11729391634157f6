# ABOUTME: Exception hierarchy for the ArgoCD image update action
# ABOUTME: Every failure the client or entry point can raise derives from ArgocdError

"""
Exceptions raised by the ArgoCD client and the action entry point.

=============================================================================
HOW ERRORS FLOW
=============================================================================

The client never recovers locally. Each error is raised where it is
detected and travels up to the caller untouched:

    parse_labels()      -> LabelParseError
    ArgocdClient.*()    -> NotAuthenticatedError, AlreadyLoggedInError,
                           MissingArgumentError, MissingMetadataError,
                           MissingSourceError, AmbiguousOrMissingAppError,
                           RequestFailedError
    action.run()        -> LoginFailedError

The only exception to the "raise everything" rule is HTTP 404, which a few
operations treat as a soft "not found" answer (see ArgocdClient._request).

action.main() is the single place that turns an ArgocdError into a
user-visible failure (an ::error:: annotation and exit status 1).
"""

from __future__ import annotations


class ArgocdError(Exception):
    """Base class for every error raised by this package."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class LabelParseError(ArgocdError):
    """A label string entry is missing its key or its value."""


class NotAuthenticatedError(ArgocdError):
    """An API call was attempted before login()."""

    def __init__(self, message: str = "client isn't logged in, call login first") -> None:
        super().__init__(message)


class AlreadyLoggedInError(ArgocdError):
    """login() was called while a session token is still held."""

    def __init__(self, message: str = "already logged in, call logout first") -> None:
        super().__init__(message)


class LoginFailedError(ArgocdError):
    """The server rejected the credentials (login() returned False)."""


class MissingArgumentError(ArgocdError):
    """A required argument or context field was not supplied."""


class MissingMetadataError(ArgocdError):
    """The manifests response does not report a sourceType."""


class MissingSourceError(ArgocdError):
    """The application record has no helm/kustomize source to patch."""


class AmbiguousOrMissingAppError(ArgocdError):
    """The selection context did not resolve to exactly one application."""


class RequestFailedError(ArgocdError):
    """
    Structured ArgoCD API error for any non-2xx answer that is not a soft 404.

    HTTP errors from ArgoCD carry a status code and usually a JSON body of the
    form {"message": "...", "error": "..."}. Both parts are kept so callers
    can print a helpful message or branch on the status code.

    USAGE:
    ------
    try:
        await client.update_image(ctx, "registry/app:1.2.3", "image.tag")
    except RequestFailedError as e:
        print(f"Error {e.code}: {e.message}")
    """

    def __init__(self, code: int, message: str, details: str | None = None) -> None:
        """
        Initialize the request error.

        Args:
            code: HTTP status code (e.g., 403, 500)
            message: Primary error message from ArgoCD
            details: Additional error details (optional)
        """
        self.code = code
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        """
        Format the error for humans.

        Example:
            "ArgoCD API error (403): permission denied - RBAC: access denied"
        """
        base = f"ArgoCD API error ({self.code}): {self.message}"
        if self.details:
            base += f" - {self.details}"
        return base
