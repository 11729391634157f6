# ABOUTME: GitHub Action entry point for updating an ArgoCD application image
# ABOUTME: Loads inputs, logs in, patches the image and reports failure to the runner

"""ArgoCD image update action - login, patch, exit."""

from __future__ import annotations

import asyncio
import sys

import httpx
import structlog
from pydantic import ValidationError

from argocd_update_image.config import ActionSettings, load_settings
from argocd_update_image.exceptions import ArgocdError, LoginFailedError
from argocd_update_image.models import ArgocdContext
from argocd_update_image.utils.client import ArgocdClient
from argocd_update_image.utils.labels import parse_labels
from argocd_update_image.utils.logging import AuditLogger, configure_logging, set_correlation_id

logger = structlog.get_logger(__name__)


def fail(message: str) -> None:
    """Mark the step failed: an ::error:: annotation for the runner, then exit 1."""
    print(f"::error::{message}", flush=True)
    sys.exit(1)


def mask(value: str) -> None:
    """Ask the runner to redact a value from all later output."""
    if value:
        print(f"::add-mask::{value}", flush=True)


async def run(settings: ActionSettings, audit_logger: AuditLogger | None = None) -> None:
    """
    Update the configured application's image.

    Raises:
        LoginFailedError: The server rejected the credentials
        ArgocdError: Any client error (missing app, bad labels, API failure)
    """
    audit_logger = audit_logger or AuditLogger(settings.audit_log)
    server = settings.server

    # Labels are parsed before any network call so a typo fails fast
    context = ArgocdContext(
        app_name=settings.app_name,
        selector=parse_labels(settings.app_labels),
        image_id=settings.image,
    )

    async with ArgocdClient(timeout=settings.request_timeout) as client:
        logged_in = await client.login(
            settings.argocd_username,
            settings.argocd_password.get_secret_value(),
            server.host,
            server.port,
            server.use_https,
        )
        if not logged_in:
            raise LoginFailedError(
                f"login to {server.url} as {settings.argocd_username} failed"
            )

        try:
            await client.update_image(context, settings.image, settings.helm_param_key_name)
        except (ArgocdError, httpx.HTTPError) as e:
            audit_logger.log_error("update_image", settings.app_name, str(e))
            raise

    audit_logger.log_write(
        "update_image",
        settings.app_name,
        {"image": settings.image, "helm_param_key_name": settings.helm_param_key_name},
    )


def main() -> None:
    """Run the action; any error becomes a failed step."""
    configure_logging(level="INFO")

    try:
        settings = load_settings()
    except ValidationError as e:
        fail(f"invalid action inputs: {e}")
        return

    mask(settings.argocd_password.get_secret_value())
    configure_logging(level=settings.log_level, json_output=settings.log_json)
    set_correlation_id(settings.run_id)

    logger.info("Updating application image", app=settings.app_name, image=settings.image)

    try:
        asyncio.run(run(settings))
    except (ArgocdError, httpx.HTTPError) as e:
        logger.error("Image update failed", error=str(e))
        fail(str(e))
        return
    except Exception as e:
        logger.error("Unexpected error", error=str(e), error_type=type(e).__name__)
        fail(f"{type(e).__name__}: {e}")
        return

    logger.info("Image update done", app=settings.app_name)


if __name__ == "__main__":
    main()
