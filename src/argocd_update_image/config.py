# ABOUTME: Configuration management for the ArgoCD image update action
# ABOUTME: Reads GitHub Actions INPUT_* variables into a validated settings record

"""
Configuration management using pydantic-settings.

=============================================================================
WHAT IS THIS FILE?
=============================================================================

This module turns the action inputs into one typed, validated record:

1. READS environment variables. GitHub Actions exposes every `with:` input
   of a step as INPUT_<NAME>, so `argocd_host: argocd.example.com` arrives
   as INPUT_ARGOCD_HOST.
2. VALIDATES them (port range, log level, required values present).
3. PROVIDES typed access to settings for the entry point.

Validation happens before any network call, so a typo in the workflow fails
the step with a clear message instead of a half-finished run.

=============================================================================
ENVIRONMENT VARIABLE MAPPING
=============================================================================

    INPUT_LOG_LEVEL              -> log_level (default INFO)
    INPUT_LOG_JSON               -> log_json (default false)
    INPUT_ARGOCD_HOST            -> argocd_host (required)
    INPUT_ARGOCD_PORT            -> argocd_port (default 443)
    INPUT_ARGOCD_USE_HTTPS       -> argocd_use_https (default true)
    INPUT_ARGOCD_USERNAME        -> argocd_username (required)
    INPUT_ARGOCD_PASSWORD        -> argocd_password (required)
    INPUT_APP_NAME               -> app_name (required)
    INPUT_APP_LABELS             -> app_labels (default "", e.g. "team=web,env=dev")
    INPUT_IMAGE                  -> image (required)
    INPUT_HELM_PARAM_KEY_NAME    -> helm_param_key_name (required for Helm apps)
    INPUT_REQUEST_TIMEOUT        -> request_timeout (default 30 seconds)
    INPUT_AUDIT_LOG              -> audit_log (default: audit via structlog)
    GITHUB_RUN_ID                -> run_id (correlation id for log lines)
"""

from __future__ import annotations

import os
from pathlib import Path  # noqa: TC003 - Required at runtime for Pydantic
from typing import Any

from pydantic import BaseModel, Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from argocd_update_image.utils.client import build_server_url

DEFAULT_PORT = 443
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# =============================================================================
# ARGOCD SERVER ADDRESS
# =============================================================================


class ArgocdServer(BaseModel):
    """
    Address of one ArgoCD API server.

    USAGE EXAMPLE:
    --------------
        server = ArgocdServer(host="argocd.example.com", port=4444)
        server.url  # "https://argocd.example.com:4444"
    """

    model_config = {"extra": "ignore"}

    host: str = Field(description="ArgoCD server host name")
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535, description="ArgoCD server port")
    use_https: bool = Field(default=True, description="Use https even on non-443 ports")

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        """Strip surrounding whitespace and any trailing slash from the host."""
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("host must not be empty")
        return v

    @property
    def url(self) -> str:
        """
        Base URL of the server.

        https is used when the port is 443 or use_https is set; the port
        suffix is left out for the well-known ports 443 and 80.
        """
        return build_server_url(self.host, self.port, self.use_https)


# =============================================================================
# ACTION SETTINGS
# =============================================================================


class ActionSettings(BaseSettings):
    """
    All inputs of the image update action.

    USAGE:
    ------
        settings = load_settings()  # Reads from environment
        settings.server.url         # "https://argocd.example.com"
    """

    model_config = SettingsConfigDict(
        env_prefix="INPUT_",
        extra="ignore",
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # LOGGING
    # -------------------------------------------------------------------------

    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=False, description="Emit JSON log lines")

    # -------------------------------------------------------------------------
    # ARGOCD CONNECTION
    # -------------------------------------------------------------------------

    argocd_host: str = Field(description="ArgoCD server host name")
    argocd_port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    argocd_use_https: bool = Field(default=True)
    argocd_username: str = Field(description="ArgoCD user name")
    argocd_password: SecretStr = Field(description="ArgoCD password")
    # SecretStr keeps the password out of reprs and log lines.
    # To get the actual value: argocd_password.get_secret_value()

    request_timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")

    # -------------------------------------------------------------------------
    # UPDATE TARGET
    # -------------------------------------------------------------------------

    app_name: str = Field(description="ArgoCD application to update")
    app_labels: str = Field(default="", description="Label filter, e.g. 'team=web,env=dev'")
    image: str = Field(description="New image reference")
    helm_param_key_name: str | None = Field(
        default=None,
        description="Helm parameter holding the image (Helm applications only)",
    )

    # -------------------------------------------------------------------------
    # AUDIT AND OBSERVABILITY
    # -------------------------------------------------------------------------

    audit_log: Path | None = Field(default=None, description="Path to audit log file")

    run_id: str = Field(
        default="",
        validation_alias="GITHUB_RUN_ID",
        description="Workflow run id used as correlation id",
    )

    # -------------------------------------------------------------------------
    # CUSTOM VALIDATORS
    # -------------------------------------------------------------------------

    @field_validator(
        "argocd_port",
        "argocd_use_https",
        "log_json",
        "request_timeout",
        "helm_param_key_name",
        "audit_log",
        mode="before",
    )
    @classmethod
    def empty_as_default(cls, v: Any, info: ValidationInfo) -> Any:
        """
        Treat an empty input as "not given".

        GitHub Actions sets INPUT_<NAME> to "" for optional inputs the
        workflow leaves out, which would otherwise fail int/bool/path parsing.
        """
        if isinstance(v, str) and not v.strip():
            return cls.model_fields[info.field_name].default
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: Any) -> str:
        """Accept any casing; reject names the logging module doesn't know."""
        level = str(v or "INFO").strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @field_validator("argocd_host", "argocd_username", "app_name", "image")
    @classmethod
    def require_value(cls, v: str) -> str:
        """Required inputs must not be blank."""
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    # -------------------------------------------------------------------------
    # COMPUTED PROPERTIES
    # -------------------------------------------------------------------------

    @property
    def server(self) -> ArgocdServer:
        """ArgoCD server address built from the connection inputs."""
        return ArgocdServer(
            host=self.argocd_host,
            port=self.argocd_port,
            use_https=self.argocd_use_https,
        )


def load_settings() -> ActionSettings:
    """
    Load settings from environment with validation.

    If ARGOCD_UPDATE_IMAGE_ENV_FILE is set, additional variables are read
    from that file, which is handy when running the action locally:

        INPUT_ARGOCD_HOST=localhost
        INPUT_ARGOCD_PORT=8443
        INPUT_ARGOCD_USERNAME=admin
        ...

    Raises:
        pydantic.ValidationError: If configuration is invalid.
    """
    return ActionSettings(
        _env_file=os.environ.get("ARGOCD_UPDATE_IMAGE_ENV_FILE"),
    )
