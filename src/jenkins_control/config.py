"""Client configuration, built explicitly or from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_LAUNCH_TIMEOUT = 86400.0
DEFAULT_POLL_INTERVAL = 5.0

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_float(name: str, default: float | None) -> float | None:
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}.") from None


@dataclass(frozen=True)
class JenkinsConfig:
    """Settings for one Jenkins client.

    Each client owns its own config, so several clients with different
    servers, credentials or crumb modes can live in the same process.
    """

    base_url: str
    username: str | None = None
    api_token: str | None = None
    verify_tls: bool = True
    crumbs_enabled: bool = False
    verbose: bool = False
    timeout: float | None = None
    extra_headers: dict[str, str] = field(default_factory=dict)
    launch_timeout: float = DEFAULT_LAUNCH_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("base_url must not be empty.")
        if not self.base_url.endswith("/"):
            object.__setattr__(self, "base_url", self.base_url + "/")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive.")
        if self.launch_timeout < 0:
            raise ValueError("launch_timeout must not be negative.")

    @classmethod
    def from_env(cls) -> JenkinsConfig:
        """Create a config from environment variables.

        Environment variables:
            JENKINS_URL: Jenkins server URL (required)
            JENKINS_USERNAME: Jenkins username (optional)
            JENKINS_API_TOKEN: Jenkins API token (optional)
            JENKINS_VERIFY_TLS: verify the server certificate (default: true)
            JENKINS_CRUMBS: negotiate an anti-CSRF crumb (default: false)
            JENKINS_VERBOSE: log every request at INFO (default: false)
            JENKINS_TIMEOUT: per-request timeout in seconds (optional)
            JENKINS_LAUNCH_TIMEOUT: launch-and-wait timeout (default: 86400)
            JENKINS_POLL_INTERVAL: launch-and-wait poll interval (default: 5)

        Raises:
            ValueError: If JENKINS_URL is not set or a number is malformed.
        """
        url = os.environ.get("JENKINS_URL")
        if not url:
            raise ValueError(
                "JENKINS_URL environment variable is required. "
                "Please set it to your Jenkins server URL."
            )
        return cls(
            base_url=url,
            username=os.environ.get("JENKINS_USERNAME") or None,
            api_token=os.environ.get("JENKINS_API_TOKEN") or None,
            verify_tls=_env_flag("JENKINS_VERIFY_TLS", True),
            crumbs_enabled=_env_flag("JENKINS_CRUMBS", False),
            verbose=_env_flag("JENKINS_VERBOSE", False),
            timeout=_env_float("JENKINS_TIMEOUT", None),
            launch_timeout=_env_float("JENKINS_LAUNCH_TIMEOUT", DEFAULT_LAUNCH_TIMEOUT),
            poll_interval=_env_float("JENKINS_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
        )
