"""Exception types raised by the Jenkins control client.

Every error derives from :class:`jenkins.JenkinsException`, so code that
already handles python-jenkins failures catches these too.
"""

from __future__ import annotations

import jenkins


class JenkinsClientError(jenkins.JenkinsException):
    """Base error. Carries the server base URL and, for job operations,
    the job name."""

    def __init__(
        self,
        message: str,
        *,
        base_url: str | None = None,
        job_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.base_url = base_url
        self.job_name = job_name

    def __str__(self) -> str:
        context = []
        if self.job_name is not None:
            context.append(f"job '{self.job_name}'")
        if self.base_url is not None:
            context.append(f"on {self.base_url}")
        if not context:
            return self.message
        return f"{self.message} ({' '.join(context)})"


class TransportError(JenkinsClientError):
    """The request never produced an HTTP response (connection, TLS, timeout)."""


class HTTPStatusError(JenkinsClientError):
    """The server answered with a non-success status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None,
        url: str,
        base_url: str | None = None,
        job_name: str | None = None,
    ) -> None:
        super().__init__(message, base_url=base_url, job_name=job_name)
        self.status_code = status_code
        self.url = url


class DecodeError(JenkinsClientError):
    """The response body is not the JSON object that was expected."""


class JobExistsError(JenkinsClientError):
    """The server refused to create a job, usually because the name is taken."""


class NoBuildsError(JenkinsClientError, LookupError):
    """The job has never been built, so it has no last build to inspect."""


class NotLaunched(JenkinsClientError):
    """A launch was refused because the job already has a build in flight."""

    def __init__(self, job_name: str, building_number: int, *, base_url: str | None = None) -> None:
        super().__init__(
            f"Build #{building_number} is still running; no new build was triggered",
            base_url=base_url,
            job_name=job_name,
        )
        self.building_number = building_number
