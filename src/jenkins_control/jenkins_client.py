"""Jenkins client: server-level operations and job/build lookup."""

from __future__ import annotations

import logging
from typing import Any

import jenkins

from jenkins_control.config import JenkinsConfig
from jenkins_control.errors import HTTPStatusError, JenkinsClientError, JobExistsError
from jenkins_control.models import Build, Job
from jenkins_control.transport import Transport

logger = logging.getLogger(__name__)

BUILDING_COLOR_SUFFIX = "_anime"


class JenkinsClient:
    """Entry point for one Jenkins server.

    Jobs and builds handed out are independent snapshots; nothing is cached
    on the client besides the transport's crumb.
    """

    def __init__(self, config: JenkinsConfig, handle: jenkins.Jenkins | None = None) -> None:
        self.config = config
        self.transport = Transport(config, handle)

    @property
    def base_url(self) -> str:
        return self.config.base_url

    # ------------------------------------------------------------------
    # Jobs and builds
    # ------------------------------------------------------------------
    def get_job(self, name: str) -> Job:
        return Job(name, self)

    def get_build(self, job_name: str, number: int) -> Build:
        return Build(job_name, number, self)

    def list_job_names(self) -> list[str]:
        data = self.transport.get_json("api/json", depth=None, params={"tree": "jobs[name]"})
        return [job["name"] for job in data.get("jobs", [])]

    def get_jobs(self) -> dict[str, Job]:
        return {name: self.get_job(name) for name in self.list_job_names()}

    def get_currently_building_jobs(self) -> list[Job]:
        data = self.transport.get_json(
            "api/json", depth=None, params={"tree": "jobs[name,url,color]"}
        )
        return [
            self.get_job(job["name"])
            for job in data.get("jobs", [])
            if (job.get("color") or "").endswith(BUILDING_COLOR_SUFFIX)
        ]

    def create_job(self, name: str, config_xml: str) -> Job:
        """Create a job from its XML configuration and return its snapshot.

        Raises:
            JobExistsError: If the server refuses the name (HTTP 400).
        """
        try:
            self.transport.post(
                "createItem",
                config_xml.encode("utf-8"),
                params={"name": name},
                headers={"Content-Type": "text/xml"},
            )
        except HTTPStatusError as e:
            if e.status_code == 400:
                raise JobExistsError(
                    "Job already exists", base_url=self.base_url, job_name=name
                ) from e
            e.job_name = name
            raise
        logger.info("Created job '%s'", name)
        return self.get_job(name)

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------
    def list_view_names(self) -> list[str]:
        data = self.transport.get_json("api/json", depth=None, params={"tree": "views[name]"})
        return [view["name"] for view in data.get("views", [])]

    def get_primary_view_name(self) -> str | None:
        data = self.transport.get_json("api/json", depth=None, params={"tree": "primaryView[name]"})
        primary = data.get("primaryView")
        return primary.get("name") if primary else None

    def list_node_names(self) -> list[str]:
        data = self.transport.get_json("computer/api/json", depth=None)
        return [node["displayName"] for node in data.get("computer", [])]

    def get_queue(self) -> list[dict[str, Any]]:
        return self.transport.get_json("queue/api/json").get("items", [])

    def is_available(self) -> bool:
        try:
            self.transport.get_json("api/json", depth=None)
            self.get_queue()
        except JenkinsClientError as e:
            logger.debug("%s is not available: %s", self.base_url, e)
            return False
        return True

    def prepare_shutdown(self) -> None:
        """Enter quiet-down mode: no new builds start."""
        self.transport.post("quietDown")
        logger.info("Quiet-down mode enabled on %s", self.base_url)

    def cancel_prepare_shutdown(self) -> None:
        self.transport.post("cancelQuietDown")
        logger.info("Quiet-down mode cancelled on %s", self.base_url)


def get_client() -> JenkinsClient:
    """Create a Jenkins client from environment variables.

    See :meth:`JenkinsConfig.from_env` for the variables read.

    Raises:
        ValueError: If JENKINS_URL is not set.
    """
    return JenkinsClient(JenkinsConfig.from_env())
