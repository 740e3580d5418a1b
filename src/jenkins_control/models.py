"""Job and build snapshots backed by the Jenkins JSON API."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Iterator
from urllib.parse import quote

from jenkins_control.errors import JenkinsClientError, NoBuildsError

if TYPE_CHECKING:
    from jenkins_control.jenkins_client import JenkinsClient

logger = logging.getLogger(__name__)


def job_path(name: str) -> str:
    """Return the URL path of a job, e.g. ``team/app`` -> ``job/team/job/app``."""
    segments = [s for s in name.split("/") if s]
    if not segments:
        raise ValueError("Job name must not be empty.")
    return "/".join(f"job/{quote(s, safe='')}" for s in segments)


@dataclass(frozen=True)
class ParameterDefinition:
    name: str
    type: str = ""
    default: Any = None
    choices: list[Any] | None = None
    description: str | None = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> ParameterDefinition:
        default_value = data.get("defaultParameterValue") or {}
        return cls(
            name=data.get("name", ""),
            type=data.get("type", ""),
            default=default_value.get("value") if isinstance(default_value, dict) else None,
            choices=data.get("choices"),
            description=data.get("description"),
        )


class Build:
    """Point-in-time snapshot of one build.

    The job name and number never change; :meth:`refresh` re-reads every
    other field from the server.
    """

    def __init__(
        self,
        job_name: str,
        number: int,
        client: JenkinsClient,
        data: dict[str, Any] | None = None,
    ) -> None:
        self._job_name = job_name
        self._number = int(number)
        self._client = client
        self._data: dict[str, Any] = {}
        self.queued = False
        if data is None:
            self.refresh()
        else:
            self._data = data

    @classmethod
    def provisional(cls, job_name: str, number: int, client: JenkinsClient) -> Build:
        """Placeholder for a triggered build the server has not numbered yet."""
        build = cls(job_name, number, client, data={"number": number, "building": True, "result": None})
        build.queued = True
        return build

    @property
    def path(self) -> str:
        return f"{job_path(self._job_name)}/{self._number}"

    def refresh(self) -> None:
        self._data = self._client.transport.get_json(f"{self.path}/api/json")
        self.queued = False

    @property
    def job_name(self) -> str:
        return self._job_name

    @property
    def number(self) -> int:
        return self._number

    @property
    def building(self) -> bool:
        return bool(self._data.get("building", False))

    @property
    def result(self) -> str | None:
        """SUCCESS, FAILURE, ABORTED, UNSTABLE, or None while building."""
        return self._data.get("result")

    @property
    def is_success(self) -> bool:
        return not self.building and self.result == "SUCCESS"

    @property
    def timestamp(self) -> datetime | None:
        timestamp_ms = self._data.get("timestamp") or 0
        if not timestamp_ms:
            return None
        return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)

    @property
    def duration(self) -> int:
        return self._data.get("duration", 0)

    @property
    def estimated_duration(self) -> int:
        return self._data.get("estimatedDuration", 0)

    @property
    def display_name(self) -> str:
        return self._data.get("displayName", f"#{self._number}")

    @property
    def url(self) -> str:
        return self._data.get("url", "")

    def __repr__(self) -> str:
        state = "queued" if self.queued else ("building" if self.building else self.result)
        return f"<Build {self._job_name}#{self._number} {state}>"


class Job:
    """Snapshot of one job, fetched on construction."""

    def __init__(self, name: str, client: JenkinsClient, data: dict[str, Any] | None = None) -> None:
        self._name = name
        self._client = client
        self._data: dict[str, Any] = {}
        if data is None:
            self.refresh()
        else:
            self._data = data

    @contextmanager
    def _job_context(self) -> Iterator[None]:
        try:
            yield
        except JenkinsClientError as e:
            if e.job_name is None:
                e.job_name = self._name
            raise

    @property
    def path(self) -> str:
        return job_path(self._name)

    def refresh(self) -> None:
        with self._job_context():
            self._data = self._client.transport.get_json(f"{self.path}/api/json")

    @property
    def name(self) -> str:
        return self._name

    @property
    def buildable(self) -> bool:
        return bool(self._data.get("buildable", False))

    @property
    def color(self) -> str | None:
        return self._data.get("color")

    @property
    def parameters_definition(self) -> dict[str, ParameterDefinition]:
        """Parameter definitions keyed by name.

        Servers report them under ``property`` or ``actions`` depending on
        version; both are read and the first definition of a name wins.
        """
        definitions: dict[str, ParameterDefinition] = {}
        entries = (self._data.get("property") or []) + (self._data.get("actions") or [])
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            for raw in entry.get("parameterDefinitions") or []:
                definition = ParameterDefinition.from_json(raw)
                definitions.setdefault(definition.name, definition)
        return definitions

    # ------------------------------------------------------------------
    # Builds
    # ------------------------------------------------------------------
    @property
    def build_numbers(self) -> list[int]:
        return [b["number"] for b in self._data.get("builds", []) if b]

    def get_builds(self) -> list[Build]:
        return [self.get_build(n) for n in self.build_numbers]

    def get_build(self, number: int) -> Build:
        with self._job_context():
            return self._client.get_build(self._name, number)

    def _build_number(self, key: str) -> int | None:
        ref = self._data.get(key)
        if not ref:
            return None
        return ref["number"]

    @property
    def last_build_number(self) -> int | None:
        """Number of the last build in this snapshot, without fetching it."""
        return self._build_number("lastBuild")

    @property
    def last_build(self) -> Build | None:
        number = self._build_number("lastBuild")
        return None if number is None else self.get_build(number)

    @property
    def last_successful_build(self) -> Build | None:
        number = self._build_number("lastSuccessfulBuild")
        return None if number is None else self.get_build(number)

    def is_currently_building(self) -> bool:
        """Whether the last build is still running.

        Raises:
            NoBuildsError: If the job has never been built.
        """
        last = self.last_build
        if last is None:
            raise NoBuildsError(
                "Job has never been built", base_url=self._client.base_url, job_name=self._name
            )
        return last.building

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def launch(self, parameters: dict[str, Any] | None = None) -> None:
        """Trigger a build. The server does not say which number it gets."""
        with self._job_context():
            if parameters:
                self._client.transport.post(f"{self.path}/buildWithParameters", parameters)
            else:
                self._client.transport.post(f"{self.path}/build")
        logger.info("Triggered job '%s'", self._name)

    def launch_and_wait(
        self,
        parameters: dict[str, Any] | None = None,
        timeout: float | None = None,
        poll_interval: float | None = None,
        cancel: threading.Event | None = None,
    ) -> Build:
        """Trigger a build and wait for it. See :class:`BuildLauncher`."""
        from jenkins_control.launcher import BuildLauncher

        return BuildLauncher(self._client).launch_and_wait(
            self._name,
            parameters,
            timeout=timeout,
            poll_interval=poll_interval,
            cancel=cancel,
        )

    def delete(self) -> None:
        with self._job_context():
            self._client.transport.post(f"{self.path}/doDelete")
        logger.info("Deleted job '%s'", self._name)

    def get_config(self) -> str:
        with self._job_context():
            return self._client.transport.get_text(f"{self.path}/config.xml")

    def set_config(self, config_xml: str) -> None:
        with self._job_context():
            self._client.transport.post(
                f"{self.path}/config.xml",
                config_xml.encode("utf-8"),
                headers={"Content-Type": "text/xml"},
            )

    def __repr__(self) -> str:
        return f"<Job {self._name}>"

    def __str__(self) -> str:
        return self._name
