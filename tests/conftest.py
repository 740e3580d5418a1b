"""Shared fixtures: an in-memory Jenkins served through the Transport API."""

from __future__ import annotations

from typing import Any, Callable
from unittest.mock import MagicMock
from urllib.parse import unquote

import jenkins
import pytest

from jenkins_control.config import JenkinsConfig
from jenkins_control.errors import HTTPStatusError
from jenkins_control.jenkins_client import JenkinsClient

BASE_URL = "http://jenkins.local/"


class FakeClock:
    """Manual clock; ``sleep`` advances it instead of blocking."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeJenkins:
    """Jobs and builds kept in memory, answering like ``Transport`` does.

    Scheduled events (``at``) fire once the clock reaches their time, just
    before the next request is served.
    """

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.base_url = BASE_URL
        self.jobs: dict[str, dict[str, Any]] = {}
        self.posts: list[tuple[str, Any]] = []
        self.gets: list[str] = []
        self.on_trigger: Callable[[str, Any], None] | None = None
        self._events: list[tuple[float, Callable[[], None]]] = []

    # -- scripting -------------------------------------------------------
    def add_job(self, name: str, builds: list[dict[str, Any]] | None = None, **extra: Any) -> None:
        self.jobs[name] = {"builds": {}, "config": "<project/>", "extra": extra}
        for build in builds or []:
            self.add_build(name, **build)

    def add_build(self, name: str, number: int, building: bool = False, result: str | None = "SUCCESS") -> None:
        self.jobs[name]["builds"][number] = {
            "number": number,
            "building": building,
            "result": None if building else result,
            "url": f"{BASE_URL}job/{name}/{number}/",
        }

    def finish_build(self, name: str, number: int, result: str = "SUCCESS") -> None:
        self.jobs[name]["builds"][number].update(building=False, result=result)

    def at(self, when: float, action: Callable[[], None]) -> None:
        self._events.append((when, action))

    def _fire_due_events(self) -> None:
        due = [e for e in self._events if e[0] <= self.clock.now]
        self._events = [e for e in self._events if e[0] > self.clock.now]
        for _, action in sorted(due, key=lambda e: e[0]):
            action()

    # -- Transport interface --------------------------------------------
    def _not_found(self, path: str) -> HTTPStatusError:
        return HTTPStatusError(
            "Requested item could not be found",
            status_code=404,
            url=BASE_URL + path,
            base_url=BASE_URL,
        )

    def _job(self, name: str, path: str) -> dict[str, Any]:
        if name not in self.jobs:
            raise self._not_found(path)
        return self.jobs[name]

    def _job_snapshot(self, name: str, job: dict[str, Any]) -> dict[str, Any]:
        builds = job["builds"]
        numbers = sorted(builds, reverse=True)
        successful = [n for n in numbers if builds[n]["result"] == "SUCCESS"]
        return {
            "name": name,
            "buildable": True,
            "color": "blue_anime" if numbers and builds[numbers[0]]["building"] else "blue",
            "builds": [{"number": n} for n in numbers],
            "lastBuild": {"number": numbers[0]} if numbers else None,
            "lastSuccessfulBuild": {"number": successful[0]} if successful else None,
            **job["extra"],
        }

    def get_json(self, path: str, *, depth: int | None = 1, params: dict[str, Any] | None = None) -> dict[str, Any]:
        self._fire_due_events()
        self.gets.append(path)
        parts = path.split("/")
        name = unquote(parts[1])
        job = self._job(name, path)
        if parts[2] == "api":
            return self._job_snapshot(name, job)
        number = int(parts[2])
        if number not in job["builds"]:
            raise self._not_found(path)
        return dict(job["builds"][number])

    def get_text(self, path: str) -> str:
        self._fire_due_events()
        parts = path.split("/")
        return self._job(unquote(parts[1]), path)["config"]

    def post(self, path: str, data: Any = None, *, params: Any = None, headers: Any = None) -> MagicMock:
        self._fire_due_events()
        parts = path.split("/")
        name = unquote(parts[1])
        job = self._job(name, path)
        self.posts.append((path, data))
        action = parts[2]
        if action == "config.xml":
            job["config"] = data.decode("utf-8")
        elif action == "doDelete":
            del self.jobs[name]
        elif action in ("build", "buildWithParameters") and self.on_trigger is not None:
            self.on_trigger(name, data)
        return MagicMock(status_code=201)


@pytest.fixture
def config() -> JenkinsConfig:
    return JenkinsConfig(base_url=BASE_URL, poll_interval=5, launch_timeout=30)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def server(clock: FakeClock) -> FakeJenkins:
    return FakeJenkins(clock)


@pytest.fixture
def client(config: JenkinsConfig, server: FakeJenkins) -> JenkinsClient:
    """A JenkinsClient whose transport is the in-memory server."""
    client = JenkinsClient(config, handle=MagicMock(spec=jenkins.Jenkins))
    client.transport = server
    return client
