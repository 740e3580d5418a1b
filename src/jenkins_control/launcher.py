"""Trigger a build and wait for the build that trigger produced.

A trigger request returns no build number, so the launched build is
recognised as "last build number before the trigger, plus one". The loop
distinguishes three observations of the job's last build number:

* lower than expected: the trigger is still queued, keep waiting;
* equal to expected: the build exists, follow it until it finishes;
* higher than expected: some other build took the slot, give up.

Launching is refused while the job already has a build running, since two
in-flight builds would race for the same number.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

from jenkins_control.errors import NotLaunched
from jenkins_control.models import Build, Job

if TYPE_CHECKING:
    from jenkins_control.jenkins_client import JenkinsClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LaunchAttempt:
    job_name: str
    baseline: int
    triggered_at: float
    deadline: float
    poll_interval: float

    @property
    def expected_number(self) -> int:
        return self.baseline + 1

    def remaining(self, now: float) -> float:
        return max(self.deadline - now, 0.0)


class BuildLauncher:
    """Launch-and-wait against one client.

    ``clock`` and ``sleep`` default to :func:`time.monotonic` and
    :func:`time.sleep`; tests swap them for a fake timeline.
    """

    def __init__(
        self,
        client: JenkinsClient,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._clock = clock
        self._sleep = sleep

    def launch_and_wait(
        self,
        job_name: str,
        parameters: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
        poll_interval: float | None = None,
        cancel: threading.Event | None = None,
    ) -> Build:
        """Trigger ``job_name`` and wait for the resulting build.

        Args:
            job_name: Full name of the job (use '/' for folder paths).
            parameters: Build parameters; empty or None triggers a plain build.
            timeout: Seconds to wait after the trigger. Defaults to the
                client's ``launch_timeout``.
            poll_interval: Seconds between polls. Defaults to the client's
                ``poll_interval``.
            cancel: Optional event; once set, waiting stops after the
                current poll.

        Returns:
            The triggered build. ``building`` is False if it finished in
            time and True on timeout or cancellation. A build that never left
            the queue is returned as a provisional snapshot
            (``queued=True``).

        Raises:
            NotLaunched: If the job already has a build running. Nothing is
                triggered in that case.
        """
        config = self._client.config
        timeout = config.launch_timeout if timeout is None else timeout
        poll_interval = config.poll_interval if poll_interval is None else poll_interval
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive.")
        if timeout < 0:
            raise ValueError("timeout must not be negative.")

        job = self._client.get_job(job_name)
        last = job.last_build
        if last is not None and last.building:
            logger.info("Not launching '%s': build #%d is still running", job_name, last.number)
            raise NotLaunched(job_name, last.number, base_url=self._client.base_url)
        baseline = last.number if last is not None else 0

        triggered_at = self._clock()
        job.launch(parameters)
        attempt = LaunchAttempt(
            job_name=job_name,
            baseline=baseline,
            triggered_at=triggered_at,
            deadline=triggered_at + timeout,
            poll_interval=poll_interval,
        )
        logger.info("Waiting for build #%d of '%s'", attempt.expected_number, job_name)
        return self._wait(job, attempt, cancel)

    def _wait(self, job: Job, attempt: LaunchAttempt, cancel: threading.Event | None) -> Build:
        build: Build | None = None
        while True:
            if build is None:
                job.refresh()
                observed = job.last_build_number or 0
                if observed == attempt.expected_number:
                    build = job.get_build(observed)
                    logger.info("Build #%d of '%s' has started", observed, attempt.job_name)
                elif observed > attempt.expected_number:
                    logger.warning(
                        "Lost track of build #%d of '%s': last build is already #%d",
                        attempt.expected_number,
                        attempt.job_name,
                        observed,
                    )
                    return job.get_build(observed)
            else:
                build.refresh()

            if build is not None and not build.building:
                logger.info(
                    "Build #%d of '%s' finished: %s", build.number, attempt.job_name, build.result
                )
                return build

            now = self._clock()
            if now >= attempt.deadline:
                break
            if cancel is not None and cancel.is_set():
                logger.info("Stopped waiting for '%s': cancelled", attempt.job_name)
                break
            self._pause(min(attempt.poll_interval, attempt.remaining(now)), cancel)

        if build is None:
            logger.info(
                "Build #%d of '%s' still queued when waiting ended",
                attempt.expected_number,
                attempt.job_name,
            )
            return Build.provisional(attempt.job_name, attempt.expected_number, self._client)
        logger.info("Build #%d of '%s' still running when waiting ended", build.number, attempt.job_name)
        return build

    def _pause(self, seconds: float, cancel: threading.Event | None) -> None:
        if cancel is not None:
            cancel.wait(seconds)
        else:
            self._sleep(seconds)
