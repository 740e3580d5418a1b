"""Jenkins control MCP server: trigger, wait for and inspect Jenkins jobs."""

from __future__ import annotations

import logging
from typing import Any

import jenkins
from fastmcp import FastMCP

from jenkins_control.errors import NotLaunched
from jenkins_control.jenkins_client import get_client
from jenkins_control.models import Build

mcp = FastMCP("Jenkins Control Server")


def _format_error(e: Exception) -> dict[str, Any]:
    """Format an exception into a consistent error response."""
    return {"error": True, "message": str(e)}


def _build_summary(build: Build) -> dict[str, Any]:
    start_time = build.timestamp
    return {
        "build_number": build.number,
        "result": build.result,  # SUCCESS, FAILURE, ABORTED, None (building)
        "building": build.building,
        "queued": build.queued,
        "start_time": start_time.isoformat() if start_time else None,
        "duration_ms": build.duration,
        "estimated_duration_ms": build.estimated_duration,
        "display_name": build.display_name,
        "url": build.url,
    }


# ---------------------------------------------------------------------------
# Tool 1: trigger_job
# ---------------------------------------------------------------------------
@mcp.tool
def trigger_job(job_name: str, parameters: dict[str, Any] | None = None) -> dict[str, Any]:
    """Trigger a Jenkins job build, optionally with parameters.

    The trigger does not wait for the build; use launch_and_wait for that.

    Args:
        job_name: Full name of the Jenkins job (use '/' for folder paths).
        parameters: Optional dict of build parameters (key-value pairs).

    Returns:
        A dict confirming the trigger.
    """
    try:
        client = get_client()
        client.get_job(job_name).launch(parameters)
        return {
            "success": True,
            "job_name": job_name,
            "message": f"Job '{job_name}' has been triggered.",
        }
    except jenkins.JenkinsException as e:
        return _format_error(e)
    except ValueError as e:
        return _format_error(e)


# ---------------------------------------------------------------------------
# Tool 2: launch_and_wait
# ---------------------------------------------------------------------------
@mcp.tool
def launch_and_wait(
    job_name: str,
    parameters: dict[str, Any] | None = None,
    timeout_seconds: float | None = None,
    poll_interval_seconds: float | None = None,
) -> dict[str, Any]:
    """Trigger a Jenkins job and wait until the triggered build finishes.

    Refuses to trigger while the job already has a build running.

    Args:
        job_name: Full name of the Jenkins job.
        parameters: Optional dict of build parameters.
        timeout_seconds: How long to wait. Defaults to JENKINS_LAUNCH_TIMEOUT.
        poll_interval_seconds: Seconds between status checks. Defaults to
            JENKINS_POLL_INTERVAL.

    Returns:
        A dict with the build status. "finished" is False when waiting timed
        out; "launched" is False when nothing was triggered.
    """
    try:
        client = get_client()
        build = client.get_job(job_name).launch_and_wait(
            parameters,
            timeout=timeout_seconds,
            poll_interval=poll_interval_seconds,
        )
    except NotLaunched as e:
        return {
            "success": False,
            "launched": False,
            "job_name": job_name,
            "building_number": e.building_number,
            "message": str(e),
        }
    except jenkins.JenkinsException as e:
        return _format_error(e)
    except ValueError as e:
        return _format_error(e)

    finished = not build.building
    if finished:
        message = f"Build #{build.number} of '{job_name}' finished: {build.result}"
    else:
        message = f"Build #{build.number} of '{job_name}' has not finished yet."
    return {
        "success": True,
        "launched": True,
        "finished": finished,
        "job_name": job_name,
        **_build_summary(build),
        "message": message,
    }


# ---------------------------------------------------------------------------
# Tool 3: get_job_parameters
# ---------------------------------------------------------------------------
@mcp.tool
def get_job_parameters(job_name: str) -> dict[str, Any]:
    """Get the parameter definitions for a Jenkins job.

    Args:
        job_name: Full name of the Jenkins job.

    Returns:
        A dict containing a list of parameter definitions with name, type,
        default value, choices and description for each parameter.
    """
    try:
        client = get_client()
        definitions = client.get_job(job_name).parameters_definition

        params = [
            {
                "name": d.name,
                "type": d.type,
                "description": d.description or "",
                "default_value": d.default,
                "choices": d.choices,
            }
            for d in definitions.values()
        ]
        return {
            "success": True,
            "job_name": job_name,
            "parameter_count": len(params),
            "parameters": params,
        }
    except jenkins.JenkinsException as e:
        return _format_error(e)
    except ValueError as e:
        return _format_error(e)


# ---------------------------------------------------------------------------
# Tool 4: get_job_status
# ---------------------------------------------------------------------------
@mcp.tool
def get_job_status(
    job_name: str, build_number: int | None = None
) -> dict[str, Any]:
    """Get the status of a Jenkins job build.

    Args:
        job_name: Full name of the Jenkins job.
        build_number: Specific build number to query. If not provided, the
            latest build is used.

    Returns:
        A dict with build status information including build number, result,
        whether it is still building, timestamp and duration.
    """
    try:
        client = get_client()

        if build_number is None:
            build = client.get_job(job_name).last_build
            if build is None:
                return {
                    "success": True,
                    "job_name": job_name,
                    "message": "No builds found for this job.",
                }
        else:
            build = client.get_build(job_name, build_number)

        return {"success": True, "job_name": job_name, **_build_summary(build)}
    except jenkins.JenkinsException as e:
        return _format_error(e)
    except ValueError as e:
        return _format_error(e)


# ---------------------------------------------------------------------------
# Tool 5: get_job_config
# ---------------------------------------------------------------------------
@mcp.tool
def get_job_config(job_name: str) -> dict[str, Any]:
    """Get the XML configuration of a Jenkins job.

    Args:
        job_name: Full name of the Jenkins job.

    Returns:
        A dict containing the job's config.xml text.
    """
    try:
        client = get_client()
        config_xml = client.get_job(job_name).get_config()
        return {"success": True, "job_name": job_name, "config_xml": config_xml}
    except jenkins.JenkinsException as e:
        return _format_error(e)
    except ValueError as e:
        return _format_error(e)


# ---------------------------------------------------------------------------
# Tool 6: delete_job
# ---------------------------------------------------------------------------
@mcp.tool
def delete_job(job_name: str) -> dict[str, Any]:
    """Delete a Jenkins job and all of its builds.

    Args:
        job_name: Full name of the Jenkins job.

    Returns:
        A dict indicating whether the deletion was successful.
    """
    try:
        client = get_client()
        client.get_job(job_name).delete()
        return {
            "success": True,
            "job_name": job_name,
            "message": f"Job '{job_name}' has been deleted.",
        }
    except jenkins.JenkinsException as e:
        return _format_error(e)
    except ValueError as e:
        return _format_error(e)


# ---------------------------------------------------------------------------
# Tool 7: list_jobs
# ---------------------------------------------------------------------------
@mcp.tool
def list_jobs() -> dict[str, Any]:
    """List the names of all top-level Jenkins jobs."""
    try:
        client = get_client()
        names = client.list_job_names()
        return {"success": True, "total": len(names), "jobs": names}
    except jenkins.JenkinsException as e:
        return _format_error(e)
    except ValueError as e:
        return _format_error(e)


# ---------------------------------------------------------------------------
# Tool 8: list_building_jobs
# ---------------------------------------------------------------------------
@mcp.tool
def list_building_jobs() -> dict[str, Any]:
    """List the Jenkins jobs that currently have a build running."""
    try:
        client = get_client()
        jobs = client.get_currently_building_jobs()
        records = []
        for job in jobs:
            records.append({"job_name": job.name, "last_build_number": job.last_build_number})
        return {"success": True, "total": len(records), "jobs": records}
    except jenkins.JenkinsException as e:
        return _format_error(e)
    except ValueError as e:
        return _format_error(e)


# ---------------------------------------------------------------------------
# Tool 9: set_quiet_mode
# ---------------------------------------------------------------------------
@mcp.tool
def set_quiet_mode(enabled: bool) -> dict[str, Any]:
    """Enter or leave Jenkins quiet-down (prepare for shutdown) mode.

    While quiet-down mode is on, Jenkins starts no new builds.

    Args:
        enabled: True to enter quiet-down mode, False to leave it.
    """
    try:
        client = get_client()
        if enabled:
            client.prepare_shutdown()
            message = "Jenkins is preparing for shutdown; no new builds will start."
        else:
            client.cancel_prepare_shutdown()
            message = "Jenkins shutdown preparation cancelled."
        return {"success": True, "quiet_mode": enabled, "message": message}
    except jenkins.JenkinsException as e:
        return _format_error(e)
    except ValueError as e:
        return _format_error(e)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
def main() -> None:
    logging.basicConfig(level=logging.INFO)
    mcp.run()


if __name__ == "__main__":
    main()
