"""HTTP transport for the Jenkins JSON API.

Requests go through a python-jenkins handle, which owns the ``requests``
session and basic authentication. This module adds what the handle does not
do the way this client needs: per-client extra headers, an explicit crumb
negotiation that degrades to "disabled" on a malformed answer, and a single
error vocabulary (:mod:`jenkins_control.errors`).
"""

from __future__ import annotations

import logging
import re
from typing import Any

import jenkins
import requests
import requests.exceptions as req_exc

from jenkins_control.config import JenkinsConfig
from jenkins_control.errors import DecodeError, HTTPStatusError, TransportError

logger = logging.getLogger(__name__)

CRUMB_PATH = "crumbIssuer/api/json"

# python-jenkins folds 401/403/500 into a plain JenkinsException whose
# message contains "[<status>]".
_STATUS_IN_MESSAGE = re.compile(r"\[(\d{3})\]")


class Transport:
    """Authenticated GET/POST against one Jenkins server."""

    def __init__(self, config: JenkinsConfig, handle: jenkins.Jenkins | None = None) -> None:
        self.config = config
        if handle is None:
            kwargs: dict[str, Any] = {}
            if config.timeout is not None:
                kwargs["timeout"] = config.timeout
            handle = jenkins.Jenkins(
                config.base_url,
                username=config.username,
                password=config.api_token,
                **kwargs,
            )
            if not config.verify_tls:
                # python-jenkins documents its session as the place to turn
                # certificate checks off.
                handle._session.verify = False
        self._handle = handle
        self._crumbs_enabled = False
        self._crumb_field: str | None = None
        self._crumb_value: str | None = None
        if config.crumbs_enabled:
            self.enable_crumbs()

    @property
    def base_url(self) -> str:
        return self.config.base_url

    def url(self, path: str) -> str:
        return self.config.base_url + path.lstrip("/")

    # ------------------------------------------------------------------
    # Crumbs
    # ------------------------------------------------------------------
    @property
    def crumbs_enabled(self) -> bool:
        return self._crumbs_enabled

    def crumb_header(self) -> dict[str, str]:
        """Return the crumb header to attach to mutating requests, if any."""
        if not self._crumbs_enabled or not self._crumb_field:
            return {}
        return {self._crumb_field: self._crumb_value or ""}

    def request_crumb(self) -> dict[str, str] | None:
        """Ask the server for a crumb.

        Returns ``None`` when the crumb issuer is missing or its answer is
        malformed. Connection failures are raised.
        """
        try:
            data = self.get_json(CRUMB_PATH, depth=None)
        except DecodeError as e:
            logger.warning("Malformed crumb response from %s: %s", self.base_url, e.message)
            return None
        except HTTPStatusError as e:
            if e.status_code == 404:
                logger.warning("No crumb issuer on %s", self.base_url)
                return None
            raise
        crumb = data.get("crumb")
        field_name = data.get("crumbRequestField")
        if not isinstance(crumb, str) or not isinstance(field_name, str) or not field_name:
            logger.warning("Crumb response from %s lacks crumb fields", self.base_url)
            return None
        return {"crumbRequestField": field_name, "crumb": crumb}

    def enable_crumbs(self) -> bool:
        """Negotiate a crumb and send it on every later POST.

        Returns whether crumb mode ended up enabled; a failed negotiation
        leaves it disabled.
        """
        crumb = self.request_crumb()
        if crumb is None:
            self.disable_crumbs()
            return False
        self._crumb_field = crumb["crumbRequestField"]
        self._crumb_value = crumb["crumb"]
        self._crumbs_enabled = True
        logger.debug("Crumb mode enabled for %s (header %s)", self.base_url, self._crumb_field)
        return True

    def disable_crumbs(self) -> None:
        self._crumbs_enabled = False
        self._crumb_field = None
        self._crumb_value = None

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------
    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        data: Any = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        """Send one request and return the response.

        Raises:
            TransportError: If no HTTP response was received.
            HTTPStatusError: If the status is not 2xx.
            DecodeError: If the server sent an empty, header-less response.
        """
        url = self.url(path)
        all_headers = dict(self.config.extra_headers)
        if method.upper() == "POST":
            all_headers.update(self.crumb_header())
        if headers:
            all_headers.update(headers)

        logger.log(logging.INFO if self.config.verbose else logging.DEBUG, "%s %s", method, url)
        req = requests.Request(method, url, params=params, data=data, headers=all_headers)
        try:
            response = self._handle.jenkins_request(req, add_crumb=False)
        except jenkins.NotFoundException as e:
            raise HTTPStatusError(
                f"Requested item could not be found: {url}",
                status_code=404,
                url=url,
                base_url=self.base_url,
            ) from e
        except jenkins.TimeoutException as e:
            raise TransportError(f"Timed out requesting {url}", base_url=self.base_url) from e
        except jenkins.EmptyResponseException as e:
            raise DecodeError(f"Empty response from {url}", base_url=self.base_url) from e
        except jenkins.JenkinsException as e:
            match = _STATUS_IN_MESSAGE.search(str(e))
            raise HTTPStatusError(
                f"Error requesting {url}: {e}",
                status_code=int(match.group(1)) if match else None,
                url=url,
                base_url=self.base_url,
            ) from e
        except req_exc.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise HTTPStatusError(
                f"HTTP {status} from {url}",
                status_code=status,
                url=url,
                base_url=self.base_url,
            ) from e
        except req_exc.RequestException as e:
            raise TransportError(f"Error requesting {url}: {e}", base_url=self.base_url) from e

        if not 200 <= response.status_code < 300:
            raise HTTPStatusError(
                f"HTTP {response.status_code} from {url}",
                status_code=response.status_code,
                url=url,
                base_url=self.base_url,
            )
        return response

    def get_json(
        self,
        path: str,
        *,
        depth: int | None = 1,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """GET ``path`` and decode the body as a JSON object."""
        query: dict[str, Any] = {}
        if depth is not None:
            query["depth"] = depth
        if params:
            query.update(params)
        response = self.request("GET", path, params=query or None)
        try:
            data = response.json()
        except ValueError as e:
            raise DecodeError(
                f"Response from {self.url(path)} is not valid JSON", base_url=self.base_url
            ) from e
        if not isinstance(data, dict):
            raise DecodeError(
                f"Response from {self.url(path)} is not a JSON object", base_url=self.base_url
            )
        return data

    def get_text(self, path: str) -> str:
        return self.request("GET", path).text

    def post(
        self,
        path: str,
        data: Any = None,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        """POST to ``path``; dicts are form-encoded, strings sent as-is."""
        return self.request("POST", path, params=params, data=data, headers=headers)
