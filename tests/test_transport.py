"""Tests for the HTTP transport; the python-jenkins handle is mocked."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import jenkins
import pytest
import requests

from jenkins_control.config import JenkinsConfig
from jenkins_control.errors import DecodeError, HTTPStatusError, TransportError
from jenkins_control.transport import Transport

BASE_URL = "http://jenkins.local/"


def make_response(status: int = 200, body: bytes | str = b"", headers: dict | None = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = body.encode("utf-8") if isinstance(body, str) else body
    response.encoding = "utf-8"
    response.headers.update(headers or {})
    return response


def json_response(data, status: int = 200) -> requests.Response:
    return make_response(status, json.dumps(data), {"Content-Type": "application/json"})


CRUMB = {"crumb": "abc123", "crumbRequestField": "Jenkins-Crumb"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def handle():
    """Return a MagicMock that replaces jenkins.Jenkins."""
    return MagicMock(spec=jenkins.Jenkins)


@pytest.fixture
def transport(handle):
    return Transport(JenkinsConfig(base_url=BASE_URL), handle)


def sent_request(handle, index: int = -1) -> requests.Request:
    return handle.jenkins_request.call_args_list[index][0][0]


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
class TestGetJson:
    def test_returns_object_and_sends_depth(self, transport, handle):
        handle.jenkins_request.return_value = json_response({"name": "app"})

        data = transport.get_json("job/app/api/json")

        assert data == {"name": "app"}
        req = sent_request(handle)
        assert req.method == "GET"
        assert req.url == "http://jenkins.local/job/app/api/json"
        assert req.params == {"depth": 1}
        assert handle.jenkins_request.call_args.kwargs == {"add_crumb": False}

    def test_extra_params_and_no_depth(self, transport, handle):
        handle.jenkins_request.return_value = json_response({"jobs": []})

        transport.get_json("api/json", depth=None, params={"tree": "jobs[name]"})

        assert sent_request(handle).params == {"tree": "jobs[name]"}

    def test_invalid_json(self, transport, handle):
        handle.jenkins_request.return_value = make_response(200, "<html>oops</html>")

        with pytest.raises(DecodeError):
            transport.get_json("api/json")

    def test_json_that_is_not_an_object(self, transport, handle):
        handle.jenkins_request.return_value = json_response([1, 2, 3])

        with pytest.raises(DecodeError):
            transport.get_json("api/json")

    def test_base_url_gets_trailing_slash(self, handle):
        transport = Transport(JenkinsConfig(base_url="http://jenkins.local"), handle)
        assert transport.url("/api/json") == "http://jenkins.local/api/json"


class TestErrors:
    def test_not_found(self, transport, handle):
        handle.jenkins_request.side_effect = jenkins.NotFoundException("missing")

        with pytest.raises(HTTPStatusError) as exc_info:
            transport.get_json("job/ghost/api/json")

        assert exc_info.value.status_code == 404
        assert exc_info.value.url == "http://jenkins.local/job/ghost/api/json"
        assert exc_info.value.base_url == BASE_URL

    def test_auth_failure_status_is_recovered(self, transport, handle):
        handle.jenkins_request.side_effect = jenkins.JenkinsException(
            "Error in request. Possibly authentication failed [403]: Forbidden"
        )

        with pytest.raises(HTTPStatusError) as exc_info:
            transport.post("job/app/build")

        assert exc_info.value.status_code == 403

    def test_http_error(self, transport, handle):
        response = make_response(502)
        handle.jenkins_request.side_effect = requests.exceptions.HTTPError(response=response)

        with pytest.raises(HTTPStatusError) as exc_info:
            transport.get_json("api/json")

        assert exc_info.value.status_code == 502

    def test_non_success_response(self, transport, handle):
        handle.jenkins_request.return_value = make_response(304, "", {"Content-Length": "0"})

        with pytest.raises(HTTPStatusError) as exc_info:
            transport.get_text("job/app/config.xml")

        assert exc_info.value.status_code == 304

    def test_created_is_success(self, transport, handle):
        handle.jenkins_request.return_value = make_response(201, "", {"Content-Length": "0"})

        response = transport.post("job/app/build")

        assert response.status_code == 201

    def test_connection_error(self, transport, handle):
        handle.jenkins_request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(TransportError) as exc_info:
            transport.get_json("api/json")

        assert "http://jenkins.local/" in str(exc_info.value)

    def test_timeout(self, transport, handle):
        handle.jenkins_request.side_effect = jenkins.TimeoutException("timed out")

        with pytest.raises(TransportError):
            transport.get_json("api/json")

    def test_errors_are_jenkins_exceptions(self, transport, handle):
        handle.jenkins_request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(jenkins.JenkinsException):
            transport.get_json("api/json")


class TestPost:
    def test_form_data_and_extra_headers(self, handle):
        transport = Transport(
            JenkinsConfig(base_url=BASE_URL, extra_headers={"X-Team": "ci"}), handle
        )
        handle.jenkins_request.return_value = make_response(201, "", {"Content-Length": "0"})

        transport.post("job/app/buildWithParameters", {"BRANCH": "main"})

        req = sent_request(handle)
        assert req.method == "POST"
        assert req.data == {"BRANCH": "main"}
        assert req.headers == {"X-Team": "ci"}

    def test_caller_headers_win(self, transport, handle):
        handle.jenkins_request.return_value = make_response(200, "ok")

        transport.post("job/app/config.xml", b"<project/>", headers={"Content-Type": "text/xml"})

        assert sent_request(handle).headers == {"Content-Type": "text/xml"}


# ---------------------------------------------------------------------------
# Crumbs
# ---------------------------------------------------------------------------
class TestCrumbs:
    def test_enable_attaches_header_to_posts_only(self, transport, handle):
        handle.jenkins_request.side_effect = [
            json_response(CRUMB),
            make_response(201, "", {"Content-Length": "0"}),
            json_response({}),
        ]

        assert transport.enable_crumbs() is True
        transport.post("job/app/build")
        transport.get_json("api/json")

        crumb_req = sent_request(handle, 0)
        assert crumb_req.url == "http://jenkins.local/crumbIssuer/api/json"
        assert crumb_req.params is None or crumb_req.params == {}
        assert sent_request(handle, 1).headers == {"Jenkins-Crumb": "abc123"}
        assert sent_request(handle, 2).headers == {}
        assert transport.crumbs_enabled is True

    def test_malformed_crumb_disables(self, transport, handle):
        handle.jenkins_request.side_effect = [
            make_response(200, "not json at all"),
            make_response(201, "", {"Content-Length": "0"}),
        ]

        assert transport.enable_crumbs() is False
        transport.post("job/app/build")

        assert transport.crumbs_enabled is False
        assert sent_request(handle, 1).headers == {}

    def test_crumb_without_fields_disables(self, transport, handle):
        handle.jenkins_request.return_value = json_response({"crumb": "abc"})

        assert transport.enable_crumbs() is False
        assert transport.crumb_header() == {}

    def test_missing_crumb_issuer_disables(self, transport, handle):
        handle.jenkins_request.side_effect = jenkins.NotFoundException("missing")

        assert transport.enable_crumbs() is False

    def test_connection_error_during_negotiation_propagates(self, transport, handle):
        handle.jenkins_request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(TransportError):
            transport.enable_crumbs()

    def test_disable(self, transport, handle):
        handle.jenkins_request.return_value = json_response(CRUMB)
        transport.enable_crumbs()

        transport.disable_crumbs()

        assert transport.crumbs_enabled is False
        assert transport.crumb_header() == {}

    def test_enabled_from_config(self, handle):
        handle.jenkins_request.return_value = json_response(CRUMB)

        transport = Transport(JenkinsConfig(base_url=BASE_URL, crumbs_enabled=True), handle)

        assert transport.crumb_header() == {"Jenkins-Crumb": "abc123"}
