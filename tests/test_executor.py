"""Tests for the requests-backed transport."""

import json
from unittest.mock import patch

import requests

from reqrun.executor import PARSE_ERROR_BODY, execute_request


def _response(status_code=200, text="{}", headers=None):
    def _json(self):
        return json.loads(text)

    return type(
        "Response",
        (),
        {
            "status_code": status_code,
            "headers": headers or {},
            "text": text,
            "json": _json,
        },
    )()


class TestExecuteRequest:
    @patch("reqrun.executor.requests.request")
    def test_json_body(self, mock_req):
        mock_req.return_value = _response(text='{"status":"ok"}')
        result = execute_request(
            method="post",
            url="http://localhost:3000/api",
            headers={"Content-Type": "application/json"},
            body='{"a": 1}',
        )
        kwargs = mock_req.call_args[1]
        assert kwargs["method"] == "POST"
        assert kwargs["data"] == b'{"a": 1}'
        assert kwargs["headers"] == {"Content-Type": "application/json"}
        assert kwargs["timeout"] == 30
        assert result.status_code == 200
        assert result.body == {"status": "ok"}
        assert result.ok

    @patch("reqrun.executor.requests.request")
    def test_form_data(self, mock_req):
        mock_req.return_value = _response()
        execute_request(
            method="POST",
            url="http://localhost:3000/form",
            headers={"Content-Type": "application/json", "Authorization": "t"},
            form_data={"name": "test"},
        )
        kwargs = mock_req.call_args[1]
        assert kwargs["data"] == {"name": "test"}
        assert kwargs["headers"] == {"Authorization": "t"}

    @patch("reqrun.executor.requests.request")
    def test_no_body(self, mock_req):
        mock_req.return_value = _response()
        execute_request(method="GET", url="http://localhost:3000/x")
        assert mock_req.call_args[1]["data"] is None

    @patch("reqrun.executor.requests.request")
    def test_non_json_response(self, mock_req):
        mock_req.return_value = _response(status_code=502, text="<html>Bad gateway</html>")
        result = execute_request(method="GET", url="http://localhost:3000/x")
        assert result.error is None
        assert result.body == PARSE_ERROR_BODY
        assert result.raw_text == "<html>Bad gateway</html>"
        assert not result.ok

    @patch("reqrun.executor.requests.request")
    def test_connection_error(self, mock_req):
        mock_req.side_effect = requests.exceptions.ConnectionError("refused")
        result = execute_request(method="GET", url="http://localhost:9999/x")
        assert result.error.startswith("Connection error")
        assert not result.ok

    @patch("reqrun.executor.requests.request")
    def test_timeout(self, mock_req):
        mock_req.side_effect = requests.exceptions.Timeout()
        result = execute_request(method="GET", url="http://localhost:3000/x", timeout=5)
        assert result.error == "Request timed out after 5s"
