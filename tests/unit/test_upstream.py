"""
Unit tests for the upstream API client.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from edge_router.upstream import UpstreamClient, UpstreamStatus


def make_response(status_code=200, json_data=None, json_error=None):
    resp = MagicMock()
    resp.status_code = status_code
    if json_error is not None:
        resp.json.side_effect = json_error
    else:
        resp.json.return_value = json_data
    return resp


@pytest.fixture
def client():
    return UpstreamClient("http://upstream.test/", timeout=3)


class TestUpstreamClient:
    """Test result mapping for every outbound failure mode."""

    def test_fetch_video_ok(self, client):
        with patch("edge_router.upstream.requests.get", return_value=make_response(json_data={"event": {}})) as mock_get:
            result = client.fetch_video("abc123")

        assert result.status is UpstreamStatus.OK
        assert result.ok is True
        assert result.data == {"event": {}}
        mock_get.assert_called_once_with(
            "http://upstream.test/api/videos/abc123", headers={"Accept": "application/json"}, timeout=3
        )

    def test_fetch_user_path(self, client, alice_pubkey):
        with patch("edge_router.upstream.requests.get", return_value=make_response(json_data={})) as mock_get:
            client.fetch_user(alice_pubkey)

        assert mock_get.call_args[0][0] == f"http://upstream.test/api/users/{alice_pubkey}"

    def test_identifier_is_path_escaped(self, client):
        with patch("edge_router.upstream.requests.get", return_value=make_response(json_data={})) as mock_get:
            client.fetch_video("../admin?x=1")

        assert mock_get.call_args[0][0] == "http://upstream.test/api/videos/..%2Fadmin%3Fx%3D1"

    def test_timeout(self, client):
        with patch("edge_router.upstream.requests.get", side_effect=requests.Timeout("slow")):
            assert client.fetch_video("abc").status is UpstreamStatus.TIMEOUT

    def test_network_error(self, client):
        with patch("edge_router.upstream.requests.get", side_effect=requests.ConnectionError("refused")):
            assert client.fetch_video("abc").status is UpstreamStatus.NETWORK_ERROR

    def test_not_found(self, client):
        with patch("edge_router.upstream.requests.get", return_value=make_response(404)):
            result = client.fetch_video("abc")

        assert result.status is UpstreamStatus.NOT_FOUND
        assert result.status_code == 404

    def test_server_error(self, client):
        with patch("edge_router.upstream.requests.get", return_value=make_response(503)):
            assert client.fetch_user("abc").status is UpstreamStatus.HTTP_ERROR

    def test_non_json_body(self, client):
        with patch("edge_router.upstream.requests.get", return_value=make_response(json_error=ValueError("no json"))):
            assert client.fetch_video("abc").status is UpstreamStatus.MALFORMED

    def test_non_object_body(self, client):
        with patch("edge_router.upstream.requests.get", return_value=make_response(json_data=[1, 2])):
            assert client.fetch_video("abc").status is UpstreamStatus.MALFORMED

    def test_calls_share_no_session_state(self, alice_pubkey):
        with patch("edge_router.upstream.requests.Session") as mock_session, patch(
            "edge_router.upstream.requests.get", return_value=make_response(json_data={})
        ) as mock_get:
            client = UpstreamClient("http://upstream.test", timeout=3)
            client.fetch_user(alice_pubkey)
            client.fetch_user(alice_pubkey)

        mock_session.assert_not_called()
        assert mock_get.call_count == 2
        for call in mock_get.call_args_list:
            assert "cookies" not in call.kwargs

    def test_injected_session_is_used(self):
        session = MagicMock()
        session.get.return_value = make_response(json_data={"ok": True})

        result = UpstreamClient("http://upstream.test", session=session).fetch_video("abc")

        assert result.data == {"ok": True}
        session.get.assert_called_once()
