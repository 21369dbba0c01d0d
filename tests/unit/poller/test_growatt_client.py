from unittest.mock import MagicMock, patch

import httpx
import pytest

from services.poller.src.errors import UpstreamUnavailable
from services.poller.src.growatt_client import GrowattClient, hash_password


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    return response


class TestHashPassword:
    """Tests for hash_password."""

    def test_replaces_zero_at_even_positions(self):
        # md5("123456") = e10adc3949ba59abbe56e057f20f883e
        assert hash_password("123456") == "e1cadc3949ba59abbe56e057f2cf883e"

    def test_digest_length_unchanged(self):
        assert len(hash_password("anything")) == 32


class TestGrowattClient:
    """Tests for GrowattClient."""

    def test_login_returns_user_id(self, mock_http_client, sample_login_response):
        mock_http_client.request.return_value = _response(sample_login_response)

        client = GrowattClient("demo", "123456", client=mock_http_client)
        user_id = client.login()

        assert user_id == "4711"
        call_args = mock_http_client.request.call_args
        assert call_args.args == ("POST", "https://server.growatt.com/newTwoLoginAPI.do")
        assert call_args.kwargs["data"]["password"] == hash_password("123456")

    def test_rejected_login_raises(self, mock_http_client):
        mock_http_client.request.return_value = _response(
            {"back": {"success": False, "msg": "501"}}
        )

        client = GrowattClient("demo", "wrong", client=mock_http_client)

        with pytest.raises(UpstreamUnavailable, match="rejected"):
            client.login()

    def test_get_plant_list_logs_in_first(
        self, mock_http_client, sample_login_response, sample_plant_list_response
    ):
        mock_http_client.request.side_effect = [
            _response(sample_login_response),
            _response(sample_plant_list_response),
        ]

        client = GrowattClient("demo", "123456", client=mock_http_client)
        plants = client.get_plant_list()

        assert [p["plantId"] for p in plants] == ["P1", "P2"]
        assert mock_http_client.request.call_count == 2
        assert mock_http_client.request.call_args.kwargs["params"] == {"userId": "4711"}

    def test_login_happens_once(
        self, mock_http_client, sample_login_response, sample_plant_list_response
    ):
        mock_http_client.request.side_effect = [
            _response(sample_login_response),
            _response(sample_plant_list_response),
            _response(sample_plant_list_response),
        ]

        client = GrowattClient("demo", "123456", client=mock_http_client)
        client.get_plant_list()
        client.get_plant_list()

        assert mock_http_client.request.call_count == 3

    def test_get_device_list(
        self, mock_http_client, sample_login_response, sample_device_list_response
    ):
        mock_http_client.request.side_effect = [
            _response(sample_login_response),
            _response(sample_device_list_response),
        ]

        client = GrowattClient("demo", "123456", client=mock_http_client)
        devices = client.get_device_list("P1")

        assert devices[0]["deviceSn"] == "INV001"
        params = mock_http_client.request.call_args.kwargs["params"]
        assert params["plantId"] == "P1"
        assert params["op"] == "getAllDeviceList"

    def test_missing_lists_are_empty(self, mock_http_client, sample_login_response):
        mock_http_client.request.side_effect = [
            _response(sample_login_response),
            _response({"back": {}}),
            _response({}),
        ]

        client = GrowattClient("demo", "123456", client=mock_http_client)

        assert client.get_plant_list() == []
        assert client.get_device_list("P1") == []

    def test_transport_error_raises_upstream_unavailable(self, mock_http_client):
        mock_http_client.request.side_effect = httpx.ConnectError("connection refused")

        client = GrowattClient("demo", "123456", client=mock_http_client)

        with pytest.raises(UpstreamUnavailable):
            client.get_plant_list()

    def test_http_status_error_raises_upstream_unavailable(self, mock_http_client):
        response = MagicMock()
        response.raise_for_status.side_effect = httpx.HTTPStatusError(
            "503 Service Unavailable", request=MagicMock(), response=MagicMock()
        )
        mock_http_client.request.return_value = response

        client = GrowattClient("demo", "123456", client=mock_http_client)

        with pytest.raises(UpstreamUnavailable):
            client.login()

    def test_non_json_body_raises_upstream_unavailable(self, mock_http_client):
        response = MagicMock()
        response.json.side_effect = ValueError("Expecting value")
        mock_http_client.request.return_value = response

        client = GrowattClient("demo", "123456", client=mock_http_client)

        with pytest.raises(UpstreamUnavailable, match="not JSON"):
            client.login()

    @patch("httpx.Client")
    def test_builds_default_http_client(self, mock_client_class):
        client = GrowattClient("demo", "123456", server_url="https://eu.growatt.example", timeout=5.0)
        client.close()

        mock_client_class.assert_called_once_with(timeout=5.0, follow_redirects=True)
        mock_client_class.return_value.close.assert_called_once()
