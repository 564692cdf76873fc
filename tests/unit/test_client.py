"""Tests for the Mattermost REST client."""

from __future__ import annotations

import logging
from typing import Any
from unittest.mock import MagicMock, patch

import httpx
import pytest

from mmprobe.client import (
    DEFAULT_TIMEOUT,
    MattermostClientError,
    MattermostRestClient,
)


def make_client(**kwargs: Any) -> MattermostRestClient:
    params: dict[str, Any] = {
        "base_url": "https://chat.example.com",
        "token": "token123",
        "team": "ops",
    }
    params.update(kwargs)
    return MattermostRestClient(**params)


def make_response(data: dict[str, Any] | None = None) -> MagicMock:
    response = MagicMock()
    response.content = b"{}" if data is not None else b""
    response.json.return_value = data or {}
    response.raise_for_status = MagicMock()
    return response


def make_status_error(status_code: int, body: dict[str, Any] | None = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = body or {}
    response.raise_for_status.side_effect = httpx.HTTPStatusError(
        "error", request=MagicMock(), response=response
    )
    return response


class TestMattermostRestClientInit:
    """Tests for client construction."""

    def test_init_strips_trailing_slash(self) -> None:
        client = make_client(base_url="https://chat.example.com/")
        assert client.base_url == "https://chat.example.com"

    def test_init_uses_default_timeout(self) -> None:
        assert make_client().timeout == DEFAULT_TIMEOUT

    def test_init_uses_custom_timeout(self) -> None:
        custom_timeout = httpx.Timeout(5.0)
        assert make_client(timeout=custom_timeout).timeout == custom_timeout

    def test_http_client_uses_bearer_token(self) -> None:
        client = make_client()
        with patch("httpx.Client") as mock_client_class:
            mock_client_class.return_value.request.return_value = make_response({"id": "ch-1"})

            client.get_channel_by_name("town-square")

            kwargs = mock_client_class.call_args[1]
            assert kwargs["headers"]["Authorization"] == "Bearer token123"
            assert kwargs["timeout"] == DEFAULT_TIMEOUT


class TestGetChannelByName:
    """Tests for get_channel_by_name."""

    def test_success(self) -> None:
        client = make_client()
        with patch("httpx.Client") as mock_client_class:
            mock_client = MagicMock()
            mock_client.request.return_value = make_response({"id": "ch-42", "name": "town-square"})
            mock_client_class.return_value = mock_client

            channel_id = client.get_channel_by_name("town-square")

            assert channel_id == "ch-42"
            method, url = mock_client.request.call_args[0]
            assert method == "GET"
            assert url == "https://chat.example.com/api/v4/teams/name/ops/channels/name/town-square"

    def test_missing_team(self) -> None:
        client = make_client(team="")

        with pytest.raises(MattermostClientError) as exc_info:
            client.get_channel_by_name("town-square")

        assert "team" in str(exc_info.value)

    def test_not_found_includes_server_message(self) -> None:
        client = make_client()
        with patch("httpx.Client") as mock_client_class:
            mock_client_class.return_value.request.return_value = make_status_error(
                404, {"message": "Unable to find the existing channel."}
            )

            with pytest.raises(MattermostClientError) as exc_info:
                client.get_channel_by_name("missing")

            assert "404" in str(exc_info.value)
            assert "Unable to find the existing channel." in str(exc_info.value)
            assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    def test_response_without_id(self) -> None:
        client = make_client()
        with patch("httpx.Client") as mock_client_class:
            mock_client_class.return_value.request.return_value = make_response({"name": "x"})

            with pytest.raises(MattermostClientError) as exc_info:
                client.get_channel_by_name("x")

            assert "no id" in str(exc_info.value)

    def test_timeout(self) -> None:
        client = make_client()
        with patch("httpx.Client") as mock_client_class:
            mock_client_class.return_value.request.side_effect = httpx.TimeoutException(
                "Connection timed out"
            )

            with pytest.raises(MattermostClientError) as exc_info:
                client.get_channel_by_name("town-square")

            assert "timed out" in str(exc_info.value)

    def test_request_error(self) -> None:
        client = make_client()
        with patch("httpx.Client") as mock_client_class:
            mock_client_class.return_value.request.side_effect = httpx.RequestError(
                "Connection failed"
            )

            with pytest.raises(MattermostClientError) as exc_info:
                client.get_channel_by_name("town-square")

            assert "request failed" in str(exc_info.value)


class TestJoinChannel:
    """Tests for join_channel."""

    def test_join_posts_current_user(self) -> None:
        client = make_client()
        with patch("httpx.Client") as mock_client_class:
            mock_client = MagicMock()
            mock_client.request.side_effect = [
                make_response({"id": "user-1"}),
                make_response({"channel_id": "ch-1", "user_id": "user-1"}),
            ]
            mock_client_class.return_value = mock_client

            client.join_channel("ch-1")

            me_call, join_call = mock_client.request.call_args_list
            assert me_call[0] == ("GET", "https://chat.example.com/api/v4/users/me")
            assert join_call[0] == ("POST", "https://chat.example.com/api/v4/channels/ch-1/members")
            assert join_call[1]["json"] == {"user_id": "user-1"}

    def test_user_id_is_cached(self) -> None:
        client = make_client()
        with patch("httpx.Client") as mock_client_class:
            mock_client = MagicMock()
            mock_client.request.side_effect = [
                make_response({"id": "user-1"}),
                make_response(),
                make_response(),
            ]
            mock_client_class.return_value = mock_client

            client.join_channel("ch-1")
            client.join_channel("ch-1")

            assert mock_client.request.call_count == 3
            assert mock_client_class.call_count == 1

    def test_join_forbidden(self) -> None:
        client = make_client()
        with patch("httpx.Client") as mock_client_class:
            mock_client = MagicMock()
            mock_client.request.side_effect = [
                make_response({"id": "user-1"}),
                make_status_error(403, {"message": "You do not have the appropriate permissions."}),
            ]
            mock_client_class.return_value = mock_client

            with pytest.raises(MattermostClientError) as exc_info:
                client.join_channel("ch-1")

            assert "403" in str(exc_info.value)

    def test_current_user_without_id(self) -> None:
        client = make_client()
        with patch("httpx.Client") as mock_client_class:
            mock_client_class.return_value.request.return_value = make_response({})

            with pytest.raises(MattermostClientError):
                client.join_channel("ch-1")


class TestClientLifecycle:
    """Tests for close() and context manager support."""

    def test_close_closes_http_client(self) -> None:
        with patch("httpx.Client") as mock_client_class:
            mock_client = MagicMock()
            mock_client.request.return_value = make_response({"id": "ch-1"})
            mock_client_class.return_value = mock_client

            with make_client() as client:
                client.get_channel_by_name("town-square")

            mock_client.close.assert_called_once()

    def test_close_without_requests_is_noop(self) -> None:
        make_client().close()


class TestLoggingHooks:
    """Tests for the default logging hooks."""

    def test_log_info_and_error(self, caplog: pytest.LogCaptureFixture) -> None:
        client = make_client()

        with caplog.at_level(logging.INFO, logger="mmprobe"):
            client.log_info("Frequency: %s seconds", 1.0)
            client.log_error("Channel Join Error: %s", "boom")

        assert "Frequency: 1.0 seconds" in caplog.text
        assert "Channel Join Error: boom" in caplog.text
        assert [r.levelname for r in caplog.records[-2:]] == ["INFO", "ERROR"]
