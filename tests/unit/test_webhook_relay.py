"""Tests for the webhook relay: validation, execution, classification."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import pytest

from relaychat.audit.journal import RelayJournal
from relaychat.models import ErrorKind, RelayKind
from relaychat.normalizer import ECHO_GREETING
from relaychat.webhook.errors import RelayValidationError
from relaychat.webhook.relay import SOURCE, TEST_MESSAGE, USER_AGENT, WebhookRelay, decode_body
from tests.conftest import WEBHOOK_URL, json_reply, make_send_body, raising, text_reply


def _fields(exc: RelayValidationError) -> set[str]:
    return {d["field"] for d in exc.details}


class TestValidation:
    """Validation happens before any network I/O."""

    @pytest.mark.asyncio
    async def test_missing_message_names_field_and_skips_network(self, make_relay: Any) -> None:
        relay, transport = make_relay(json_reply({"response": "hi"}))
        with pytest.raises(RelayValidationError) as info:
            await relay.send(make_send_body(payload={"conversationId": "c1"}))
        assert "payload.message" in _fields(info.value)
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_missing_payload(self, make_relay: Any) -> None:
        relay, transport = make_relay(json_reply({}))
        body = make_send_body()
        del body["payload"]
        with pytest.raises(RelayValidationError) as info:
            await relay.send(body)
        assert "payload" in _fields(info.value)
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_blank_message_rejected(self, make_relay: Any) -> None:
        relay, _ = make_relay(json_reply({}))
        with pytest.raises(RelayValidationError) as info:
            await relay.send(make_send_body(payload={"message": "   "}))
        assert "payload.message" in _fields(info.value)

    @pytest.mark.asyncio
    async def test_every_violation_is_listed(self, make_relay: Any) -> None:
        relay, transport = make_relay(json_reply({}))
        body = {
            "url": "ftp://example.com/file",
            "method": "DELETE",
            "headers": {"X-Token": 123},
            "payload": {},
        }
        with pytest.raises(RelayValidationError) as info:
            await relay.send(body)
        assert _fields(info.value) == {"url", "method", "headers.X-Token", "payload.message"}
        assert transport.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["not a url", "/relative/path", "mailto:me@example.com", ""])
    async def test_invalid_urls(self, make_relay: Any, url: str) -> None:
        relay, transport = make_relay(json_reply({}))
        with pytest.raises(RelayValidationError) as info:
            await relay.test({"url": url})
        assert "url" in _fields(info.value)
        assert transport.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value", ["caf\u00e9", "line\r\nX-Injected: 1"])
    async def test_unsendable_header_value(self, make_relay: Any, value: str) -> None:
        relay, transport = make_relay(json_reply({}))
        with pytest.raises(RelayValidationError) as info:
            await relay.send(make_send_body(headers={"X-Name": value}))
        assert _fields(info.value) == {"headers.X-Name"}
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_unsendable_header_name(self, make_relay: Any) -> None:
        relay, transport = make_relay(json_reply({}))
        with pytest.raises(RelayValidationError) as info:
            await relay.test({"url": WEBHOOK_URL, "headers": {"X Bad": "v"}})
        assert all(field.startswith("headers.X Bad") for field in _fields(info.value))
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_non_object_body(self, make_relay: Any) -> None:
        relay, _ = make_relay(json_reply({}))
        with pytest.raises(RelayValidationError) as info:
            await relay.test(["not", "an", "object"])  # type: ignore[arg-type]
        assert _fields(info.value) == {"body"}


class TestSend:
    @pytest.mark.asyncio
    async def test_success_normalizes_and_extracts_metadata(self, make_relay: Any) -> None:
        reply = {
            "choices": [{"message": {"content": " Bonjour "}}],
            "model": "gpt-test",
            "usage": {"total_tokens": 7},
        }
        relay, _ = make_relay(json_reply(reply))
        result = await relay.send(make_send_body())

        assert result.success is True
        assert result.content == "Bonjour"
        assert result.metadata == {"model": "gpt-test", "usage": {"total_tokens": 7}}
        assert result.status == 200
        assert result.response_time is not None and result.response_time >= 0
        assert result.code is None

    @pytest.mark.asyncio
    async def test_outbound_request_shape(self, make_relay: Any) -> None:
        relay, transport = make_relay(json_reply({"response": "ok"}))
        await relay.send(make_send_body(
            method="PUT",
            headers={"Authorization": "Bearer abc", "User-Agent": "custom"},
            payload={"message": "hi", "conversationId": "c1"},
        ))

        request = transport.requests[0]
        assert request.method == "PUT"
        assert str(request.url) == WEBHOOK_URL
        assert request.headers["authorization"] == "Bearer abc"
        assert request.headers["user-agent"] == "custom"
        assert request.headers["content-type"] == "application/json"
        sent = json.loads(request.content)
        assert sent["message"] == "hi"
        assert sent["conversationId"] == "c1"
        assert sent["source"] == SOURCE
        assert "timestamp" in sent and "version" in sent

    @pytest.mark.asyncio
    async def test_default_method_and_user_agent(self, make_relay: Any) -> None:
        relay, transport = make_relay(json_reply({"response": "ok"}))
        await relay.send({"url": WEBHOOK_URL, "payload": {"message": "hi"}})
        assert transport.requests[0].method == "POST"
        assert transport.requests[0].headers["user-agent"] == USER_AGENT

    @pytest.mark.asyncio
    async def test_text_reply(self, make_relay: Any) -> None:
        relay, _ = make_relay(text_reply("  plain answer  "))
        result = await relay.send(make_send_body())
        assert result.content == "plain answer"
        assert result.metadata == {}

    @pytest.mark.asyncio
    async def test_undecodable_deep_json_is_delivered_as_text(self, make_relay: Any) -> None:
        text = "[" * 200_000 + "]" * 200_000

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, content=text.encode(), headers={"content-type": "application/json"},
            )

        relay, _ = make_relay(handler)
        result = await relay.send(make_send_body())
        assert result.success is True
        assert result.content == text

    @pytest.mark.asyncio
    async def test_http_500_is_http_error(self, make_relay: Any) -> None:
        relay, _ = make_relay(json_reply({"response": "should not be shown"}, status_code=500))
        result = await relay.send(make_send_body())

        assert result.success is False
        assert result.code is ErrorKind.HTTP_ERROR
        assert result.content is None
        assert result.error == "HTTP 500: Internal Server Error"

    @pytest.mark.asyncio
    async def test_timeout(self, make_relay: Any) -> None:
        relay, _ = make_relay(raising(httpx.ReadTimeout("timed out")))
        result = await relay.send(make_send_body())

        assert result.success is False
        assert result.code is ErrorKind.TIMEOUT
        assert result.response_time is None

    @pytest.mark.asyncio
    async def test_unclassified_failure_is_send_error(self, make_relay: Any) -> None:
        relay, _ = make_relay(raising(httpx.RemoteProtocolError("peer closed connection")))
        result = await relay.send(make_send_body())
        assert result.code is ErrorKind.SEND_ERROR
        assert result.details == "peer closed connection"


class TestConnectionTest:
    @pytest.mark.asyncio
    async def test_synthetic_payload(self, make_relay: Any) -> None:
        relay, transport = make_relay(json_reply({"ok": True}))
        await relay.test({"url": WEBHOOK_URL})

        sent = json.loads(transport.requests[0].content)
        assert sent["message"] == TEST_MESSAGE
        assert sent["test"] is True
        assert sent["source"] == SOURCE
        assert "timestamp" in sent

    @pytest.mark.asyncio
    async def test_non_2xx_still_completes(self, make_relay: Any) -> None:
        relay, _ = make_relay(json_reply({"error": "nope"}, status_code=404))
        result = await relay.test({"url": WEBHOOK_URL})

        assert result.success is True
        assert result.status == 404
        assert result.status_text == "Not Found"
        assert result.data == {"error": "nope"}
        assert result.response_time is not None

    @pytest.mark.asyncio
    async def test_echo_service_preview(self, make_relay: Any) -> None:
        relay, _ = make_relay(json_reply({"headers": {}, "origin": "1.1.1.1", "args": {}}))
        result = await relay.test({"url": "https://httpbin.org/post"})
        assert result.content == ECHO_GREETING

    @pytest.mark.asyncio
    async def test_unresolvable_host(self, make_relay: Any) -> None:
        relay, _ = make_relay(raising(httpx.ConnectError("[Errno -2] Name or service not known")))
        result = await relay.test({"url": "https://no-such-host.invalid/hook"})

        assert result.success is False
        assert result.code is ErrorKind.DNS_ERROR
        assert result.error == "Server not found"

    @pytest.mark.asyncio
    async def test_unclassified_failure_is_connection_error(self, make_relay: Any) -> None:
        relay, _ = make_relay(raising(httpx.ReadError("reset")))
        result = await relay.test({"url": WEBHOOK_URL})
        assert result.code is ErrorKind.CONNECTION_ERROR


class TestRelayDispatch:
    @pytest.mark.asyncio
    async def test_kind_selects_operation(self, make_relay: Any) -> None:
        relay, transport = make_relay(json_reply({"response": "pong"}))
        sent = await relay.relay(RelayKind.SEND, make_send_body())
        tested = await relay.relay(RelayKind.TEST, {"url": WEBHOOK_URL})

        assert sent.content == "pong"
        assert tested.message == "Connection test succeeded"
        assert json.loads(transport.requests[1].content)["test"] is True


class TestInfo:
    @pytest.mark.asyncio
    async def test_head_probe(self, make_relay: Any) -> None:
        relay, transport = make_relay(json_reply({}, status_code=204))
        result = await relay.info({"url": WEBHOOK_URL})

        assert transport.requests[0].method == "HEAD"
        assert result["success"] is True
        assert result["status"] == 204
        assert result["accessible"] is True

    @pytest.mark.asyncio
    async def test_probe_failure(self, make_relay: Any) -> None:
        relay, _ = make_relay(raising(httpx.ConnectError("Connection refused")))
        result = await relay.info({"url": WEBHOOK_URL})

        assert result["success"] is False
        assert result["accessible"] is False
        assert result["code"] == "CONNECTION_REFUSED"

    @pytest.mark.asyncio
    async def test_invalid_url(self, make_relay: Any) -> None:
        relay, _ = make_relay(json_reply({}))
        with pytest.raises(RelayValidationError) as info:
            await relay.info({"url": "nope"})
        assert info.value.error == "Invalid URL"


class TestJournal:
    @pytest.mark.asyncio
    async def test_calls_are_journaled_without_path(self, make_relay: Any, tmp_path: Path) -> None:
        journal = RelayJournal(str(tmp_path / "relay.jsonl"))
        relay, _ = make_relay(json_reply({"response": "ok"}), journal=journal)
        await relay.send(make_send_body(url="https://bot.example.com/hook?token=secret"))

        events = journal.tail()
        assert len(events) == 1
        assert events[0].kind == "send"
        assert events[0].host == "bot.example.com"
        assert events[0].success is True
        assert "secret" not in (tmp_path / "relay.jsonl").read_text()


class TestDecodeBody:
    def test_invalid_json_falls_back_to_text(self) -> None:
        response = httpx.Response(
            200, content=b"{not json", headers={"content-type": "application/json"},
        )
        assert decode_body(response) == "{not json"

    def test_deeply_nested_json_falls_back_to_text(self) -> None:
        text = "[" * 200_000 + "]" * 200_000
        response = httpx.Response(
            200, content=text.encode(), headers={"content-type": "application/json"},
        )
        assert decode_body(response) == text

    def test_vendor_json_content_type(self) -> None:
        response = httpx.Response(
            200, content=b'{"a": 1}', headers={"content-type": "application/vnd.api+json"},
        )
        assert decode_body(response) == {"a": 1}


def test_relay_keeps_no_call_state() -> None:
    relay = WebhookRelay(timeout=5)
    assert set(vars(relay)) == {"_timeout", "_info_timeout", "_transport", "_journal"}
