"""Unit tests for the infrastructure layer: HTTP client, ZeptoMail, dispatcher."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from config import EmailSettings
from infrastructure.email.dispatcher import EmailDispatcher
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient


# ── HttpClient ────────────────────────────────────────────────────────────────


class TestHttpClient:
    async def test_post_json_delegates_to_httpx(self, mocker):
        client = HttpClient(base_url="https://api.example.com")
        fake_resp = MagicMock(status_code=200)
        post = mocker.patch.object(client._client, "post", return_value=fake_resp)
        resp = await client.post_json("/v1/x", {"a": 1}, headers={"X": "y"})
        assert resp.status_code == 200
        post.assert_awaited_once_with("/v1/x", json={"a": 1}, headers={"X": "y"})
        await client.aclose()

    async def test_post_propagates_exception(self, mocker):
        client = HttpClient()
        mocker.patch.object(client._client, "post", side_effect=Exception("timeout"))
        with pytest.raises(Exception, match="timeout"):
            await client.post_json("http://example.com", {})
        await client.aclose()

    async def test_context_manager_closes(self, mocker):
        async with HttpClient() as client:
            close = mocker.spy(client._client, "aclose")
        close.assert_called_once()


# ── ZeptoMailProvider ─────────────────────────────────────────────────────────


class TestZeptoMailProvider:
    def _make(self, token="test-token", status_code=200):
        settings = EmailSettings(
            zepto_api_token=token,
            zepto_from_email="noreply@example.com",
            zepto_from_name="Example",
        )
        http = MagicMock()
        http.post_json = AsyncMock(return_value=MagicMock(status_code=status_code, text="x"))
        provider = ZeptoMailProvider(
            settings,
            http,
            app_name="Example",
            app_url="https://example.com/",
            otp_expiry_minutes=10,
            reset_expiry_minutes=15,
        )
        return provider, http

    def _payload(self, http) -> dict:
        args, _ = http.post_json.call_args
        return args[1]

    async def test_verification_email(self):
        provider, http = self._make()
        assert await provider.send_verification_email("u@e.com", "Alice", "123456")
        payload = self._payload(http)
        assert payload["to"][0]["email_address"] == {"address": "u@e.com", "name": "Alice"}
        assert payload["from"]["address"] == "noreply@example.com"
        assert "123456" in payload["htmlbody"]
        assert "10 minutes" in payload["textbody"]
        assert http.post_json.call_args.args[0] == "/v1.1/email"

    async def test_reset_email_links_to_frontend(self):
        provider, http = self._make()
        await provider.send_password_reset_email("u@e.com", None, "tok_123")
        payload = self._payload(http)
        link = "https://example.com/reset-password?token=tok_123"
        assert link in payload["textbody"]
        assert link in payload["htmlbody"]
        assert payload["to"][0]["email_address"]["name"] == "u@e.com"

    def test_custom_reset_url(self):
        provider = ZeptoMailProvider(
            EmailSettings(),
            MagicMock(),
            reset_password_url="https://app.example.com/reset",
        )
        assert provider.reset_link("t") == "https://app.example.com/reset?token=t"

    @pytest.mark.parametrize(
        "send",
        [
            lambda p: p.send_welcome_email("u@e.com", "Alice"),
            lambda p: p.send_password_changed_email("u@e.com", "Alice"),
        ],
        ids=["welcome", "password_changed"],
    )
    async def test_notifications(self, send):
        provider, http = self._make()
        assert await send(provider) is True
        assert "Alice" in self._payload(http)["htmlbody"]

    async def test_html_is_escaped(self):
        provider, http = self._make()
        await provider.send_welcome_email("u@e.com", "<script>x</script>")
        assert "<script>x</script>" not in self._payload(http)["htmlbody"]

    async def test_returns_false_when_token_empty(self):
        provider, http = self._make(token="")
        assert await provider.send_verification_email("u@e.com", None, "000000") is False
        http.post_json.assert_not_called()

    async def test_returns_false_on_non_2xx(self):
        provider, _ = self._make(status_code=422)
        assert await provider.send_verification_email("u@e.com", None, "000000") is False

    async def test_returns_false_on_exception(self):
        provider, http = self._make()
        http.post_json.side_effect = Exception("timeout")
        assert await provider.send_verification_email("u@e.com", None, "000000") is False

    async def test_returns_false_when_template_fails(self, tmp_path):
        http = MagicMock()
        http.post_json = AsyncMock()
        provider = ZeptoMailProvider(
            EmailSettings(zepto_api_token="t"), http, template_dir=str(tmp_path)
        )
        assert await provider.send_verification_email("u@e.com", "A", "123456") is False
        http.post_json.assert_not_called()

    async def test_auth_header_prepends_prefix(self):
        provider, http = self._make(token="rawtoken")
        await provider.send_welcome_email("u@e.com", "Alice")
        _, kwargs = http.post_json.call_args
        assert kwargs["headers"]["Authorization"] == "Zoho-enczapikey rawtoken"

    async def test_auth_header_not_double_prefixed(self):
        provider, http = self._make(token="Zoho-enczapikey alreadyprefixed")
        await provider.send_welcome_email("u@e.com", "Alice")
        _, kwargs = http.post_json.call_args
        assert kwargs["headers"]["Authorization"] == "Zoho-enczapikey alreadyprefixed"


# ── EmailDispatcher ───────────────────────────────────────────────────────────


class TestEmailDispatcher:
    async def test_runs_in_background(self):
        dispatcher = EmailDispatcher()
        send = AsyncMock(return_value=True)
        task = dispatcher.dispatch(send(), kind="welcome", email="u@e.com")
        assert await task is True
        assert dispatcher.pending == 0

    async def test_failure_is_contained(self):
        dispatcher = EmailDispatcher()

        async def boom():
            raise RuntimeError("smtp down")

        task = dispatcher.dispatch(boom(), kind="welcome", email="u@e.com")
        assert await task is False

    async def test_undelivered_is_false(self):
        dispatcher = EmailDispatcher()
        send = AsyncMock(return_value=False)
        assert await dispatcher.dispatch(send(), kind="x", email="u@e.com") is False

    async def test_drain_waits_for_pending(self):
        dispatcher = EmailDispatcher()
        done = []

        async def slow():
            await asyncio.sleep(0.01)
            done.append(True)
            return True

        dispatcher.dispatch(slow(), kind="x", email="u@e.com")
        dispatcher.dispatch(slow(), kind="x", email="v@e.com")
        assert dispatcher.pending == 2
        await dispatcher.drain()
        assert done == [True, True]

    async def test_drain_gives_up_after_timeout(self):
        dispatcher = EmailDispatcher()
        gate = asyncio.Event()

        async def stuck():
            await gate.wait()
            return True

        dispatcher.dispatch(stuck(), kind="x", email="u@e.com")
        await dispatcher.drain(timeout=0.01)
        assert dispatcher.pending == 1
        gate.set()
        await dispatcher.drain()
        assert dispatcher.pending == 0

    async def test_drain_with_nothing_pending(self):
        await EmailDispatcher().drain()
