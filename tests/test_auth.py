"""Tests for session credential -> bearer token exchange."""

import logging

import httpx
import pytest
import respx

from ddbrelay.config import USER_AGENT, token_exchange_url
from ddbrelay.logging_config import REDACTED, CredentialRedactionFilter
from ddbrelay.models.failure import (
    CredentialInvalidError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from ddbrelay.services.auth import TokenExchange, credential_cache_key
from ddbrelay.services.ttl_cache import TTLCache


@pytest.fixture
def auth_cache(clock) -> TTLCache:
    return TTLCache("AUTH", ttl_seconds=300, clock=clock)


@pytest.fixture
def exchange(http_client: httpx.AsyncClient, auth_cache: TTLCache) -> TokenExchange:
    return TokenExchange(http_client, auth_cache)


class TestCredentialCacheKey:
    def test_key_is_sha256_hex(self, credential: str) -> None:
        key = credential_cache_key(credential)
        assert len(key) == 64
        assert credential not in key

    def test_shared_prefix_does_not_collide(self) -> None:
        """Credentials differing only after the first characters get distinct keys."""
        a = "x" * 50 + "aaaa"
        b = "x" * 50 + "bbbb"
        assert credential_cache_key(a) != credential_cache_key(b)


class TestGetBearerToken:
    @respx.mock
    async def test_exchanges_and_sends_cookie(
        self, exchange: TokenExchange, credential: str
    ) -> None:
        """Credential is sent as a CobaltSession cookie."""
        route = respx.post(token_exchange_url()).mock(
            return_value=httpx.Response(200, json={"token": "bearer-abc"})
        )

        token = await exchange.get_bearer_token(credential)

        assert token == "bearer-abc"
        request = route.calls.last.request
        assert request.headers["Cookie"] == f"CobaltSession={credential}"
        assert request.headers["User-Agent"] == USER_AGENT

    @respx.mock
    async def test_second_call_uses_cache(self, exchange: TokenExchange, credential: str) -> None:
        route = respx.post(token_exchange_url()).mock(
            return_value=httpx.Response(200, json={"token": "bearer-abc"})
        )

        await exchange.get_bearer_token(credential)
        await exchange.get_bearer_token(credential)

        assert route.call_count == 1

    @respx.mock
    async def test_cache_expires_after_ttl(
        self, exchange: TokenExchange, credential: str, clock
    ) -> None:
        route = respx.post(token_exchange_url()).mock(
            return_value=httpx.Response(200, json={"token": "bearer-abc"})
        )

        await exchange.get_bearer_token(credential)
        clock.advance(300)
        await exchange.get_bearer_token(credential)

        assert route.call_count == 2

    @pytest.mark.parametrize("status_code", [401, 403])
    @respx.mock
    async def test_rejection_raises_credential_invalid(
        self, exchange: TokenExchange, credential: str, auth_cache: TTLCache, status_code: int
    ) -> None:
        respx.post(token_exchange_url()).mock(return_value=httpx.Response(status_code))

        with pytest.raises(CredentialInvalidError) as exc_info:
            await exchange.get_bearer_token(credential)

        assert exc_info.value.status_code == 401
        assert auth_cache.size == 0

    @respx.mock
    async def test_missing_token_is_credential_invalid(
        self, exchange: TokenExchange, credential: str, auth_cache: TTLCache
    ) -> None:
        respx.post(token_exchange_url()).mock(return_value=httpx.Response(200, json={}))

        with pytest.raises(CredentialInvalidError, match="No bearer token"):
            await exchange.get_bearer_token(credential)

        assert auth_cache.size == 0

    @respx.mock
    async def test_server_error_is_upstream_failure(
        self, exchange: TokenExchange, credential: str
    ) -> None:
        respx.post(token_exchange_url()).mock(return_value=httpx.Response(503))

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await exchange.get_bearer_token(credential)

        assert not isinstance(exc_info.value, UpstreamTimeoutError)
        assert exc_info.value.status_code == 500

    @respx.mock
    async def test_timeout_is_upstream_timeout(
        self, exchange: TokenExchange, credential: str
    ) -> None:
        respx.post(token_exchange_url()).mock(side_effect=httpx.ReadTimeout("slow"))

        with pytest.raises(UpstreamTimeoutError) as exc_info:
            await exchange.get_bearer_token(credential)

        assert exc_info.value.status_code == 504

    @respx.mock
    async def test_connect_error_is_upstream_failure(
        self, exchange: TokenExchange, credential: str
    ) -> None:
        respx.post(token_exchange_url()).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(UpstreamUnavailableError):
            await exchange.get_bearer_token(credential)

    @respx.mock
    async def test_status_messages_survive_redaction(
        self, exchange: TokenExchange, credential: str, caplog: pytest.LogCaptureFixture
    ) -> None:
        """The relay's own wording is not mistaken for a bearer fragment."""
        respx.post(token_exchange_url()).mock(
            return_value=httpx.Response(200, json={"token": "bearer-abc"})
        )

        with caplog.at_level(logging.INFO):
            await exchange.get_bearer_token(credential)

        redaction = CredentialRedactionFilter()
        for record in caplog.records:
            redaction.filter(record)
        messages = [record.getMessage() for record in caplog.records]
        assert "[AUTH] Token obtained and cached" in messages
        assert not any(REDACTED in message for message in messages)


class TestValidateCredential:
    @respx.mock
    async def test_valid(self, exchange: TokenExchange, credential: str) -> None:
        respx.post(token_exchange_url()).mock(
            return_value=httpx.Response(200, json={"token": "bearer-abc"})
        )

        check = await exchange.validate_credential(credential)

        assert check.valid is True
        assert check.token == "bearer-abc"

    @respx.mock
    async def test_rejected(self, exchange: TokenExchange, credential: str) -> None:
        respx.post(token_exchange_url()).mock(return_value=httpx.Response(401))

        check = await exchange.validate_credential(credential)

        assert check.valid is False
        assert check.token is None

    @respx.mock
    async def test_outage_still_raises(self, exchange: TokenExchange, credential: str) -> None:
        """A platform outage is not reported as a bad credential."""
        respx.post(token_exchange_url()).mock(return_value=httpx.Response(502))

        with pytest.raises(UpstreamUnavailableError):
            await exchange.validate_credential(credential)


class TestAuthHeaders:
    @respx.mock
    async def test_bearer_header_without_cookie(
        self, exchange: TokenExchange, credential: str
    ) -> None:
        respx.post(token_exchange_url()).mock(
            return_value=httpx.Response(200, json={"token": "bearer-abc"})
        )

        headers = await exchange.auth_headers(credential)

        assert headers["Authorization"] == "Bearer bearer-abc"
        assert "Cookie" not in headers
        assert credential not in " ".join(headers.values())
