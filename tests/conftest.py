from collections.abc import AsyncIterator, Callable, Iterator
from itertools import count
from typing import Any

import httpx
import pytest
import respx
from httpx import ASGITransport, AsyncClient

from ddbrelay.api.deps import RelayServices, build_services, get_relay
from ddbrelay.config import GAME_DATA_URL, PLATFORM_CONFIG_URL, Settings, token_exchange_url
from ddbrelay.main import app

SOURCES = [
    {"id": 1, "name": "Player's Handbook", "description": "Core rules"},
    {"id": 2, "name": "Dungeon Master's Guide", "description": "Core rules"},
    {"id": 3, "name": "Xanathar's Guide to Everything"},
    {"id": 39, "name": "Unearthed Arcana"},
]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class PlatformStub:
    """Installs platform routes on a respx router."""

    def __init__(self, router: respx.MockRouter) -> None:
        self.router = router

    def auth(self, token: str = "bearer-token-123", status_code: int = 200) -> respx.Route:
        body = {"token": token} if status_code == 200 else {"error": "unauthorized"}
        return self.router.post(token_exchange_url()).mock(
            return_value=httpx.Response(status_code, json=body)
        )

    def config(self, sources: list[dict[str, Any]] | None = None) -> respx.Route:
        return self.router.get(PLATFORM_CONFIG_URL).mock(
            return_value=httpx.Response(200, json={"sources": SOURCES if sources is None else sources})
        )

    def items(self, items: list[dict[str, Any]], wrap: bool = False) -> respx.Route:
        payload = {"data": items} if wrap else items
        return self.router.get(f"{GAME_DATA_URL}/items").mock(
            return_value=httpx.Response(200, json=payload)
        )

    def spells(
        self,
        by_class: dict[int, list[dict[str, Any]]],
        failing: frozenset[int] = frozenset(),
    ) -> respx.Route:
        def respond(request: httpx.Request) -> httpx.Response:
            class_id = int(request.url.params["classId"])
            if class_id in failing:
                return httpx.Response(500)
            return httpx.Response(200, json={"success": True, "data": by_class.get(class_id, [])})

        return self.router.get(f"{GAME_DATA_URL}/spells").mock(side_effect=respond)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def credential() -> str:
    """A syntactically valid session credential."""
    return "cobalt-session-test-credential-0123456789"


@pytest.fixture
def platform() -> Iterator[PlatformStub]:
    """Mocked platform; every outbound call must hit a registered route."""
    with respx.mock(assert_all_called=False) as router:
        yield PlatformStub(router)


@pytest.fixture
def make_item() -> Callable[..., dict[str, Any]]:
    ids = count(1000)

    def factory(name: str, *source_ids: int, **extra: Any) -> dict[str, Any]:
        return {
            "id": next(ids),
            "name": name,
            "sources": [{"sourceId": sid} for sid in source_ids],
            **extra,
        }

    return factory


@pytest.fixture
def make_spell() -> Callable[..., dict[str, Any]]:
    ids = count(5000)

    def factory(name: str, *source_ids: int, level: int = 1, **definition: Any) -> dict[str, Any]:
        # The platform mints a new id per class context
        return {
            "id": next(ids),
            "definition": {
                "name": name,
                "level": level,
                "sources": [{"sourceId": sid} for sid in source_ids],
                "componentsArray": [1, 2],
                "school": "Evocation",
                **definition,
            },
        }

    return factory


@pytest.fixture
async def http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def relay(http_client: httpx.AsyncClient, clock: FakeClock) -> RelayServices:
    """A fresh service graph with isolated caches and limiter."""
    return build_services(Settings(), http_client, clock=clock)


@pytest.fixture
async def api_client(relay: RelayServices) -> AsyncIterator[AsyncClient]:
    """Test client wired to the relay fixture instead of the lifespan graph."""
    app.dependency_overrides[get_relay] = lambda: relay

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
