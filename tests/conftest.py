from __future__ import annotations

from pathlib import Path
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker

import order_billing.persistence.pg as pg
from order_billing.core.cache import InMemoryCache, get_cache
from order_billing.core.config import get_settings
from order_billing.persistence.models import Base, ChargeRuleModel, ShippingRateModel
from order_billing.persistence.seed import seed_default_charges, seed_default_shipping_rates
from order_billing.plenty.client import PlentyClient

COUNTRIES = [
    {"id": 6, "name": "Czech Republic", "isoCode2": "CZ", "active": True},
    {"id": 18, "name": "Latvia", "isoCode2": "LV", "active": True},
    {"id": 23, "name": "Poland", "isoCode2": "PL", "active": True},
    {"id": 41, "name": "Romania", "isoCode2": "RO", "active": True},
    {"id": 44, "name": "Bulgaria", "isoCode2": "BG", "active": True},
]


def order_payload(
    order_id: int,
    *,
    status: float = 7,
    items: list[tuple[int, int, int]] | None = None,
    delivery_country: int | None = 23,
    billing_country: int | None = None,
    currency: str = "EUR",
    gross: str = "10.00",
) -> dict[str, Any]:
    """Order as returned by the REST API; items are (typeId, itemVariationId, quantity)."""
    addresses = []
    relations = []
    if billing_country is not None:
        addresses.append({"id": order_id * 10 + 1, "countryId": billing_country})
        relations.append({"typeId": 1, "addressId": order_id * 10 + 1})
    if delivery_country is not None:
        addresses.append({"id": order_id * 10 + 2, "countryId": delivery_country})
        relations.append({"typeId": 2, "addressId": order_id * 10 + 2})
    return {
        "id": order_id,
        "typeId": 1,
        "statusId": status,
        "plentyId": 1000,
        "createdAt": "2024-01-15T10:00:00+01:00",
        "orderItems": [
            {"id": order_id * 100 + n, "typeId": type_id, "itemVariationId": variation_id, "quantity": quantity}
            for n, (type_id, variation_id, quantity) in enumerate(items or [(1, 1000, 1)])
        ],
        "addresses": addresses,
        "addressRelations": relations,
        "amounts": [{"currency": currency, "grossTotal": gross, "netTotal": gross}],
    }


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakePlenty:
    """httpx.MockTransport handler serving canned PlentyMarkets responses.

    Responses queued for a path are served first, in order; exceptions in the
    queue are raised as transport errors.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.orders: list[dict[str, Any]] = []
        self.countries: list[dict[str, Any]] = list(COUNTRIES)
        self.statuses: list[dict[str, Any]] = []
        self.variations: list[dict[str, Any]] = []
        self._queued: dict[str, list[Any]] = {}

    def queue(self, path: str, *responses: Any) -> None:
        self._queued.setdefault(path, []).extend(responses)

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def _page(self, request: httpx.Request, entries: list[dict[str, Any]]) -> httpx.Response:
        page = int(request.url.params.get("page", 1))
        per_page = int(request.url.params.get("itemsPerPage", 50))
        start = (page - 1) * per_page
        chunk = entries[start : start + per_page]
        return httpx.Response(
            200,
            json={
                "page": page,
                "totalsCount": len(entries),
                "isLastPage": start + per_page >= len(entries),
                "entries": chunk,
            },
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        queued = self._queued.get(path)
        if queued:
            response = queued.pop(0)
            if isinstance(response, Exception):
                raise response
            return response

        if path == "/rest/login":
            return httpx.Response(200, json={"accessToken": "token-1", "tokenType": "Bearer"})
        if path == "/rest/orders/shipping/countries":
            return httpx.Response(200, json=self.countries)
        if path == "/rest/orders/statuses":
            return self._page(request, self.statuses)
        if path == "/rest/items/variations":
            return self._page(request, self.variations)
        if path == "/rest/orders":
            return self._page(request, self.orders)
        if path.startswith("/rest/orders/"):
            order_id = int(path.rsplit("/", 1)[1])
            for order in self.orders:
                if order["id"] == order_id:
                    return httpx.Response(200, json=order)
        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return tmp_path_factory.mktemp("db") / "test.sqlite"


@pytest.fixture(scope="session", autouse=True)
def configure_test_engine(test_db_path: Path):
    settings = get_settings()
    settings.auth_enabled = True
    settings.seed_defaults_on_startup = False

    engine = create_engine(
        f"sqlite+pysqlite:///{test_db_path}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    TestSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

    pg.engine = engine
    pg.SessionLocal = TestSessionLocal

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_state(configure_test_engine):
    with pg.session_scope() as s:
        s.execute(delete(ChargeRuleModel))
        s.execute(delete(ShippingRateModel))
    get_cache().clear()
    yield


@pytest.fixture()
def session(configure_test_engine):
    with pg.session_scope() as s:
        yield s


@pytest.fixture()
def seeded(session):
    seed_default_charges(session)
    seed_default_shipping_rates(session)
    return session


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def cache(clock: FakeClock) -> InMemoryCache:
    return InMemoryCache(clock=clock)


@pytest.fixture()
def fake_plenty() -> FakePlenty:
    return FakePlenty()


@pytest.fixture()
def sleeps() -> list[float]:
    return []


@pytest.fixture()
def plenty_client(fake_plenty: FakePlenty, cache: InMemoryCache, sleeps: list[float]):
    http = httpx.Client(transport=httpx.MockTransport(fake_plenty))
    client = PlentyClient(settings=get_settings(), cache=cache, http=http, sleep=sleeps.append)
    yield client
    http.close()


@pytest.fixture()
def client(configure_test_engine, plenty_client: PlentyClient, cache: InMemoryCache):
    from order_billing.api.deps import get_plenty_client
    from order_billing.main import app

    app.dependency_overrides[get_plenty_client] = lambda: plenty_client
    app.dependency_overrides[get_cache] = lambda: cache
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    settings = get_settings()
    return {
        "operator": {"X-API-Key": settings.operator_api_key},
        "admin": {"X-API-Key": settings.admin_api_key},
    }


@pytest.fixture()
def seeded_db(configure_test_engine):
    with pg.session_scope() as s:
        seed_default_charges(s)
        seed_default_shipping_rates(s)


@pytest.fixture()
def make_order():
    return order_payload
