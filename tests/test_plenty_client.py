from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest

from order_billing.core.cache import ACCESS_TOKEN_KEY
from order_billing.plenty.errors import PlentyApiError, PlentyErrorKind
from order_billing.plenty.schemas import Order

JAN_START = datetime(2024, 1, 1, tzinfo=timezone.utc)
JAN_END = datetime(2024, 1, 31, 23, 59, 59, tzinfo=timezone.utc)


def test_date_range_fetch_walks_every_page_in_order(plenty_client, fake_plenty, make_order):
    fake_plenty.orders = [make_order(i) for i in range(1, 261)]

    orders = plenty_client.get_orders_for_date_range(JAN_START, JAN_END, [1])

    assert [o.id for o in orders] == list(range(1, 261))
    calls = fake_plenty.calls("/rest/orders")
    assert [c.url.params["page"] for c in calls] == ["1", "2"]
    first = calls[0].url.params
    assert first["itemsPerPage"] == "250"
    assert first["orderTypes"] == "1"
    assert first["createdAtFrom"] == "2024-01-01T00:00:00+00:00"
    assert first["createdAtTo"] == "2024-01-31T23:59:59+00:00"
    assert first.get_list("with[]") == ["addresses", "addressRelations", "orderItems"]
    assert calls[0].headers["Authorization"] == "Bearer token-1"


def test_page_without_last_page_flag_ends_pagination(plenty_client, fake_plenty, make_order):
    fake_plenty.queue("/rest/orders", httpx.Response(200, json={"entries": [make_order(5)]}))

    orders = plenty_client.get_orders_for_date_range(JAN_START, JAN_END)

    assert [o.id for o in orders] == [5]
    assert len(fake_plenty.calls("/rest/orders")) == 1


def test_empty_page_not_flagged_last_ends_pagination(plenty_client, fake_plenty, make_order):
    fake_plenty.queue(
        "/rest/orders",
        httpx.Response(200, json={"isLastPage": False, "entries": [make_order(1)]}),
        httpx.Response(200, json={"isLastPage": False, "entries": []}),
    )

    orders = plenty_client.get_orders_for_date_range(JAN_START, JAN_END)

    assert [o.id for o in orders] == [1]
    assert len(fake_plenty.calls("/rest/orders")) == 2


def test_failure_on_a_later_page_fails_the_whole_fetch(plenty_client, fake_plenty, sleeps, make_order):
    fake_plenty.queue(
        "/rest/orders",
        httpx.Response(200, json={"isLastPage": False, "entries": [make_order(i) for i in range(1, 251)]}),
        *[httpx.Response(503) for _ in range(3)],
    )

    with pytest.raises(PlentyApiError) as excinfo:
        plenty_client.get_orders_for_date_range(JAN_START, JAN_END)

    assert excinfo.value.kind is PlentyErrorKind.SERVER_ERROR
    assert [c.url.params["page"] for c in fake_plenty.calls("/rest/orders")] == ["1", "2", "2", "2"]
    assert sleeps == [1.0, 2.0]


def test_server_errors_are_retried_with_backoff(plenty_client, fake_plenty, sleeps, make_order):
    fake_plenty.orders = [make_order(99)]
    fake_plenty.queue("/rest/orders/99", httpx.Response(503), httpx.Response(503))

    order = plenty_client.get_order(99)

    assert isinstance(order, Order)
    assert order.id == 99
    assert len(fake_plenty.calls("/rest/orders/99")) == 3
    assert sleeps == [1.0, 2.0]


def test_server_error_after_last_attempt_is_classified(plenty_client, fake_plenty, sleeps):
    fake_plenty.queue("/rest/orders/99", httpx.Response(500), httpx.Response(502), httpx.Response(503))

    with pytest.raises(PlentyApiError) as excinfo:
        plenty_client.get_order(99)

    assert excinfo.value.kind is PlentyErrorKind.SERVER_ERROR
    assert excinfo.value.status_code == 500
    assert excinfo.value.retryable is True
    assert len(fake_plenty.calls("/rest/orders/99")) == 3
    assert sleeps == [1.0, 2.0]


def test_unauthorized_drops_token_and_does_not_retry(plenty_client, fake_plenty, cache, sleeps):
    assert plenty_client.get_access_token() == "token-1"
    assert cache.has(ACCESS_TOKEN_KEY)
    fake_plenty.queue("/rest/orders/7", httpx.Response(401))

    with pytest.raises(PlentyApiError) as excinfo:
        plenty_client.get_order(7)

    assert excinfo.value.kind is PlentyErrorKind.AUTHENTICATION
    assert excinfo.value.status_code == 401
    assert excinfo.value.retryable is False
    assert not cache.has(ACCESS_TOKEN_KEY)
    assert len(fake_plenty.calls("/rest/orders/7")) == 1
    assert sleeps == []


def test_client_error_is_unknown_and_keeps_status(plenty_client, fake_plenty, sleeps):
    with pytest.raises(PlentyApiError) as excinfo:
        plenty_client.get_order(404404)

    assert excinfo.value.kind is PlentyErrorKind.UNKNOWN
    assert excinfo.value.status_code == 404
    assert excinfo.value.retryable is False
    assert len(fake_plenty.calls("/rest/orders/404404")) == 1
    assert sleeps == []


def test_refused_connection_is_retried_then_classified(plenty_client, fake_plenty, sleeps):
    plenty_client.get_access_token()
    fake_plenty.queue(
        "/rest/orders/1",
        *[httpx.ConnectError("[Errno 111] Connection refused") for _ in range(3)],
    )

    with pytest.raises(PlentyApiError) as excinfo:
        plenty_client.get_order(1)

    assert excinfo.value.kind is PlentyErrorKind.CONNECTION
    assert excinfo.value.status_code == 503
    assert "Could not connect" in excinfo.value.message
    assert sleeps == [1.0, 2.0]


def test_timeout_is_retried_then_classified(plenty_client, fake_plenty, sleeps):
    plenty_client.get_access_token()
    fake_plenty.queue("/rest/orders/1", *[httpx.ReadTimeout("read timed out") for _ in range(3)])

    with pytest.raises(PlentyApiError) as excinfo:
        plenty_client.get_order(1)

    assert excinfo.value.kind is PlentyErrorKind.TIMEOUT
    assert excinfo.value.status_code == 408
    assert excinfo.value.user_message == "The request to PlentyMarkets timed out. Please try again."
    assert sleeps == [1.0, 2.0]


def test_transient_transport_error_recovers(plenty_client, fake_plenty, sleeps, make_order):
    fake_plenty.orders = [make_order(3)]
    plenty_client.get_access_token()
    fake_plenty.queue("/rest/orders/3", httpx.ConnectError("connection reset by peer"))

    assert plenty_client.get_order(3).id == 3
    assert sleeps == [1.0]


def test_token_is_cached_until_it_expires(plenty_client, fake_plenty, clock, make_order):
    fake_plenty.orders = [make_order(1)]

    plenty_client.get_order(1)
    plenty_client.get_order(1)
    assert len(fake_plenty.calls("/rest/login")) == 1

    clock.advance(82800)
    plenty_client.get_order(1)
    assert len(fake_plenty.calls("/rest/login")) == 2


def test_rejected_login_is_an_authentication_error(plenty_client, fake_plenty, cache):
    fake_plenty.queue("/rest/login", httpx.Response(401, json={"error": "invalid"}))

    with pytest.raises(PlentyApiError) as excinfo:
        plenty_client.get_order(1)

    assert excinfo.value.kind is PlentyErrorKind.AUTHENTICATION
    assert not cache.has(ACCESS_TOKEN_KEY)


def test_login_without_token_is_a_server_error(plenty_client, fake_plenty):
    fake_plenty.queue("/rest/login", httpx.Response(200, json={"tokenType": "Bearer"}))

    with pytest.raises(PlentyApiError) as excinfo:
        plenty_client.get_access_token()

    assert excinfo.value.kind is PlentyErrorKind.SERVER_ERROR


def test_order_statuses_are_paginated_and_cached(plenty_client, fake_plenty):
    fake_plenty.statuses = [
        {"statusId": 7, "names": {"de": "Warenausgang", "en": "Outgoing items booked"}},
        {"statusId": 7.1, "names": {"de": "Versandbereit"}},
    ]

    first = plenty_client.get_order_statuses()
    second = plenty_client.get_order_statuses()

    assert [s.display_name for s in first] == ["Outgoing items booked", "Versandbereit"]
    assert second == first
    assert len(fake_plenty.calls("/rest/orders/statuses")) == 1


def test_extract_countries_first_relation_per_role_wins(plenty_client):
    order = Order.model_validate(
        {
            "id": 1,
            "addresses": [
                {"id": 10, "countryId": 23},
                {"id": 11, "countryId": 41},
                {"id": 12, "countryId": 18},
            ],
            "addressRelations": [
                {"typeId": 2, "addressId": 10},
                {"typeId": 1, "addressId": 11},
                {"typeId": 2, "addressId": 12},
                {"typeId": 1, "addressId": 999},
            ],
        }
    )

    countries = plenty_client.extract_order_countries(order)

    assert countries.delivery_country_id == 23
    assert countries.delivery_country_name == "Poland"
    assert countries.billing_country_id == 41
    assert countries.billing_country_name == "Romania"


def test_extract_countries_unknown_id_has_no_name(plenty_client, make_order):
    order = Order.model_validate(make_order(1, delivery_country=999))

    countries = plenty_client.extract_order_countries(order)

    assert countries.delivery_country_id == 999
    assert countries.delivery_country_name is None
    assert countries.billing_country_id is None
    assert countries.billing_country_name is None


def test_country_lookup_failure_yields_no_name(plenty_client, fake_plenty):
    fake_plenty.queue("/rest/orders/shipping/countries", *[httpx.Response(500) for _ in range(3)])

    assert plenty_client.get_country_name(23) is None
    # failures are not cached
    assert plenty_client.get_country_name(23) == "Poland"


def test_variations_are_paginated(plenty_client, fake_plenty):
    fake_plenty.variations = [{"id": 1139, "itemId": 500, "name": "Tablet"}, {"id": 1140, "number": "SKU-1"}]

    variations = plenty_client.get_variations()

    assert [v.label for v in variations] == ["Tablet", "SKU-1"]
