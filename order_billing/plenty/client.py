from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Callable, TypeVar

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from order_billing.core.cache import (
    ACCESS_TOKEN_KEY,
    COUNTRIES_KEY,
    ORDER_STATUSES_KEY,
    InMemoryCache,
    get_cache,
)
from order_billing.core.config import Settings, get_settings
from order_billing.plenty.errors import PlentyApiError
from order_billing.plenty.schemas import (
    BILLING_ADDRESS_TYPE,
    DELIVERY_ADDRESS_TYPE,
    Country,
    Order,
    OrderCountries,
    OrderStatus,
    Page,
    Variation,
)

logger = logging.getLogger(__name__)

ORDER_RELATIONS = ["addresses", "addressRelations", "orderItems"]

M = TypeVar("M", bound=BaseModel)


def _format_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="seconds")


def _classify_transport_error(exc: httpx.TransportError, operation: str) -> PlentyApiError:
    message = str(exc).lower()
    if isinstance(exc, httpx.TimeoutException) or "timed out" in message or "timeout" in message:
        return PlentyApiError.timeout(f"Request timed out during {operation}")
    if "could not resolve" in message or "connection refused" in message:
        return PlentyApiError.connection(f"Could not connect to PlentySystem during {operation}")
    return PlentyApiError.connection(f"Connection error during {operation}: {exc}")


class PlentyClient:
    """Authenticated, retrying client for the PlentyMarkets REST API.

    Every GET goes through ``_execute_with_retry``: 5xx responses and
    transport failures are retried with exponential backoff, a 401 drops the
    cached token and fails at once, and any other non-2xx fails at once as an
    unknown error carrying the HTTP status.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        cache: InMemoryCache | None = None,
        http: httpx.Client | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        self.settings = settings or get_settings()
        self.cache = cache or get_cache()
        self.base_url = self.settings.plenty_base_url.rstrip("/")
        self.max_retries = max(1, self.settings.plenty_max_retries)
        self.retry_delay_ms = self.settings.plenty_retry_delay_ms
        self.items_per_page = self.settings.plenty_items_per_page
        self._owns_http = http is None
        self.http = http or httpx.Client(timeout=self.settings.plenty_timeout_seconds)
        self._sleep = sleep or time.sleep

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> PlentyClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- authentication -------------------------------------------------

    def get_access_token(self) -> str:
        return self.cache.remember(ACCESS_TOKEN_KEY, self.settings.plenty_token_ttl_seconds, self._login)

    def _login(self) -> str:
        try:
            response = self.http.post(
                f"{self.base_url}/rest/login",
                json={"username": self.settings.plenty_username, "password": self.settings.plenty_password},
            )
        except httpx.TransportError as exc:
            raise _classify_transport_error(exc, "authentication") from exc

        if response.status_code == 401:
            raise PlentyApiError.authentication("Invalid credentials for PlentySystem API")
        if not response.is_success:
            raise PlentyApiError.server_error(f"Failed to authenticate: {response.text}")

        token = response.json().get("accessToken")
        if not token:
            raise PlentyApiError.server_error("Login response did not contain an accessToken")
        return str(token)

    def clear_token_cache(self) -> None:
        self.cache.forget(ACCESS_TOKEN_KEY)

    # -- transport ------------------------------------------------------

    def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self.get_access_token()}",
            "Accept": "application/json",
        }
        return self.http.get(f"{self.base_url}{path}", params=params, headers=headers)

    def _backoff(self, attempt: int) -> None:
        delay_ms = self.retry_delay_ms * (2 ** (attempt - 1))
        self._sleep(delay_ms / 1000)

    def _execute_with_retry(self, request_fn: Callable[[], httpx.Response], operation: str) -> httpx.Response:
        for attempt in range(1, self.max_retries + 1):
            try:
                response = request_fn()
            except httpx.TransportError as exc:
                logger.warning(
                    "plenty connection error: operation=%s attempt=%s message=%s",
                    operation,
                    attempt,
                    exc,
                )
                if attempt < self.max_retries:
                    self._backoff(attempt)
                    continue
                raise _classify_transport_error(exc, operation) from exc

            if response.is_success:
                return response

            if response.status_code == 401:
                self.clear_token_cache()
                raise PlentyApiError.authentication(f"Authentication failed during {operation}")

            if response.is_server_error:
                logger.warning(
                    "plenty server error: operation=%s attempt=%s status=%s body=%s",
                    operation,
                    attempt,
                    response.status_code,
                    response.text[:500],
                )
                if attempt < self.max_retries:
                    self._backoff(attempt)
                    continue
                raise PlentyApiError.server_error(f"Server error during {operation}: {response.text}")

            raise PlentyApiError(
                f"Request failed during {operation}: {response.text}",
                status_code=response.status_code,
            )

        raise PlentyApiError.connection(f"Failed after {self.max_retries} attempts during {operation}")

    def _json(self, response: httpx.Response, operation: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise PlentyApiError(f"Invalid JSON during {operation}", status_code=response.status_code) from exc

    def _parse(self, adapter: TypeAdapter[M] | type[M], payload: Any, operation: str) -> M:
        try:
            if isinstance(adapter, TypeAdapter):
                return adapter.validate_python(payload)
            return adapter.model_validate(payload)
        except ValidationError as exc:
            raise PlentyApiError(f"Unexpected payload during {operation}: {exc}") from exc

    def _paginate(self, path: str, params: dict[str, Any], model: type[M], operation: str) -> list[M]:
        entries: list[M] = []
        page_model = Page[model]  # type: ignore[valid-type]
        page = 1
        while True:
            page_params = {**params, "page": page, "itemsPerPage": self.items_per_page}
            page_operation = f"{operation} (page {page})"
            response = self._execute_with_retry(lambda: self._get(path, page_params), page_operation)
            parsed = self._parse(page_model, self._json(response, page_operation), page_operation)
            if parsed.is_last_page:
                entries.extend(parsed.entries)
                return entries
            if not parsed.entries:
                logger.warning("plenty returned an empty page that is not the last: operation=%s page=%s", operation, page)
                return entries
            entries.extend(parsed.entries)
            page += 1

    # -- orders ---------------------------------------------------------

    def get_orders_for_date_range(
        self,
        start: datetime,
        end: datetime,
        order_types: list[int] | None = None,
    ) -> list[Order]:
        params: dict[str, Any] = {
            "with[]": ORDER_RELATIONS,
            "createdAtFrom": _format_timestamp(start),
            "createdAtTo": _format_timestamp(end),
        }
        if order_types:
            params["orderTypes"] = ",".join(str(t) for t in order_types)
        return self._paginate("/rest/orders", params, Order, "fetching orders")

    def get_order(self, order_id: int) -> Order:
        operation = f"fetching order {order_id}"
        response = self._execute_with_retry(
            lambda: self._get(f"/rest/orders/{order_id}", {"with[]": ORDER_RELATIONS}),
            operation,
        )
        return self._parse(Order, self._json(response, operation), operation)

    # -- lookups --------------------------------------------------------

    def get_order_statuses(self) -> list[OrderStatus]:
        return self.cache.remember(
            ORDER_STATUSES_KEY,
            self.settings.plenty_lookup_ttl_seconds,
            lambda: self._paginate("/rest/orders/statuses", {}, OrderStatus, "fetching order statuses"),
        )

    def get_countries(self) -> list[Country]:
        return self.cache.remember(COUNTRIES_KEY, self.settings.plenty_lookup_ttl_seconds, self._fetch_countries)

    def _fetch_countries(self) -> list[Country]:
        operation = "fetching countries"
        response = self._execute_with_retry(lambda: self._get("/rest/orders/shipping/countries"), operation)
        return self._parse(TypeAdapter(list[Country]), self._json(response, operation), operation)

    def get_country_name(self, country_id: int) -> str | None:
        try:
            countries = self.get_countries()
        except PlentyApiError as exc:
            logger.warning("failed to resolve country name: country_id=%s error_type=%s", country_id, exc.kind.value)
            return None
        for country in countries:
            if country.id == country_id:
                return country.name
        return None

    def get_variations(self) -> list[Variation]:
        return self._paginate("/rest/items/variations", {}, Variation, "fetching variations")

    def extract_order_countries(self, order: Order) -> OrderCountries:
        addresses = {address.id: address for address in order.addresses}
        billing_id: int | None = None
        delivery_id: int | None = None
        billing_seen = False
        delivery_seen = False

        for relation in order.address_relations:
            if relation.address_id is None:
                continue
            address = addresses.get(relation.address_id)
            if address is None:
                continue
            if relation.type_id == BILLING_ADDRESS_TYPE and not billing_seen:
                billing_id = address.country_id
                billing_seen = True
            elif relation.type_id == DELIVERY_ADDRESS_TYPE and not delivery_seen:
                delivery_id = address.country_id
                delivery_seen = True

        return OrderCountries(
            billing_country_id=billing_id,
            billing_country_name=self.get_country_name(billing_id) if billing_id else None,
            delivery_country_id=delivery_id,
            delivery_country_name=self.get_country_name(delivery_id) if delivery_id else None,
        )
