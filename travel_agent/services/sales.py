"""Read-only client for the sales ledger (a spreadsheet published as a web app).

The ledger is a best-effort demo source: whenever it cannot serve live data
(network failure, non-2xx, non-JSON, error object instead of a list,
non-object items, or no URL configured) the adapter answers from
``SAMPLE_SALES`` filtered by the same criteria instead of raising.

Query parameters use the spreadsheet's own column names:
``Passageiro``, ``Data_ida``, ``Fornecedor``, ``Reserva``.
"""

from __future__ import annotations

import logging
import re
import time
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

import httpx

from travel_agent.config import SALES_API_URL, SALES_TIMEOUT_SECONDS
from travel_agent.errors import DegradedDataError
from travel_agent.services.metrics import metrics

logger = logging.getLogger(__name__)

DISPLAY_DATE_FORMAT = "%d/%m/%Y"
DATE_FIELDS = ("Data_ida", "Data_volta", "Data_venda")

_DISPLAY_DATE_RE = re.compile(r"\d{2}/\d{2}/\d{4}")

Sale = dict[str, Any]

SAMPLE_SALES: tuple[Sale, ...] = (
    {
        "Venda": 1001,
        "Passageiro": "João Silva",
        "Produto": "Pacote Paris",
        "Fornecedor": "EuroAdventures",
        "Data_ida": "2024-05-10T00:00:00.000Z",
        "Data_volta": "2024-05-20T00:00:00.000Z",
        "Idade": 35,
        "RG": "123456789",
        "Telefone": "11999999999",
        "Celular": "11988888888",
        "Data_venda": "2024-01-15T00:00:00.000Z",
        "Nome_pacote": "Paris Romântica",
        "Reserva": "RES-001",
    },
    {
        "Venda": 1002,
        "Passageiro": "Maria Oliveira",
        "Produto": "Cruzeiro Caribe",
        "Fornecedor": "SeaDreams",
        "Data_ida": "2024-07-01T00:00:00.000Z",
        "Data_volta": "2024-07-10T00:00:00.000Z",
        "Idade": 29,
        "RG": "987654321",
        "Telefone": "21999999999",
        "Celular": "21977777777",
        "Data_venda": "2024-02-20T00:00:00.000Z",
        "Nome_pacote": "Caribe Dreams",
        "Reserva": "RES-002",
    },
    {
        "Venda": 1003,
        "Passageiro": "Carlos Pereira",
        "Produto": "Resort Nordeste",
        "Fornecedor": "CVC",
        "Data_ida": "2024-04-04T00:00:00.000Z",
        "Data_volta": "2024-04-10T00:00:00.000Z",
        "Idade": 40,
        "RG": "11223344",
        "Telefone": "31999998888",
        "Celular": "31988887777",
        "Data_venda": "2024-03-01T00:00:00.000Z",
        "Nome_pacote": "Porto de Galinhas",
        "Reserva": "RES-003",
    },
)


class DataSource(str, Enum):
    LIVE = "live"
    FALLBACK = "fallback"


def choose_source(status_code: int | None, content_type: str | None) -> DataSource:
    """Decide whether a ledger response can be used as live data.

    ``status_code`` is ``None`` when no response was received at all.
    """
    if status_code is None or not 200 <= status_code < 300:
        return DataSource.FALLBACK
    if not content_type or "application/json" not in content_type.lower():
        return DataSource.FALLBACK
    return DataSource.LIVE


def format_date(value: Any) -> str:
    """Render any date representation the ledger uses as DD/MM/YYYY.

    Handles ISO strings (with or without time/zone), ``date``/``datetime``
    objects, epoch milliseconds and values already in display form. Anything
    unparseable is returned as text unchanged.
    """
    if value is None or value == "":
        return ""
    try:
        if isinstance(value, datetime):
            dt = value.astimezone(UTC) if value.tzinfo else value
        elif isinstance(value, date):
            return value.strftime(DISPLAY_DATE_FORMAT)
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            dt = datetime.fromtimestamp(value / 1000, tz=UTC)
        else:
            text = str(value).strip()
            if _DISPLAY_DATE_RE.fullmatch(text):
                return text
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
            if dt.tzinfo:
                dt = dt.astimezone(UTC)
    except (ValueError, OverflowError, OSError):
        return str(value)
    return dt.strftime(DISPLAY_DATE_FORMAT)


def normalize_dates(sale: Sale) -> Sale:
    return {
        **sale,
        **{field: format_date(sale.get(field)) for field in DATE_FIELDS if field in sale},
    }


def build_sales_query(
    passenger_name: str | None = None,
    departure_date: str | None = None,
    provider: str | None = None,
    reservation_id: str | None = None,
) -> dict[str, str]:
    """Map filter arguments onto the ledger's query parameters (blanks dropped)."""
    query: dict[str, str] = {}
    if passenger_name and passenger_name.strip():
        query["Passageiro"] = passenger_name.strip()
    if departure_date and departure_date.strip():
        # The ledger expects DD/MM/YYYY
        query["Data_ida"] = format_date(departure_date.strip())
    if provider and provider.strip():
        query["Fornecedor"] = provider.strip()
    if reservation_id and reservation_id.strip():
        query["Reserva"] = reservation_id.strip()
    return query


def filter_sample_sales(query: dict[str, str]) -> list[Sale]:
    """Apply *query* to ``SAMPLE_SALES`` the way the live ledger would."""

    def matches(sale: Sale) -> bool:
        passenger = query.get("Passageiro")
        if passenger and passenger.casefold() not in sale["Passageiro"].casefold():
            return False
        provider = query.get("Fornecedor")
        if provider and provider.casefold() not in sale["Fornecedor"].casefold():
            return False
        reservation = query.get("Reserva")
        if reservation and sale["Reserva"] != reservation:
            return False
        departure = query.get("Data_ida")
        if departure and format_date(sale["Data_ida"]) != format_date(departure):
            return False
        return True

    return [dict(sale) for sale in SAMPLE_SALES if matches(sale)]


class SalesService:
    """Sales/passenger/reservation lookups with a sample-data fallback."""

    def __init__(self, url: str | None = None, *, http_client: httpx.AsyncClient | None = None):
        self._url = SALES_API_URL if url is None else url
        self._client = http_client or httpx.AsyncClient(
            timeout=SALES_TIMEOUT_SECONDS, follow_redirects=True,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list(
        self,
        passenger_name: str | None = None,
        departure_date: str | None = None,
        provider: str | None = None,
        reservation_id: str | None = None,
    ) -> list[Sale]:
        query = build_sales_query(passenger_name, departure_date, provider, reservation_id)
        t0 = time.perf_counter()
        try:
            sales = await self._fetch_live(query)
            metrics.record_success("sales", "fetch", latency_ms=(time.perf_counter() - t0) * 1000)
        except DegradedDataError as exc:
            metrics.record_failure(
                "sales", "fetch", "DegradedDataError",
                latency_ms=(time.perf_counter() - t0) * 1000,
            )
            logger.warning("Sales ledger unavailable (%s), using sample data", exc)
            sales = filter_sample_sales(query)
        return [normalize_dates(sale) for sale in sales]

    async def _fetch_live(self, query: dict[str, str]) -> list[Sale]:
        if not self._url:
            raise DegradedDataError("SALES_API_URL is not configured")

        logger.info("Fetching sales ledger with %s", query or "no filters")
        try:
            response = await self._client.get(self._url, params=query)
        except httpx.RequestError as exc:
            raise DegradedDataError(f"request failed: {exc}") from exc

        content_type = response.headers.get("content-type")
        if choose_source(response.status_code, content_type) is DataSource.FALLBACK:
            raise DegradedDataError(
                f"unusable response (status {response.status_code}, content-type {content_type!r})"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise DegradedDataError("response body is not valid JSON") from exc

        if not isinstance(data, list):
            if isinstance(data, dict) and data.get("result") == "error":
                raise DegradedDataError(f"ledger error: {data.get('message') or 'Unknown error'}")
            raise DegradedDataError("expected a JSON array of sales")
        if not all(isinstance(item, dict) for item in data):
            raise DegradedDataError("expected every sale to be a JSON object")
        return data
