import json
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Union

import httpx

from catalog.config import get_settings
from catalog.exceptions import SerializationError, UpstreamDataError, UpstreamError
from catalog.utils.cache import CacheService, cache_service

settings = get_settings()
logger = logging.getLogger(__name__)

CACHE_KEY_PREFIX = "exchange_rate_"
CENTS = Decimal("0.01")


class CurrencyService:
    """
    Currency conversion backed by a cached exchange rate table.

    Rate tables are fetched from the provider at
    ``<EXCHANGE_RATE_API_ENDPOINT>/<currency>`` and cached for
    ``EXCHANGE_DATA_CACHE_TTL`` seconds. There is no retry and no
    fallback to an expired table: a provider outage fails the call.
    """

    def __init__(self, cache: CacheService = None, client: httpx.Client = None):
        self.cache = cache or cache_service
        self.client = client
        self.endpoint = settings.EXCHANGE_RATE_API_ENDPOINT.rstrip("/")
        self.cache_ttl = settings.EXCHANGE_DATA_CACHE_TTL

    def convert_currency(
        self,
        from_currency: str,
        amount: Union[Decimal, float, int, str],
        to_currency: str
    ) -> Decimal:
        """
        Convert an amount between currencies.

        Args:
            from_currency: Currency code of the amount
            amount: Amount to convert
            to_currency: Target currency code

        Returns:
            Converted amount rounded half-up to two decimals

        Raises:
            UpstreamDataError: If the rate table has no rate for to_currency
        """
        data = self.get_exchange_rate(from_currency)

        rates = data.get("rates") or {}
        if to_currency not in rates:
            raise UpstreamDataError(
                f"Currency: {to_currency} not found in exchange rates",
                {"from_currency": from_currency, "to_currency": to_currency},
            )

        rate = Decimal(str(rates[to_currency]))
        return (Decimal(str(amount)) * rate).quantize(CENTS, rounding=ROUND_HALF_UP)

    def get_exchange_rate(self, from_currency: str) -> dict[str, Any]:
        """
        Get the rate table for a currency, cache first.

        Raises:
            UpstreamError: If the provider call fails or reports no success
            SerializationError: If the table cannot be encoded for caching
        """
        cache_key = f"{CACHE_KEY_PREFIX}{from_currency}"

        if self.cache.exists(cache_key):
            cached = self.cache.get(cache_key)
            if cached is not None:
                return json.loads(cached)

        data = self._fetch_rates(from_currency)

        try:
            serialized = json.dumps(data)
        except (TypeError, ValueError) as e:
            raise SerializationError("Error encoding exchange rates for cache", {"error": str(e)}) from e

        self.cache.set(cache_key, serialized, self.cache_ttl)
        return data

    def _fetch_rates(self, from_currency: str) -> dict[str, Any]:
        url = f"{self.endpoint}/{from_currency}"
        try:
            if self.client is not None:
                response = self.client.get(url, timeout=settings.EXCHANGE_RATE_TIMEOUT)
            else:
                response = httpx.get(url, timeout=settings.EXCHANGE_RATE_TIMEOUT)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Error fetching exchange rates for {from_currency}: {e}")
            raise UpstreamError("Error to get exchange rates", {"error": str(e)}) from e

        if not isinstance(data, dict):
            raise UpstreamError("Error to get exchange rates", {"error": "empty response"})

        if data.get("result") != "success":
            raise UpstreamError(
                "Error fetching exchange rates because result is not success",
                {"error_type": data.get("error-type", "unknown")},
            )

        logger.info(f"Fetched exchange rates for {from_currency}")
        return data
