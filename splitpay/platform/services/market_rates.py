from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from splitpay.platform.config import settings
from splitpay.platform.errors import MarketRateUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MarketRate:
    rate: float
    source: str


@dataclass(frozen=True)
class MarketRateProvider:
    name: str
    request: Callable[[str, str], tuple[str, dict]]
    extract: Callable[[dict, str], object]


def _rates_entry(payload: dict, to_code: str) -> object:
    rates = payload.get("rates")
    if isinstance(rates, dict):
        return rates.get(to_code)
    return None


DEFAULT_PROVIDERS: tuple[MarketRateProvider, ...] = (
    MarketRateProvider(
        name="exchangerate.host",
        request=lambda f, t: ("https://api.exchangerate.host/convert", {"from": f, "to": t}),
        extract=lambda payload, t: payload.get("result"),
    ),
    MarketRateProvider(
        name="frankfurter.app",
        request=lambda f, t: ("https://api.frankfurter.app/latest", {"from": f, "to": t}),
        extract=_rates_entry,
    ),
    MarketRateProvider(
        name="open.er-api.com",
        request=lambda f, t: (f"https://open.er-api.com/v6/latest/{f}", {}),
        extract=_rates_entry,
    ),
)


def _positive_rate(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        rate = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(rate) or rate <= 0:
        return None
    return rate


class MarketRateClient:
    """Spot rates from public providers, tried in order until one answers."""

    def __init__(
        self,
        *,
        timeout_seconds: float | None = None,
        providers: tuple[MarketRateProvider, ...] = DEFAULT_PROVIDERS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.fx_market_timeout_seconds
        self._providers = providers
        self._transport = transport

    async def get_rate(self, from_code: str, to_code: str) -> MarketRate:
        if from_code == to_code:
            return MarketRate(rate=1.0, source="identity")

        async with httpx.AsyncClient(timeout=httpx.Timeout(self._timeout_seconds), transport=self._transport) as client:
            for provider in self._providers:
                rate = await self._try_provider(client, provider, from_code, to_code)
                if rate is not None:
                    return MarketRate(rate=rate, source=provider.name)

        logger.warning("No market rate for %s->%s from %d providers", from_code, to_code, len(self._providers))
        raise MarketRateUnavailable("market-rate-unavailable")

    async def _try_provider(
        self,
        client: httpx.AsyncClient,
        provider: MarketRateProvider,
        from_code: str,
        to_code: str,
    ) -> float | None:
        url, params = provider.request(from_code, to_code)
        try:
            response = await asyncio.wait_for(client.get(url, params=params), timeout=self._timeout_seconds)
        except (httpx.HTTPError, asyncio.TimeoutError) as exc:
            logger.info("Market rate provider %s failed: %r", provider.name, exc)
            return None

        if response.status_code >= 400:
            logger.info("Market rate provider %s returned %s", provider.name, response.status_code)
            return None

        try:
            payload = response.json()
        except ValueError:
            logger.info("Market rate provider %s returned a non-JSON body", provider.name)
            return None
        if not isinstance(payload, dict):
            return None

        return _positive_rate(provider.extract(payload, to_code))
