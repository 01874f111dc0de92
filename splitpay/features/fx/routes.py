from fastapi import APIRouter, Depends

from splitpay.features.fx.schemas import FxCompareRequest, FxCompareResponse, IlpRate, MarketRateBody
from splitpay.features.fx.services.comparator import FxRateAggregator
from splitpay.platform.config import settings
from splitpay.platform.services.market_rates import MarketRateClient
from splitpay.platform.services.open_payments import ClientFactory, get_client_factory

router = APIRouter(prefix="/fx")


def get_market_rate_client() -> MarketRateClient:
    return MarketRateClient(timeout_seconds=settings.fx_market_timeout_seconds)


def get_fx_aggregator(
    client_factory: ClientFactory = Depends(get_client_factory),
    market: MarketRateClient = Depends(get_market_rate_client),
) -> FxRateAggregator:
    return FxRateAggregator(
        client_factory=client_factory,
        market=market,
        wallets=settings.fx_wallets,
        aliases=settings.fx_aliases,
        send_major=settings.fx_send_major,
    )


@router.post("/compare", response_model=FxCompareResponse)
async def compare(
    body: FxCompareRequest,
    aggregator: FxRateAggregator = Depends(get_fx_aggregator),
) -> FxCompareResponse:
    result = await aggregator.compare(body.from_code, body.to_code)

    if result.market is not None:
        market = MarketRateBody(rate=result.market.rate, source=result.market.source)
    else:
        market = MarketRateBody(error="market-rate-unavailable")

    return FxCompareResponse(
        from_code=result.from_code,
        to_code=result.to_code,
        send_major=result.send_major,
        send_minor=str(result.send_minor) if result.send_minor is not None else None,
        ilp=IlpRate(
            rate=result.ilp_rate,
            debit_amount=result.debit_amount,
            receive_amount=result.receive_amount,
            quote_id=result.quote_id,
        ),
        market=market,
        delta_pct=result.delta_pct,
    )
