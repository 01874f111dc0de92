from pydantic import Field

from splitpay.platform.models import Amount, CamelModel


class FxCompareRequest(CamelModel):
    from_code: str | None = Field(default=None, alias="from")
    to_code: str | None = Field(default=None, alias="to")


class IlpRate(CamelModel):
    rate: float
    debit_amount: Amount | None = None
    receive_amount: Amount | None = None
    quote_id: str | None = None


class MarketRateBody(CamelModel):
    rate: float | None = None
    source: str | None = None
    error: str | None = None


class FxCompareResponse(CamelModel):
    from_code: str = Field(alias="from")
    to_code: str = Field(alias="to")
    send_major: int
    send_minor: str | None = None
    ilp: IlpRate
    market: MarketRateBody
    delta_pct: float | None = None
