from pydantic import AliasChoices, Field, StrictFloat, StrictInt, StrictStr

from splitpay.platform.models import CamelModel, OutgoingPayment


class SplitRatio(CamelModel):
    merchant_pct: float
    platform_pct: float


class SplitCheckoutRequest(CamelModel):
    customer_id: str | None = Field(default=None, validation_alias=AliasChoices("customerId", "customerAddress"))
    merchant_id: str | None = Field(default=None, validation_alias=AliasChoices("merchantId", "merchantAddress"))
    amount_minor: StrictInt | StrictFloat | StrictStr = 10000
    split: SplitRatio = Field(default_factory=lambda: SplitRatio(merchant_pct=99, platform_pct=1))


class SplitCheckoutResponse(CamelModel):
    redirect_url: str
    nonce: str


class GroupCheckoutRequest(CamelModel):
    merchant_id: str | None = Field(default=None, validation_alias=AliasChoices("merchantId", "merchantAddress"))
    total_amount_minor: StrictInt | StrictFloat | StrictStr | None = None
    payers: list[str] | None = None


class PayerCheckoutResult(CamelModel):
    payer: str
    share_minor: int
    redirect_url: str
    nonce: str


class GroupCheckoutResponse(CamelModel):
    merchant: str
    total_minor: int
    count: int
    results: list[PayerCheckoutResult]


class PaymentFailureItem(CamelModel):
    quote_id: str
    receiver: str
    error: str


class CallbackResponse(CamelModel):
    status: str
    payer: str
    outgoing_payments: list[OutgoingPayment]
    failures: list[PaymentFailureItem] = []
