from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OpenPaymentsModel(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="ignore")


class Amount(OpenPaymentsModel):
    """Money in minor units. Never a float."""

    value: int = Field(ge=0)
    asset_code: str
    asset_scale: int = Field(ge=0)

    @field_serializer("value")
    def _value_as_string(self, value: int) -> str:
        return str(value)

    def to_major(self) -> Decimal:
        return Decimal(self.value).scaleb(-self.asset_scale)


class WalletAddressInfo(OpenPaymentsModel):
    id: str
    auth_server: str
    resource_server: str
    asset_code: str
    asset_scale: int
    public_name: str | None = None

    def amount(self, value: int) -> Amount:
        return Amount(value=value, asset_code=self.asset_code, asset_scale=self.asset_scale)


class AccessToken(OpenPaymentsModel):
    value: str
    manage: str | None = None
    expires_in: int | None = None


class GrantContinuation(OpenPaymentsModel):
    uri: str
    access_token: str
    wait: int | None = None


class GrantResponse(OpenPaymentsModel):
    access_token: AccessToken | None = None
    continuation: GrantContinuation | None = None
    redirect_url: str | None = None


class IncomingPayment(OpenPaymentsModel):
    id: str
    wallet_address: str
    incoming_amount: Amount | None = None
    received_amount: Amount | None = None
    completed: bool = False


class Quote(OpenPaymentsModel):
    id: str
    wallet_address: str
    receiver: str
    debit_amount: Amount
    receive_amount: Amount
    method: str = "ilp"


class OutgoingPayment(OpenPaymentsModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, extra="allow")

    id: str
    wallet_address: str
    quote_id: str | None = None
    debit_amount: Amount | None = None
    receive_amount: Amount | None = None


class ReceiverQuote(OpenPaymentsModel):
    receiver: WalletAddressInfo
    quote: Quote


class PendingCheckoutContext(OpenPaymentsModel):
    """Everything the consent callback needs to finish a checkout."""

    nonce: str
    payer: WalletAddressInfo
    receivers: list[ReceiverQuote]
    continuation: GrantContinuation
