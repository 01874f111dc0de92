from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from splitpay.platform.errors import MarketRateUnavailable, ResolutionError, ValidationError
from splitpay.platform.models import Amount, Quote
from splitpay.platform.services.grants import GrantNegotiator, incoming_payment_access, quote_access
from splitpay.platform.services.market_rates import MarketRate, MarketRateClient
from splitpay.platform.services.open_payments import ClientFactory
from splitpay.platform.services.wallet_addresses import WalletAddressResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FxComparison:
    from_code: str
    to_code: str
    send_major: int
    send_minor: int | None
    ilp_rate: float
    debit_amount: Amount | None
    receive_amount: Amount | None
    quote_id: str | None
    market: MarketRate | None

    @property
    def delta_pct(self) -> float | None:
        if self.market is None:
            return None
        return (self.ilp_rate - self.market.rate) / self.market.rate * 100


def observed_rate(quote: Quote) -> float:
    """receiveAmount / debitAmount, each in major units of its own asset."""
    debit = quote.debit_amount.to_major()
    if debit == 0:
        raise ResolutionError(f"quote {quote.id} has a zero debit amount")
    return float(quote.receive_amount.to_major() / debit)


class FxRateAggregator:
    def __init__(
        self,
        *,
        client_factory: ClientFactory,
        market: MarketRateClient,
        wallets: dict[str, str],
        aliases: dict[str, str] | None = None,
        send_major: int = 100,
    ) -> None:
        self._client_factory = client_factory
        self._market = market
        self._wallets = {code.upper(): url for code, url in wallets.items()}
        self._aliases = {code.upper(): target.upper() for code, target in (aliases or {}).items()}
        self._send_major = send_major

    @property
    def supported(self) -> list[str]:
        return sorted(self._wallets)

    def normalize(self, code: str | None) -> str:
        upper = (code or "").strip().upper()
        return self._aliases.get(upper, upper)

    async def compare(self, from_code: str | None, to_code: str | None) -> FxComparison:
        if not from_code or not to_code:
            raise ValidationError("from and to are required (e.g. USD, EUR, MXN)")

        source = self.normalize(from_code)
        target = self.normalize(to_code)
        if source not in self._wallets or target not in self._wallets:
            raise ValidationError("unsupported currency", extra={"supported": self.supported})

        if source == target:
            return FxComparison(
                from_code=source,
                to_code=target,
                send_major=self._send_major,
                send_minor=None,
                ilp_rate=1.0,
                debit_amount=None,
                receive_amount=None,
                quote_id=None,
                market=MarketRate(rate=1.0, source="identity"),
            )

        quote, send_minor = await self._quote(source, target)
        ilp_rate = observed_rate(quote)

        try:
            market = await self._market.get_rate(source, target)
        except MarketRateUnavailable:
            market = None

        comparison = FxComparison(
            from_code=source,
            to_code=target,
            send_major=self._send_major,
            send_minor=send_minor,
            ilp_rate=ilp_rate,
            debit_amount=quote.debit_amount,
            receive_amount=quote.receive_amount,
            quote_id=quote.id,
            market=market,
        )
        logger.info(
            "FX %s->%s ilp=%.6f market=%s delta=%s",
            source,
            target,
            ilp_rate,
            market.rate if market else None,
            comparison.delta_pct,
        )
        return comparison

    async def _quote(self, source: str, target: str) -> tuple[Quote, int]:
        client = self._client_factory()
        grants = GrantNegotiator(client)

        payer, receiver = await WalletAddressResolver(client).resolve_many([self._wallets[source], self._wallets[target]])

        # No incomingAmount: the payer side fixes what is sent.
        incoming_token = await grants.request_non_interactive_grant(receiver.auth_server, incoming_payment_access())
        incoming = await client.create_incoming_payment(
            receiver.resource_server,
            incoming_token.value,
            wallet_address=receiver.id,
        )

        quote_token = await grants.request_non_interactive_grant(payer.auth_server, quote_access())
        send_minor = self._send_major * 10**payer.asset_scale
        quote = await client.create_quote(
            payer.resource_server,
            quote_token.value,
            wallet_address=payer.id,
            receiver=incoming.id,
            debit_amount=payer.amount(send_minor),
        )
        return quote, send_minor
