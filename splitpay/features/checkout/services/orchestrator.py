"""Two-party and group checkouts.

Each checkout is a chain of forward steps against the payers' and receivers'
Open Payments servers, ending in an interactive grant that suspends the flow
until the payer consents. Independent steps over different participants run
concurrently and are joined before the next stage; any failure aborts the
attempt. Nothing already created upstream (incoming payments, quotes) is
released when a later step fails.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from splitpay.features.checkout.services.shares import parse_minor_amount, split_by_percent, split_even
from splitpay.platform.errors import ConfigurationError, ResolutionError, ValidationError
from splitpay.platform.models import (
    Amount,
    IncomingPayment,
    PendingCheckoutContext,
    Quote,
    ReceiverQuote,
    WalletAddressInfo,
)
from splitpay.platform.pending_store import PendingStateStore
from splitpay.platform.services.grants import (
    GrantNegotiator,
    InteractiveGrant,
    incoming_payment_access,
    outgoing_payment_access,
    quote_access,
)
from splitpay.platform.services.open_payments import ClientFactory, OpenPaymentsClient
from splitpay.platform.services.wallet_addresses import WalletAddressResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutStart:
    redirect_url: str
    nonce: str
    merchant_share: int
    platform_share: int
    debit_amount: Amount


@dataclass(frozen=True)
class PayerCheckout:
    payer: str
    share_minor: int
    redirect_url: str
    nonce: str


@dataclass(frozen=True)
class GroupCheckoutStart:
    merchant: str
    total_minor: int
    results: list[PayerCheckout]


def total_debit(payer: WalletAddressInfo, quotes: Sequence[Quote]) -> Amount:
    for quote in quotes:
        if quote.debit_amount.asset_code != payer.asset_code or quote.debit_amount.asset_scale != payer.asset_scale:
            raise ResolutionError(
                f"quote {quote.id} debits {quote.debit_amount.asset_code}/{quote.debit_amount.asset_scale}, "
                f"expected {payer.asset_code}/{payer.asset_scale}"
            )
    return payer.amount(sum(quote.debit_amount.value for quote in quotes))


class SplitCheckoutOrchestrator:
    def __init__(
        self,
        *,
        client_factory: ClientFactory,
        store: PendingStateStore,
        platform_wallet_address: str | None,
        finish_redirect_base: str | None,
    ) -> None:
        self._client_factory = client_factory
        self._store = store
        self._platform_wallet_address = platform_wallet_address
        self._finish_redirect_base = finish_redirect_base

    def _connect(self) -> tuple[OpenPaymentsClient, WalletAddressResolver, GrantNegotiator]:
        client = self._client_factory()
        return client, WalletAddressResolver(client), GrantNegotiator(client)

    def _require_base_url(self) -> None:
        if not self._finish_redirect_base:
            raise ConfigurationError("BASE_URL not configured")

    async def checkout(
        self,
        *,
        customer_address: str | None,
        merchant_address: str | None,
        amount_minor: object,
        merchant_pct: float,
        platform_pct: float,
    ) -> CheckoutStart:
        self._require_base_url()
        if not customer_address or not merchant_address:
            raise ValidationError("customerId and merchantId are required")
        if not self._platform_wallet_address:
            raise ConfigurationError("OP_PLATFORM_WALLET_ADDRESS not configured")

        amount = parse_minor_amount(amount_minor, "amountMinor")
        merchant_share, platform_share = split_by_percent(amount, merchant_pct, platform_pct)

        client, resolver, grants = self._connect()

        customer, merchant, platform = await resolver.resolve_many(
            [customer_address, merchant_address, self._platform_wallet_address]
        )

        # A zero share (e.g. platformPct=0) gets no incoming payment.
        legs = [(wallet, share) for wallet, share in ((merchant, merchant_share), (platform, platform_share)) if share > 0]

        tokens = await asyncio.gather(
            *(grants.request_non_interactive_grant(wallet.auth_server, incoming_payment_access()) for wallet, _ in legs)
        )
        incomings: list[IncomingPayment] = await asyncio.gather(
            *(
                client.create_incoming_payment(
                    wallet.resource_server,
                    token.value,
                    wallet_address=wallet.id,
                    incoming_amount=wallet.amount(share),
                )
                for (wallet, share), token in zip(legs, tokens)
            )
        )
        logger.info(
            "Created %d incoming payments for %s (merchant=%d platform=%d)",
            len(incomings),
            customer.id,
            merchant_share,
            platform_share,
        )

        quote_token = await grants.request_non_interactive_grant(customer.auth_server, quote_access())
        quotes: list[Quote] = await asyncio.gather(
            *(
                client.create_quote(
                    customer.resource_server,
                    quote_token.value,
                    wallet_address=customer.id,
                    receiver=incoming.id,
                )
                for incoming in incomings
            )
        )

        debit_amount = total_debit(customer, quotes)
        receivers = [ReceiverQuote(receiver=wallet, quote=quote) for (wallet, _), quote in zip(legs, quotes)]
        grant = await self._suspend_for_consent(grants, payer=customer, receivers=receivers, debit_amount=debit_amount)

        return CheckoutStart(
            redirect_url=grant.redirect_url,
            nonce=grant.nonce,
            merchant_share=merchant_share,
            platform_share=platform_share,
            debit_amount=debit_amount,
        )

    async def group_checkout(
        self,
        *,
        merchant_address: str | None,
        total_amount_minor: object,
        payers: Sequence[str] | None,
    ) -> GroupCheckoutStart:
        self._require_base_url()
        if not merchant_address or not payers:
            raise ValidationError("merchantId and payers[] are required")
        if any(not isinstance(payer, str) or not payer for payer in payers):
            raise ValidationError("payers[] must be non-empty wallet addresses")

        total = parse_minor_amount(total_amount_minor, "totalAmountMinor")
        # Payers whose even share is 0 (total < payers) owe nothing and are left out.
        owing = [(payer, share) for payer, share in zip(payers, split_even(total, len(payers))) if share > 0]
        shares = [share for _, share in owing]

        client, resolver, grants = self._connect()

        merchant, *payer_wallets = await resolver.resolve_many([merchant_address, *(payer for payer, _ in owing)])

        incoming_token = await grants.request_non_interactive_grant(merchant.auth_server, incoming_payment_access())
        incomings: list[IncomingPayment] = await asyncio.gather(
            *(
                client.create_incoming_payment(
                    merchant.resource_server,
                    incoming_token.value,
                    wallet_address=merchant.id,
                    incoming_amount=merchant.amount(share),
                )
                for share in shares
            )
        )
        logger.info("Created %d incoming payments at %s for group of %d", len(incomings), merchant.id, len(payers))

        # Payers consent independently; a group may end up partially paid.
        results = await asyncio.gather(
            *(
                self._start_payer(client, grants, payer=payer, merchant=merchant, incoming=incoming, share=share)
                for payer, incoming, share in zip(payer_wallets, incomings, shares)
            )
        )

        return GroupCheckoutStart(merchant=merchant.id, total_minor=total, results=list(results))

    async def _start_payer(
        self,
        client: OpenPaymentsClient,
        grants: GrantNegotiator,
        *,
        payer: WalletAddressInfo,
        merchant: WalletAddressInfo,
        incoming: IncomingPayment,
        share: int,
    ) -> PayerCheckout:
        quote_token = await grants.request_non_interactive_grant(payer.auth_server, quote_access())
        quote = await client.create_quote(
            payer.resource_server,
            quote_token.value,
            wallet_address=payer.id,
            receiver=incoming.id,
        )

        grant = await self._suspend_for_consent(
            grants,
            payer=payer,
            receivers=[ReceiverQuote(receiver=merchant, quote=quote)],
            debit_amount=total_debit(payer, [quote]),
        )
        return PayerCheckout(payer=payer.id, share_minor=share, redirect_url=grant.redirect_url, nonce=grant.nonce)

    async def _suspend_for_consent(
        self,
        grants: GrantNegotiator,
        *,
        payer: WalletAddressInfo,
        receivers: list[ReceiverQuote],
        debit_amount: Amount,
    ) -> InteractiveGrant:
        grant = await grants.request_interactive_grant(
            payer.auth_server,
            outgoing_payment_access(identifier=payer.id, debit_amount=debit_amount),
            self._finish_redirect_base,
        )

        await self._store.put(
            grant.nonce,
            PendingCheckoutContext(
                nonce=grant.nonce,
                payer=payer,
                receivers=receivers,
                continuation=grant.continuation,
            ),
        )
        logger.info(
            "Awaiting consent from %s for %d %s (nonce=%s)",
            payer.id,
            debit_amount.value,
            debit_amount.asset_code,
            grant.nonce,
        )
        return grant
