from __future__ import annotations

import itertools

import pytest

from splitpay.platform.errors import ResolutionError
from splitpay.platform.models import (
    AccessToken,
    Amount,
    GrantContinuation,
    GrantResponse,
    IncomingPayment,
    OutgoingPayment,
    Quote,
    WalletAddressInfo,
)


class FakeOpenPaymentsClient:
    """Records every call; fabricates plausible Open Payments resources."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []
        self.wallets: dict[str, WalletAddressInfo] = {}
        self.fail: set[str] = set()
        self.fail_quote_ids: set[str] = set()
        self.debit_markup = 0
        self.fx_rate = (1, 1)
        self._ids = itertools.count(1)
        self._incoming: dict[str, IncomingPayment] = {}

    def add_wallet(self, url: str, *, asset_code: str = "USD", asset_scale: int = 2) -> WalletAddressInfo:
        info = WalletAddressInfo(
            id=url,
            auth_server=f"{url}/auth",
            resource_server=f"{url}/rs",
            asset_code=asset_code,
            asset_scale=asset_scale,
        )
        self.wallets[url] = info
        return info

    def calls_named(self, name: str) -> list[dict]:
        return [args for called, args in self.calls if called == name]

    def _record(self, name: str, **args) -> None:
        self.calls.append((name, args))
        if name in self.fail:
            raise ResolutionError(f"{name} failed upstream")

    async def resolve_wallet_address(self, url: str) -> WalletAddressInfo:
        self._record("resolve_wallet_address", url=url)
        return self.wallets.get(url) or self.add_wallet(url)

    async def request_grant(self, auth_server: str, access: list[dict], interact: dict | None = None) -> GrantResponse:
        self._record("request_grant", auth_server=auth_server, access=access, interact=interact)
        n = next(self._ids)
        if interact is None:
            return GrantResponse(access_token=AccessToken(value=f"token-{n}"))
        return GrantResponse(
            continuation=GrantContinuation(uri=f"{auth_server}/continue/{n}", access_token=f"continue-{n}"),
            redirect_url=f"{auth_server}/interact/{n}",
        )

    async def continue_grant(self, continuation: GrantContinuation, interact_ref: str) -> GrantResponse:
        self._record("continue_grant", continuation=continuation, interact_ref=interact_ref)
        return GrantResponse(access_token=AccessToken(value=f"outgoing-{interact_ref}"))

    async def create_incoming_payment(
        self,
        resource_server: str,
        token: str,
        *,
        wallet_address: str,
        incoming_amount: Amount | None = None,
    ) -> IncomingPayment:
        self._record(
            "create_incoming_payment",
            resource_server=resource_server,
            token=token,
            wallet_address=wallet_address,
            incoming_amount=incoming_amount,
        )
        payment = IncomingPayment(
            id=f"{resource_server}/incoming-payments/{next(self._ids)}",
            wallet_address=wallet_address,
            incoming_amount=incoming_amount,
        )
        self._incoming[payment.id] = payment
        return payment

    async def create_quote(
        self,
        resource_server: str,
        token: str,
        *,
        wallet_address: str,
        receiver: str,
        debit_amount: Amount | None = None,
    ) -> Quote:
        self._record(
            "create_quote",
            resource_server=resource_server,
            token=token,
            wallet_address=wallet_address,
            receiver=receiver,
            debit_amount=debit_amount,
        )
        payer = self.wallets[wallet_address]
        incoming = self._incoming[receiver]
        receiver_wallet = self.wallets[incoming.wallet_address]
        numerator, denominator = self.fx_rate

        if debit_amount is None:
            receive = incoming.incoming_amount
            debit = payer.amount(receive.value + self.debit_markup)
        else:
            debit = debit_amount
            receive = receiver_wallet.amount(debit.value * numerator // denominator)

        return Quote(
            id=f"{resource_server}/quotes/{next(self._ids)}",
            wallet_address=wallet_address,
            receiver=receiver,
            debit_amount=debit,
            receive_amount=receive,
        )

    async def create_outgoing_payment(
        self,
        resource_server: str,
        token: str,
        *,
        wallet_address: str,
        quote_id: str,
    ) -> OutgoingPayment:
        self._record(
            "create_outgoing_payment",
            resource_server=resource_server,
            token=token,
            wallet_address=wallet_address,
            quote_id=quote_id,
        )
        if quote_id in self.fail_quote_ids:
            raise ResolutionError(f"quote {quote_id} expired")
        return OutgoingPayment(
            id=f"{resource_server}/outgoing-payments/{next(self._ids)}",
            wallet_address=wallet_address,
            quote_id=quote_id,
        )


@pytest.fixture
def fake_client() -> FakeOpenPaymentsClient:
    return FakeOpenPaymentsClient()
