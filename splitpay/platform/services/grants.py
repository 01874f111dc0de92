from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from urllib.parse import urlencode

from splitpay.platform.errors import ConfigurationError, ResolutionError
from splitpay.platform.models import AccessToken, Amount, GrantContinuation
from splitpay.platform.services.open_payments import OpenPaymentsClient

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/api/op/callback"


def new_nonce() -> str:
    return secrets.token_hex(16)


def incoming_payment_access() -> list[dict]:
    return [{"type": "incoming-payment", "actions": ["create"]}]


def quote_access() -> list[dict]:
    return [{"type": "quote", "actions": ["create"]}]


def outgoing_payment_access(*, identifier: str, debit_amount: Amount) -> list[dict]:
    return [
        {
            "type": "outgoing-payment",
            "actions": ["create"],
            "identifier": identifier,
            "limits": {"debitAmount": debit_amount.model_dump(by_alias=True, mode="json")},
        }
    ]


def finish_redirect_uri(base_url: str, nonce: str) -> str:
    return f"{base_url.rstrip('/')}{CALLBACK_PATH}?{urlencode({'nonce': nonce})}"


@dataclass(frozen=True)
class InteractiveGrant:
    redirect_url: str
    continuation: GrantContinuation
    nonce: str


class GrantNegotiator:
    def __init__(self, client: OpenPaymentsClient) -> None:
        self._client = client

    async def request_non_interactive_grant(self, auth_server: str, access: list[dict]) -> AccessToken:
        grant = await self._client.request_grant(auth_server, access)
        if grant.access_token is None:
            raise ResolutionError(f"grant at {auth_server} returned no access token")
        return grant.access_token

    async def request_interactive_grant(
        self,
        auth_server: str,
        access: list[dict],
        finish_redirect_base: str | None,
    ) -> InteractiveGrant:
        if not finish_redirect_base:
            raise ConfigurationError("BASE_URL not configured")

        nonce = new_nonce()
        interact = {
            "start": ["redirect"],
            "finish": {
                "method": "redirect",
                "uri": finish_redirect_uri(finish_redirect_base, nonce),
                "nonce": nonce,
            },
        }

        grant = await self._client.request_grant(auth_server, access, interact=interact)
        if not grant.redirect_url or grant.continuation is None:
            raise ResolutionError(f"interactive grant at {auth_server} returned no redirect or continuation")

        return InteractiveGrant(redirect_url=grant.redirect_url, continuation=grant.continuation, nonce=nonce)

    async def continue_grant(self, continuation: GrantContinuation, interact_ref: str) -> AccessToken:
        grant = await self._client.continue_grant(continuation, interact_ref)
        if grant.access_token is None:
            raise ResolutionError("grant continuation returned no access token")
        return grant.access_token
