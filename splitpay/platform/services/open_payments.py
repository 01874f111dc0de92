from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Protocol

import httpx
from pydantic import ValidationError as SchemaError

from splitpay.platform.config import settings
from splitpay.platform.errors import ConfigurationError, ResolutionError
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
from splitpay.platform.security import RequestSigner, content_digest

logger = logging.getLogger(__name__)


class OpenPaymentsClient(Protocol):
    async def resolve_wallet_address(self, url: str) -> WalletAddressInfo: ...

    async def request_grant(self, auth_server: str, access: list[dict], interact: dict | None = None) -> GrantResponse: ...

    async def continue_grant(self, continuation: GrantContinuation, interact_ref: str) -> GrantResponse: ...

    async def create_incoming_payment(
        self,
        resource_server: str,
        token: str,
        *,
        wallet_address: str,
        incoming_amount: Amount | None = None,
    ) -> IncomingPayment: ...

    async def create_quote(
        self,
        resource_server: str,
        token: str,
        *,
        wallet_address: str,
        receiver: str,
        debit_amount: Amount | None = None,
    ) -> Quote: ...

    async def create_outgoing_payment(
        self,
        resource_server: str,
        token: str,
        *,
        wallet_address: str,
        quote_id: str,
    ) -> OutgoingPayment: ...


ClientFactory = Callable[[], OpenPaymentsClient]


def _error_detail(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict):
            return str(error.get("description") or error.get("code") or error)
        if error:
            return str(error)
        if payload.get("message"):
            return str(payload["message"])
    return json.dumps(payload)[:200]


def _parse_grant(data: dict) -> GrantResponse:
    access_token = None
    raw_token = data.get("access_token")
    if isinstance(raw_token, dict) and raw_token.get("value"):
        access_token = AccessToken(
            value=raw_token["value"],
            manage=raw_token.get("manage"),
            expires_in=raw_token.get("expires_in"),
        )

    continuation = None
    raw_continue = data.get("continue")
    if isinstance(raw_continue, dict):
        token = raw_continue.get("access_token")
        if isinstance(token, dict) and token.get("value") and raw_continue.get("uri"):
            continuation = GrantContinuation(
                uri=raw_continue["uri"],
                access_token=token["value"],
                wait=raw_continue.get("wait"),
            )

    redirect_url = None
    interact = data.get("interact")
    if isinstance(interact, dict) and isinstance(interact.get("redirect"), str):
        redirect_url = interact["redirect"]

    return GrantResponse(access_token=access_token, continuation=continuation, redirect_url=redirect_url)


class HttpOpenPaymentsClient:
    def __init__(
        self,
        *,
        signer: RequestSigner,
        client_wallet_address: str,
        timeout_seconds: float = 15.0,
        max_retries: int = 0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._signer = signer
        self._client_wallet_address = client_wallet_address
        self._timeout_seconds = timeout_seconds
        self._max_retries = max(0, max_retries)
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "HttpOpenPaymentsClient":
        if not settings.op_client_key_id or not settings.op_private_key_pem or not settings.op_platform_wallet_address:
            raise ConfigurationError("OP_CLIENT_KEY_ID/OP_PRIVATE_KEY_PEM/OP_PLATFORM_WALLET_ADDRESS not configured")

        return cls(
            signer=RequestSigner.from_pem(key_id=settings.op_client_key_id, private_key_pem=settings.op_private_key_pem),
            client_wallet_address=settings.op_platform_wallet_address,
            timeout_seconds=settings.op_timeout_seconds,
            max_retries=settings.op_max_retries,
        )

    async def _send(
        self,
        method: str,
        url: str,
        *,
        payload: dict | None = None,
        token: str | None = None,
        signed: bool = True,
    ) -> dict:
        headers = {"Accept": "application/json"}
        body = b""
        if payload is not None:
            body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
            headers["Content-Type"] = "application/json"
            headers["Content-Length"] = str(len(body))
            headers["Content-Digest"] = content_digest(body)
        if token:
            headers["Authorization"] = f"GNAP {token}"
        if signed:
            headers.update(self._signer.sign(method=method, url=url, headers=headers))

        timeout = httpx.Timeout(self._timeout_seconds)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await asyncio.wait_for(
                    client.request(method, url, content=body or None, headers=headers),
                    timeout=self._timeout_seconds,
                )
        except asyncio.TimeoutError as exc:
            logger.warning("Open Payments %s %s exceeded %.1fs deadline", method, url, self._timeout_seconds)
            raise ResolutionError(f"{method} {url} timed out after {self._timeout_seconds}s") from exc
        except httpx.HTTPError as exc:
            logger.warning("Open Payments %s %s failed: %s", method, url, exc)
            raise ResolutionError(f"{method} {url} failed: {exc}") from exc

        if response.status_code >= 400:
            detail = _error_detail(response)
            logger.warning("Open Payments %s %s returned %s: %s", method, url, response.status_code, detail)
            raise ResolutionError(f"{method} {url} returned {response.status_code}: {detail}")

        try:
            data = response.json()
        except ValueError as exc:
            raise ResolutionError(f"{method} {url} returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise ResolutionError(f"{method} {url} returned an unexpected body")
        return data

    async def resolve_wallet_address(self, url: str) -> WalletAddressInfo:
        attempts = self._max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                data = await self._send("GET", url, signed=False)
                break
            except ResolutionError:
                if attempt >= attempts:
                    raise
                logger.info("Retrying wallet address %s (attempt %d/%d)", url, attempt + 1, attempts)

        try:
            return WalletAddressInfo.model_validate(data)
        except SchemaError as exc:
            raise ResolutionError(f"wallet address {url} returned invalid metadata") from exc

    async def request_grant(self, auth_server: str, access: list[dict], interact: dict | None = None) -> GrantResponse:
        payload: dict = {
            "access_token": {"access": access},
            "client": self._client_wallet_address,
        }
        if interact is not None:
            payload["interact"] = interact

        data = await self._send("POST", auth_server, payload=payload)
        return _parse_grant(data)

    async def continue_grant(self, continuation: GrantContinuation, interact_ref: str) -> GrantResponse:
        data = await self._send(
            "POST",
            continuation.uri,
            payload={"interact_ref": interact_ref},
            token=continuation.access_token,
        )
        return _parse_grant(data)

    async def _create(self, model, resource_server: str, path: str, token: str, payload: dict):
        url = f"{resource_server.rstrip('/')}/{path}"
        data = await self._send("POST", url, payload=payload, token=token)
        try:
            return model.model_validate(data)
        except SchemaError as exc:
            raise ResolutionError(f"{url} returned an invalid {path} resource") from exc

    async def create_incoming_payment(
        self,
        resource_server: str,
        token: str,
        *,
        wallet_address: str,
        incoming_amount: Amount | None = None,
    ) -> IncomingPayment:
        payload: dict = {"walletAddress": wallet_address}
        if incoming_amount is not None:
            payload["incomingAmount"] = incoming_amount.model_dump(by_alias=True, mode="json")
        return await self._create(IncomingPayment, resource_server, "incoming-payments", token, payload)

    async def create_quote(
        self,
        resource_server: str,
        token: str,
        *,
        wallet_address: str,
        receiver: str,
        debit_amount: Amount | None = None,
    ) -> Quote:
        payload: dict = {"walletAddress": wallet_address, "receiver": receiver, "method": "ilp"}
        if debit_amount is not None:
            payload["debitAmount"] = debit_amount.model_dump(by_alias=True, mode="json")
        return await self._create(Quote, resource_server, "quotes", token, payload)

    async def create_outgoing_payment(
        self,
        resource_server: str,
        token: str,
        *,
        wallet_address: str,
        quote_id: str,
    ) -> OutgoingPayment:
        payload = {"walletAddress": wallet_address, "quoteId": quote_id}
        return await self._create(OutgoingPayment, resource_server, "outgoing-payments", token, payload)


def get_client_factory() -> ClientFactory:
    return HttpOpenPaymentsClient.from_settings
