from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from splitpay.platform.errors import FlowNotFoundError, ResolutionError, ValidationError
from splitpay.platform.models import OutgoingPayment
from splitpay.platform.pending_store import PendingStateStore
from splitpay.platform.services.grants import GrantNegotiator
from splitpay.platform.services.open_payments import ClientFactory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentFailure:
    quote_id: str
    receiver: str
    error: str


@dataclass(frozen=True)
class CallbackResult:
    payer: str
    outgoing_payments: list[OutgoingPayment]
    failures: list[PaymentFailure] = field(default_factory=list)

    @property
    def status(self) -> str:
        return "partial" if self.failures else "ok"


class CallbackContinuationHandler:
    """Finishes a checkout once the payer has consented.

    The pending context is consumed before the grant is continued, so a
    replayed callback gets ``FlowNotFoundError`` rather than a second set of
    outgoing payments. Payments that succeed are kept even when a sibling
    fails; the result reports both.
    """

    def __init__(self, *, client_factory: ClientFactory, store: PendingStateStore) -> None:
        self._client_factory = client_factory
        self._store = store

    async def handle(self, *, nonce: str | None, interact_ref: str | None) -> CallbackResult:
        if not nonce or not interact_ref:
            raise ValidationError("interact_ref and nonce are required")

        # Configuration failures must not consume the pending flow.
        client = self._client_factory()

        context = await self._store.take(nonce)
        if context is None:
            raise FlowNotFoundError("checkout flow not found")
        if not context.receivers:
            raise ValidationError("no quotes recorded for this checkout")

        token = await GrantNegotiator(client).continue_grant(context.continuation, interact_ref)

        payer = context.payer
        outcomes = await asyncio.gather(
            *(
                client.create_outgoing_payment(
                    payer.resource_server,
                    token.value,
                    wallet_address=payer.id,
                    quote_id=entry.quote.id,
                )
                for entry in context.receivers
            ),
            return_exceptions=True,
        )

        payments: list[OutgoingPayment] = []
        failures: list[PaymentFailure] = []
        for entry, outcome in zip(context.receivers, outcomes):
            if isinstance(outcome, ResolutionError):
                logger.error("Outgoing payment for quote %s failed: %s", entry.quote.id, outcome.message)
                failures.append(PaymentFailure(quote_id=entry.quote.id, receiver=entry.receiver.id, error=outcome.message))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                payments.append(outcome)

        if not payments:
            raise ResolutionError("; ".join(failure.error for failure in failures))

        logger.info("Checkout %s completed for %s: %d paid, %d failed", nonce, payer.id, len(payments), len(failures))
        return CallbackResult(payer=payer.id, outgoing_payments=payments, failures=failures)
