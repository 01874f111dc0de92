from fastapi import APIRouter, Depends

from splitpay.features.checkout.schemas import (
    CallbackResponse,
    GroupCheckoutRequest,
    GroupCheckoutResponse,
    PayerCheckoutResult,
    PaymentFailureItem,
    SplitCheckoutRequest,
    SplitCheckoutResponse,
)
from splitpay.features.checkout.services.callback import CallbackContinuationHandler
from splitpay.features.checkout.services.orchestrator import SplitCheckoutOrchestrator
from splitpay.platform.config import settings
from splitpay.platform.pending_store import PendingStateStore, get_pending_store
from splitpay.platform.services.open_payments import ClientFactory, get_client_factory

router = APIRouter()


def get_orchestrator(
    client_factory: ClientFactory = Depends(get_client_factory),
    store: PendingStateStore = Depends(get_pending_store),
) -> SplitCheckoutOrchestrator:
    return SplitCheckoutOrchestrator(
        client_factory=client_factory,
        store=store,
        platform_wallet_address=settings.op_platform_wallet_address,
        finish_redirect_base=settings.base_url,
    )


def get_callback_handler(
    client_factory: ClientFactory = Depends(get_client_factory),
    store: PendingStateStore = Depends(get_pending_store),
) -> CallbackContinuationHandler:
    return CallbackContinuationHandler(client_factory=client_factory, store=store)


@router.post("/split/checkout", response_model=SplitCheckoutResponse)
async def split_checkout(
    body: SplitCheckoutRequest,
    orchestrator: SplitCheckoutOrchestrator = Depends(get_orchestrator),
) -> SplitCheckoutResponse:
    started = await orchestrator.checkout(
        customer_address=body.customer_id,
        merchant_address=body.merchant_id,
        amount_minor=body.amount_minor,
        merchant_pct=body.split.merchant_pct,
        platform_pct=body.split.platform_pct,
    )
    return SplitCheckoutResponse(redirect_url=started.redirect_url, nonce=started.nonce)


@router.post("/split/group-checkout", response_model=GroupCheckoutResponse)
async def group_checkout(
    body: GroupCheckoutRequest,
    orchestrator: SplitCheckoutOrchestrator = Depends(get_orchestrator),
) -> GroupCheckoutResponse:
    started = await orchestrator.group_checkout(
        merchant_address=body.merchant_id,
        total_amount_minor=body.total_amount_minor,
        payers=body.payers,
    )
    return GroupCheckoutResponse(
        merchant=started.merchant,
        total_minor=started.total_minor,
        count=len(started.results),
        results=[
            PayerCheckoutResult(
                payer=result.payer,
                share_minor=result.share_minor,
                redirect_url=result.redirect_url,
                nonce=result.nonce,
            )
            for result in started.results
        ],
    )


@router.get("/op/callback", response_model=CallbackResponse)
async def op_callback(
    interact_ref: str | None = None,
    nonce: str | None = None,
    handler: CallbackContinuationHandler = Depends(get_callback_handler),
) -> CallbackResponse:
    result = await handler.handle(nonce=nonce, interact_ref=interact_ref)
    return CallbackResponse(
        status=result.status,
        payer=result.payer,
        outgoing_payments=result.outgoing_payments,
        failures=[
            PaymentFailureItem(quote_id=failure.quote_id, receiver=failure.receiver, error=failure.error)
            for failure in result.failures
        ],
    )
